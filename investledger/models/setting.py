# investledger/models/setting.py
from sqlalchemy import Column, String, DateTime, Text

from investledger.core.clock import utcnow
from investledger.core.database import Base


class SystemSetting(Base):
    __tablename__ = "system_settings"

    setting_key = Column(String(100), primary_key=True)
    setting_value = Column(Text)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
