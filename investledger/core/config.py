# investledger/core/config.py
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic_settings import BaseSettings
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "InvestLedger"
    VERSION: str = "1.0.0"

    # Database
    DATABASE_URL: str = "sqlite:///./investledger.db"

    # Ledger rules (overridable at runtime through system_settings)
    DEFAULT_CURRENCY: str = "USD"
    MIN_DEPOSIT_AMOUNT: Decimal = Decimal("100")
    MIN_WITHDRAWAL_AMOUNT: Decimal = Decimal("50")
    WITHDRAWAL_FEE_PERCENTAGE: Decimal = Decimal("0.5")
    REFERRAL_BONUS_PERCENTAGE: Decimal = Decimal("0")
    MIN_CRYPTO_CONFIRMATIONS: int = 3
    INVESTMENT_CANCEL_WINDOW_HOURS: int = 24
    TRANSACTION_CANCEL_WINDOW_HOURS: int = 1

    # Webhooks
    CRYPTO_WEBHOOK_SECRET: str = "default-secret-change-me"

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    MATURITY_INTERVAL_MINUTES: int = 60

    # Email
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "no-reply@investledger.local"

    LOG_LEVEL: str = "INFO"

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()

_TRUE_VALUES = ("true", "1", "yes", "on")


class AppConfig:
    """Runtime configuration provider.

    Lookup order for a key: a row in ``system_settings``, then the upper-cased
    attribute on :class:`Settings`, then the supplied default. Values are read
    on every call so admins can change fees and bonus rates without a restart.

    Stored rows come back as the raw string; the typed getters convert them.
    """

    def __init__(self, base: Optional[Settings] = None):
        self.base = base or settings

    def get(self, db: Session, key: str, default: Any = None) -> Any:
        from investledger.models.setting import SystemSetting

        row = db.query(SystemSetting).filter(SystemSetting.setting_key == key).first()
        if row is not None and row.setting_value is not None:
            return row.setting_value

        env_value = getattr(self.base, key.upper(), None)
        if env_value is not None:
            return env_value

        return default

    def get_str(self, db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(db, key, default)
        return None if value is None else str(value)

    def get_bool(self, db: Session, key: str, default: bool = False) -> bool:
        value = self.get(db, key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_VALUES

    def get_decimal(self, db: Session, key: str, default: Decimal = Decimal("0")) -> Decimal:
        value = self.get(db, key, default)
        if isinstance(value, bool):
            logger.warning(f"Setting {key} holds a boolean, falling back to {default}")
            return default
        try:
            return Decimal(str(value).strip())
        except InvalidOperation:
            logger.warning(f"Setting {key}={value!r} is not numeric, falling back to {default}")
            return default

    def get_int(self, db: Session, key: str, default: int = 0) -> int:
        return int(self.get_decimal(db, key, Decimal(default)))

    def set(self, db: Session, key: str, value: Any) -> None:
        from investledger.models.setting import SystemSetting

        row = db.query(SystemSetting).filter(SystemSetting.setting_key == key).first()
        if row is None:
            row = SystemSetting(setting_key=key)
            db.add(row)
        row.setting_value = str(value).lower() if isinstance(value, bool) else str(value)
        db.flush()


app_config = AppConfig()
