# investledger/models/__init__.py
from .user import User
from .package import InvestmentPackage
from .investment import Investment, InvestmentStatus
from .transaction import Transaction, TransactionType, TransactionStatus
from .audit import AuditLog
from .setting import SystemSetting

__all__ = [
    "User", "InvestmentPackage", "Investment", "InvestmentStatus",
    "Transaction", "TransactionType", "TransactionStatus", "AuditLog", "SystemSetting",
]
