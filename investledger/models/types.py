# investledger/models/types.py
from sqlalchemy import Enum as SQLEnum, Numeric


def Money():
    # Financial data requires exact precision
    return Numeric(18, 2)


def enum_type(enum_cls):
    """Store the enum's lower-case value rather than its member name."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=20,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )
