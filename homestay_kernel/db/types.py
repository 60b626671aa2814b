"""
Module: homestay_kernel.db.types
Responsibility: Column types and annotated aliases shared by every model.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Timestamps are always timezone-aware UTC when read back, on every
      backend.  SQLite has no timezone storage, so UTCDateTime normalises
      on the way in and re-attaches UTC on the way out.
    - Fee amounts use Decimal, never float.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated

from sqlalchemy import DateTime, Numeric, String, Text
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    Guarantees:
        - process_bind_param: aware datetimes are converted to UTC; naive
          datetimes are rejected.
        - process_result_value: values always come back with tzinfo=UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# Fee amount in rupees, two decimal places
Amount = Annotated[Decimal, Numeric(12, 2)]

# Enum-valued status / kind / role strings
ShortCode = Annotated[str, String(50)]

# Human-readable numbers (application / certificate)
NumberString = Annotated[str, String(64)]

# Names, addresses, file paths
MediumText = Annotated[str, String(500)]

# Free-form officer feedback
LongText = Annotated[str, Text]
