"""
Module: homestay_kernel.models.sequence_counter
Responsibility: Named counters backing application-number serials and
    sequential certificate numbers.  Row-level locking on these rows is what
    makes concurrent allocations unique (see SequenceService).
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
