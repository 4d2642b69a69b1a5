"""
Module: rental_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.

Each row is one named sequence (for order numbers, one per business day).
Row-level locking on this table is what makes allocation race-free.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    # e.g. "order_no:R20240115"
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
