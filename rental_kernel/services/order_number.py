"""
Order number allocation.

Format: ``<prefix><YYYYMMDD><4-digit sequence>``, e.g. ``R202401150001``.
The sequence is scoped to prefix and day, so it restarts at 0001 every
day and two prefixes never share a counter.  Allocation goes through
``SequenceService`` and is serialized per day by its counter row lock.
"""

from datetime import date

from sqlalchemy.orm import Session

from rental_kernel.exceptions import ErrorKind, RentalError
from rental_kernel.logging_config import get_logger
from rental_kernel.services.sequence_service import SequenceService

logger = get_logger("services.order_number")

SEQUENCE_DIGITS = 4
MAX_DAILY_SEQUENCE = 10 ** SEQUENCE_DIGITS - 1


def format_order_number(prefix: str, business_date: date, sequence: int) -> str:
    return f"{prefix}{business_date:%Y%m%d}{sequence:0{SEQUENCE_DIGITS}d}"


class OrderNumberService:
    """Allocates the next order number for a business date."""

    def __init__(self, session: Session, prefix: str = "R"):
        self._sequences = SequenceService(session)
        self.prefix = prefix

    def sequence_name(self, business_date: date) -> str:
        return f"order_no:{self.prefix}{business_date:%Y%m%d}"

    def next_order_number(self, business_date: date) -> str:
        seq = self._sequences.next_value(self.sequence_name(business_date))
        if seq > MAX_DAILY_SEQUENCE:
            raise RentalError(
                ErrorKind.ORDER_NUMBER_EXHAUSTED,
                f"Daily order number sequence exhausted for {business_date.isoformat()}",
                business_date=business_date,
                prefix=self.prefix,
                sequence=seq,
            )
        order_no = format_order_number(self.prefix, business_date, seq)
        logger.debug("order_number_allocated", extra={"order_no": order_no})
        return order_no
