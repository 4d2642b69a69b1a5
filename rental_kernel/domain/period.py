"""
Rental periods.

A rental period is a closed date interval: both the start and the end date
are billed and both block stock.  Two periods overlap when
``a.start <= b.end and a.end >= b.start``.
"""

from dataclasses import dataclass
from datetime import date, timedelta


def rental_days(start_date: date, end_date: date) -> int:
    """Number of billed days, counting both ends."""
    return (end_date - start_date).days + 1


def periods_overlap(
    start_a: date, end_a: date, start_b: date, end_b: date,
) -> bool:
    return start_a <= end_b and end_a >= start_b


@dataclass(frozen=True)
class RentalPeriod:
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return rental_days(self.start_date, self.end_date)

    def overlaps(self, other: "RentalPeriod") -> bool:
        return periods_overlap(
            self.start_date, self.end_date, other.start_date, other.end_date,
        )

    def days_late(self, return_date: date) -> int:
        """Days past the end date, 0 when on time or early."""
        return max(0, (return_date - self.end_date).days)

    def days_saved(self, return_date: date) -> int:
        """Unused days when returned before the end date."""
        return max(0, (self.end_date - return_date).days)

    def extension_window(self, new_end_date: date) -> "RentalPeriod":
        """The days added by moving the end date to ``new_end_date``."""
        return RentalPeriod(self.end_date + timedelta(days=1), new_end_date)

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()}..{self.end_date.isoformat()}"
