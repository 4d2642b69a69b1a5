"""Services for the rental kernel (write side)."""

from rental_kernel.services.inventory_ledger import InventoryLedger
from rental_kernel.services.order_number import OrderNumberService, format_order_number
from rental_kernel.services.period_conflict import PeriodConflictResolver, WindowAvailability
from rental_kernel.services.sequence_service import SequenceService

__all__ = [
    "InventoryLedger",
    "OrderNumberService",
    "format_order_number",
    "PeriodConflictResolver",
    "WindowAvailability",
    "SequenceService",
]
