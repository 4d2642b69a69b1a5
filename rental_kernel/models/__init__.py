"""ORM models for the rental kernel."""

from rental_kernel.models.inventory_pool import InventoryPoolModel
from rental_kernel.models.order import RentalOrderModel
from rental_kernel.models.product import RentalProductModel
from rental_kernel.models.sequence import SequenceCounter

__all__ = [
    "InventoryPoolModel",
    "RentalOrderModel",
    "RentalProductModel",
    "SequenceCounter",
]
