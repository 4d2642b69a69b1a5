"""Read-only selectors for the rental kernel."""

from rental_kernel.selectors.order_selector import OrderSelector

__all__ = ["OrderSelector"]
