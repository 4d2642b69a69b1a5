"""
rental_services -- transaction-owning orchestration over the rental kernel.

``OrderLifecycleService`` runs order transitions; ``ProductCatalogService``
registers products and manages stock; ``notifications`` holds the outbound
hook contract.
"""

from rental_services.catalog import ProductCatalogService
from rental_services.notifications import (
    LifecycleEvent,
    LifecycleEventType,
    LoggingNotificationHook,
    NotificationHook,
    RecordingNotificationHook,
)
from rental_services.order_lifecycle import (
    CreateOrderRequest,
    OrderLifecycleService,
    ReturnCondition,
)

__all__ = [
    "CreateOrderRequest",
    "LifecycleEvent",
    "LifecycleEventType",
    "LoggingNotificationHook",
    "NotificationHook",
    "OrderLifecycleService",
    "ProductCatalogService",
    "RecordingNotificationHook",
    "ReturnCondition",
]
