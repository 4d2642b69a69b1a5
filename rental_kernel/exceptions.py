"""
Typed error kinds for the rental kernel.

===============================================================================
ONE EXCEPTION, MANY KINDS
===============================================================================

Callers need to tell errors apart precisely. A message string is fragile,
and a deep subclass tree spreads retry and escalation policy across dozens
of classes. Instead there is a single exception type, ``RentalError``,
whose ``kind`` is a member of the ``ErrorKind`` enum. The kind carries
everything a caller branches on:

    code                         machine-readable, API-safe
    category                     validation / inventory / state / payment /
                                 concurrency / system
    retryable                    same call may succeed if simply retried
    recoverable                  caller can correct input and try again
    requires_admin_notification  page a human, never retry silently
    customer_displayable         message may be shown to the end customer

Structured data lives in ``error.payload`` (field names, quantities,
dates, amounts), never only in the message.

Example:
    try:
        lifecycle.create(request, customer, actor_id=actor)
    except RentalError as e:
        if e.kind is ErrorKind.PERIOD_CONFLICT:
            suggest_other_dates(e.payload["start_date"], e.payload["end_date"])
        elif e.requires_admin_notification:
            page_on_call(e.code, e.payload)
        else:
            raise
"""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    INVENTORY = "inventory"
    STATE = "state"
    PAYMENT = "payment"
    CONCURRENCY = "concurrency"
    SYSTEM = "system"


class ErrorKind(Enum):
    """
    Every failure the kernel can surface.

    Member value is a tuple of
    (code, category, retryable, recoverable, admin, displayable).
    """

    # -- validation: user-correctable, never mutates state -------------------
    REQUIRED = ("REQUIRED", ErrorCategory.VALIDATION, False, True, False, True)
    INVALID_FORMAT = ("INVALID_FORMAT", ErrorCategory.VALIDATION, False, True, False, True)
    OUT_OF_RANGE = ("OUT_OF_RANGE", ErrorCategory.VALIDATION, False, True, False, True)
    INVALID_PERIOD = ("INVALID_PERIOD", ErrorCategory.VALIDATION, False, True, False, True)
    INVALID_QUANTITY = ("INVALID_QUANTITY", ErrorCategory.VALIDATION, False, True, False, True)
    BUSINESS_RULE = ("BUSINESS_RULE", ErrorCategory.VALIDATION, False, True, False, True)
    VALIDATION_FAILED = ("VALIDATION_FAILED", ErrorCategory.VALIDATION, False, True, False, True)
    INVALID_PRODUCT = ("INVALID_PRODUCT", ErrorCategory.VALIDATION, False, True, False, False)
    PRODUCT_UNAVAILABLE = ("PRODUCT_UNAVAILABLE", ErrorCategory.VALIDATION, False, True, False, True)
    PRICING_UNAVAILABLE = ("PRICING_UNAVAILABLE", ErrorCategory.VALIDATION, False, True, False, True)
    CUSTOMER_INELIGIBLE = ("CUSTOMER_INELIGIBLE", ErrorCategory.VALIDATION, False, True, False, True)
    INVALID_SOURCE_POOL = ("INVALID_SOURCE_POOL", ErrorCategory.VALIDATION, False, True, False, False)

    # -- inventory: business outcome, no partial mutation --------------------
    OUT_OF_STOCK = ("OUT_OF_STOCK", ErrorCategory.INVENTORY, False, True, False, True)
    INSUFFICIENT_STOCK = ("INSUFFICIENT_STOCK", ErrorCategory.INVENTORY, False, True, False, True)
    PERIOD_CONFLICT = ("PERIOD_CONFLICT", ErrorCategory.INVENTORY, False, True, False, True)
    RESERVATION_FAILED = ("RESERVATION_FAILED", ErrorCategory.INVENTORY, False, True, False, True)
    OVERCOMMIT = ("OVERCOMMIT", ErrorCategory.INVENTORY, False, False, True, False)
    STOCK_CALCULATION = ("STOCK_CALCULATION", ErrorCategory.INVENTORY, False, False, True, False)

    # -- lifecycle -----------------------------------------------------------
    INVALID_STATE_TRANSITION = (
        "INVALID_STATE_TRANSITION", ErrorCategory.STATE, False, True, False, True,
    )
    ORDER_NOT_FOUND = ("ORDER_NOT_FOUND", ErrorCategory.STATE, False, True, False, True)
    POOL_NOT_FOUND = ("POOL_NOT_FOUND", ErrorCategory.STATE, False, False, False, False)

    # -- payment gateway outcomes (classification only) ----------------------
    CARD_DECLINED = ("CARD_DECLINED", ErrorCategory.PAYMENT, False, True, False, True)
    INSUFFICIENT_FUNDS = ("INSUFFICIENT_FUNDS", ErrorCategory.PAYMENT, False, True, False, True)
    EXPIRED_CARD = ("EXPIRED_CARD", ErrorCategory.PAYMENT, True, True, False, True)
    INVALID_CARD = ("INVALID_CARD", ErrorCategory.PAYMENT, True, True, False, True)
    NETWORK_ERROR = ("NETWORK_ERROR", ErrorCategory.PAYMENT, False, True, False, True)
    GATEWAY_ERROR = ("GATEWAY_ERROR", ErrorCategory.PAYMENT, True, True, False, True)
    TIMEOUT = ("TIMEOUT", ErrorCategory.PAYMENT, True, True, False, True)
    REFUND_FAILED = ("REFUND_FAILED", ErrorCategory.PAYMENT, False, False, True, False)
    FRAUD_SUSPECTED = ("FRAUD_SUSPECTED", ErrorCategory.PAYMENT, False, False, True, False)
    CHARGEBACK = ("CHARGEBACK", ErrorCategory.PAYMENT, False, False, True, False)

    # -- concurrency ---------------------------------------------------------
    CONCURRENT_MODIFICATION = (
        "CONCURRENT_MODIFICATION", ErrorCategory.CONCURRENCY, True, True, False, False,
    )

    # -- system --------------------------------------------------------------
    ORDER_NUMBER_EXHAUSTED = (
        "ORDER_NUMBER_EXHAUSTED", ErrorCategory.SYSTEM, False, False, True, False,
    )
    CONFIGURATION_ERROR = ("CONFIGURATION_ERROR", ErrorCategory.SYSTEM, False, False, True, False)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def category(self) -> ErrorCategory:
        return self.value[1]

    @property
    def retryable(self) -> bool:
        return self.value[2]

    @property
    def recoverable(self) -> bool:
        return self.value[3]

    @property
    def requires_admin_notification(self) -> bool:
        return self.value[4]

    @property
    def customer_displayable(self) -> bool:
        return self.value[5]

    @property
    def is_critical(self) -> bool:
        """Critical kinds must surface distinctly and never be retried silently."""
        return self.requires_admin_notification and not self.recoverable


class RentalError(Exception):
    """
    The single exception type raised by the rental kernel.

    Contract:
        ``kind`` selects the failure; ``payload`` holds structured data.
        Policy attributes are read from the kind so that two errors of the
        same kind always agree on retry and escalation behaviour.
    """

    def __init__(self, kind: ErrorKind, message: str | None = None, **payload: Any):
        self.kind = kind
        self.payload: dict[str, Any] = payload
        super().__init__(message or kind.code)

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def recoverable(self) -> bool:
        return self.kind.recoverable

    @property
    def requires_admin_notification(self) -> bool:
        return self.kind.requires_admin_notification

    @property
    def customer_displayable(self) -> bool:
        return self.kind.customer_displayable

    @property
    def is_critical(self) -> bool:
        return self.kind.is_critical

    def to_dict(self) -> dict[str, Any]:
        """API-safe representation of the error."""
        return {
            "code": self.code,
            "category": self.category.value,
            "message": str(self),
            "retryable": self.retryable,
            "recoverable": self.recoverable,
            "requires_admin_notification": self.requires_admin_notification,
            "payload": dict(self.payload),
        }

    def __repr__(self) -> str:
        return f"RentalError({self.kind.name}, {str(self)!r})"
