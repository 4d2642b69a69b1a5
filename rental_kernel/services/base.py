"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session contract for every write-side service in
    the kernel.  Kernel services use ``session.flush()`` only; the caller
    (``OrderLifecycleService``, a script, a test) owns commit and rollback.

Invariants enforced:
    - Transaction boundaries: kernel services never commit or roll back, so
      a conflict check, a pool update and an order insert can share one
      atomic transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from rental_kernel.db.base import Base
from rental_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` and an optional ``Clock``; persists
        with ``session.flush()`` inside the caller's transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
