"""
Module: rental_kernel.selectors.base
Responsibility: Abstract base for read-only query selectors.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return frozen DTOs or plain values, not ORM rows.
    - The caller owns the session and its transaction scope, so a selector
      called under a pool lock sees the same snapshot as the writer.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from rental_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    def __init__(self, session: Session):
        self.session = session
