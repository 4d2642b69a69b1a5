"""
Module: rental_kernel.models.inventory_pool
Responsibility: ORM persistence for per-product inventory counters.

Invariants enforced:
    - One row per product (unique product_id).
    - ``version`` is SQLAlchemy's version_id_col: every UPDATE is issued as
      ``... WHERE id = :id AND version = :expected`` and raises
      StaleDataError when another transaction got there first.
    - Counters are only written through ``apply_state()`` from a validated
      ``PoolState``, so a negative counter can never be flushed.
"""

from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.inventory_pool import PoolState

_COUNTERS = ("available", "reserved", "rented", "maintenance", "damaged", "lost")


class InventoryPoolModel(TrackedBase):
    """Six unit counters for one product."""

    __tablename__ = "inventory_pools"

    __table_args__ = tuple(
        CheckConstraint(f"{name} >= 0", name=f"ck_inventory_pool_{name}_nonneg")
        for name in _COUNTERS
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)

    available: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reserved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rented: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    maintenance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    damaged: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lost: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    alert_threshold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int | None] = mapped_column(Integer, nullable=True)
    auto_reorder_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_state(self) -> PoolState:
        return PoolState(
            available=self.available,
            reserved=self.reserved,
            rented=self.rented,
            maintenance=self.maintenance,
            damaged=self.damaged,
            lost=self.lost,
            alert_threshold=self.alert_threshold,
            reorder_point=self.reorder_point,
            auto_reorder_enabled=self.auto_reorder_enabled,
        )

    def apply_state(self, state: PoolState) -> None:
        for name in _COUNTERS:
            setattr(self, name, getattr(state, name))

    def __repr__(self) -> str:
        return (
            f"<InventoryPoolModel product={self.product_id} "
            f"available={self.available} reserved={self.reserved} rented={self.rented} "
            f"v{self.version}>"
        )
