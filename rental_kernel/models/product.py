"""
Module: rental_kernel.models.product
Responsibility: ORM persistence for rental products and their rate cards.
    Maps the frozen ``RentalProduct`` DTO to the ``rental_products`` table.

Invariants enforced:
    - Money and rate columns are Decimal (ExactDecimal), never float.
    - ``to_dto()`` re-runs the DTO invariants, so a row edited out of band
      into an invalid shape fails loudly on read.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase
from rental_kernel.domain.product import RateCard, RentalProduct


class RentalProductModel(TrackedBase):
    """ORM model for a rentable product."""

    __tablename__ = "rental_products"

    __table_args__ = (
        Index("idx_rental_product_code", "code", unique=True),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    daily_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    weekly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    monthly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    min_rental_days: Mapped[int] = mapped_column(Integer, default=1)
    max_rental_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    deposit_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    replacement_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    insurance_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    extension_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    early_return_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    replacement_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    preparation_days: Mapped[int] = mapped_column(Integer, default=0)
    stock_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dto(self) -> RentalProduct:
        return RentalProduct(
            id=self.id,
            code=self.code,
            name=self.name,
            rate_card=RateCard(
                daily=self.daily_rate,
                weekly=self.weekly_rate,
                monthly=self.monthly_rate,
            ),
            is_enabled=self.is_enabled,
            min_rental_days=self.min_rental_days,
            max_rental_days=self.max_rental_days,
            deposit_amount=self.deposit_amount,
            replacement_value=self.replacement_value,
            insurance_fee=self.insurance_fee,
            discount_rate=self.discount_rate,
            extension_rate=self.extension_rate,
            early_return_rate=self.early_return_rate,
            replacement_fee=self.replacement_fee,
            preparation_days=self.preparation_days,
            stock_capacity=self.stock_capacity,
        )

    @classmethod
    def from_dto(cls, dto: RentalProduct, created_by_id: UUID) -> "RentalProductModel":
        # created_by_id is set here; timestamps are stamped by the caller
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            is_enabled=dto.is_enabled,
            daily_rate=dto.rate_card.daily,
            weekly_rate=dto.rate_card.weekly,
            monthly_rate=dto.rate_card.monthly,
            min_rental_days=dto.min_rental_days,
            max_rental_days=dto.max_rental_days,
            deposit_amount=dto.deposit_amount,
            replacement_value=dto.replacement_value,
            insurance_fee=dto.insurance_fee,
            discount_rate=dto.discount_rate,
            extension_rate=dto.extension_rate,
            early_return_rate=dto.early_return_rate,
            replacement_fee=dto.replacement_fee,
            preparation_days=dto.preparation_days,
            stock_capacity=dto.stock_capacity,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<RentalProductModel {self.code} enabled={self.is_enabled}>"
