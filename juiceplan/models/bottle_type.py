"""
BottleType model for bottle sizes used in production.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class BottleType(BaseModel):
    """
    Bottle size reference data.

    Attributes:
        name: Display name, e.g. "250ml" or "1L"
        size_in_ml: Volume of one bottle in milliliters
        unit_price: Cost of one empty bottle
        current_stock: Empty bottles on hand
        min_stock_level: Optional reorder threshold
        is_active: Inactive bottle types cannot be planned
    """

    __tablename__ = "bottle_types"

    name = Column(String(50), nullable=False)
    size_in_ml = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 4), nullable=False, default=Decimal("0.0000"))
    current_stock = Column(Integer, nullable=False, default=0)
    min_stock_level = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    stock_movements = relationship("BottleStockMovement", back_populates="bottle_type")

    __table_args__ = (
        Index("idx_bottle_type_size", "size_in_ml"),
        CheckConstraint("size_in_ml > 0", name="ck_bottle_type_size_positive"),
        CheckConstraint("unit_price >= 0", name="ck_bottle_type_price_non_negative"),
        CheckConstraint("current_stock >= 0", name="ck_bottle_type_stock_non_negative"),
    )

    def __repr__(self) -> str:
        return f"BottleType(id={self.id}, name='{self.name}', size_in_ml={self.size_in_ml})"
