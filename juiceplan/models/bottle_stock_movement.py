"""
BottleStockMovement model: append-only record of bottle stock changes.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class BottleStockMovement(BaseModel):
    """
    Bottle stock change caused by production.

    Attributes:
        bottle_type_id: BottleType whose stock changed
        movement_type: "production" for bottles filled by a production batch
        quantity: Bottles taken from stock
        previous_stock / new_stock: Stock counter before and after
        reference: Production batch code
    """

    __tablename__ = "bottle_stock_movements"

    bottle_type_id = Column(
        Integer, ForeignKey("bottle_types.id", ondelete="RESTRICT"), nullable=False
    )
    movement_type = Column(String(20), nullable=False, default="production")
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    reference = Column(String(50), nullable=True)
    actor_id = Column(String(100), nullable=True)
    actor_name = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    bottle_type = relationship("BottleType", back_populates="stock_movements")

    __table_args__ = (
        Index("idx_bottle_stock_movement_bottle", "bottle_type_id"),
        Index("idx_bottle_stock_movement_reference", "reference"),
    )
