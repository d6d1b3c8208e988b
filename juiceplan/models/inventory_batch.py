"""
InventoryBatch model for FIFO raw-material inventory tracking.

Each record represents one receipt of a raw material from a supplier.
quantity is an immutable snapshot of what was received; remaining_quantity
is decremented only by production execution and never increases.

FIFO Consumption:
Batches are consumed in created_at order (oldest first), ties broken by id.
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from .base import BaseModel
from .enums import InventoryBatchStatus


class InventoryBatch(BaseModel):
    """
    Raw-material receipt batch.

    Attributes:
        batch_code: Generated code, e.g. "INV240125001"
        material_type: Material name, e.g. "Orange Concentrate"
        supplier_name: Supplier the material was purchased from
        purchase_date: Date of purchase
        quantity: Quantity received (IMMUTABLE)
        remaining_quantity: Quantity still available (MUTABLE, non-increasing)
        unit_price: Price per unit at time of purchase (IMMUTABLE)
        status: active until remaining_quantity reaches zero, then finished
        finished_at: When the batch was depleted
        version: Optimistic concurrency counter maintained by SQLAlchemy
    """

    __tablename__ = "inventory_batches"

    batch_code = Column(String(20), nullable=False, unique=True)
    material_type = Column(String(200), nullable=False)
    supplier_name = Column(String(200), nullable=True)
    purchase_date = Column(Date, nullable=True)

    quantity = Column(Numeric(12, 3), nullable=False)
    remaining_quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(10, 4), nullable=False, default=Decimal("0.0000"))

    status = Column(String(20), nullable=False, default=InventoryBatchStatus.ACTIVE.value)
    finished_at = Column(DateTime, nullable=True)
    invoice_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_inventory_batch_fifo", "material_type", "status", "created_at"),
        CheckConstraint("quantity > 0", name="ck_inventory_batch_quantity_positive"),
        CheckConstraint(
            "remaining_quantity >= 0", name="ck_inventory_batch_remaining_non_negative"
        ),
        CheckConstraint(
            "remaining_quantity <= quantity", name="ck_inventory_batch_remaining_within_quantity"
        ),
        CheckConstraint("unit_price >= 0", name="ck_inventory_batch_price_non_negative"),
    )

    @property
    def is_finished(self) -> bool:
        return self.status == InventoryBatchStatus.FINISHED.value

    def __repr__(self) -> str:
        return (
            f"InventoryBatch(id={self.id}, batch_code='{self.batch_code}', "
            f"material_type='{self.material_type}', remaining={self.remaining_quantity})"
        )
