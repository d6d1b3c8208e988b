"""
InventoryMovement model: append-only audit trail of inventory changes.

Rows are written once and never updated. Production execution writes one
"out" movement per (production batch, inventory batch) consumption pair;
receiving stock writes one "in" movement.

Note: inventory_batch_code and reference are stored as strings rather than
foreign keys so the ledger stays a point-in-time record.
"""

from sqlalchemy import CheckConstraint, Column, Index, Numeric, String, Text

from .base import BaseModel


class InventoryMovement(BaseModel):
    """
    Immutable inventory movement record.

    Attributes:
        inventory_batch_code: Code of the InventoryBatch that moved
        material_type: Material of that batch
        movement_type: "in" or "out" (see MovementType)
        quantity: Quantity moved (always positive)
        previous_quantity: Batch remaining quantity before the movement
        new_quantity: Batch remaining quantity after the movement
        reference: Document that caused the movement (production batch code)
        reference_type: "production" or "purchase" (see ReferenceType)
        actor_id / actor_name: Who performed the movement
    """

    __tablename__ = "inventory_movements"

    inventory_batch_code = Column(String(20), nullable=False)
    material_type = Column(String(200), nullable=False)
    movement_type = Column(String(10), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    previous_quantity = Column(Numeric(12, 3), nullable=False)
    new_quantity = Column(Numeric(12, 3), nullable=False)
    reference = Column(String(50), nullable=True)
    reference_type = Column(String(20), nullable=True)
    actor_id = Column(String(100), nullable=True)
    actor_name = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_inventory_movement_reference", "reference"),
        Index("idx_inventory_movement_material", "material_type"),
        Index("idx_inventory_movement_batch", "inventory_batch_code"),
        CheckConstraint("quantity > 0", name="ck_inventory_movement_quantity_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"InventoryMovement(id={self.id}, {self.movement_type} {self.quantity} "
            f"of '{self.material_type}' from {self.inventory_batch_code}, ref={self.reference})"
        )
