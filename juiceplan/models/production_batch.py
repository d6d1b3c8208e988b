"""
ProductionBatch model: the planned -> completed production aggregate.

A batch is created in the "planned" state by the planner with its bottle
mix and forecast material requirements, then transitions exactly once to
"completed" when the executor records actual output and consumes inventory.

Map-valued fields are stored as JSON. Keys of bottle maps are bottle type
ids as strings; Decimal quantities and costs are stored as strings to
preserve precision.
"""

from decimal import Decimal
from typing import Dict

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import BatchStatus


class ProductionBatch(BaseModel):
    """
    Production batch aggregate.

    Attributes:
        batch_code: Human-typeable unique code, e.g. "PJ7KX2MQ"
        product_id / product_name: Product being produced (name snapshot)
        production_date: Planned production date (immutable once planned)
        status: "planned" or "completed" (see BatchStatus)
        planned_bottles: {bottle_type_id: quantity}
        total_juice_needed: Liters required for the planned bottles
        material_requirements: {material_type: {"quantity": "50.000",
            "estimated_cost": "1100.00"}}; estimated_cost only for admins
        actual_bottles_produced: {bottle_type_id: quantity}
        actual_materials_used: {material_type: "49.500"}
        material_shortfalls: {material_type: "2.000"} for usage inventory
            could not cover at execution time
        material_cost / bottle_cost / total_cost: Admin-only execution costs
        version: Optimistic concurrency counter maintained by SQLAlchemy
    """

    __tablename__ = "production_batches"

    batch_code = Column(String(20), nullable=False)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    product_name = Column(String(200), nullable=False)
    production_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=BatchStatus.PLANNED.value)

    # Planning data
    planned_bottles = Column(JSON, nullable=False, default=dict)
    total_juice_needed = Column(Numeric(12, 3), nullable=False, default=Decimal("0.000"))
    material_requirements = Column(JSON, nullable=False, default=dict)
    notes = Column(Text, nullable=True)
    planned_by = Column(String(100), nullable=False)
    planned_by_name = Column(String(200), nullable=True)
    planned_at = Column(DateTime, nullable=False)

    # Execution data
    actual_bottles_produced = Column(JSON, nullable=True)
    actual_materials_used = Column(JSON, nullable=True)
    material_shortfalls = Column(JSON, nullable=True)
    production_notes = Column(Text, nullable=True)
    material_cost = Column(Numeric(12, 4), nullable=True)
    bottle_cost = Column(Numeric(12, 4), nullable=True)
    total_cost = Column(Numeric(12, 4), nullable=True)
    started_at = Column(DateTime, nullable=True)
    started_by = Column(String(100), nullable=True)
    started_by_name = Column(String(200), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String(100), nullable=True)
    completed_by_name = Column(String(200), nullable=True)

    version = Column(Integer, nullable=False)

    product = relationship("Product", back_populates="production_batches")
    quality_tests = relationship(
        "QualityTestResult",
        back_populates="production_batch",
        cascade="all, delete-orphan",
        order_by="QualityTestResult.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("uq_production_batch_code", "batch_code", unique=True),
        Index("idx_production_batch_status", "status"),
        Index("idx_production_batch_product", "product_id"),
        Index("idx_production_batch_date", "production_date"),
        CheckConstraint(
            "status IN ('planned', 'completed')", name="ck_production_batch_status_valid"
        ),
        CheckConstraint(
            "total_juice_needed >= 0", name="ck_production_batch_juice_non_negative"
        ),
    )

    @property
    def is_planned(self) -> bool:
        return self.status == BatchStatus.PLANNED.value

    @property
    def is_completed(self) -> bool:
        return self.status == BatchStatus.COMPLETED.value

    def planned_bottle_total(self) -> int:
        """Total number of planned bottles across all sizes."""
        return sum(int(qty) for qty in (self.planned_bottles or {}).values())

    def produced_bottle_total(self) -> int:
        """Total number of bottles actually produced across all sizes."""
        return sum(int(qty) for qty in (self.actual_bottles_produced or {}).values())

    def materials_used(self) -> Dict[str, Decimal]:
        """Actual material usage with quantities as Decimals."""
        return {
            material: Decimal(str(qty))
            for material, qty in (self.actual_materials_used or {}).items()
        }

    def to_dict(self, include_relationships: bool = False) -> dict:
        result = super().to_dict(include_relationships=False)
        if include_relationships:
            result["quality_tests"] = [test.to_dict() for test in self.quality_tests]
        return result

    def __repr__(self) -> str:
        return (
            f"ProductionBatch(id={self.id}, batch_code='{self.batch_code}', "
            f"product='{self.product_name}', status='{self.status}')"
        )
