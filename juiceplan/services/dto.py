"""Data Transfer Objects for the service layer.

Type-safe structures passed between the ratio estimator, requirement
calculator, inventory ledger, planner and executor.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class MaterialRatio:
    """Expected kilograms of a raw material per liter of juice.

    Only ``avg`` drives requirement quantities; ``min`` and ``max`` are
    informational bounds shown to planners.
    """

    min: Decimal
    max: Decimal
    avg: Decimal
    sample_count: int = 0


@dataclass
class MaterialRequirement:
    """Forecast need for one raw material.

    Attributes:
        material_type: Material name
        required_quantity: total_liters * ratio.avg
        available_quantity: Remaining quantity across active inventory batches
        estimated_cost: FIFO cost preview; None when costs are not visible
        is_enough: available_quantity >= required_quantity
        ratio: Ratio used for the forecast
        degraded: True when inventory could not be read for this material
    """

    material_type: str
    required_quantity: Decimal
    available_quantity: Decimal
    estimated_cost: Optional[Decimal]
    is_enough: bool
    ratio: Optional[MaterialRatio] = None
    degraded: bool = False

    @property
    def shortage(self) -> Decimal:
        """Quantity missing from inventory (zero when enough)."""
        return max(Decimal("0"), self.required_quantity - self.available_quantity)

    def to_record(self, include_cost: bool) -> Dict[str, str]:
        """Form stored in ProductionBatch.material_requirements."""
        record = {"quantity": str(self.required_quantity)}
        if include_cost and self.estimated_cost is not None:
            record["estimated_cost"] = str(self.estimated_cost)
        return record

    def to_dict(self, include_cost: bool = False) -> Dict[str, Any]:
        result = {
            "material_type": self.material_type,
            "required_quantity": str(self.required_quantity),
            "available_quantity": str(self.available_quantity),
            "shortage": str(self.shortage),
            "is_enough": self.is_enough,
            "degraded": self.degraded,
        }
        if self.ratio is not None:
            result["ratio"] = {
                "min": str(self.ratio.min),
                "max": str(self.ratio.max),
                "avg": str(self.ratio.avg),
                "sample_count": self.ratio.sample_count,
            }
        if include_cost:
            result["estimated_cost"] = (
                str(self.estimated_cost) if self.estimated_cost is not None else None
            )
        return result


@dataclass
class RequirementPlan:
    """Result of a requirement calculation for one bottle mix."""

    total_liters: Decimal
    requirements: List[MaterialRequirement] = field(default_factory=list)

    @property
    def has_shortage(self) -> bool:
        return any(not req.is_enough for req in self.requirements)

    @property
    def shortages(self) -> List[MaterialRequirement]:
        return [req for req in self.requirements if not req.is_enough]

    def to_dict(self, include_cost: bool = False) -> Dict[str, Any]:
        return {
            "total_liters": str(self.total_liters),
            "has_shortage": self.has_shortage,
            "requirements": [req.to_dict(include_cost) for req in self.requirements],
        }


@dataclass(frozen=True)
class FifoAllocation:
    """Quantity taken from one inventory batch."""

    inventory_batch_id: int
    inventory_batch_code: str
    quantity: Decimal
    unit_price: Decimal
    previous_quantity: Decimal

    @property
    def cost(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def new_quantity(self) -> Decimal:
        return self.previous_quantity - self.quantity


@dataclass
class FifoResult:
    """Outcome of allocating a quantity of one material in FIFO order.

    Attributes:
        material_type: Material allocated
        requested: Quantity asked for
        allocations: Per-batch allocations, oldest batch first
    """

    material_type: str
    requested: Decimal
    allocations: List[FifoAllocation] = field(default_factory=list)

    @property
    def allocated(self) -> Decimal:
        return sum((a.quantity for a in self.allocations), Decimal("0"))

    @property
    def total_cost(self) -> Decimal:
        return sum((a.cost for a in self.allocations), Decimal("0"))

    @property
    def shortfall(self) -> Decimal:
        return max(Decimal("0"), self.requested - self.allocated)

    @property
    def satisfied(self) -> bool:
        return self.shortfall == 0

    def to_dict(self, include_cost: bool = False) -> Dict[str, Any]:
        result = {
            "material_type": self.material_type,
            "requested": str(self.requested),
            "allocated": str(self.allocated),
            "shortfall": str(self.shortfall),
            "allocations": [],
        }
        for a in self.allocations:
            entry = {
                "inventory_batch_code": a.inventory_batch_code,
                "quantity": str(a.quantity),
                "previous_quantity": str(a.previous_quantity),
                "new_quantity": str(a.new_quantity),
            }
            if include_cost:
                entry["unit_price"] = str(a.unit_price)
                entry["cost"] = str(a.cost)
            result["allocations"].append(entry)
        if include_cost:
            result["total_cost"] = str(self.total_cost)
        return result


@dataclass
class QualityReadings:
    """Quality measurements entered at execution time.

    None means "not measured"; a reading of zero is a real reading.
    Photo fields hold image references returned by the image upload service.
    """

    brix_before: Optional[Decimal] = None
    acidity_before: Optional[Decimal] = None
    brix_after: Optional[Decimal] = None
    acidity_after: Optional[Decimal] = None
    brix_before_photo: Optional[str] = None
    acidity_before_photo: Optional[str] = None
    brix_after_photo: Optional[str] = None
    acidity_after_photo: Optional[str] = None
