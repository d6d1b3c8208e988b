"""
Requirement Service - raw-material forecast for a bottle mix.

Turns a product and a planned bottle mix into per-material requirements:
how much of each raw material is needed, how much active inventory holds,
what FIFO consumption would cost, and whether inventory is sufficient.

Functions:
- calculate_total_liters: Liters of juice for a bottle mix
- calculate_requirements: Full requirement plan for a product and bottle mix
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from juiceplan.models import BottleType, Product
from juiceplan.services import inventory_ledger_service
from juiceplan.services.database import session_scope
from juiceplan.services.dto import MaterialRatio, MaterialRequirement, RequirementPlan
from juiceplan.services.exceptions import DatabaseError
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.services.material_ratio_service import default_ratio, estimate_ratios
from juiceplan.utils.constants import ML_PER_LITER, MONEY_PLACES, QUANTITY_PLACES

logger = get_service_logger(__name__)


def calculate_total_liters(
    bottle_quantities: Mapping[int, int],
    bottle_types: Iterable[BottleType],
) -> Decimal:
    """
    Calculate liters of juice needed for a bottle mix.

    Sums size_in_ml * quantity over bottle types with a quantity > 0 and
    converts to liters. Quantities for unknown bottle types are ignored.

    Args:
        bottle_quantities: {bottle_type_id: quantity}
        bottle_types: Bottle types to resolve sizes from

    Returns:
        Total liters as a Decimal

    Example:
        >>> calculate_total_liters({1: 4, 3: 1}, [bt_250ml, bt_1000ml])
        Decimal('2')
    """
    sizes = {int(bt.id): int(bt.size_in_ml) for bt in bottle_types}
    total_ml = Decimal("0")
    for bottle_type_id, quantity in bottle_quantities.items():
        quantity = int(quantity or 0)
        if quantity <= 0:
            continue
        size = sizes.get(int(bottle_type_id))
        if size is None:
            continue
        total_ml += Decimal(size) * quantity
    return total_ml / ML_PER_LITER


def calculate_requirements(
    product: Product,
    bottle_quantities: Mapping[int, int],
    ratios: Optional[Dict[str, MaterialRatio]] = None,
    *,
    include_cost: bool = False,
    session=None,
) -> RequirementPlan:
    """
    Forecast raw-material requirements for a product and bottle mix.

    **CORE ALGORITHM**:
        1. total_liters = sum(size_in_ml * qty for qty > 0) / 1000;
           zero liters yields an empty requirement list
        2. For each material of the product, in product order:
           required = total_liters * ratio.avg
        3. available = remaining quantity across active batches (FIFO order)
        4. estimated_cost = FIFO walk up to required at each batch's unit
           price; a preview only, nothing is reserved
        5. is_enough = available >= required

    A failure reading one material's inventory degrades that material to
    available 0, cost 0, not enough; the other materials are still computed.

    Args:
        product: Product being planned
        bottle_quantities: {bottle_type_id: quantity}
        ratios: Optional precomputed ratios (default: estimate_ratios(product))
        include_cost: If False, estimated_cost is None on every entry
        session: Optional database session

    Returns:
        RequirementPlan with total_liters and per-material requirements

    Raises:
        DatabaseError: If bottle types cannot be loaded
    """
    if session is not None:
        return _calculate(product, bottle_quantities, ratios, include_cost, session)
    with session_scope() as sess:
        return _calculate(product, bottle_quantities, ratios, include_cost, sess)


def _calculate(product, bottle_quantities, ratios, include_cost, session) -> RequirementPlan:
    try:
        bottle_types = session.query(BottleType).all()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load bottle types", original_error=e)

    total_liters = calculate_total_liters(bottle_quantities, bottle_types)
    plan = RequirementPlan(total_liters=total_liters)
    if total_liters <= 0:
        return plan

    if ratios is None:
        ratios = estimate_ratios(product)

    for material in product.raw_materials or []:
        ratio = ratios.get(material) or default_ratio()
        required = (total_liters * ratio.avg).quantize(QUANTITY_PLACES)
        plan.requirements.append(
            _material_requirement(material, required, ratio, include_cost, session)
        )

    shortages = plan.shortages
    if shortages:
        log_operation(
            logger,
            operation="calculate_requirements",
            outcome="shortage",
            product_id=product.id,
            total_liters=str(total_liters),
            short_materials=[req.material_type for req in shortages],
        )
    return plan


def _material_requirement(
    material: str,
    required: Decimal,
    ratio: MaterialRatio,
    include_cost: bool,
    session,
) -> MaterialRequirement:
    try:
        batches = inventory_ledger_service.get_active_batches(material, session=session)
    except (DatabaseError, SQLAlchemyError) as e:
        log_operation(
            logger,
            operation="calculate_requirements",
            outcome="degraded",
            level=logging.WARNING,
            material_type=material,
            error=str(e),
        )
        return MaterialRequirement(
            material_type=material,
            required_quantity=required,
            available_quantity=Decimal("0"),
            estimated_cost=Decimal("0") if include_cost else None,
            is_enough=False,
            ratio=ratio,
            degraded=True,
        )

    available = sum((Decimal(str(b.remaining_quantity)) for b in batches), Decimal("0"))
    fifo = inventory_ledger_service.allocate_fifo(material, required, batches)

    return MaterialRequirement(
        material_type=material,
        required_quantity=required,
        available_quantity=available,
        estimated_cost=fifo.total_cost.quantize(MONEY_PLACES) if include_cost else None,
        is_enough=available >= required,
        ratio=ratio,
    )
