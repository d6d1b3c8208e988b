"""
Material Ratio Service - kilograms of raw material per liter of juice.

Ratios come from a product's historical production statistics
(Product.average_ratios) when present, otherwise from the default recipe
ratio in constants. refresh_average_ratios() folds newly completed production
batches into those statistics.
"""

from contextlib import nullcontext
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from juiceplan.models import BatchStatus, BottleType, Product, ProductionBatch
from juiceplan.services.database import session_scope
from juiceplan.services.dto import MaterialRatio
from juiceplan.services.exceptions import DatabaseError, ProductNotFound
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.utils.constants import (
    DEFAULT_RATIO_AVG,
    DEFAULT_RATIO_MAX,
    DEFAULT_RATIO_MIN,
    ML_PER_LITER,
    RATIO_PLACES,
)
from juiceplan.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)


def default_ratio() -> MaterialRatio:
    """Ratio used for materials without production history."""
    return MaterialRatio(
        min=DEFAULT_RATIO_MIN,
        max=DEFAULT_RATIO_MAX,
        avg=DEFAULT_RATIO_AVG,
        sample_count=0,
    )


def estimate_ratios(product: Product) -> Dict[str, MaterialRatio]:
    """
    Estimate material-per-liter ratios for a product.

    Stored average_ratios entries are returned as recorded. Every material
    listed on the product without a stored entry gets the default ratio
    (avg 2.0, min 1.8, max 2.2). Pure function: no database access.

    Args:
        product: Product whose raw_materials and average_ratios are read

    Returns:
        Dict mapping material type to MaterialRatio, in the product's
        material order followed by any extra stored entries
    """
    stored = product.average_ratios or {}
    ratios: Dict[str, MaterialRatio] = {}

    for material in product.raw_materials or []:
        entry = stored.get(material)
        ratios[material] = _ratio_from_entry(entry) if entry else default_ratio()

    for material, entry in stored.items():
        if material not in ratios and entry:
            ratios[material] = _ratio_from_entry(entry)

    return ratios


def _ratio_from_entry(entry: dict) -> MaterialRatio:
    avg = Decimal(str(entry.get("avg_per_liter", DEFAULT_RATIO_AVG)))
    return MaterialRatio(
        min=Decimal(str(entry.get("min_per_liter", avg))),
        max=Decimal(str(entry.get("max_per_liter", avg))),
        avg=avg,
        sample_count=int(entry.get("total_batches", 0)),
    )


def refresh_average_ratios(product_id: int, *, session=None) -> Dict[str, MaterialRatio]:
    """
    Fold newly completed batches into a product's average_ratios.

    For every completed batch, the ratio of a material is
    actual material used / liters actually bottled. A material's stored
    entry only takes batches completed after its last_updated timestamp,
    and merges them with the stored statistics weighted by total_batches.
    Materials without new samples keep their stored entry unchanged.
    Batches without bottled volume, without usage for a material, or
    without a completion time (when an entry already exists) are skipped
    for that material.

    Args:
        product_id: Product to refresh
        session: Optional database session

    Returns:
        The product's ratios after the refresh, keyed by material type

    Raises:
        ProductNotFound: If the product doesn't exist
        DatabaseError: If the database operation fails
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            product = sess.get(Product, product_id)
            if product is None:
                raise ProductNotFound(product_id)

            batches = (
                sess.query(ProductionBatch)
                .filter(
                    ProductionBatch.product_id == product_id,
                    ProductionBatch.status == BatchStatus.COMPLETED.value,
                )
                .order_by(ProductionBatch.completed_at.asc(), ProductionBatch.id.asc())
                .all()
            )
            sizes = {bt.id: bt.size_in_ml for bt in sess.query(BottleType).all()}

            stored = dict(product.average_ratios or {})
            cutoffs = {
                material: _parse_timestamp(entry.get("last_updated"))
                for material, entry in stored.items()
                if entry
            }

            samples: Dict[str, List[Decimal]] = {}
            latest: Dict[str, Optional[datetime]] = {}
            for batch in batches:
                liters = _bottled_liters(batch.actual_bottles_produced or {}, sizes)
                if liters <= 0:
                    continue
                completed_at = _naive_utc(batch.completed_at)
                for material, used in batch.materials_used().items():
                    if used <= 0:
                        continue
                    if material in cutoffs:
                        cutoff = cutoffs[material]
                        if completed_at is None or (cutoff is not None and completed_at <= cutoff):
                            continue
                    samples.setdefault(material, []).append(used / liters)
                    if completed_at is not None and (
                        latest.get(material) is None or completed_at > latest[material]
                    ):
                        latest[material] = completed_at

            for material, values in samples.items():
                stamp = latest.get(material) or _naive_utc(utc_now())
                stored[material] = _merge_entry(stored.get(material), values, stamp)

            if samples:
                product.average_ratios = stored
                sess.flush()

            log_operation(
                logger,
                operation="refresh_average_ratios",
                outcome="success",
                product_id=product_id,
                batch_count=len(batches),
                materials=sorted(samples),
            )
            return {m: _ratio_from_entry(e) for m, e in stored.items() if e}
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to refresh ratios for product {product_id}", original_error=e
        )


def _merge_entry(entry: Optional[dict], values: List[Decimal], stamp: datetime) -> dict:
    count = len(values)
    total = sum(values, Decimal("0"))
    low, high = min(values), max(values)

    if entry:
        previous = _ratio_from_entry(entry)
        if previous.sample_count > 0:
            total += previous.avg * previous.sample_count
            count += previous.sample_count
            low = min(low, previous.min)
            high = max(high, previous.max)

    return {
        "avg_per_liter": str((total / count).quantize(RATIO_PLACES)),
        "min_per_liter": str(low.quantize(RATIO_PLACES)),
        "max_per_liter": str(high.quantize(RATIO_PLACES)),
        "total_batches": count,
        "last_updated": stamp.isoformat(),
    }


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite returns naive datetimes; freshly assigned ones carry UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return _naive_utc(datetime.fromisoformat(str(value)))
    except ValueError:
        return None


def _bottled_liters(bottles: Dict[str, int], sizes: Dict[int, int]) -> Decimal:
    total_ml = Decimal("0")
    for bottle_type_id, qty in bottles.items():
        size = sizes.get(int(bottle_type_id))
        if size and int(qty) > 0:
            total_ml += Decimal(size) * int(qty)
    return total_ml / ML_PER_LITER

