"""Reference Data Service - read access to products and bottle types.

Products and bottle types are maintained by catalog management; the
planning engine only reads them. Dict-returning functions serve form
population (dropdowns, bottle quantity grids); the *_model variants return
ORM objects for use inside a caller's session.

Example Usage:
    >>> from juiceplan.services.reference_data_service import list_active_products
    >>> [p["name_en"] for p in list_active_products()]
    ['Lime Juice', 'Orange Juice']
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from juiceplan.models import BottleType, Product
from juiceplan.services.database import session_scope
from juiceplan.services.exceptions import ProductNotFound


def list_active_products(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Get active products sorted by name.

    Args:
        session: Optional database session

    Returns:
        List[Dict[str, Any]]: Product dictionaries
    """
    if session is not None:
        return _list_active_products_impl(session)
    with session_scope() as session:
        return _list_active_products_impl(session)


def _list_active_products_impl(session: Session) -> List[Dict[str, Any]]:
    """Implementation of list_active_products."""
    products = (
        session.query(Product)
        .filter(Product.is_active == True)  # noqa: E712
        .order_by(Product.name)
        .all()
    )
    return [p.to_dict() for p in products]


def list_active_bottle_types(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Get active bottle types sorted by size, smallest first.

    Args:
        session: Optional database session

    Returns:
        List[Dict[str, Any]]: Bottle type dictionaries
    """
    if session is not None:
        return [bt.to_dict() for bt in get_active_bottle_type_models(session)]
    with session_scope() as session:
        return [bt.to_dict() for bt in get_active_bottle_type_models(session)]


def get_active_bottle_type_models(session: Session) -> List[BottleType]:
    """Active BottleType objects sorted by size."""
    return (
        session.query(BottleType)
        .filter(BottleType.is_active == True)  # noqa: E712
        .order_by(BottleType.size_in_ml, BottleType.id)
        .all()
    )


def get_product(product_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get an active product by ID.

    Raises:
        ProductNotFound: If the product doesn't exist or is inactive
    """
    if session is not None:
        return get_product_model(product_id, session).to_dict()
    with session_scope() as session:
        return get_product_model(product_id, session).to_dict()


def get_product_model(product_id: int, session: Session) -> Product:
    """Active Product object by ID, raising ProductNotFound otherwise."""
    product = session.get(Product, product_id) if product_id is not None else None
    if product is None or not product.is_active:
        raise ProductNotFound(product_id)
    return product
