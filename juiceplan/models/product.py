"""
Product model for juice products.

A product is reference data maintained by catalog management: it names the
raw materials its recipe uses and, once batches have been produced, carries
historical material-per-liter statistics used to forecast requirements.
"""

from sqlalchemy import Boolean, Column, Index, String
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship

from .base import BaseModel


class Product(BaseModel):
    """
    Juice product.

    Attributes:
        name: Display (localized) name, e.g. "น้ำส้ม"
        name_en: Latin-alphabet name, used to derive batch code prefixes
        category: Optional product category
        raw_materials: Ordered list of material types used by the recipe
        average_ratios: Optional per-material statistics keyed by material type:
            {"avg_per_liter": "2.1", "min_per_liter": "1.9",
             "max_per_liter": "2.3", "total_batches": 4, "last_updated": "..."}
        is_active: Inactive products are hidden from planning
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    name_en = Column(String(200), nullable=True)
    category = Column(String(100), nullable=True)
    raw_materials = Column(JSON, nullable=False, default=list)
    average_ratios = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    production_batches = relationship("ProductionBatch", back_populates="product")

    __table_args__ = (
        Index("idx_product_name", "name"),
        Index("idx_product_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"Product(id={self.id}, name='{self.name}', name_en='{self.name_en}')"
