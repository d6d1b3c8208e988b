"""
QualityTestResult model for measurements taken during production.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class QualityTestResult(BaseModel):
    """
    One quality measurement recorded when a batch is executed.

    Attributes:
        production_batch_id: Parent ProductionBatch
        test_name: "Brix" or "Acidity"
        test_type: "before_mixing" or "after_mixing" (see QualityTestType)
        value: Measured value
        unit: Unit of the value ("°Bx", "%")
        photo_url: Optional reference to photographic evidence
        passed: Always True; failing a test is not supported
        tested_at / tested_by / tested_by_name: Tester metadata
    """

    __tablename__ = "quality_test_results"

    production_batch_id = Column(
        Integer, ForeignKey("production_batches.id", ondelete="CASCADE"), nullable=False
    )
    test_name = Column(String(50), nullable=False)
    test_type = Column(String(20), nullable=False)
    value = Column(Numeric(8, 3), nullable=False)
    unit = Column(String(20), nullable=False)
    photo_url = Column(String(500), nullable=True)
    passed = Column(Boolean, nullable=False, default=True)
    tested_at = Column(DateTime, nullable=False)
    tested_by = Column(String(100), nullable=True)
    tested_by_name = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    production_batch = relationship("ProductionBatch", back_populates="quality_tests")

    __table_args__ = (Index("idx_quality_test_batch", "production_batch_id"),)

    def __repr__(self) -> str:
        return (
            f"QualityTestResult(id={self.id}, {self.test_name} {self.test_type}="
            f"{self.value}{self.unit})"
        )
