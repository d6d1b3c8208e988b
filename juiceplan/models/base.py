"""
Declarative base shared by every planning model.

Each table gets an integer primary key, a UUID for references that leave
the database, and created/updated timestamps. created_at also orders the
inventory ledger, so receipts may set it explicitly.
"""

import uuid as uuid_lib
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

from juiceplan.utils.datetime_utils import utc_now

Base = declarative_base()


def _new_uuid() -> str:
    return str(uuid_lib.uuid4())


class BaseModel(Base):
    """Abstract model with id, uuid, timestamps and dict serialization."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, nullable=False, default=_new_uuid, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Column values as a JSON-compatible dict.

        Dates and datetimes become ISO strings; Decimals become strings so
        quantities and money keep their exact digits.

        Args:
            include_relationships: Also serialize related rows (one level)
        """
        result = {column.name: _serialize(getattr(self, column.name)) for column in self.__table__.columns}

        if include_relationships:
            for relationship in self.__mapper__.relationships:
                related = getattr(self, relationship.key)
                if related is None:
                    result[relationship.key] = None
                elif isinstance(related, list):
                    result[relationship.key] = [item.to_dict() for item in related]
                else:
                    result[relationship.key] = related.to_dict()

        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        # SQLite has no UUID type
        return value if value is None else str(value)

    def __repr__(self) -> str:
        label = getattr(self, "name", None) or getattr(self, "batch_code", None)
        if label is None:
            return f"{self.__class__.__name__}(id={self.id})"
        return f"{self.__class__.__name__}(id={self.id}, {label!r})"


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
