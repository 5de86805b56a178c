"""
Database schema, connection management and the SQLite document store.

Uses SQLite with SQLAlchemy for listing storage.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import create_engine, select, Column, String, DateTime, JSON
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .logger import get_logger
from .seed import to_datetime
from .store import (
    ArrayContainsAny,
    FieldEquals,
    Filter,
    OrderBy,
    StoreUnavailable,
    matches,
    validate_limit,
)

Base = declarative_base()

logger = get_logger()


class Listing(Base):
    """Job listing model."""

    __tablename__ = "listings"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=True)
    job_type = Column(String, nullable=True, index=True)
    industry = Column(String, nullable=True, index=True)
    work_style = Column(String, nullable=True)
    area_state = Column(String, nullable=True)
    languages = Column(JSON, nullable=True)  # list of str
    tools = Column(JSON, nullable=True)  # list of str
    display = Column(JSON, nullable=True)  # pass-through fields (time_range, unit_min, ...)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, index=True)

    def to_record(self) -> Dict[str, Any]:
        """Return the listing as a plain document, absent fields omitted."""
        record: Dict[str, Any] = dict(self.display or {})
        for name in ("id", "title", "job_type", "industry", "work_style", "area_state",
                     "languages", "tools", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                record[name] = value
        return record


SCALAR_COLUMNS = {
    "id": Listing.id,
    "title": Listing.title,
    "job_type": Listing.job_type,
    "industry": Listing.industry,
    "work_style": Listing.work_style,
    "area_state": Listing.area_state,
    "updated_at": Listing.updated_at,
    "created_at": Listing.created_at,
}
ARRAY_COLUMNS = {"languages", "tools"}
LISTING_FIELDS = set(SCALAR_COLUMNS) | ARRAY_COLUMNS


def _engine(db_path: Path):
    return create_engine(
        f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
    )


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = _engine(db_path)
    Base.metadata.create_all(engine)


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=_engine(db_path))
    return Session()


def listing_from_record(record: Dict[str, Any]) -> Listing:
    """
    Build a Listing row from a plain record.

    Raises:
        ValueError: If the record has no id
    """
    if not record.get("id"):
        raise ValueError("record has no id")
    updated = to_datetime(record.get("updated_at"))
    return Listing(
        id=str(record["id"]),
        title=record.get("title"),
        job_type=record.get("job_type"),
        industry=record.get("industry"),
        work_style=record.get("work_style"),
        area_state=record.get("area_state"),
        languages=list(record["languages"]) if record.get("languages") is not None else None,
        tools=list(record["tools"]) if record.get("tools") is not None else None,
        display={k: v for k, v in record.items() if k not in LISTING_FIELDS} or None,
        # SQLite keeps naive datetimes; store UTC
        updated_at=updated.astimezone(timezone.utc).replace(tzinfo=None) if updated else None,
    )


def upsert_listings(session, records: Iterable[Dict[str, Any]]) -> int:
    """
    Insert or replace listings.

    Args:
        session: SQLAlchemy session
        records: Plain listing records with an ``id``

    Returns:
        Number of listings written
    """
    count = 0
    for record in records:
        session.merge(listing_from_record(record))
        count += 1
    session.commit()
    return count


class SqlDocumentStore:
    """Document store backed by the SQLite listings table."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._Session = sessionmaker(bind=_engine(self.db_path))

    def query(
        self,
        filter: Optional[Filter] = None,
        order_by: Optional[OrderBy] = None,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        validate_limit(limit)
        stmt = select(Listing)

        if isinstance(filter, FieldEquals):
            column = SCALAR_COLUMNS.get(filter.field)
            if column is None:
                raise ValueError(f"Cannot filter on field: {filter.field}")
            stmt = stmt.where(column == filter.value)
        elif isinstance(filter, ArrayContainsAny):
            if filter.field not in ARRAY_COLUMNS:
                raise ValueError(f"Cannot filter on array field: {filter.field}")
        elif filter is not None:
            raise TypeError(f"Unsupported filter: {filter!r}")

        if order_by is not None:
            column = SCALAR_COLUMNS.get(order_by.field)
            if column is None:
                raise ValueError(f"Cannot order by field: {order_by.field}")
            stmt = stmt.order_by(column.is_(None), column.desc() if order_by.descending else column.asc())

        # JSON array membership is evaluated row by row; only equality
        # filters and the limit can be pushed into SQL.
        if not isinstance(filter, ArrayContainsAny):
            stmt = stmt.limit(limit)

        try:
            with self._Session() as session:
                records: List[Dict[str, Any]] = []
                for row in session.execute(stmt).scalars():
                    record = row.to_record()
                    if isinstance(filter, ArrayContainsAny) and not matches(record, filter):
                        continue
                    records.append(record)
                    if len(records) >= limit:
                        break
                return records
        except SQLAlchemyError as e:
            logger.error("Listing query failed", db=str(self.db_path), error=str(e))
            raise StoreUnavailable(f"Listing query failed: {e}") from e

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._Session() as session:
                row = session.get(Listing, str(doc_id))
                return row.to_record() if row is not None else None
        except SQLAlchemyError as e:
            logger.error("Listing fetch failed", db=str(self.db_path), id=doc_id, error=str(e))
            raise StoreUnavailable(f"Listing fetch failed: {e}") from e
