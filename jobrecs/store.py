"""
Document store query model.

Responsibilities:
- Describe the filtered/ordered/limited queries the fetcher issues.
- Define the store protocol every adapter implements.
- Provide an in-memory store for fixtures and tests.

Non-Responsibilities:
- No scoring.
- No deduplication.

Invariant:
Stores are read-only from the pipeline's point of view.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from .seed import to_datetime


class StoreUnavailable(Exception):
    """Raised when a document store query fails or times out."""
    pass


class AllQueriesFailed(StoreUnavailable):
    """Raised when every query of a retrieval pass failed."""

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]):
        self.failures = list(failures)
        names = ", ".join(name for name, _ in self.failures)
        super().__init__(f"All {len(self.failures)} queries failed: {names}")


@dataclass(frozen=True)
class FieldEquals:
    field: str
    value: Any

    def to_json(self) -> Dict[str, Any]:
        return {"op": "==", "field": self.field, "value": self.value}


@dataclass(frozen=True)
class ArrayContainsAny:
    field: str
    values: Tuple[Any, ...]

    def to_json(self) -> Dict[str, Any]:
        return {"op": "array-contains-any", "field": self.field, "value": list(self.values)}


Filter = Union[FieldEquals, ArrayContainsAny]


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = True

    def to_json(self) -> Dict[str, Any]:
        return {"field": self.field, "direction": "desc" if self.descending else "asc"}


class DocumentStore(Protocol):
    def query(
        self,
        filter: Optional[Filter] = None,
        order_by: Optional[OrderBy] = None,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        ...

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        ...


def matches(record: Dict[str, Any], flt: Optional[Filter]) -> bool:
    """Evaluate a filter against a plain record."""
    if flt is None:
        return True
    if flt.field not in record:
        return False
    value = record[flt.field]
    if isinstance(flt, FieldEquals):
        return value == flt.value
    if isinstance(flt, ArrayContainsAny):
        if not isinstance(value, (list, tuple)):
            return False
        wanted = set(flt.values)
        return any(v in wanted for v in value)
    raise TypeError(f"Unsupported filter: {flt!r}")


def _sort_key(record: Dict[str, Any], fld: str):
    value = record.get(fld)
    if value is None:
        return None
    if fld.endswith("_at"):
        return to_datetime(value)
    return value


def order_records(records: Iterable[Dict[str, Any]], order_by: Optional[OrderBy]) -> List[Dict[str, Any]]:
    """
    Stable sort by a single field; records missing the field sort last
    in either direction.
    """
    records = list(records)
    if order_by is None:
        return records
    present = [(r, _sort_key(r, order_by.field)) for r in records]
    ranked = [pair for pair in present if pair[1] is not None]
    missing = [r for r, key in present if key is None]
    ranked.sort(key=lambda pair: pair[1], reverse=order_by.descending)
    return [r for r, _ in ranked] + missing


def validate_limit(limit: int) -> None:
    if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")


class InMemoryDocumentStore:
    """Document store over a list of dict records, in insertion order."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None):
        self._records: List[Dict[str, Any]] = [dict(r) for r in (records or [])]

    def add(self, record: Dict[str, Any]) -> None:
        self._records.append(dict(record))

    def query(
        self,
        filter: Optional[Filter] = None,
        order_by: Optional[OrderBy] = None,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        validate_limit(limit)
        hits = [r for r in self._records if matches(r, filter)]
        return [dict(r) for r in order_records(hits, order_by)[:limit]]

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        for record in self._records:
            if str(record.get("id")) == str(doc_id):
                return dict(record)
        return None

    def __len__(self) -> int:
        return len(self._records)
