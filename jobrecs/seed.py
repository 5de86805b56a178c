"""
Seed extraction and candidate projection.

A Seed is the comparison basis derived from the listing being viewed.
A Candidate is a stored listing projected to the fields needed for
scoring, with everything else carried along as opaque display data.

Absent fields stay ``None``: presence decides whether a gated query runs,
so an absent value must never be confused with an empty one.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

UNTITLED = "(untitled)"

SCORED_FIELDS = (
    "id",
    "title",
    "job_type",
    "industry",
    "work_style",
    "area_state",
    "languages",
    "tools",
    "updated_at",
)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp to an aware datetime.

    Accepts datetimes, ISO-8601 strings and epoch seconds. Naive values are
    taken as UTC. Anything unparseable yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _terms(value: Any) -> Tuple[str, ...]:
    if value is None or isinstance(value, str):
        return ()
    return tuple(v for v in value if isinstance(v, str))


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class Seed:
    """Comparison basis for one retrieval pass. Compared by content."""

    exclude_id: Optional[str] = None
    job_type: Optional[str] = None
    industry: Optional[str] = None
    work_style: Optional[str] = None
    area_state: Optional[str] = None
    languages: Tuple[str, ...] = ()
    tools: Tuple[str, ...] = ()
    updated_at: Optional[datetime] = None

    def has_signal(self) -> bool:
        """True when at least one gated query would run."""
        return (
            self.job_type is not None
            or self.industry is not None
            or bool(self.languages)
            or bool(self.tools)
        )


@dataclass(frozen=True)
class Candidate:
    """A stored listing projected for scoring and display."""

    id: str
    title: str = UNTITLED
    job_type: Optional[str] = None
    industry: Optional[str] = None
    work_style: Optional[str] = None
    area_state: Optional[str] = None
    languages: Tuple[str, ...] = ()
    tools: Tuple[str, ...] = ()
    updated_at: Optional[datetime] = None
    display: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, hash=False
    )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Candidate":
        """
        Project a raw store record.

        Raises:
            ValueError: If the record has no usable id
        """
        doc_id = record.get("id")
        if doc_id is None or doc_id == "":
            raise ValueError("record has no id")

        title = record.get("title")
        extras = {k: v for k, v in record.items() if k not in SCORED_FIELDS}
        return cls(
            id=str(doc_id),
            title=title if isinstance(title, str) and title else UNTITLED,
            job_type=_text(record.get("job_type")),
            industry=_text(record.get("industry")),
            work_style=_text(record.get("work_style")),
            area_state=_text(record.get("area_state")),
            languages=_terms(record.get("languages")),
            tools=_terms(record.get("tools")),
            updated_at=to_datetime(record.get("updated_at")),
            display=MappingProxyType(extras),
        )


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float


def extract_seed(record: Mapping[str, Any], exclude_id: Optional[str] = None) -> Seed:
    """
    Derive a Seed from a source listing record.

    Args:
        record: Listing fields (as produced by intake or read from the store)
        exclude_id: Id to keep out of the results (default: the record's id)

    Returns:
        Seed with absent fields left as None
    """
    if exclude_id is None and record.get("id") is not None:
        exclude_id = str(record["id"])

    return Seed(
        exclude_id=exclude_id,
        job_type=_text(record.get("job_type")),
        industry=_text(record.get("industry")),
        work_style=_text(record.get("work_style")),
        area_state=_text(record.get("area_state")),
        languages=_terms(record.get("languages")),
        tools=_terms(record.get("tools")),
        updated_at=to_datetime(record.get("updated_at")),
    )
