"""
Recommendation pass orchestrator.

Responsibilities:
- Coordinate query building, fetching, merging and ranking.
- Report which queries were dropped.

Non-Responsibilities:
- No staleness or cancellation handling.
- No mutation of store data.

Invariant:
Given the same store contents, seed and ``now``, a pass always returns
the same listings in the same order.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .dedupe import merge_candidates
from .fetcher import MAX_FILTER_VALUES, QUERY_LIMIT, build_queries, fetch_results
from .logger import get_logger, StructuredLogger
from .ranking import DEFAULT_TOP_K, rank
from .seed import Candidate, Seed
from .store import DocumentStore


@dataclass(frozen=True)
class PassOutcome:
    items: List[Candidate]
    failed_queries: List[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.items


def recommend(
    store: DocumentStore,
    seed: Seed,
    k: int = DEFAULT_TOP_K,
    now: Optional[datetime] = None,
    query_limit: int = QUERY_LIMIT,
    max_filter_values: int = MAX_FILTER_VALUES,
    max_workers: Optional[int] = None,
    logger: Optional[StructuredLogger] = None,
) -> PassOutcome:
    """
    Run one full retrieval pass for a seed.

    Args:
        store: Document store to read candidates from
        seed: Comparison basis
        k: Maximum number of results
        now: Reference time for recency scoring (default: current UTC time)
        query_limit: Row cap per query
        max_filter_values: Max values sent in an any-of filter
        max_workers: Query fan-out thread count
        logger: Logger for metrics (default: global logger)

    Returns:
        PassOutcome with ranked listings and the names of failed queries

    Raises:
        AllQueriesFailed: If no query resolved
        ValueError: If k is negative
    """
    if k < 0:
        raise ValueError(f"k must be >= 0, got {k}")
    logger = logger or get_logger()
    now = now or datetime.now(timezone.utc)

    queries = build_queries(seed, limit=query_limit, max_values=max_filter_values)
    fetched = fetch_results(store, queries, max_workers=max_workers, logger=logger)
    candidates = merge_candidates(fetched.groups, exclude_id=seed.exclude_id)
    items = rank(candidates, seed, k=k, now=now)

    failed = [spec.name for spec, _ in fetched.failures]
    logger.info(
        "Recommendation pass resolved",
        queries=[spec.name for spec in queries],
        failed_queries=failed,
        candidates=len(candidates),
        results=len(items),
    )
    return PassOutcome(items=items, failed_queries=failed)
