"""
Candidate Fetcher.

Responsibilities:
- Build the fixed, ordered set of gated queries for a seed.
- Run them against the document store and buffer each result group.

Non-Responsibilities:
- No deduplication.
- No scoring.

Invariant:
Result groups come back in declaration order, whatever order the
store answered in. A failing query drops only its own group.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .logger import get_logger, StructuredLogger
from .seed import Seed
from .store import (
    AllQueriesFailed,
    ArrayContainsAny,
    DocumentStore,
    FieldEquals,
    Filter,
    OrderBy,
)

QUERY_LIMIT = 20
MAX_FILTER_VALUES = 10  # array-contains-any accepts at most this many values

RECENT_FIRST = OrderBy("updated_at", descending=True)


@dataclass(frozen=True)
class QuerySpec:
    name: str
    filter: Optional[Filter]
    order_by: Optional[OrderBy]
    limit: int = QUERY_LIMIT


@dataclass
class FetchResult:
    """Buffered result groups of one pass, in declaration order."""

    groups: List[Tuple[QuerySpec, List[Dict[str, Any]]]] = field(default_factory=list)
    failures: List[Tuple[QuerySpec, BaseException]] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures) and bool(self.groups)


def build_queries(
    seed: Seed,
    limit: int = QUERY_LIMIT,
    max_values: int = MAX_FILTER_VALUES,
) -> List[QuerySpec]:
    """
    Build the gated queries for a seed, in priority order.

    The unfiltered fallback is added only when every gate is skipped.
    """
    queries: List[QuerySpec] = []
    if seed.job_type is not None:
        queries.append(QuerySpec("job_type", FieldEquals("job_type", seed.job_type), RECENT_FIRST, limit))
    if seed.industry is not None:
        queries.append(QuerySpec("industry", FieldEquals("industry", seed.industry), RECENT_FIRST, limit))
    if seed.languages:
        queries.append(
            QuerySpec("languages", ArrayContainsAny("languages", tuple(seed.languages[:max_values])), None, limit)
        )
    if seed.tools:
        queries.append(
            QuerySpec("tools", ArrayContainsAny("tools", tuple(seed.tools[:max_values])), None, limit)
        )
    if not queries:
        queries.append(QuerySpec("fallback", None, RECENT_FIRST, limit))
    return queries


def _run_query(store: DocumentStore, spec: QuerySpec, logger: StructuredLogger) -> List[Dict[str, Any]]:
    logger.record_query_attempt(spec.name)
    try:
        rows = store.query(filter=spec.filter, order_by=spec.order_by, limit=spec.limit)
    except Exception as e:
        logger.record_query_failure(spec.name, type(e).__name__)
        logger.warning("Query failed, dropping its candidates", query=spec.name, error=str(e))
        raise
    logger.record_query_success(spec.name)
    logger.debug("Query resolved", query=spec.name, rows=len(rows))
    return list(rows)


def fetch_results(
    store: DocumentStore,
    queries: List[QuerySpec],
    max_workers: Optional[int] = None,
    logger: Optional[StructuredLogger] = None,
) -> FetchResult:
    """
    Run all queries concurrently and collect their results in query order.

    Args:
        store: Document store to query
        queries: Output of build_queries
        max_workers: Thread pool size (default: one thread per query)
        logger: Logger for metrics (default: global logger)

    Returns:
        FetchResult with the successful groups and the failures

    Raises:
        AllQueriesFailed: If every query failed
    """
    logger = logger or get_logger()
    result = FetchResult()
    if not queries:
        return result

    workers = max_workers or len(queries)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="jobrecs-query") as pool:
        futures = [pool.submit(_run_query, store, spec, logger) for spec in queries]

    # Futures are walked in submission order, so merge order never depends
    # on which query finished first.
    for spec, future in zip(queries, futures):
        error = future.exception()
        if error is not None:
            result.failures.append((spec, error))
        else:
            result.groups.append((spec, future.result()))

    if not result.groups:
        raise AllQueriesFailed([(spec.name, error) for spec, error in result.failures])
    return result
