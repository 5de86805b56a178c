"""
Lifecycle controller for recommendations shown next to a listing.

Reruns the pipeline whenever the seed's content changes and makes sure
only the most recently requested seed can ever publish results. Each pass
is tagged with a generation number when it starts; a pass whose generation
is no longer the latest when it finishes is discarded.
"""

import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Tuple, Union

from .config import Settings, load_settings
from .logger import get_logger, StructuredLogger
from .pipeline import PassOutcome, recommend
from .seed import Candidate, Seed, extract_seed
from .store import DocumentStore


class Phase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    READY = "ready"


class Status(str, Enum):
    """What the view should render."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class RecommendationState:
    phase: Phase = Phase.IDLE
    status: Status = Status.IDLE
    items: Tuple[Candidate, ...] = ()
    error: Optional[str] = None
    failed_queries: Tuple[str, ...] = ()
    generation: int = 0


class ControllerClosed(RuntimeError):
    """Raised when a torn-down controller is asked to start a pass."""
    pass


class RecommendationController:
    """
    Owns the recommendation state for one listing view.

    Not shared across views: each view gets its own controller, counter
    and candidate data.
    """

    def __init__(
        self,
        store: DocumentStore,
        k: Optional[int] = None,
        executor: Optional[Executor] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_change: Optional[Callable[[RecommendationState], None]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            store: Document store to read candidates from
            k: Maximum results per pass (default: settings.top_k)
            executor: Where passes run (default: a dedicated thread per pass)
            settings: Query limits and fan-out size (default: from environment)
            clock: Returns the reference time for recency scoring
            on_change: Called with every new state; exceptions are logged
            logger: Logger for metrics (default: global logger)
        """
        self.settings = settings or load_settings()
        self.k = self.settings.top_k if k is None else k
        if self.k < 0:
            raise ValueError(f"k must be >= 0, got {self.k}")

        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.on_change = on_change
        self.logger = logger or get_logger()

        self._executor = executor
        self._lock = threading.RLock()
        self._generation = 0
        self._seed: Optional[Seed] = None
        self._state = RecommendationState()
        self._closed = False

    @property
    def state(self) -> RecommendationState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def update(
        self,
        source: Union[Seed, Mapping[str, Any]],
        exclude_id: Optional[str] = None,
    ) -> Optional[Future]:
        """
        Offer a (possibly unchanged) seed.

        Args:
            source: A Seed, or a listing record to extract one from
            exclude_id: Listing id to keep out of the results

        Returns:
            Future of the started pass, or None if the seed is unchanged

        Raises:
            ControllerClosed: After teardown
        """
        seed = source if isinstance(source, Seed) else extract_seed(source, exclude_id=exclude_id)
        with self._lock:
            if self._closed:
                raise ControllerClosed("controller has been torn down")
            if seed == self._seed:
                self.logger.debug("Seed unchanged, keeping current pass", generation=self._generation)
                return None
            return self._start(seed)

    def refresh(self) -> Optional[Future]:
        """Rerun the pipeline for the current seed (e.g. after an error)."""
        with self._lock:
            if self._closed:
                raise ControllerClosed("controller has been torn down")
            if self._seed is None:
                return None
            return self._start(self._seed)

    def teardown(self) -> None:
        """Invalidate every outstanding pass; nothing is written afterwards."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            self.logger.debug("Controller torn down", generation=self._generation)

    def __enter__(self) -> "RecommendationController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def _start(self, seed: Seed) -> Future:
        # Caller holds the lock, so the pass cannot commit before LOADING is set.
        self._generation += 1
        generation = self._generation
        self._seed = seed
        future = self._submit(self._run, generation, seed, self.clock())
        self.logger.record_pass_started()
        self.logger.debug("Starting recommendation pass", generation=generation)
        self._set_state(
            RecommendationState(
                phase=Phase.FETCHING,
                status=Status.LOADING,
                items=self._state.items,
                generation=generation,
            )
        )
        return future

    def _submit(self, fn: Callable[..., bool], *args: Any) -> Future:
        """Run a pass on the injected executor, or on its own daemon thread."""
        if self._executor is not None:
            return self._executor.submit(fn, *args)

        # A pass stuck on a slow query must never hold up a newer one.
        future: Future = Future()

        def worker() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args))
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=worker, name=f"jobrecs-pass-{args[0]}", daemon=True).start()
        return future

    def _is_stale(self, generation: int) -> bool:
        # Caller holds the lock.
        return self._closed or generation != self._generation

    def _run(self, generation: int, seed: Seed, now: datetime) -> bool:
        with self._lock:
            if self._is_stale(generation):
                return self._discard(generation)

        try:
            outcome = recommend(
                self.store,
                seed,
                k=self.k,
                now=now,
                query_limit=self.settings.query_limit,
                max_filter_values=self.settings.max_filter_values,
                max_workers=self.settings.max_workers,
                logger=self.logger,
            )
        except Exception as e:
            self.logger.error(
                "Recommendation pass failed",
                generation=generation,
                error_type=type(e).__name__,
                error=str(e),
            )
            return self._commit(generation, None, e)
        return self._commit(generation, outcome, None)

    def _discard(self, generation: int) -> bool:
        # Caller holds the lock.
        self.logger.record_pass_discarded()
        self.logger.debug("Discarding stale pass", generation=generation, latest=self._generation)
        return False

    def _commit(
        self,
        generation: int,
        outcome: Optional[PassOutcome],
        error: Optional[BaseException],
    ) -> bool:
        with self._lock:
            if self._is_stale(generation):
                return self._discard(generation)

            if outcome is None:
                failures = getattr(error, "failures", [])
                state = RecommendationState(
                    phase=Phase.READY,
                    status=Status.ERROR,
                    error=str(error) or type(error).__name__,
                    failed_queries=tuple(name for name, _ in failures),
                    generation=generation,
                )
            else:
                state = RecommendationState(
                    phase=Phase.READY,
                    status=Status.EMPTY if outcome.empty else Status.READY,
                    items=tuple(outcome.items),
                    failed_queries=tuple(outcome.failed_queries),
                    generation=generation,
                )
            self._set_state(state)
            self.logger.record_pass_committed()
            return True

    def _set_state(self, state: RecommendationState) -> None:
        self._state = state
        if self.on_change is None:
            return
        try:
            self.on_change(state)
        except Exception as e:
            # State is already published; keep running.
            self.logger.error(
                "State change callback failed",
                generation=state.generation,
                status=state.status.value,
                error_type=type(e).__name__,
                error=str(e),
            )
