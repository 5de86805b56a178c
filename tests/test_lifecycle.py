"""
Tests for the recommendation lifecycle controller.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest

from jobrecs import lifecycle
from jobrecs.lifecycle import (
    ControllerClosed,
    Phase,
    RecommendationController,
    RecommendationState,
    Status,
)
from jobrecs.seed import extract_seed
from jobrecs.store import InMemoryDocumentStore

WAIT = 5


class GatedStore(InMemoryDocumentStore):
    """Blocks queries for one job type until released."""

    def __init__(self, records, blocked_value):
        super().__init__(records)
        self.blocked_value = blocked_value
        self.started = threading.Event()
        self.release = threading.Event()
        self.filters = []

    def query(self, filter=None, order_by=None, limit=20):
        self.filters.append(filter)
        if getattr(filter, "value", None) == self.blocked_value:
            self.started.set()
            assert self.release.wait(timeout=WAIT)
        return super().query(filter=filter, order_by=order_by, limit=limit)


@pytest.fixture
def make_controller(settings, now, quiet_logger):
    controllers = []

    def factory(store, **kwargs):
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("clock", lambda: now)
        kwargs.setdefault("logger", quiet_logger)
        controller = RecommendationController(store, **kwargs)
        controllers.append(controller)
        return controller

    yield factory
    for controller in controllers:
        controller.teardown()


class TestStateMachine:
    """Test phase and status transitions."""

    def test_starts_idle(self, store, make_controller):
        state = make_controller(store).state

        assert state == RecommendationState()
        assert state.phase == Phase.IDLE
        assert state.status == Status.IDLE

    def test_fetching_then_ready(self, listings, make_controller):
        store = GatedStore(listings, blocked_value="Backend")
        controller = make_controller(store)

        future = controller.update(listings[0])
        assert store.started.wait(timeout=WAIT)
        assert controller.state.phase == Phase.FETCHING
        assert controller.state.status == Status.LOADING

        store.release.set()
        assert future.result(timeout=WAIT) is True

        state = controller.state
        assert state.phase == Phase.READY
        assert state.status == Status.READY
        assert [c.id for c in state.items] == ["m2", "m4", "m3"]
        assert state.generation == 1

    def test_empty_result_is_not_loading(self, make_controller):
        controller = make_controller(InMemoryDocumentStore())
        controller.update({"id": "x", "job_type": "Backend"}).result(timeout=WAIT)

        state = controller.state
        assert state.phase == Phase.READY
        assert state.status == Status.EMPTY
        assert state.items == ()
        assert state.error is None

    def test_all_queries_failed_is_error(self, recording_store, listings, make_controller):
        controller = make_controller(recording_store(listings, fail_all=True))
        controller.update(listings[0]).result(timeout=WAIT)

        state = controller.state
        assert state.status == Status.ERROR
        assert "failed" in state.error
        assert state.failed_queries == ("job_type", "industry", "languages", "tools")

    def test_partial_failure_still_ready(self, recording_store, listings, make_controller):
        controller = make_controller(recording_store(listings, fail_fields={"tools"}))
        controller.update(listings[0]).result(timeout=WAIT)

        state = controller.state
        assert state.status == Status.READY
        assert state.failed_queries == ("tools",)
        assert [c.id for c in state.items] == ["m2", "m4"]

    def test_negative_k_rejected(self, store, make_controller):
        with pytest.raises(ValueError):
            make_controller(store, k=-1)

    def test_k_limits_results(self, store, listings, make_controller):
        controller = make_controller(store, k=1)
        controller.update(listings[0]).result(timeout=WAIT)
        assert [c.id for c in controller.state.items] == ["m2"]


class TestSeedChanges:
    """Test reruns on content change."""

    def test_equal_seed_does_not_rerun(self, recording_store, listings, make_controller):
        rec = recording_store(listings)
        controller = make_controller(rec)

        controller.update(dict(listings[0])).result(timeout=WAIT)
        calls = len(rec.calls)

        assert controller.update(dict(listings[0])) is None
        assert controller.update(extract_seed(listings[0])) is None
        assert len(rec.calls) == calls
        assert controller.generation == 1

    def test_changed_seed_reruns(self, store, listings, make_controller):
        controller = make_controller(store)
        controller.update(listings[0]).result(timeout=WAIT)
        controller.update(listings[2]).result(timeout=WAIT)

        assert controller.generation == 2
        assert "m1" in [c.id for c in controller.state.items]

    def test_refresh_reruns_same_seed(self, store, listings, make_controller):
        controller = make_controller(store)
        assert controller.refresh() is None

        controller.update(listings[0]).result(timeout=WAIT)
        controller.refresh().result(timeout=WAIT)
        assert controller.generation == 2


class TestCancellation:
    """Test generation-token staleness handling."""

    def test_stale_pass_never_commits(self, listings, make_controller, quiet_logger):
        """A slow first pass finishing after the second is discarded."""
        store = GatedStore(listings, blocked_value="Backend")
        committed = []
        controller = make_controller(store, on_change=committed.append)

        first = controller.update(listings[0])
        assert store.started.wait(timeout=WAIT)
        second = controller.update(listings[4])
        assert second.result(timeout=WAIT) is True
        after_second = controller.state

        store.release.set()
        assert first.result(timeout=WAIT) is False

        assert controller.state == after_second
        assert controller.state.generation == 2
        assert "m5" not in [c.id for c in controller.state.items]
        assert quiet_logger.metrics["passes_discarded"] == 1
        assert quiet_logger.metrics["passes_committed"] == 1
        assert [s.status for s in committed if s.phase == Phase.READY] == [Status.READY]

    def test_teardown_blocks_late_commit(self, listings, make_controller):
        store = GatedStore(listings, blocked_value="Backend")
        committed = []
        controller = make_controller(store, on_change=committed.append)

        future = controller.update(listings[0])
        assert store.started.wait(timeout=WAIT)
        controller.teardown()
        loading = controller.state

        store.release.set()
        assert future.result(timeout=WAIT) is False
        assert controller.state == loading
        assert all(s.phase != Phase.READY for s in committed)

    def test_update_after_teardown_raises(self, store, listings, make_controller):
        controller = make_controller(store)
        controller.teardown()

        assert controller.closed
        with pytest.raises(ControllerClosed):
            controller.update(listings[0])

    def test_context_manager_tears_down(self, store, settings, now, quiet_logger):
        with RecommendationController(store, settings=settings, clock=lambda: now,
                                      logger=quiet_logger) as controller:
            pass
        assert controller.closed

    def test_shared_executor_not_shut_down(self, store, listings, settings, now, quiet_logger):
        with ThreadPoolExecutor(max_workers=2) as pool:
            controller = RecommendationController(
                store, executor=pool, settings=settings, clock=lambda: now, logger=quiet_logger
            )
            controller.update(listings[0]).result(timeout=WAIT)
            controller.teardown()
            assert pool.submit(lambda: 42).result(timeout=WAIT) == 42


class TestStuckPasses:
    """Test that a pass blocked in the store only stalls itself."""

    def test_stuck_pass_does_not_block_newest_seed(self, listings, settings, make_controller):
        store = GatedStore(listings, blocked_value="Stuck")
        controller = make_controller(store, settings=replace(settings, max_workers=1))

        stuck = controller.update({"id": "s", "job_type": "Stuck"})
        assert store.started.wait(timeout=WAIT)

        latest = controller.update(listings[0])
        assert latest.result(timeout=WAIT) is True
        assert controller.state.status == Status.READY
        assert [c.id for c in controller.state.items] == ["m2", "m4", "m3"]

        store.release.set()
        assert stuck.result(timeout=WAIT) is False
        assert controller.state.generation == 2

    def test_superseded_queued_pass_never_queries(self, listings, make_controller, quiet_logger):
        store = GatedStore(listings, blocked_value="Stuck")
        with ThreadPoolExecutor(max_workers=1) as pool:
            controller = make_controller(store, executor=pool)

            first = controller.update({"id": "s", "job_type": "Stuck"})
            assert store.started.wait(timeout=WAIT)
            queued = controller.update({"id": "q", "job_type": "Frontend"})
            latest = controller.update(listings[0])

            store.release.set()
            assert first.result(timeout=WAIT) is False
            assert queued.result(timeout=WAIT) is False
            assert latest.result(timeout=WAIT) is True

        assert all(getattr(f, "value", None) != "Frontend" for f in store.filters)
        assert quiet_logger.metrics["passes_discarded"] == 2
        assert quiet_logger.metrics["passes_committed"] == 1


class TestFailureHandling:
    """Test that unexpected errors still resolve the view."""

    def test_listener_error_on_start_still_runs_pass(self, store, listings, make_controller):
        seen = []

        def listener(state):
            seen.append(state.status)
            if len(seen) == 1:
                raise RuntimeError("view went away")

        controller = make_controller(store, on_change=listener)
        future = controller.update(listings[0])

        assert future is not None
        assert future.result(timeout=WAIT) is True
        assert controller.state.status == Status.READY
        assert seen == [Status.LOADING, Status.READY]

    def test_listener_error_on_commit_keeps_state(self, store, listings, make_controller):
        def listener(state):
            raise RuntimeError("render failed")

        controller = make_controller(store, on_change=listener)
        assert controller.update(listings[0]).result(timeout=WAIT) is True

        assert controller.state.phase == Phase.READY
        assert controller.state.status == Status.READY
        assert controller.update(dict(listings[0])) is None

    def test_unexpected_error_commits_error_status(self, store, listings, make_controller, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("ranking exploded")

        monkeypatch.setattr(lifecycle, "recommend", broken)
        controller = make_controller(store)

        assert controller.update(listings[0]).result(timeout=WAIT) is True

        state = controller.state
        assert state.phase == Phase.READY
        assert state.status == Status.ERROR
        assert state.error == "ranking exploded"
        assert state.failed_queries == ()

    def test_fan_out_sized_from_settings(self, store, listings, settings, make_controller, monkeypatch):
        real = lifecycle.recommend
        calls = []

        def spy(*args, **kwargs):
            calls.append(kwargs)
            return real(*args, **kwargs)

        monkeypatch.setattr(lifecycle, "recommend", spy)
        controller = make_controller(store, settings=replace(settings, max_workers=2))
        controller.update(listings[0]).result(timeout=WAIT)

        assert calls[0]["max_workers"] == 2
