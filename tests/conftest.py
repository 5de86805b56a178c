"""
Pytest configuration and shared fixtures.
"""

import os

# Keep the global logger off the filesystem and quiet during tests.
os.environ.setdefault("JOBRECS_LOG_TO_FILE", "false")
os.environ.setdefault("JOBRECS_LOG_LEVEL", "WARNING")

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from jobrecs.config import Settings
from jobrecs.logger import StructuredLogger
from jobrecs.store import InMemoryDocumentStore, StoreUnavailable

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for recency scoring."""
    return NOW


@pytest.fixture
def quiet_logger(tmp_path) -> StructuredLogger:
    """Logger with fresh metrics and no output."""
    return StructuredLogger(
        name="jobrecs-test",
        log_dir=tmp_path,
        enable_file=False,
        enable_console=False,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(log_to_file=False, max_workers=4)


@pytest.fixture
def listings() -> List[Dict[str, Any]]:
    """A small store of listings, most recent first."""
    return [
        {
            "id": "m1",
            "title": "Backend API engineer",
            "job_type": "Backend",
            "industry": "Fintech",
            "work_style": "Remote",
            "area_state": "Tokyo",
            "languages": ["Go", "Python"],
            "tools": ["Docker", "Kubernetes"],
            "updated_at": NOW - timedelta(days=1),
            "time_range": "10:00-19:00",
            "unit_min": 60,
            "unit_max": 80,
            "project_detail": "Payments platform rebuild.",
        },
        {
            "id": "m2",
            "title": "Data platform engineer",
            "job_type": "Data",
            "industry": "Fintech",
            "languages": ["Python", "SQL"],
            "tools": ["Airflow"],
            "updated_at": NOW - timedelta(days=5),
        },
        {
            "id": "m3",
            "title": "Frontend engineer",
            "job_type": "Frontend",
            "industry": "Retail",
            "languages": ["TypeScript"],
            "tools": ["Docker"],
            "updated_at": NOW - timedelta(days=10),
        },
        {
            "id": "m4",
            "title": "Go microservices",
            "job_type": "Backend",
            "industry": "Media",
            "languages": ["Go"],
            "updated_at": NOW - timedelta(days=60),
        },
        {
            "id": "m5",
            "title": "Designer",
            "job_type": "Design",
            "industry": "Retail",
            "updated_at": NOW - timedelta(days=90),
        },
    ]


@pytest.fixture
def store(listings) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(listings)


class RecordingStore(InMemoryDocumentStore):
    """In-memory store that records calls and can fail chosen fields."""

    def __init__(self, records=None, fail_fields=(), fail_all=False):
        super().__init__(records)
        self.calls: List[Dict[str, Any]] = []
        self.fail_fields = set(fail_fields)
        self.fail_all = fail_all
        self._lock = threading.Lock()

    def query(self, filter=None, order_by=None, limit=20):
        with self._lock:
            self.calls.append({"filter": filter, "order_by": order_by, "limit": limit})
        field = filter.field if filter is not None else None
        if self.fail_all or field in self.fail_fields:
            raise StoreUnavailable(f"query on {field} timed out")
        return super().query(filter=filter, order_by=order_by, limit=limit)


@pytest.fixture
def recording_store():
    """Factory for RecordingStore instances."""
    return RecordingStore
