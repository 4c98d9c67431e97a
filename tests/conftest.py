"""
Shared test fixtures and helpers for the query cache test suite.
"""

from typing import Any, List, Optional, Sequence

import pytest

from querycache.stores import MemoryStore, StoreManager
from querycache.testing import FakeConnection, RecordingStore


# ============================================================================
# Executor Helpers
# ============================================================================


class StubExecutor:
    """
    Query executor with fixed SQL and bindings.

    Counts every ``execute`` call so tests can tell a cache hit from a
    database round trip.
    """

    def __init__(
        self,
        sql: str = "SELECT * FROM users WHERE id=?",
        bindings: Optional[Sequence[Any]] = None,
        connection_name: str = "main",
        result: Any = None,
    ):
        self.sql = sql
        self.bindings: List[Any] = list(bindings if bindings is not None else [5])
        self._connection_name = connection_name
        self.result = result if result is not None else [{"id": 5, "name": "alice"}]
        self.calls = 0

    @property
    def connection_name(self) -> str:
        return self._connection_name

    def to_sql(self) -> str:
        return self.sql

    def get_bindings(self) -> List[Any]:
        return list(self.bindings)

    async def execute(self, operation="get", columns=("*",), row_id=None):
        self.calls += 1
        return self.result


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def executor():
    return StubExecutor()


@pytest.fixture
def make_executor():
    return StubExecutor


@pytest.fixture
def recording_store():
    return RecordingStore()


@pytest.fixture
def untagged_store():
    return RecordingStore(supports_tags=False)


@pytest.fixture
def memory_store():
    return MemoryStore(max_size=100)


@pytest.fixture
def manager(recording_store):
    return StoreManager({"recording": recording_store})


@pytest.fixture
def connection():
    return FakeConnection(
        name="main",
        rows=[{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}],
    )
