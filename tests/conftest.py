"""Shared test fixtures for litestar-flowgraph test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_flowgraph.core.definition import WorkflowGraph
from litestar_flowgraph.db.models import WorkflowConfigModel

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


class TickingClock:
    """Clock advancing one second on every call, starting at a fixed instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class MockEventBus:
    """Mock event bus for testing."""

    def __init__(self) -> None:
        """Initialize mock event bus."""
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event_type: str, **kwargs: Any) -> None:
        """Emit an event."""
        self.events.append((event_type, kwargs))

    def types(self) -> list[str]:
        """Event types in emission order."""
        return [event_type for event_type, _ in self.events]


def make_graph_document() -> dict[str, Any]:
    """Build the loan application workflow used across the tests."""
    return {
        "flows_code": "W12",
        "title": "Loan application",
        "header": {"version": "1.2.0", "flows_id": 12},
        "nodes": [
            {"id": "start", "position": {"x": 0, "y": 0}},
            {"id": "A", "kind": "decision"},
            {"id": "B"},
            {"id": "Review"},
        ],
        "edges": [
            {"source": "start", "target": "A", "data": {"label": "go", "id": "e-start-a", "type": "decision_flow"}},
            {"source": "start", "target": "B", "data": {"label": "alt", "id": "e-start-b", "type": "notify"}},
            {"source": "A", "target": "Review", "data": {"label": "ok", "id": "e-a-review", "type": "notify"}},
            {"source": "A", "target": "B", "data": {"label": "retry", "id": "e-a-b", "type": "integration"}},
            {"source": "Review", "target": "A", "data": {"label": "back", "id": "e-review-a", "type": "notify"}},
        ],
    }


@pytest.fixture
def clock() -> TickingClock:
    """Deterministic, strictly increasing clock."""
    return TickingClock()


@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Create mock event bus.

    Returns:
        MockEventBus instance
    """
    return MockEventBus()


@pytest.fixture
def graph_document() -> dict[str, Any]:
    """Raw workflow graph document."""
    return make_graph_document()


@pytest.fixture
def sample_graph(graph_document: dict[str, Any]) -> WorkflowGraph:
    """Typed workflow graph built from the sample document."""
    return WorkflowGraph.from_document(graph_document)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Create an async SQLite in-memory engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(WorkflowConfigModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def async_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Create an async session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()
