"""Integration tests for the process log."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from litestar_flowgraph.core.definition import WorkflowGraph
from litestar_flowgraph.core.models import Progress
from litestar_flowgraph.core.types import LogStatus
from litestar_flowgraph.db.repositories import ProcessLogRepository
from litestar_flowgraph.engine.process_log import ProcessLog
from litestar_flowgraph.exceptions import InvalidWorkflowCodeError, StoreUnavailableError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tests.conftest import TickingClock

pytestmark = pytest.mark.integration


@pytest.fixture
def process_log(async_session: AsyncSession, clock: TickingClock) -> ProcessLog:
    """Process log on the test session."""
    return ProcessLog(async_session, clock)


async def insert(process_log: ProcessLog, graph: WorkflowGraph, source_id: str, app_id: str = "APP-1", **kwargs) -> int:
    result = await process_log.insert(graph, app_id, "tt_app1", "u1", source_id, f"edge-{source_id}", **kwargs)
    assert result.ok, result.error
    assert result.value is not None
    return result.value


class TestInsert:
    """Tests for ProcessLog.insert."""

    async def test_insert_records_entry(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "A", data={"k": "v"}, notes="manual")

        entry = (await process_log.latest_by_app_id("APP-1")).value

        assert entry is not None
        assert entry.id == log_id
        assert entry.workflow_id == 12
        assert entry.source_id == "A"
        assert entry.edge_id == "edge-A"
        assert entry.status == LogStatus.PROCESS
        assert entry.data == {"k": "v"}
        assert entry.notes == "manual"
        assert entry.finish_date is None
        assert entry.action_date == entry.processing_time

    @pytest.mark.parametrize("source_id", ["start", "START", "Start"])
    async def test_start_entry_notes_are_version(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
        source_id: str,
    ) -> None:
        await insert(process_log, sample_graph, source_id, notes="ignored")

        entry = (await process_log.latest_by_app_id("APP-1")).value

        assert entry is not None
        assert entry.notes == "1.2.0"

    async def test_start_entry_without_version(self, process_log: ProcessLog) -> None:
        graph = WorkflowGraph(flows_code="W4")

        await insert(process_log, graph, "start", notes="ignored")

        entry = (await process_log.latest_by_app_id("APP-1")).value
        assert entry is not None
        assert entry.notes == ""

    async def test_ids_are_monotonic(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        first = await insert(process_log, sample_graph, "start")
        second = await insert(process_log, sample_graph, "A")

        assert second > first

    async def test_malformed_code_raises(self, process_log: ProcessLog) -> None:
        graph = WorkflowGraph(flows_code="Wabc")

        with pytest.raises(InvalidWorkflowCodeError):
            await process_log.insert(graph, "APP-1", "tt", "u1", "start", "e1")


class TestUpdate:
    """Tests for status and data updates."""

    async def test_update_status(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "A", data={"a": 1, "b": 2})

        result = await process_log.update_status(log_id, "u2", LogStatus.FINISHED, {"b": 3, "c": 4})
        entry = (await process_log.latest_by_app_id("APP-1")).value

        assert result.ok
        assert result.value == log_id
        assert entry is not None
        assert entry.status == "finished"
        assert entry.user_id == "u2"
        assert entry.data == {"a": 1, "b": 3, "c": 4}
        assert entry.source_id == "A"
        assert entry.edge_id == "edge-A"
        assert entry.finish_date is not None
        assert entry.processing_time == entry.finish_date
        assert entry.processing_time > entry.action_date

    async def test_update_status_missing_entry(self, process_log: ProcessLog) -> None:
        result = await process_log.update_status(404, "u1", LogStatus.FINISHED)

        assert result.ok
        assert result.value is None

    async def test_update_data_replaces_payload(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "A", data={"a": 1})

        result = await process_log.update_data(log_id, {"z": 9})

        assert result.value is not None
        assert result.value.data == {"z": 9}

    async def test_remove(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "A")

        assert (await process_log.remove(log_id)).value == log_id
        assert (await process_log.remove(log_id)).value is None
        assert (await process_log.latest_by_app_id("APP-1")).value is None


class TestQueries:
    """Tests for latest entry, history and progress."""

    async def test_latest_by_app_id_uses_processing_time(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
    ) -> None:
        first = await insert(process_log, sample_graph, "start")
        await insert(process_log, sample_graph, "A")

        # Completing the older entry makes it the most recently written one
        await process_log.update_status(first, "u1", LogStatus.FINISHED)
        entry = (await process_log.latest_by_app_id("APP-1")).value

        assert entry is not None
        assert entry.id == first

    async def test_latest_by_app_id_none(self, process_log: ProcessLog) -> None:
        result = await process_log.latest_by_app_id("UNKNOWN")

        assert result.ok
        assert result.value is None

    async def test_history_in_id_order(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        ids = [await insert(process_log, sample_graph, s) for s in ("start", "A", "Review")]
        await insert(process_log, sample_graph, "A", app_id="APP-2")

        history = (await process_log.history("APP-1")).value

        assert [e.id for e in history] == ids

    async def test_calc_progress_counts_distinct_sources(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
    ) -> None:
        for source_id in ("start", "A", "A", "Review", "A"):
            await insert(process_log, sample_graph, source_id)

        progress = (await process_log.calc_progress(sample_graph, "APP-1")).value

        assert progress == Progress(total_steps=5, current_step=3)

    async def test_calc_progress_without_entries(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        progress = (await process_log.calc_progress(sample_graph, "APP-1")).value

        assert progress == Progress(5, 0)


class TestCheckDependency:
    """Tests for dependency checks."""

    async def test_never_run_returns_none(self, process_log: ProcessLog) -> None:
        result = await process_log.check_dependency("A", "APP-1", 12)

        assert result.ok
        assert result.value is None

    async def test_running_step_is_unsatisfied(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        await insert(process_log, sample_graph, "A")

        status = (await process_log.check_dependency("A", "APP-1", 12)).value

        assert status is not None
        assert status.satisfied is False
        assert status.status == "process"
        assert status.edge_id == "edge-A"

    async def test_finished_step_is_satisfied(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "A")
        await process_log.update_status(log_id, "u1", "FINISHED")

        status = (await process_log.check_dependency("A", "APP-1", "W12")).value

        assert status is not None
        assert status.satisfied is True
        assert status.workflow_id == 12

    async def test_source_matched_ignoring_case(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "Review")
        await process_log.update_status(log_id, "u1", LogStatus.FINISHED)

        status = (await process_log.check_dependency("REVIEW", "APP-1", 12)).value

        assert status is not None
        assert status.satisfied is True

    @pytest.mark.parametrize("source_id", ["Überprüfung", "ÜBERprüfung"])
    async def test_non_ascii_source_matched(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
        source_id: str,
    ) -> None:
        log_id = await insert(process_log, sample_graph, "Überprüfung")
        await process_log.update_status(log_id, "u1", LogStatus.FINISHED)

        status = (await process_log.check_dependency(source_id, "APP-1", 12)).value

        assert status is not None
        assert status.satisfied is True

    async def test_newest_entry_wins(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        first = await insert(process_log, sample_graph, "A")
        await process_log.update_status(first, "u1", LogStatus.FINISHED)
        await insert(process_log, sample_graph, "A")

        status = (await process_log.check_dependency("A", "APP-1", 12)).value

        assert status is not None
        assert status.satisfied is False

    async def test_other_workflow_and_app_ignored(self, process_log: ProcessLog, sample_graph: WorkflowGraph) -> None:
        log_id = await insert(process_log, sample_graph, "A")
        await process_log.update_status(log_id, "u1", LogStatus.FINISHED)

        assert (await process_log.check_dependency("A", "APP-1", 13)).value is None
        assert (await process_log.check_dependency("A", "APP-2", 12)).value is None

    async def test_malformed_workflow_id_raises(self, process_log: ProcessLog) -> None:
        with pytest.raises(InvalidWorkflowCodeError):
            await process_log.check_dependency("A", "APP-1", "Wxyz")


class TestStoreFailures:
    """Store failures come back as failed results instead of raising."""

    async def test_insert_failure(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_add(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(ProcessLogRepository, "add", broken_add)

        result = await process_log.insert(sample_graph, "APP-1", "tt", "u1", "A", "e1")

        assert not result.ok
        assert isinstance(result.error, StoreUnavailableError)
        assert result.error.operation == "process_log.insert"
        assert result.value is None

    async def test_progress_failure_is_neutral(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_count(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("no such table"))

        monkeypatch.setattr(ProcessLogRepository, "count_distinct_sources", broken_count)

        result = await process_log.calc_progress(sample_graph, "APP-1")

        assert not result.ok
        assert result.value == Progress(0, 0)


class TestCancellation:
    """Cancelled operations propagate and leave nothing behind."""

    async def test_cancelled_insert_leaves_no_entry(
        self,
        process_log: ProcessLog,
        sample_graph: WorkflowGraph,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        original_add = ProcessLogRepository.add
        flushed = asyncio.Event()

        async def stalled_add(self: ProcessLogRepository, data, *args, **kwargs):
            added = await original_add(self, data, *args, **kwargs)
            flushed.set()
            await asyncio.Event().wait()
            return added

        monkeypatch.setattr(ProcessLogRepository, "add", stalled_add)

        task = asyncio.create_task(process_log.insert(sample_graph, "APP-1", "tt", "u1", "A", "e1"))
        await flushed.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        monkeypatch.undo()
        assert (await process_log.history("APP-1")).value == []
