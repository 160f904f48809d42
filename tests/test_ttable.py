"""Integration tests for the TTable projector."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.exc import OperationalError

from litestar_flowgraph.core.models import TTable
from litestar_flowgraph.db.repositories import TTableRepository
from litestar_flowgraph.engine.ttable import TTableProjector
from litestar_flowgraph.exceptions import StoreUnavailableError, TTableNotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tests.conftest import TickingClock

pytestmark = pytest.mark.integration


@pytest.fixture
def projector(async_session: AsyncSession, clock: TickingClock) -> TTableProjector:
    """Projector writing inline on the test session."""
    return TTableProjector(async_session, clock)


def stage_output(*pairs: tuple[str, Any]) -> dict[str, Any]:
    return {"data": {"stages": [{"result": [{"field_name": k, "field_value": v} for k, v in pairs]}]}}


class TestGetAndUpsert:
    """Tests for loading and storing TTables."""

    async def test_get_missing(self, projector: TTableProjector) -> None:
        result = await projector.get("APP-1")

        assert not result.ok
        assert isinstance(result.error, TTableNotFoundError)
        assert result.value is None
        with pytest.raises(TTableNotFoundError):
            result.unwrap()

    async def test_round_trip_refreshes_processing_time(self, projector: TTableProjector) -> None:
        ttable = TTable(app_id="APP-1", fields={"income": 1200, "name": "Ana"})
        await projector.upsert(ttable)
        first = (await projector.get("APP-1")).unwrap()
        first_time = first.processing_time

        first.fields["income"] = 1500
        await projector.upsert(first)
        second = (await projector.get("APP-1")).unwrap()

        assert first_time == ttable.processing_time
        assert second.fields == {"income": 1500, "name": "Ana"}
        assert second.processing_time > first_time

    async def test_upsert_stamps_processing_time(self, projector: TTableProjector, clock: TickingClock) -> None:
        ttable = TTable(app_id="APP-1")

        result = await projector.upsert(ttable)

        assert result.value == "APP-1"
        assert ttable.processing_time == clock.now

    async def test_upsert_replaces_fields(self, projector: TTableProjector, async_session: AsyncSession) -> None:
        await projector.upsert(TTable(app_id="APP-1", fields={"a": 1, "b": 2}))
        await projector.upsert(TTable(app_id="APP-1", fields={"c": 3}))

        loaded = (await projector.get("APP-1")).unwrap()

        assert loaded.fields == {"c": 3}
        assert await TTableRepository(session=async_session).count() == 1

    async def test_get_or_create(self, projector: TTableProjector) -> None:
        created = await projector.get_or_create("APP-1", {"channel": "web"})
        existing = await projector.get_or_create("APP-1", {"channel": "branch"})

        assert created.ok
        assert existing.value is not None
        assert existing.value.fields == {"channel": "web"}

    async def test_get_projects_fields(self, projector: TTableProjector) -> None:
        await projector.upsert(TTable(app_id="APP-1", fields={"income": 1200, "name": "Ana", "score": 700}))

        result = await projector.get("APP-1", fields=["name", "score", "missing"])

        assert result.unwrap().app_id == "APP-1"
        assert result.unwrap().fields == {"name": "Ana", "score": 700}

    @pytest.mark.parametrize("app_id", ["", "   "])
    async def test_get_rejects_blank_app_id(self, projector: TTableProjector, app_id: str) -> None:
        with pytest.raises(ValueError):
            await projector.get(app_id)


class TestMerge:
    """Tests for folding decision-flow results."""

    async def test_merge_stage_results_last_write_wins(self, projector: TTableProjector) -> None:
        ttable = TTable(app_id="APP-1", fields={"score": 500, "name": "Ana"})

        merged = await projector.merge_stage_results(ttable, stage_output(("score", 610), ("grade", "C")))
        merged_again = await projector.merge_stage_results(merged.unwrap(), stage_output(("score", 720)))
        stored = (await projector.get("APP-1")).unwrap()

        assert merged_again.value is not None
        assert merged_again.value.fields == {"score": 720, "name": "Ana", "grade": "C"}
        assert stored.fields == {"score": 720, "name": "Ana", "grade": "C"}

    async def test_merge_returns_new_record(self, projector: TTableProjector) -> None:
        ttable = TTable(app_id="APP-1", fields={"a": 1})

        merged = (await projector.merge_stage_results(ttable, stage_output(("a", 2)))).unwrap()

        assert ttable.fields == {"a": 1}
        assert merged.fields == {"a": 2}
        assert merged.processing_time is not None

    async def test_merge_temp_results_filters_empty_values(self, projector: TTableProjector) -> None:
        ttable = TTable(app_id="APP-1", fields={"limit": 1000, "note": "keep"})
        output = {"data": {"temp_results": {"limit": 5000, "note": "", "flag": None, "zero": 0}}}

        merged = (await projector.merge_temp_results(ttable, output)).unwrap()

        assert merged.fields == {"limit": 5000, "note": "keep", "zero": 0}

    async def test_merge_without_results_skips_write(self, projector: TTableProjector) -> None:
        ttable = TTable(app_id="APP-1", fields={"a": 1})

        result = await projector.merge_stage_results(ttable, {"data": {}})

        assert result.value is ttable
        assert not (await projector.get("APP-1")).ok

    async def test_merge_decision_output_temp_results_win(self, projector: TTableProjector) -> None:
        output = stage_output(("limit", 1000), ("grade", "B"))
        output["data"]["temp_results"] = {"limit": 2500}

        merged = (await projector.merge_decision_output(TTable(app_id="APP-1"), output)).unwrap()

        assert merged.fields == {"limit": 2500, "grade": "B"}

    async def test_merge_arrays(self, async_session: AsyncSession, clock: TickingClock) -> None:
        projector = TTableProjector(async_session, clock, merge_arrays=True)
        ttable = TTable(app_id="APP-1", fields={"phones": ["111", "222"]})

        merged = (await projector.merge_fields(ttable, {"phones": ["999"]})).unwrap()

        assert merged.fields == {"phones": ["999", "222"]}

    async def test_inline_write_failure_keeps_merged_view(
        self,
        projector: TTableProjector,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_replace(*args, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

        monkeypatch.setattr(TTableRepository, "replace_document", broken_replace)

        result = await projector.merge_stage_results(TTable(app_id="APP-1"), stage_output(("score", 700)))

        assert not result.ok
        assert isinstance(result.error, StoreUnavailableError)
        assert result.value is not None
        assert result.value.fields == {"score": 700}
