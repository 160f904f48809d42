"""Tests for the Litestar plugin."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

import pytest
from litestar import Litestar, get, post
from litestar.di import Provide
from litestar.testing import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_flowgraph.connectors import ConnectorConfig, HttpProcessConnector
from litestar_flowgraph.core.definition import WorkflowGraph
from litestar_flowgraph.db.models import WorkflowConfigModel
from litestar_flowgraph.engine import ProcessLog, TTableProjector, WorkflowDefinitionStore, WorkflowStepRunner
from litestar_flowgraph.plugin import FlowGraphPlugin, FlowGraphPluginConfig
from tests.conftest import make_graph_document

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = pytest.mark.integration


def make_session_provider(url: str) -> Provide:
    """Stand-in for advanced-alchemy's ``db_session`` dependency."""

    async def provide_db_session() -> AsyncGenerator[AsyncSession, None]:
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(WorkflowConfigModel.metadata.create_all)
        async with async_sessionmaker(bind=engine, expire_on_commit=False)() as session:
            yield session
        await engine.dispose()

    return Provide(provide_db_session)


@get("/services")
async def list_services(
    flowgraph_definitions: WorkflowDefinitionStore,
    flowgraph_process_log: ProcessLog,
    flowgraph_ttables: TTableProjector,
    flowgraph_runner: WorkflowStepRunner,
) -> dict[str, Any]:
    return {
        "definitions": type(flowgraph_definitions).__name__,
        "process_log": type(flowgraph_process_log).__name__,
        "ttables": type(flowgraph_ttables).__name__,
        "runner": type(flowgraph_runner).__name__,
        "same_session": flowgraph_runner.process_log.session is flowgraph_process_log.session,
    }


@post("/run/{app_id:str}")
async def run_first_step(app_id: str, flowgraph_runner: WorkflowStepRunner) -> dict[str, Any]:
    await flowgraph_runner.definitions.upsert(WorkflowGraph.from_document(make_graph_document()))
    outcome = await flowgraph_runner.run_step("W12", app_id, "u1")
    return {"kind": outcome.kind.value, "target": outcome.edge.target, "log_id": outcome.log_id}


@get("/connector")
async def connector_base_urls(flowgraph_connector: HttpProcessConnector) -> dict[str, str]:
    return flowgraph_connector.config.base_urls


class TestFlowGraphPluginConfig:
    """Tests for FlowGraphPluginConfig."""

    def test_defaults(self) -> None:
        config = FlowGraphPluginConfig()

        assert config.connector is None
        assert config.session_maker is None
        assert config.dependency_key_runner == "flowgraph_runner"
        assert config.persistence_queue_size == 100


class TestFlowGraphPlugin:
    """Tests for FlowGraphPlugin."""

    def test_registers_dependencies(self) -> None:
        app = Litestar(route_handlers=[], plugins=[FlowGraphPlugin()])

        for key in ("flowgraph_definitions", "flowgraph_process_log", "flowgraph_ttables", "flowgraph_runner"):
            assert key in app.dependencies
        assert "flowgraph_connector" not in app.dependencies

    def test_custom_dependency_keys(self) -> None:
        config = FlowGraphPluginConfig(dependency_key_runner="step_runner")

        app = Litestar(route_handlers=[], plugins=[FlowGraphPlugin(config)])

        assert "step_runner" in app.dependencies
        assert "flowgraph_runner" not in app.dependencies

    def test_connector_requires_config(self) -> None:
        plugin = FlowGraphPlugin()
        Litestar(route_handlers=[], plugins=[plugin])

        with pytest.raises(RuntimeError):
            _ = plugin.connector

    def test_services_injected(self, tmp_path: Path) -> None:
        app = Litestar(
            route_handlers=[list_services],
            plugins=[FlowGraphPlugin()],
            dependencies={"db_session": make_session_provider(f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")},
        )

        with TestClient(app=app) as client:
            response = client.get("/services")

        assert response.status_code == 200
        assert response.json() == {
            "definitions": "WorkflowDefinitionStore",
            "process_log": "ProcessLog",
            "ttables": "TTableProjector",
            "runner": "WorkflowStepRunner",
            "same_session": True,
        }

    def test_runner_executes_step(self, tmp_path: Path) -> None:
        app = Litestar(
            route_handlers=[run_first_step],
            plugins=[FlowGraphPlugin()],
            dependencies={"db_session": make_session_provider(f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")},
        )

        with TestClient(app=app) as client:
            response = client.post("/run/APP-1")

        assert response.status_code == 201
        body = response.json()
        assert body["kind"] == "completed"
        assert body["target"] == "A"
        assert body["log_id"] is not None

    def test_connector_provided_and_closed(self) -> None:
        plugin = FlowGraphPlugin(FlowGraphPluginConfig(connector=ConnectorConfig(base_urls={"ocr": "https://ocr.test"})))
        app = Litestar(route_handlers=[connector_base_urls], plugins=[plugin])

        with TestClient(app=app) as client:
            response = client.get("/connector")
            assert not plugin.connector.client.is_closed

        assert response.json() == {"ocr": "https://ocr.test"}
        assert plugin.connector.client.is_closed

    def test_persistence_queue_follows_app_lifecycle(self, tmp_path: Path) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
        session_maker = async_sessionmaker(bind=engine, expire_on_commit=False)
        plugin = FlowGraphPlugin(FlowGraphPluginConfig(session_maker=session_maker))
        app = Litestar(route_handlers=[], plugins=[plugin])

        assert plugin.persistence is not None
        with TestClient(app=app):
            assert plugin.persistence.running

        assert not plugin.persistence.running

    def test_persistence_queue_disabled(self, tmp_path: Path) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
        config = FlowGraphPluginConfig(
            session_maker=async_sessionmaker(bind=engine, expire_on_commit=False),
            start_persistence_queue=False,
        )
        plugin = FlowGraphPlugin(config)
        Litestar(route_handlers=[], plugins=[plugin])

        assert plugin.persistence is None
