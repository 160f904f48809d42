"""Litestar plugin for flowgraph integration.

This module provides the FlowGraphPlugin, which registers the engine services as
Litestar dependencies. Services are built per request from the ``db_session``
dependency supplied by advanced-alchemy's ``SQLAlchemyPlugin``; no routes are
registered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol
from sqlalchemy.ext.asyncio import AsyncSession

from litestar_flowgraph.connectors.config import ConnectorConfig
from litestar_flowgraph.connectors.http import HttpProcessConnector
from litestar_flowgraph.engine.definitions import WorkflowDefinitionStore
from litestar_flowgraph.engine.persistence import TTablePersistenceQueue
from litestar_flowgraph.engine.process_log import ProcessLog
from litestar_flowgraph.engine.runner import WorkflowStepRunner
from litestar_flowgraph.engine.ttable import TTableProjector

if TYPE_CHECKING:
    from litestar.config.app import AppConfig
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from litestar_flowgraph.core.protocols import EventBus
    from litestar_flowgraph.core.types import Clock

__all__ = ["FlowGraphPlugin", "FlowGraphPluginConfig"]

logger = logging.getLogger(__name__)


@dataclass
class FlowGraphPluginConfig:
    """Configuration for the FlowGraphPlugin.

    Attributes:
        connector: Optional connector configuration. When set, an
            :class:`HttpProcessConnector` is provided and closed on shutdown.
        session_maker: Session factory for the background TTable writer. When
            None, TTable writes are awaited inline.
        start_persistence_queue: Whether to run the background TTable writer
            between app startup and shutdown. Requires ``session_maker``.
        persistence_queue_size: Capacity of the background writer's queue.
        merge_arrays: Merge list fields of TTables element-wise.
        event_bus: Optional event bus for step and persistence events.
        clock: Optional clock for write timestamps.
        dependency_key_definitions: Key of the WorkflowDefinitionStore dependency.
        dependency_key_process_log: Key of the ProcessLog dependency.
        dependency_key_ttables: Key of the TTableProjector dependency.
        dependency_key_runner: Key of the WorkflowStepRunner dependency.
        dependency_key_connector: Key of the HttpProcessConnector dependency.
    """

    connector: ConnectorConfig | None = None
    session_maker: async_sessionmaker[AsyncSession] | None = None
    start_persistence_queue: bool = True
    persistence_queue_size: int = 100
    merge_arrays: bool = False
    event_bus: EventBus | None = None
    clock: Clock | None = None
    dependency_key_definitions: str = "flowgraph_definitions"
    dependency_key_process_log: str = "flowgraph_process_log"
    dependency_key_ttables: str = "flowgraph_ttables"
    dependency_key_runner: str = "flowgraph_runner"
    dependency_key_connector: str = "flowgraph_connector"


class FlowGraphPlugin(InitPluginProtocol):
    """Litestar plugin providing the flowgraph services.

    Example:
        Alongside advanced-alchemy's SQLAlchemy plugin::

            from advanced_alchemy.extensions.litestar import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
            from litestar import Litestar, post

            db_config = SQLAlchemyAsyncConfig(connection_string="postgresql+asyncpg://...")


            @post("/applications/{app_id:str}/steps")
            async def run_step(app_id: str, flowgraph_runner: WorkflowStepRunner) -> dict:
                outcome = await flowgraph_runner.run_step("W12", app_id, "system")
                return {"kind": outcome.kind, "edge": outcome.edge.id}


            app = Litestar(
                route_handlers=[run_step],
                plugins=[
                    SQLAlchemyPlugin(config=db_config),
                    FlowGraphPlugin(FlowGraphPluginConfig(session_maker=db_config.create_session_maker())),
                ],
            )
    """

    __slots__ = ("_config", "_connector", "_persistence")

    def __init__(self, config: FlowGraphPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or FlowGraphPluginConfig()
        self._connector: HttpProcessConnector | None = None
        self._persistence: TTablePersistenceQueue | None = None

    @property
    def config(self) -> FlowGraphPluginConfig:
        """Get the plugin configuration."""
        return self._config

    @property
    def persistence(self) -> TTablePersistenceQueue | None:
        """Get the background TTable writer, if one is configured."""
        return self._persistence

    @property
    def connector(self) -> HttpProcessConnector:
        """Get the HTTP connector.

        Raises:
            RuntimeError: If no connector is configured or the app has not
                been initialized.
        """
        if self._connector is None:
            msg = "FlowGraphPlugin has no connector. Set FlowGraphPluginConfig.connector."
            raise RuntimeError(msg)
        return self._connector

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Register the flowgraph dependencies and lifecycle hooks.

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config

        if config.connector is not None:
            self._connector = HttpProcessConnector(config.connector)

        if config.session_maker is not None and config.start_persistence_queue:
            self._persistence = TTablePersistenceQueue(
                config.session_maker,
                maxsize=config.persistence_queue_size,
                event_bus=config.event_bus,
                clock=config.clock,
            )

        def build_projector(session: AsyncSession) -> TTableProjector:
            return TTableProjector(
                session,
                config.clock,
                persistence=self._persistence,
                merge_arrays=config.merge_arrays,
            )

        def provide_definitions(db_session: AsyncSession) -> WorkflowDefinitionStore:
            return WorkflowDefinitionStore(db_session, config.clock)

        def provide_process_log(db_session: AsyncSession) -> ProcessLog:
            return ProcessLog(db_session, config.clock)

        def provide_ttables(db_session: AsyncSession) -> TTableProjector:
            return build_projector(db_session)

        def provide_runner(db_session: AsyncSession) -> WorkflowStepRunner:
            return WorkflowStepRunner(
                WorkflowDefinitionStore(db_session, config.clock),
                ProcessLog(db_session, config.clock),
                build_projector(db_session),
                event_bus=config.event_bus,
            )

        app_config.dependencies[config.dependency_key_definitions] = Provide(provide_definitions, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_process_log] = Provide(provide_process_log, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_ttables] = Provide(provide_ttables, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_runner] = Provide(provide_runner, sync_to_thread=False)

        if self._connector is not None:

            def provide_connector() -> HttpProcessConnector:
                return self._connector  # type: ignore[return-value]

            app_config.dependencies[config.dependency_key_connector] = Provide(provide_connector, sync_to_thread=False)

        app_config.on_startup.append(self._on_startup)
        app_config.on_shutdown.append(self._on_shutdown)
        return app_config

    async def _on_startup(self) -> None:
        if self._persistence is not None:
            await self._persistence.start()
            logger.debug("TTable persistence queue started")

    async def _on_shutdown(self) -> None:
        if self._persistence is not None:
            await self._persistence.stop()
        if self._connector is not None:
            await self._connector.close()
