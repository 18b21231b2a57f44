"""Application bootstrap for kube-state-logs.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → informer factory → handlers
              → informers/sync → aggregator → scheduler → REST

Shutdown is graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from kubestatelogs.config import load_config
from kubestatelogs.models.config import KubeStateLogsConfig
from kubestatelogs.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubestatelogs.cache.factory import InformerFactory
    from kubestatelogs.collector.registry import Aggregator, HandlerRegistry
    from kubestatelogs.collector.scheduler import CollectionScheduler

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeStateLogsApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self, config: KubeStateLogsConfig | None = None) -> None:
        self.config: KubeStateLogsConfig | None = config

        self._api_client: Any = None
        self._factory: InformerFactory | None = None
        self._registry: HandlerRegistry | None = None
        self._aggregator: Aggregator | None = None
        self._scheduler: CollectionScheduler | None = None
        self._rest_server: Any = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kube-state-logs starting", version=_version())

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. Informer factory and handlers -----------------------------
        await self._start_handlers()

        # --- 5. Informers and initial sync --------------------------------
        await self._start_informers()

        # --- 6. Aggregator and scheduler ----------------------------------
        await self._start_scheduler()

        # --- 7. REST API (optional) ---------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info(
            "kube-state-logs started",
            resource_types=len(self._registry.registrations) if self._registry else 0,
        )

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_k8s_client(self) -> None:
        """Build an ApiClient from the configured kubeconfig, in-cluster config, or default kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            kubeconfig = self.config.kubernetes.kubeconfig
            if kubeconfig:
                await k8s_config.load_kube_config(config_file=kubeconfig)
                self._log.info("k8s client configured from kubeconfig", path=kubeconfig)
            else:
                try:
                    k8s_config.load_incluster_config()
                    self._log.info("k8s client configured from in-cluster service account")
                except k8s_config.ConfigException:
                    await k8s_config.load_kube_config()
                    self._log.info("k8s client configured from default kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_handlers(self) -> None:
        """Create the informer factory, register every configured handler and bind it."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("binding resource handlers")
        try:
            from kubestatelogs.cache.factory import InformerFactory
            from kubestatelogs.collector.registry import HandlerRegistry
            from kubestatelogs.collector.resources import build_handlers

            factory = InformerFactory(self._api_client)
            registry = HandlerRegistry()
            for handler in build_handlers(self.config.collection):
                registry.register(handler)
            failures = registry.bind_all(factory, get_logger("collector"))
        except Exception as exc:
            raise _ComponentError("handlers", exc) from exc

        self._factory = factory
        self._registry = registry
        if not registry.registrations:
            raise _ComponentError("handlers", RuntimeError(f"no resource type could be bound ({len(failures)} failed)"))

    async def _start_informers(self) -> None:
        """Start every informer and wait (bounded) for the initial lists."""
        assert self._log is not None
        assert self.config is not None
        assert self._factory is not None
        try:
            await self._factory.start()
            synced = await self._factory.wait_for_cache_sync(self.config.collection.cache_sync_timeout_seconds)
        except Exception as exc:
            raise _ComponentError("informers", exc) from exc

        pending = sorted(kind for kind, ok in synced.items() if not ok)
        if pending:
            # Unsynced kinds yield no records until their first list completes.
            self._log.warning("informer sync incomplete", pending=pending)
        else:
            self._log.info("all informers synced", count=len(synced))

    async def _start_scheduler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._registry is not None
        try:
            from kubestatelogs.collector.registry import Aggregator
            from kubestatelogs.collector.scheduler import CollectionScheduler
            from kubestatelogs.observability.sink import JsonLinesSink

            self._aggregator = Aggregator(self._registry)
            scheduler = CollectionScheduler(self._registry, self._aggregator, JsonLinesSink(), self.config.collection)
            await scheduler.start()
            self._scheduler = scheduler
        except Exception as exc:
            raise _ComponentError("scheduler", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn server for the health/status API.  Optional."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled")
            return
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kubestatelogs.api import build_app

            fastapi_app = build_app(
                registry=self._registry,
                factory=self._factory,
                scheduler=self._scheduler,
                config=self.config,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            # Signals are handled by main(), not by uvicorn.
            server.install_signal_handlers = lambda: None  # type: ignore[method-assign]
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            self._log.warning("rest api failed to start", error=str(exc))

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kube-state-logs shutting down")

        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("scheduler", self._scheduler)
        await self._stop_component("informers", self._factory)
        await self._stop_k8s_client()

        log.info("kube-state-logs stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _version() -> str:
    from kubestatelogs import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeStateLogsApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
