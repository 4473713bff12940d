"""Simulation driver and application bootstrap for KubeSim.

SimulationApp owns every kernel component and turns wall-clock time into
fixed simulated ticks:

    real seconds -> (capped at max_frame) x time_scale -> accumulator
    accumulator  -> whole ticks of ``tick_seconds`` each

Each tick drains the queued commands, runs the control-loop engine, feeds
the incident engine once per ``incident interval`` of simulated time and
evaluates predicate watches. The driver is synchronous; ``start``/``stop``
add the asyncio real-time loop and the uvicorn REST server around it.

Shutdown is graceful: the REST server is asked to exit, then the background
tasks are cancelled and awaited, bounded by a grace period.
"""

from __future__ import annotations

import asyncio
import random
import signal
import time
from collections import deque
from collections.abc import Mapping
from typing import Any

from kubesim.bootstrap import bootstrap_cluster
from kubesim.commands import CommandDispatcher, CommandResult
from kubesim.config import load_config
from kubesim.engine import ControlLoopEngine, PredicateWatcher, SimulationClock
from kubesim.incidents import IncidentEngine
from kubesim.models.config import KubeSimConfig
from kubesim.notifications import EventBus, Topic
from kubesim.notifications.payloads import EngineStateChanged
from kubesim.observability.logging import bind_simulation_context, get_logger, setup_logging
from kubesim.store import ClusterStore

_SHUTDOWN_GRACE_SECONDS = 15
_LOOP_INTERVAL_SECONDS = 1 / 60
_EPSILON = 1e-9


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class SimulationApp:
    """Application root.  Owns the kernel and drives simulated time.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self, config: KubeSimConfig | None = None, *, bootstrap: bool = False) -> None:
        self.config = config or KubeSimConfig()
        self._log = get_logger("app")
        self._bootstrap = bootstrap

        self.rng = random.Random(self.config.seed)
        self.bus = EventBus()
        self.clock = SimulationClock(self.config.engine.tick_seconds)
        self.store = ClusterStore(bus=self.bus, clock=self.clock)
        self.engine = ControlLoopEngine(self.store, self.bus, self.clock, self.rng, self.config)
        self.incidents = IncidentEngine(self.store, self.bus, self.rng, self.config.incidents)
        self.predicates = PredicateWatcher(self.store, self.bus)
        self.commands = CommandDispatcher(self.store, self.bus)

        self._accumulator = 0.0
        self._incident_accumulator = 0.0
        self._time_scale = 1.0
        self._paused = False
        self._command_queue: deque[Mapping[str, Any]] = deque()
        self._last_results: deque[CommandResult] = deque(maxlen=50)

        # asyncio lifecycle
        self._background_tasks: list[asyncio.Task[None]] = []
        self._rest_server: object | None = None
        self._running = False

        if bootstrap:
            bootstrap_cluster(self.store, self.config.bootstrap_nodes)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def sim_time(self) -> float:
        return self.clock.now()

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def time_scale(self) -> float:
        return self._time_scale

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_commands(self) -> int:
        return len(self._command_queue)

    @property
    def command_results(self) -> list[CommandResult]:
        """Results of the most recently executed queued commands."""
        return list(self._last_results)

    # ------------------------------------------------------------------
    # Time control
    # ------------------------------------------------------------------

    def advance(self, real_seconds: float) -> int:
        """Feed *real_seconds* of wall-clock time; returns the ticks run."""
        if self._paused or real_seconds <= 0:
            return 0
        frame = min(real_seconds, self.config.engine.max_frame_seconds)
        self._accumulator += frame * self._time_scale
        step = self.clock.step
        ticks = 0
        while self._accumulator + _EPSILON >= step:
            self._accumulator -= step
            self._tick()
            ticks += 1
        return ticks

    def run_for(self, sim_seconds: float) -> int:
        """Run as many fixed ticks as fit in *sim_seconds* of simulated time."""
        return self.step(int(round(sim_seconds / self.clock.step)))

    def step(self, count: int = 1) -> int:
        if self._paused:
            return 0
        for _ in range(count):
            self._tick()
        return count

    def pause(self) -> None:
        if self._paused:
            return
        self._paused = True
        self.incidents.pause()
        self._log.info("simulation_paused", sim_time=self.sim_time)
        self._publish_state(Topic.ENGINE_PAUSED)

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._accumulator = 0.0
        self.incidents.resume()
        self._log.info("simulation_resumed", sim_time=self.sim_time)
        self._publish_state(Topic.ENGINE_RESUMED)

    def set_time_scale(self, scale: float) -> float:
        """Clamp *scale* into ``[0, max_time_scale]`` and return the applied value."""
        self._time_scale = max(0.0, min(self.config.engine.max_time_scale, float(scale)))
        self._log.info("time_scale_changed", time_scale=self._time_scale)
        self._publish_state(Topic.TIME_SCALE_CHANGED)
        return self._time_scale

    def _tick(self) -> None:
        self._drain_commands()
        self.engine.tick()
        self._incident_accumulator += self.clock.step
        interval = self.config.incidents.interval_seconds
        while self._incident_accumulator + _EPSILON >= interval:
            self._incident_accumulator -= interval
            self.incidents.tick(interval)
        self.predicates.evaluate(self.sim_time)

    def _publish_state(self, topic: Topic) -> None:
        self.bus.publish(
            topic,
            EngineStateChanged(paused=self._paused, time_scale=self._time_scale, sim_time=self.sim_time),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def queue_command(self, command: Mapping[str, Any]) -> int:
        """Queue *command* for the start of the next tick; returns the queue length."""
        self._command_queue.append(dict(command))
        return len(self._command_queue)

    def execute_command(self, command: Mapping[str, Any]) -> CommandResult:
        return self.commands.execute(command)

    def _drain_commands(self) -> None:
        while self._command_queue:
            self._last_results.append(self.commands.execute(self._command_queue.popleft()))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        return {
            "simTime": self.sim_time,
            "tick": self.engine.tick_count,
            "paused": self._paused,
            "timeScale": self._time_scale,
            "stats": self.store.cluster_stats().to_dict(),
            "incidents": self.incidents.stats(),
            "clusterHealth": self.incidents.cluster_health(),
            "metrics": self.engine.history.summary(),
        }

    def snapshot(self) -> dict[str, Any]:
        data = self.store.snapshot()
        data["simTime"] = self.sim_time
        data["tick"] = self.engine.tick_count
        return data

    def restore(self, snapshot: Mapping[str, Any]) -> int:
        """Replace the cluster with *snapshot*; incidents and queued commands are dropped."""
        self.clock.reset(float(snapshot.get("simTime", snapshot.get("timestamp", 0.0))))
        count = self.store.restore(snapshot)
        self.engine.reset()
        self.incidents.reset()
        self._command_queue.clear()
        self._accumulator = 0.0
        self._incident_accumulator = 0.0
        self._log.info("simulation_restored", resources=count, sim_time=self.sim_time)
        return count

    def reset(self) -> None:
        self.clock.reset()
        self.store.clear()
        self.engine.reset()
        self.incidents.reset()
        self.predicates.clear()
        self._command_queue.clear()
        self._accumulator = 0.0
        self._incident_accumulator = 0.0
        if self._bootstrap:
            bootstrap_cluster(self.store, self.config.bootstrap_nodes)
        self._log.info("simulation_reset")

    # ------------------------------------------------------------------
    # asyncio lifecycle
    # ------------------------------------------------------------------

    async def start(self, serve_api: bool = True) -> None:
        """Start the real-time loop and, optionally, the REST API.

        Raises _ComponentError if a mandatory component cannot start.
        """
        self._log.info("kubesim starting", version=_kubesim_version(), seed=self.config.seed)
        await self._start_loop()
        if serve_api:
            await self._start_rest()
        self._running = True
        self._log.info("kubesim started", port=self.config.api.port if serve_api else None)

    async def _start_loop(self) -> None:
        try:
            task = asyncio.create_task(self._real_time_loop(), name="simulation-loop")
            self._background_tasks.append(task)
            self._log.info("simulation loop started", tick_seconds=self.clock.step)
        except Exception as exc:
            raise _ComponentError("simulation_loop", exc) from exc

    async def _real_time_loop(self) -> None:
        last = time.monotonic()
        while True:
            await asyncio.sleep(_LOOP_INTERVAL_SECONDS)
            now = time.monotonic()
            self.advance(now - last)
            last = now

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubesim.api import create_app

            fastapi_app = create_app(self)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host=self.config.api.host,
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", host=self.config.api.host, port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    async def stop(self) -> None:
        if not self._running and not self._background_tasks:
            return
        self._log.info("kubesim shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=_SHUTDOWN_GRACE_SECONDS,
                )
            except TimeoutError:
                self._log.warning("background tasks did not stop in time", timeout=_SHUTDOWN_GRACE_SECONDS)
        self._background_tasks.clear()

        self._rest_server = None
        self._log.info("kubesim stopped", sim_time=self.sim_time, ticks=self.engine.tick_count)


def _kubesim_version() -> str:
    from kubesim import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: KubeSimConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    config = config or load_config()
    setup_logging(config.log.level)
    bind_simulation_context(seed=config.seed)
    app = SimulationApp(config, bootstrap=True)
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
