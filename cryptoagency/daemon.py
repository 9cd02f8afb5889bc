"""Agency daemon: keeps the bench running full-system rounds in the background.

The daemon does nothing the bench can't do by hand; it just calls
`run("full-system")` on an interval so suggestions keep accumulating
while someone watches the dashboard.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from cryptoagency.bench import AgencyBench, BenchResult
from cryptoagency.events.bus import EventBus

logger = structlog.get_logger()


class AgencyDaemon:
    """Background daemon that runs bench rounds on a schedule."""

    def __init__(
        self,
        bench: AgencyBench,
        event_bus: EventBus | None = None,
        interval_seconds: float = 30,
        test_type: str = "full-system",
        rounds: int = 1,
        history_limit: int = 100,
    ) -> None:
        self._bench = bench
        self._event_bus = event_bus
        self._interval = interval_seconds
        self._test_type = test_type
        self._rounds = rounds
        self._running = False
        self._task: asyncio.Task | None = None
        self._history: list[BenchResult] = []
        self._history_limit = max(history_limit, 1)
        self._cycles = 0

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        await self._emit(
            "daemon.started",
            {"interval_seconds": self._interval, "test_type": self._test_type},
        )

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self._emit("daemon.stopped", {"cycles": self._cycles})

    async def run_once(self) -> BenchResult:
        result = await self._bench.run(self._test_type, rounds=self._rounds)
        self._history.append(result)
        del self._history[:-self._history_limit]
        self._cycles += 1
        logger.info(
            "agency_daemon_cycle",
            test_type=self._test_type,
            suggestions=len(result.suggestion_ids),
            efficiency=result.metrics.get("system_efficiency"),
        )
        return result

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def history(self) -> list[BenchResult]:
        return list(self._history)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("agency_daemon_cycle_failed", error=str(e))
                await self._emit("daemon.error", {"error": str(e)})

            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.emit(topic, data, source="agency_daemon")
