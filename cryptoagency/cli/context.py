"""CLI runtime context: bridges the sync CLI to the async bench."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from cryptoagency.bench import AgencyBench
from cryptoagency.config import settings
from cryptoagency.events.bus import EventBus
from cryptoagency.storage.database import AgenticDatabase


class AgencyContext:
    """Singleton holding the database, event bus and bench for one CLI process."""

    _instance: AgencyContext | None = None

    def __init__(self) -> None:
        self.event_bus = EventBus()
        self.database = AgenticDatabase(settings.db_path)
        self.bench = AgencyBench(
            self.database,
            seed=settings.random_seed,
            event_bus=self.event_bus,
            pause_seconds=settings.bench_pause_seconds,
            alpha_threshold=settings.alpha_threshold,
            history_limit=settings.discovery_history_limit,
            results_limit=settings.bench_results_limit,
        )

    async def ensure_bench(self) -> AgencyBench:
        """Open the database on first use (async)."""
        if not self.database.is_initialized:
            await self.database.initialize()
        return self.bench

    async def close(self) -> None:
        await self.database.close()

    @classmethod
    def get(cls) -> AgencyContext:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    else:
        return asyncio.run(coro)
