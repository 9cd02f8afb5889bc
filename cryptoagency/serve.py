"""cryptoagency live server: dashboard and bench daemon running together."""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from cryptoagency.bench import AgencyBench
from cryptoagency.config import settings
from cryptoagency.daemon import AgencyDaemon
from cryptoagency.dashboard.app import configure, dashboard_app
from cryptoagency.events.bus import EventBus
from cryptoagency.storage.database import AgenticDatabase

_logger = logging.getLogger(__name__)


async def main(host: str | None = None, port: int | None = None) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    event_bus = EventBus()

    database = AgenticDatabase(settings.db_path)
    await database.initialize()

    bench = AgencyBench(
        database,
        seed=settings.random_seed,
        event_bus=event_bus,
        pause_seconds=settings.bench_pause_seconds,
        alpha_threshold=settings.alpha_threshold,
        history_limit=settings.discovery_history_limit,
        results_limit=settings.bench_results_limit,
    )
    daemon = AgencyDaemon(
        bench,
        event_bus=event_bus,
        interval_seconds=settings.daemon_interval_seconds,
    )
    configure(bench=bench, event_bus=event_bus, daemon=daemon)

    await event_bus.emit("server.started", {"session_id": bench.session_id}, source="server")
    _logger.info("Bench session %s using %s", bench.session_id, settings.db_path)
    await daemon.start()

    config = uvicorn.Config(
        dashboard_app,
        host=host or settings.dashboard_host,
        port=port or settings.dashboard_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    finally:
        await daemon.stop()
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
