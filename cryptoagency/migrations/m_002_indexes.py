"""Migration 002: indexes for the time-windowed dashboard queries."""

from __future__ import annotations

import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_suggestions_agent_time "
        "ON agent_suggestions (agent_id, timestamp)"
    )
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_performance_agent_time "
        "ON agent_performance (agent_id, timestamp)"
    )
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_metrics_time ON system_metrics (timestamp)"
    )
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_discoveries_time ON alpha_discoveries (timestamp)"
    )
