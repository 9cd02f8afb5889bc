"""Agentic database: SQLite store for suggestions, metrics and feedback.

Everything the agents propose or measure lands here, and the dashboard
and strategic-feedback report read it back. One persistent aiosqlite
connection is held per instance; writes are serialised with a lock.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiosqlite
import orjson

from cryptoagency.exceptions import (
    DatabaseNotInitializedError,
    DiscoveryNotFoundError,
    StrategicDecisionNotFoundError,
    SuggestionNotFoundError,
)
from cryptoagency.migrations.runner import apply_migrations
from cryptoagency.storage.models import (
    AgentPerformanceLog,
    AgentSuggestion,
    AlphaDiscoveryLog,
    FeedbackLog,
    StrategicDecisionLog,
    SystemMetricsLog,
)

_logger = logging.getLogger(__name__)

# Columns stored as JSON text and decoded on read
JSON_COLUMNS = {
    "suggestion_data",
    "performance_metrics",
    "emergent_behaviors",
    "supporting_data",
    "execution_plan",
    "feedback_data",
}


def _dumps(value: Any) -> str:
    return orjson.dumps(value, default=str).decode()


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    record = dict(row)
    for column in JSON_COLUMNS & record.keys():
        if isinstance(record[column], str):
            try:
                record[column] = orjson.loads(record[column])
            except orjson.JSONDecodeError:
                _logger.warning("Undecodable %s in row %s", column, record.get("id"))
    return record


def _since(days: int) -> str:
    return f"-{int(days)} days"


class AgenticDatabase:
    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._lock: asyncio.Lock | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_initialized(self) -> bool:
        return self._db is not None

    async def initialize(self) -> None:
        """Create the parent directory, migrate the schema and connect."""
        if self._db is not None:
            return
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        applied = await apply_migrations(self._db_path)
        self._lock = asyncio.Lock()
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        _logger.info("Agentic database ready at %s (migrations applied: %s)", self._db_path, applied)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise DatabaseNotInitializedError(f"Database {self._db_path} not initialized")
        return self._db

    async def _insert(self, sql: str, params: tuple) -> int:
        db = self._conn()
        async with self._lock:
            cursor = await db.execute(sql, params)
            await db.commit()
            return cursor.lastrowid

    async def _all(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        cursor = await self._conn().execute(sql, params)
        rows = await cursor.fetchall()
        return [_row_to_dict(r) for r in rows]

    async def _one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        cursor = await self._conn().execute(sql, params)
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    # ── Writes ───────────────────────────────────────────────────

    async def log_agent_suggestion(self, suggestion: AgentSuggestion) -> int:
        suggestion_id = await self._insert(
            """INSERT INTO agent_suggestions
               (agent_id, suggestion_type, suggestion_data, confidence, urgency,
                expected_value, rationale, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, 'pending')""",
            (
                suggestion.agent_id,
                suggestion.type,
                _dumps(suggestion.data),
                suggestion.confidence,
                suggestion.urgency.value,
                suggestion.expected_value,
                suggestion.rationale,
            ),
        )
        _logger.debug("Logged %s suggestion %d", suggestion.agent_id, suggestion_id)
        return suggestion_id

    async def update_suggestion_feedback(
        self,
        suggestion_id: int,
        feedback: str,
        score: int,
        execution_result: str | None = None,
        actual_outcome: float | None = None,
    ) -> None:
        db = self._conn()
        async with self._lock:
            cursor = await db.execute(
                """UPDATE agent_suggestions
                   SET human_feedback = ?, feedback_score = ?, execution_result = ?,
                       actual_outcome = ?, status = 'reviewed',
                       updated_at = CURRENT_TIMESTAMP
                   WHERE id = ?""",
                (feedback, score, execution_result, actual_outcome, suggestion_id),
            )
            await db.commit()
        if cursor.rowcount == 0:
            raise SuggestionNotFoundError(f"No suggestion with id {suggestion_id}")

    async def log_agent_performance(self, agent_id: str, performance: AgentPerformanceLog) -> int:
        return await self._insert(
            """INSERT INTO agent_performance
               (agent_id, performance_metrics, goal_progress, reputation_score,
                autonomy_level, decision_count, success_rate, adaptation_score)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                agent_id,
                _dumps(performance.metrics),
                performance.goal_progress,
                performance.reputation_score,
                performance.autonomy_level,
                performance.decision_count,
                performance.success_rate,
                performance.adaptation_score,
            ),
        )

    async def log_system_metrics(self, metrics: SystemMetricsLog) -> int:
        return await self._insert(
            """INSERT INTO system_metrics
               (overall_performance, agent_count, active_conflicts, resolved_conflicts,
                emergent_behaviors, strategic_decisions, system_efficiency)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                metrics.overall_performance,
                metrics.agent_count,
                metrics.active_conflicts,
                metrics.resolved_conflicts,
                _dumps(metrics.emergent_behaviors),
                metrics.strategic_decisions,
                metrics.system_efficiency,
            ),
        )

    async def log_alpha_discovery(self, discovery: AlphaDiscoveryLog) -> int:
        return await self._insert(
            """INSERT INTO alpha_discoveries
               (discovery_type, description, alpha_value, confidence, urgency,
                source, discovery_time, expiration_time, actionable_insight,
                supporting_data, validated, validation_outcome, market_impact)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                discovery.type,
                discovery.description,
                discovery.alpha_value,
                discovery.confidence,
                discovery.urgency.value,
                discovery.source,
                discovery.discovery_time.isoformat(),
                discovery.expiration_time.isoformat() if discovery.expiration_time else None,
                discovery.actionable_insight,
                _dumps(discovery.supporting_data),
                discovery.validated,
                discovery.validation_outcome,
                discovery.market_impact,
            ),
        )

    async def validate_alpha_discovery(
        self, discovery_id: int, outcome: float, market_impact: float | None = None,
    ) -> None:
        db = self._conn()
        async with self._lock:
            cursor = await db.execute(
                """UPDATE alpha_discoveries
                   SET validated = ?, validation_outcome = ?, market_impact = ?
                   WHERE id = ?""",
                (outcome > 0.5, outcome, market_impact, discovery_id),
            )
            await db.commit()
        if cursor.rowcount == 0:
            raise DiscoveryNotFoundError(f"No alpha discovery with id {discovery_id}")

    async def log_strategic_decision(self, decision: StrategicDecisionLog) -> int:
        return await self._insert(
            """INSERT INTO strategic_decisions
               (decision_type, target_agent, rationale, impact, urgency,
                execution_plan, status)
               VALUES (?, ?, ?, ?, ?, ?, 'planned')""",
            (
                decision.type,
                decision.target_agent,
                decision.rationale,
                decision.impact,
                decision.urgency.value,
                _dumps(decision.execution_plan),
            ),
        )

    async def update_strategic_decision(
        self,
        decision_id: int,
        status: str,
        execution_result: str | None = None,
        success_rate: float | None = None,
        lessons_learned: str | None = None,
    ) -> None:
        db = self._conn()
        async with self._lock:
            cursor = await db.execute(
                """UPDATE strategic_decisions
                   SET status = ?, execution_result = ?, success_rate = ?,
                       lessons_learned = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE id = ?""",
                (status, execution_result, success_rate, lessons_learned, decision_id),
            )
            await db.commit()
        if cursor.rowcount == 0:
            raise StrategicDecisionNotFoundError(f"No strategic decision with id {decision_id}")

    async def log_feedback(self, feedback: FeedbackLog) -> int:
        return await self._insert(
            """INSERT INTO feedback_log
               (source_type, target_agent, feedback_type, feedback_data, impact_score)
               VALUES (?, ?, ?, ?, ?)""",
            (
                feedback.source_type,
                feedback.target_agent,
                feedback.type,
                _dumps(feedback.data),
                feedback.impact_score,
            ),
        )

    # ── Reads ────────────────────────────────────────────────────

    async def get_suggestion(self, suggestion_id: int) -> dict[str, Any] | None:
        return await self._one("SELECT * FROM agent_suggestions WHERE id = ?", (suggestion_id,))

    async def get_recent_suggestions(self, limit: int = 50) -> list[dict[str, Any]]:
        return await self._all(
            "SELECT * FROM agent_suggestions ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )

    async def get_agent_performance_history(self, agent_id: str, days: int = 7) -> list[dict[str, Any]]:
        return await self._all(
            """SELECT * FROM agent_performance
               WHERE agent_id = ? AND timestamp >= datetime('now', ?)
               ORDER BY timestamp DESC, id DESC""",
            (agent_id, _since(days)),
        )

    async def get_system_metrics_history(self, days: int = 7) -> list[dict[str, Any]]:
        return await self._all(
            """SELECT * FROM system_metrics
               WHERE timestamp >= datetime('now', ?)
               ORDER BY timestamp DESC, id DESC""",
            (_since(days),),
        )

    async def get_feedback_log(self, feedback_type: str = "", limit: int = 50) -> list[dict[str, Any]]:
        if feedback_type:
            return await self._all(
                "SELECT * FROM feedback_log WHERE feedback_type = ? ORDER BY id DESC LIMIT ?",
                (feedback_type, limit),
            )
        return await self._all("SELECT * FROM feedback_log ORDER BY id DESC LIMIT ?", (limit,))

    async def get_alpha_discovery_stats(self) -> dict[str, Any]:
        """Seven-day discovery totals and averages."""
        return await self._one(
            """SELECT
                   COUNT(*) AS total_discoveries,
                   AVG(alpha_value) AS avg_alpha_value,
                   AVG(confidence) AS avg_confidence,
                   COUNT(CASE WHEN validated = 1 THEN 1 END) AS validated_count,
                   AVG(CASE WHEN validated = 1 THEN validation_outcome END) AS avg_validation_outcome
               FROM alpha_discoveries
               WHERE timestamp >= datetime('now', '-7 days')"""
        )

    async def get_feedback_summary(self) -> dict[str, Any]:
        """Seven-day rating totals over reviewed suggestions."""
        return await self._one(
            """SELECT
                   COUNT(*) AS total_feedback,
                   AVG(feedback_score) AS avg_score,
                   COUNT(CASE WHEN feedback_score >= 8 THEN 1 END) AS high_score_count,
                   COUNT(CASE WHEN feedback_score <= 5 THEN 1 END) AS low_score_count
               FROM agent_suggestions
               WHERE feedback_score IS NOT NULL
                 AND timestamp >= datetime('now', '-7 days')"""
        )

    async def get_top_performing_agents(self, limit: int = 5) -> list[dict[str, Any]]:
        return await self._all(
            """SELECT
                   agent_id,
                   AVG(feedback_score) AS avg_feedback_score,
                   COUNT(*) AS suggestion_count,
                   AVG(confidence) AS avg_confidence,
                   AVG(expected_value) AS avg_expected_value
               FROM agent_suggestions
               WHERE feedback_score IS NOT NULL
                 AND timestamp >= datetime('now', '-7 days')
               GROUP BY agent_id
               ORDER BY avg_feedback_score DESC, suggestion_count DESC
               LIMIT ?""",
            (limit,),
        )

    async def get_underperforming_areas(self) -> list[dict[str, Any]]:
        return await self._all(
            """SELECT
                   suggestion_type,
                   agent_id,
                   AVG(feedback_score) AS avg_score,
                   COUNT(*) AS count
               FROM agent_suggestions
               WHERE feedback_score IS NOT NULL
                 AND feedback_score < 6
                 AND timestamp >= datetime('now', '-7 days')
               GROUP BY suggestion_type, agent_id
               ORDER BY avg_score ASC, count DESC"""
        )

    async def count(self, table: str) -> int:
        if table not in {
            "agent_suggestions", "agent_performance", "system_metrics",
            "alpha_discoveries", "strategic_decisions", "feedback_log",
        }:
            raise ValueError(f"Unknown table: {table}")
        cursor = await self._conn().execute(f"SELECT COUNT(*) FROM {table}")
        row = await cursor.fetchone()
        return row[0]
