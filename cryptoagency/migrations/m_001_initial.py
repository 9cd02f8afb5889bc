"""Migration 001: suggestion, performance, metrics, discovery, decision and feedback tables."""

from __future__ import annotations

import aiosqlite

_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS agent_suggestions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        agent_id TEXT NOT NULL,
        suggestion_type TEXT NOT NULL,
        suggestion_data TEXT NOT NULL,
        confidence REAL NOT NULL,
        urgency TEXT NOT NULL,
        expected_value REAL,
        rationale TEXT,
        status TEXT DEFAULT 'pending',
        human_feedback TEXT,
        feedback_score INTEGER,
        execution_result TEXT,
        actual_outcome REAL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_performance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        agent_id TEXT NOT NULL,
        performance_metrics TEXT NOT NULL,
        goal_progress REAL,
        reputation_score REAL,
        autonomy_level REAL,
        decision_count INTEGER,
        success_rate REAL,
        adaptation_score REAL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS system_metrics (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        overall_performance REAL,
        agent_count INTEGER,
        active_conflicts INTEGER,
        resolved_conflicts INTEGER,
        emergent_behaviors TEXT,
        strategic_decisions INTEGER,
        system_efficiency REAL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alpha_discoveries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        discovery_type TEXT NOT NULL,
        description TEXT NOT NULL,
        alpha_value REAL NOT NULL,
        confidence REAL NOT NULL,
        urgency TEXT NOT NULL,
        source TEXT NOT NULL,
        discovery_time DATETIME NOT NULL,
        expiration_time DATETIME,
        actionable_insight TEXT,
        supporting_data TEXT,
        validated BOOLEAN DEFAULT FALSE,
        validation_outcome REAL,
        market_impact REAL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS strategic_decisions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        decision_type TEXT NOT NULL,
        target_agent TEXT,
        rationale TEXT NOT NULL,
        impact TEXT NOT NULL,
        urgency TEXT NOT NULL,
        execution_plan TEXT,
        status TEXT DEFAULT 'planned',
        execution_result TEXT,
        success_rate REAL,
        lessons_learned TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feedback_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        source_type TEXT NOT NULL,
        target_agent TEXT,
        feedback_type TEXT NOT NULL,
        feedback_data TEXT NOT NULL,
        impact_score REAL,
        learning_applied BOOLEAN DEFAULT FALSE,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


async def upgrade(db: aiosqlite.Connection) -> None:
    for statement in _TABLES:
        await db.execute(statement)
