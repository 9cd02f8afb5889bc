"""Records written to the suggestion database."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cryptoagency.types import Urgency


class AgentSuggestion(BaseModel):
    """Something an agent proposes for a human to rate."""

    agent_id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float
    urgency: Urgency = Urgency.MEDIUM
    expected_value: float | None = None
    rationale: str = ""


class AgentPerformanceLog(BaseModel):
    metrics: dict[str, Any] = Field(default_factory=dict)
    goal_progress: float = 0.0
    reputation_score: float = 0.0
    autonomy_level: float = 0.0
    decision_count: int = 0
    success_rate: float = 0.0
    adaptation_score: float = 0.0


class SystemMetricsLog(BaseModel):
    overall_performance: float
    agent_count: int
    active_conflicts: int = 0
    resolved_conflicts: int = 0
    emergent_behaviors: list[str] = Field(default_factory=list)
    strategic_decisions: int = 0
    system_efficiency: float = 0.0


class AlphaDiscoveryLog(BaseModel):
    type: str
    description: str
    alpha_value: float
    confidence: float
    urgency: Urgency
    source: str
    discovery_time: datetime
    expiration_time: datetime | None = None
    actionable_insight: str = ""
    supporting_data: dict[str, Any] = Field(default_factory=dict)
    validated: bool = False
    validation_outcome: float | None = None
    market_impact: float | None = None


class StrategicDecisionLog(BaseModel):
    type: str
    target_agent: str | None = None
    rationale: str
    impact: str = "medium"  # low | medium | high
    urgency: Urgency = Urgency.MEDIUM
    execution_plan: list[str] = Field(default_factory=list)


class FeedbackLog(BaseModel):
    source_type: str  # human | system | agent
    type: str  # suggestion_rating | performance_feedback | strategic_feedback
    data: dict[str, Any] = Field(default_factory=dict)
    target_agent: str | None = None
    impact_score: float | None = None
