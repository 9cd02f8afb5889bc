"""Data models shared by every agent: decisions, options, environment reads."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from cryptoagency.core.personality import PerformanceMetrics
from cryptoagency.core.regime import MarketConditions, RegimeType
from cryptoagency.types import AgentId, RiskLevel, Urgency, new_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Decisions ────────────────────────────────────────────────────


class DecisionType(str, Enum):
    GOAL_MODIFICATION = "GOAL_MODIFICATION"
    STRATEGY_PIVOT = "STRATEGY_PIVOT"
    OPPORTUNITY_PURSUIT = "OPPORTUNITY_PURSUIT"
    THREAT_RESPONSE = "THREAT_RESPONSE"
    LEARNING_ADAPTATION = "LEARNING_ADAPTATION"
    # orchestrator
    GOAL_ADJUSTMENT = "GOAL_ADJUSTMENT"
    RESOURCE_ALLOCATION = "RESOURCE_ALLOCATION"
    CONFLICT_RESOLUTION = "CONFLICT_RESOLUTION"
    # market hunter
    HUNTING_STRATEGY_UPDATE = "HUNTING_STRATEGY_UPDATE"
    THRESHOLD_ADJUSTMENT = "THRESHOLD_ADJUSTMENT"
    COMPETITIVE_PIVOT = "COMPETITIVE_PIVOT"


class DecisionStatus(str, Enum):
    PLANNED = "planned"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class DecisionOption(BaseModel):
    """A candidate action before the agent commits to it."""

    id: str = Field(default_factory=new_id)
    type: DecisionType
    description: str
    expected_value: float  # 0-1
    confidence: float  # 0-100
    risk: RiskLevel = RiskLevel.MEDIUM
    urgency: Urgency = Urgency.MEDIUM
    implementation: list[str] = Field(default_factory=list)
    target: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentDecision(BaseModel):
    id: str = Field(default_factory=lambda: f"decision_{new_id()}")
    agent_id: AgentId
    type: DecisionType
    description: str
    rationale: str = ""
    confidence: float = 0.0  # 0-100
    target: str | None = None
    expected_outcome: dict[str, Any] = Field(default_factory=dict)
    actual_outcome: dict[str, Any] = Field(default_factory=dict)
    implementation: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: DecisionStatus = DecisionStatus.PLANNED
    error: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class ExecutionResult(BaseModel):
    decision_id: str
    success: bool
    outcome: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


# ── Environment ──────────────────────────────────────────────────


class Opportunity(BaseModel):
    id: str = Field(default_factory=new_id)
    type: str
    description: str
    probability: float  # 0-1
    expected_value: float = 0.5
    urgency: Urgency = Urgency.MEDIUM


class Threat(BaseModel):
    type: str
    description: str
    severity: float  # 0-1
    probability: float = 0.5


class ThreatAssessment(BaseModel):
    threats: list[Threat] = Field(default_factory=list)

    @property
    def overall_severity(self) -> float:
        if not self.threats:
            return 0.0
        return max(t.severity for t in self.threats)


class ResourceAssessment(BaseModel):
    availability: float = 0.8
    allocations: dict[str, float] = Field(default_factory=dict)


class CompetitiveAnalysis(BaseModel):
    competitors: list[str] = Field(default_factory=list)
    our_rank: int = 1
    relative_accuracy: float = 0.5
    relative_speed: float = 0.5
    competitive_advantages: list[str] = Field(default_factory=list)
    threat_level: str = "low"


class EnvironmentAnalysis(BaseModel):
    regime: RegimeType
    conditions: MarketConditions
    competition: CompetitiveAnalysis
    opportunities: list[Opportunity] = Field(default_factory=list)
    threats: ThreatAssessment = Field(default_factory=ThreatAssessment)
    resources: ResourceAssessment = Field(default_factory=ResourceAssessment)


class GoalEvaluation(BaseModel):
    progress: dict[str, float] = Field(default_factory=dict)
    overall_progress: float = 0.0
    underperforming: list[str] = Field(default_factory=list)
    modification_needed: bool = False
    pivot_required: bool = False


class AgentStateSnapshot(BaseModel):
    agent_id: AgentId
    performance: PerformanceMetrics
    goal_progress: float
    reputation_score: float
    reputation_trend: str
    personality_profile: str
    autonomy_level: float
    strategic_effectiveness: float
    environment_adaptation: float


# ── Inter-agent ──────────────────────────────────────────────────


class AgentMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    sender: AgentId
    recipient: AgentId | None = None
    type: str = "info"
    content: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class AgentResponse(BaseModel):
    responder: AgentId
    accepted: bool = True
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class ConflictType(str, Enum):
    GOAL_CONFLICT = "GOAL_CONFLICT"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    STRATEGY_CONFLICT = "STRATEGY_CONFLICT"


class AgentConflict(BaseModel):
    id: str = Field(default_factory=lambda: f"conflict_{new_id()}")
    type: ConflictType
    agents: list[AgentId]
    description: str
    severity: float = 0.5


class Resolution(BaseModel):
    conflict_id: str
    strategy: str
    description: str
    decisions: dict[str, Any] = Field(default_factory=dict)
    success: bool = True
