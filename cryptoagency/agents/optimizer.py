"""Performance optimizer: finds bottlenecks and applies simulated fixes.

Bottleneck detection and strategy prioritisation are deterministic; the
improvement an optimisation achieves is drawn from a per-type range.
"""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cryptoagency.agents.base import AgenticAgent
from cryptoagency.agents.models import (
    AgentDecision,
    CompetitiveAnalysis,
    DecisionStatus,
    ExecutionResult,
    Opportunity,
    ResourceAssessment,
    Threat,
    ThreatAssessment,
    utcnow,
)
from cryptoagency.core.goals import GoalStructure
from cryptoagency.core.personality import PerformanceMetrics
from cryptoagency.events.bus import EventBus
from cryptoagency.types import AgentId, make_rng, new_id

_logger = logging.getLogger(__name__)

AGENT_ID = "performance-optimizer"
RESPONSE_TIME_LIMIT_MS = 2000.0
SUCCESS_RATE_FLOOR = 0.7
COORDINATION_FLOOR = 0.6
SYSTEM_SCORE_FLOOR = 0.75
EXPECTED_CAPTURE = 0.7
CYCLE_HISTORY_LIMIT = 200

OPTIMIZER_GOALS = GoalStructure(
    primary="Maximize system-wide performance and efficiency",
    secondary=[
        "Optimize resource allocation",
        "Improve agent coordination",
        "Enhance decision quality",
    ],
    tactical=[
        "Monitor system metrics",
        "Identify bottlenecks",
        "Implement optimizations",
    ],
)

OPTIMIZER_TRAITS = {
    "analytical": 95,
    "systematic": 90,
    "optimization": 95,
    "efficiency": 85,
    "coordination": 80,
}

PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}

IMPLEMENTATION_TIME_MS: dict[str, int] = {
    "agent_response_time": 120_000,
    "agent_success_rate": 300_000,
    "coordination_efficiency": 180_000,
    "system_performance": 600_000,
    "predictive_optimization": 300_000,
    "coordination_enhancement": 180_000,
}
DEFAULT_IMPLEMENTATION_TIME_MS = 240_000

ACTIONS: dict[str, list[str]] = {
    "agent_response_time": [
        "Optimize decision-making algorithms",
        "Implement caching for frequent queries",
        "Parallelize independent operations",
        "Reduce unnecessary computations",
    ],
    "agent_success_rate": [
        "Review and improve decision logic",
        "Enhance training data quality",
        "Adjust confidence thresholds",
        "Implement better error handling",
    ],
    "coordination_efficiency": [
        "Streamline communication protocols",
        "Improve negotiation algorithms",
        "Reduce message passing overhead",
        "Optimize conflict resolution",
    ],
}

SUCCESS_METRICS: dict[str, list[str]] = {
    "agent_response_time": ["Response time < 2000ms", "Latency variance reduced", "Throughput increased"],
    "agent_success_rate": ["Success rate > 70%", "Decision accuracy improved", "Error rate reduced"],
    "coordination_efficiency": [
        "Coordination score > 60%",
        "Conflict resolution time reduced",
        "Resource sharing improved",
    ],
}

# Optimisation type -> (low, high) improvement percentage
IMPROVEMENT_RANGES: dict[str, tuple[float, float]] = {
    "agent_response_time": (10, 30),
    "agent_success_rate": (5, 20),
    "coordination_efficiency": (8, 20),
    "predictive_optimization": (12, 20),
    "coordination_enhancement": (6, 20),
    "system_performance": (5, 15),
}


# ── Models ───────────────────────────────────────────────────────


class AgentMetrics(BaseModel):
    agent_id: AgentId
    decision_count: int = 0
    success_rate: float = 0.5  # 0-1
    average_confidence: float = 0.7
    response_time_ms: float = 1000.0
    adaptation_score: float = 0.6
    coordination_score: float = 0.7
    resource_efficiency: float = 0.8
    goal_progress: float = 0.5


class SystemMetrics(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    agents: list[AgentMetrics]
    overall_score: float


class Bottleneck(BaseModel):
    type: str
    severity: str  # critical | high | medium | low
    component: str
    description: str
    impact: float
    suggested_fix: str = ""


class OptimizationStrategy(BaseModel):
    id: str = Field(default_factory=lambda: f"opt_{new_id()}")
    type: str
    priority: str
    target_component: str
    description: str
    expected_improvement: float
    implementation_time_ms: int
    actions: list[str] = Field(default_factory=list)
    success_metrics: list[str] = Field(default_factory=list)
    rollback_plan: str = ""


class OptimizationOutcome(BaseModel):
    strategy: OptimizationStrategy
    success: bool
    actual_improvement: float = 0.0
    issues: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)


class OptimizationImpact(BaseModel):
    total_optimizations: int
    successful_optimizations: int
    success_rate: float
    overall_improvement: float
    category_improvements: dict[str, float] = Field(default_factory=dict)


class OptimizationCycleResult(BaseModel):
    metrics: SystemMetrics
    bottlenecks: list[Bottleneck]
    outcomes: list[OptimizationOutcome]
    impact: OptimizationImpact


# ── Pure helpers ─────────────────────────────────────────────────


def identify_bottlenecks(metrics: SystemMetrics) -> list[Bottleneck]:
    """Threshold checks per agent and for the system, biggest impact first."""
    found: list[Bottleneck] = []
    for agent in metrics.agents:
        if agent.response_time_ms > RESPONSE_TIME_LIMIT_MS:
            found.append(Bottleneck(
                type="agent_response_time",
                severity="high",
                component=agent.agent_id,
                description=(
                    f"{agent.agent_id} response time is {agent.response_time_ms:.0f}ms "
                    f"(threshold: {RESPONSE_TIME_LIMIT_MS:.0f}ms)"
                ),
                impact=(agent.response_time_ms - RESPONSE_TIME_LIMIT_MS) / RESPONSE_TIME_LIMIT_MS * 100,
                suggested_fix="Optimize decision-making algorithms or add processing resources",
            ))
        if agent.success_rate < SUCCESS_RATE_FLOOR:
            found.append(Bottleneck(
                type="agent_success_rate",
                severity="critical" if agent.success_rate < 0.5 else "medium",
                component=agent.agent_id,
                description=f"{agent.agent_id} success rate is {agent.success_rate:.1%} (target: 70%+)",
                impact=(SUCCESS_RATE_FLOOR - agent.success_rate) * 100,
                suggested_fix="Review decision logic or adjust confidence thresholds",
            ))
        if agent.coordination_score < COORDINATION_FLOOR:
            found.append(Bottleneck(
                type="coordination_efficiency",
                severity="medium",
                component=agent.agent_id,
                description=f"{agent.agent_id} coordination score is {agent.coordination_score:.1%}",
                impact=(COORDINATION_FLOOR - agent.coordination_score) * 50,
                suggested_fix="Improve inter-agent communication or negotiation",
            ))

    if metrics.overall_score < SYSTEM_SCORE_FLOOR:
        found.append(Bottleneck(
            type="system_performance",
            severity="critical" if metrics.overall_score < 0.6 else "high",
            component="system",
            description=f"Overall system performance is {metrics.overall_score:.1%} (target: 75%+)",
            impact=(SYSTEM_SCORE_FLOOR - metrics.overall_score) * 100,
            suggested_fix="Comprehensive system optimization needed",
        ))

    return sorted(found, key=lambda b: b.impact, reverse=True)


def strategy_for(bottleneck: Bottleneck) -> OptimizationStrategy:
    return OptimizationStrategy(
        type=bottleneck.type,
        priority=bottleneck.severity if bottleneck.severity in PRIORITY_ORDER else "medium",
        target_component=bottleneck.component,
        description=f"Optimize {bottleneck.type} for {bottleneck.component}",
        expected_improvement=bottleneck.impact * EXPECTED_CAPTURE,
        implementation_time_ms=IMPLEMENTATION_TIME_MS.get(bottleneck.type, DEFAULT_IMPLEMENTATION_TIME_MS),
        actions=ACTIONS.get(bottleneck.type, ["Generic optimization actions"]),
        success_metrics=SUCCESS_METRICS.get(bottleneck.type, ["Generic success metrics"]),
        rollback_plan=(
            f"Restore previous {bottleneck.type} configuration if performance "
            "degrades beyond baseline"
        ),
    )


def proactive_strategies() -> list[OptimizationStrategy]:
    return [
        OptimizationStrategy(
            type="predictive_optimization",
            priority="medium",
            target_component="system",
            description="Predictive performance tuning based on usage patterns",
            expected_improvement=15,
            implementation_time_ms=IMPLEMENTATION_TIME_MS["predictive_optimization"],
            actions=[
                "Analyze historical performance patterns",
                "Predict future bottlenecks",
                "Pre-optimize critical paths",
                "Adjust resource allocation proactively",
            ],
            success_metrics=["Reduced latency spikes", "Improved resource utilization"],
            rollback_plan="Revert to previous resource allocation if performance degrades",
        ),
        OptimizationStrategy(
            type="coordination_enhancement",
            priority="low",
            target_component="inter_agent",
            description="Enhance inter-agent coordination and communication efficiency",
            expected_improvement=10,
            implementation_time_ms=IMPLEMENTATION_TIME_MS["coordination_enhancement"],
            actions=[
                "Optimize message passing protocols",
                "Improve negotiation algorithms",
                "Enhance conflict resolution mechanisms",
            ],
            success_metrics=["Faster conflict resolution", "Better resource sharing"],
            rollback_plan="Restore previous communication protocols",
        ),
    ]


def prioritize(strategies: list[OptimizationStrategy]) -> list[OptimizationStrategy]:
    return sorted(
        strategies,
        key=lambda s: (PRIORITY_ORDER.get(s.priority, 0), s.expected_improvement),
        reverse=True,
    )


def measure_impact(outcomes: list[OptimizationOutcome]) -> OptimizationImpact:
    if not outcomes:
        return OptimizationImpact(
            total_optimizations=0, successful_optimizations=0,
            success_rate=0.0, overall_improvement=0.0,
        )
    successful = sum(1 for o in outcomes if o.success)
    by_type: dict[str, list[float]] = defaultdict(list)
    for outcome in outcomes:
        by_type[outcome.strategy.type].append(outcome.actual_improvement)
    return OptimizationImpact(
        total_optimizations=len(outcomes),
        successful_optimizations=successful,
        success_rate=successful / len(outcomes),
        overall_improvement=sum(o.actual_improvement for o in outcomes) / len(outcomes),
        category_improvements={k: sum(v) / len(v) for k, v in by_type.items()},
    )


# ── Agent ────────────────────────────────────────────────────────


class PerformanceOptimizerAgent(AgenticAgent):
    def __init__(
        self,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        watched: list[AgentId] | None = None,
        history_limit: int = CYCLE_HISTORY_LIMIT,
    ) -> None:
        super().__init__(
            AGENT_ID, OPTIMIZER_GOALS, OPTIMIZER_TRAITS,
            autonomy_level=0.9, rng=rng or make_rng(), event_bus=event_bus,
        )
        if watched is None:
            watched = ["strategic-orchestrator", "market-hunter"]
        self._watched_ids = list(watched)
        self._agents: dict[AgentId, AgenticAgent] = {}
        self.cycle_history: list[OptimizationImpact] = []
        self._cycle_limit = max(history_limit, 1)

    def watch(self, agent: AgenticAgent) -> None:
        """Measure a live agent instead of simulating its numbers."""
        self._agents[agent.agent_id] = agent
        if agent.agent_id not in self._watched_ids:
            self._watched_ids.append(agent.agent_id)

    async def autonomous_optimization_cycle(self) -> OptimizationCycleResult:
        metrics = self.collect_system_metrics()
        bottlenecks = identify_bottlenecks(metrics)
        strategies = prioritize([strategy_for(b) for b in bottlenecks] + proactive_strategies())
        outcomes = [self.implement(s) for s in strategies]
        impact = measure_impact(outcomes)
        self.cycle_history.append(impact)
        del self.cycle_history[:-self._cycle_limit]

        _logger.info(
            "Optimization cycle: %d bottlenecks, %d optimizations, %.1f%% average improvement",
            len(bottlenecks), impact.total_optimizations, impact.overall_improvement,
        )
        await self._emit("optimizer.cycle_completed", {
            "bottlenecks": len(bottlenecks),
            "optimizations": impact.total_optimizations,
            "improvement": impact.overall_improvement,
        })
        return OptimizationCycleResult(
            metrics=metrics, bottlenecks=bottlenecks, outcomes=outcomes, impact=impact,
        )

    def collect_system_metrics(self) -> SystemMetrics:
        agents = [self._agent_metrics(agent_id) for agent_id in self._watched_ids]
        if agents:
            overall = sum(
                (a.success_rate + a.coordination_score + a.resource_efficiency) / 3
                for a in agents
            ) / len(agents)
        else:
            overall = 0.0
        return SystemMetrics(agents=agents, overall_score=overall)

    def _agent_metrics(self, agent_id: AgentId) -> AgentMetrics:
        u = self._rng.uniform
        simulated = AgentMetrics(
            agent_id=agent_id,
            decision_count=self._rng.randint(5, 24),
            success_rate=u(0.6, 0.95),
            average_confidence=u(0.7, 0.95),
            response_time_ms=u(500, 2500),
            adaptation_score=u(0.5, 0.9),
            coordination_score=u(0.6, 0.9),
            resource_efficiency=u(0.7, 0.95),
            goal_progress=u(0.4, 0.9),
        )
        agent = self._agents.get(agent_id)
        if agent is None or not agent.decision_history:
            return simulated

        history = agent.decision_history
        completed = sum(1 for d in history if d.status == DecisionStatus.COMPLETED)
        progress = agent.goal_hierarchy.evaluate_goal_progress(agent.gather_progress_data())
        return simulated.model_copy(update={
            "decision_count": len(history),
            "success_rate": completed / len(history),
            "average_confidence": sum(d.confidence for d in history) / len(history) / 100,
            "goal_progress": progress.overall_progress() / 100,
        })

    def implement(self, strategy: OptimizationStrategy) -> OptimizationOutcome:
        bounds = IMPROVEMENT_RANGES.get(strategy.type)
        if bounds is None:
            return OptimizationOutcome(
                strategy=strategy,
                success=False,
                issues=[f"Unknown optimization type: {strategy.type}"],
            )
        improvement = self._rng.uniform(*bounds)
        _logger.debug("%s improved by %.1f%%", strategy.target_component, improvement)
        return OptimizationOutcome(
            strategy=strategy, success=improvement > 0, actual_improvement=improvement,
        )

    # ── Decision-cycle hooks ─────────────────────────────────────

    def gather_progress_data(self) -> dict[str, Any]:
        recent = self.cycle_history[-10:]
        success = sum(i.success_rate for i in recent) / len(recent) * 100 if recent else 50.0
        improvement = sum(i.overall_improvement for i in recent) / len(recent) if recent else 0.0
        return {
            "reputation": {
                "score": self.reputation.overall_score(),
                "trust": self.reputation.current().trustworthiness,
            },
            "social": {
                "reach": len(self._watched_ids) * 30,
                "engagement": success,
                "follower_growth": min(improvement * 5, 100),
            },
            "content": {"quality_score": success},
            "posting": {"frequency": min(len(self.cycle_history) * 10, 100)},
            "timing": {"accuracy": success},
            "risk": {"management_score": 80},
        }

    async def analyze_competition(self) -> CompetitiveAnalysis:
        return CompetitiveAnalysis(
            competitors=[],
            our_rank=1,
            relative_accuracy=0.8,
            relative_speed=0.8,
            competitive_advantages=["Continuous bottleneck detection"],
        )

    async def identify_opportunities(self) -> list[Opportunity]:
        return [Opportunity(
            type="predictive_tuning",
            description="Predictive performance tuning",
            probability=0.7,
            expected_value=0.15,
        )]

    async def assess_threats(self) -> ThreatAssessment:
        last = self.cycle_history[-1] if self.cycle_history else None
        if last is None or last.success_rate >= 0.5:
            return ThreatAssessment()
        return ThreatAssessment(threats=[Threat(
            type="optimization_regression",
            description="Optimizations failing more often than they succeed",
            severity=1 - last.success_rate,
        )])

    async def assess_resources(self) -> ResourceAssessment:
        return ResourceAssessment(availability=0.8)

    async def execute_specific_decision(self, decision: AgentDecision) -> ExecutionResult:
        success = self._rng.random() > 0.25
        return ExecutionResult(
            decision_id=decision.id,
            success=success,
            outcome={"score": 0.75 if success else 0.25},
        )

    def calculate_performance_metrics(self) -> PerformanceMetrics:
        recent = self.cycle_history[-10:]
        success = sum(i.success_rate for i in recent) / len(recent) * 100 if recent else 50.0
        return PerformanceMetrics(
            success_rate=success,
            efficiency=85,
            adaptability=70,
            innovation=60,
            collaboration=80,
        )
