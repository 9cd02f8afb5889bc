"""Strategic orchestrator: supervises the other agents.

A strategic cycle looks at every registered sub-agent, detects pairwise
conflicts between them, resolves those conflicts, and issues system-level
decisions (pivots, goal adjustments, resource moves). Goal adjustments are
pushed straight into the sub-agents' goal hierarchies.
"""

from __future__ import annotations

import itertools
import logging
import random
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cryptoagency.agents.base import AgenticAgent
from cryptoagency.agents.models import (
    AgentConflict,
    AgentDecision,
    AgentMessage,
    AgentResponse,
    CompetitiveAnalysis,
    ConflictType,
    DecisionStatus,
    DecisionType,
    ExecutionResult,
    Opportunity,
    Resolution,
    ResourceAssessment,
    Threat,
    ThreatAssessment,
    utcnow,
)
from cryptoagency.core.goals import GoalStructure
from cryptoagency.core.personality import PerformanceMetrics
from cryptoagency.core.regime import RegimeType
from cryptoagency.events.bus import EventBus
from cryptoagency.exceptions import AgentNotRegisteredError
from cryptoagency.storage.database import AgenticDatabase
from cryptoagency.storage.models import StrategicDecisionLog
from cryptoagency.types import AgentId, Urgency, make_rng

_logger = logging.getLogger(__name__)

AGENT_ID = "strategic-orchestrator"
PERFORMANCE_FLOOR = 0.7
GOAL_PROGRESS_FLOOR = 0.6
AUTONOMY_CONTENTION = 1.6
RISK_TOLERANCE_GAP = 40
REPUTATION_SPREAD = 15
PERFORMANCE_HISTORY_LIMIT = 100

ORCHESTRATOR_GOALS = GoalStructure(
    primary="Become the most trusted Bitcoin intelligence source on X",
    secondary=[
        "Grow follower base",
        "Increase engagement",
        "Build reputation",
    ],
    tactical=[
        "Optimize agent coordination",
        "Resolve inter-agent conflicts",
        "Adapt to market regime changes",
    ],
)

ORCHESTRATOR_TRAITS = {
    "analytical": 95,
    "strategic": 90,
    "leadership": 85,
    "adaptive": 80,
    "diplomatic": 75,
}

# Regimes that force a system-wide pivot, and how urgently
_REGIME_PIVOTS: dict[RegimeType, Urgency] = {
    RegimeType.EUPHORIA: Urgency.HIGH,
    RegimeType.DESPAIR: Urgency.HIGH,
    RegimeType.BEAR: Urgency.MEDIUM,
}


class SystemState(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    sub_agent_count: int
    overall_performance: float  # 0-1
    emergent_behaviors: list[str] = Field(default_factory=list)
    system_efficiency: float = 0.75


class AgentEvaluation(BaseModel):
    agent_id: AgentId
    reputation_score: float
    goal_progress: float  # 0-1
    autonomy_level: float
    strategic_contribution: float
    strategic_effectiveness: float
    risk_tolerance: float


class StrategicCycleResult(BaseModel):
    system_state: SystemState
    evaluations: list[AgentEvaluation] = Field(default_factory=list)
    conflicts: list[AgentConflict] = Field(default_factory=list)
    resolutions: list[Resolution] = Field(default_factory=list)
    decisions: list[AgentDecision] = Field(default_factory=list)
    success_rate: float = 0.0


class StrategicOrchestratorAgent(AgenticAgent):
    def __init__(
        self,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        database: AgenticDatabase | None = None,
    ) -> None:
        super().__init__(
            AGENT_ID, ORCHESTRATOR_GOALS, ORCHESTRATOR_TRAITS,
            autonomy_level=0.95, rng=rng or make_rng(), event_bus=event_bus,
        )
        self._sub_agents: dict[AgentId, AgenticAgent] = {}
        self._database = database
        self.performance_history: list[float] = []
        self.resource_allocation: dict[AgentId, int] = {}

    # ── Registry ─────────────────────────────────────────────────

    def register_sub_agent(self, agent: AgenticAgent) -> None:
        self._sub_agents[agent.agent_id] = agent
        _logger.info("Registered sub-agent %s", agent.agent_id)

    def unregister_sub_agent(self, agent_id: AgentId) -> None:
        if agent_id not in self._sub_agents:
            raise AgentNotRegisteredError(f"No sub-agent registered as {agent_id}")
        del self._sub_agents[agent_id]
        _logger.info("Unregistered sub-agent %s", agent_id)

    @property
    def sub_agents(self) -> dict[AgentId, AgenticAgent]:
        return dict(self._sub_agents)

    def get_sub_agent(self, agent_id: AgentId) -> AgenticAgent:
        try:
            return self._sub_agents[agent_id]
        except KeyError:
            raise AgentNotRegisteredError(f"No sub-agent registered as {agent_id}") from None

    # ── Strategic cycle ──────────────────────────────────────────

    async def autonomous_strategic_cycle(self) -> StrategicCycleResult:
        state = self.assess_system_state()
        evaluations = self.evaluate_sub_agents()

        conflicts = self.detect_conflicts()
        resolutions = [self.resolve_conflict(c) for c in conflicts]
        for conflict, resolution in zip(conflicts, resolutions):
            await self._emit("orchestrator.conflict_resolved", {
                "conflict": conflict.type.value,
                "agents": conflict.agents,
                "resolution": resolution.description,
            })

        decisions = self.make_strategic_decisions(state, evaluations)
        self.adapt_sub_agent_goals(decisions)

        logged_ids = await self._log_decisions(decisions)
        results = [self._execute_strategic(d) for d in decisions]
        success_rate = self.evolve_strategic_approach(results)
        await self._record_outcomes(logged_ids, results, success_rate)
        self.record_decisions(decisions)

        _logger.info(
            "Strategic cycle: %d agents, %d conflicts, %d decisions (%.0f%% success)",
            state.sub_agent_count, len(conflicts), len(decisions), success_rate * 100,
        )
        await self._emit("orchestrator.cycle_completed", {
            "conflicts": len(conflicts),
            "decisions": [d.type.value for d in decisions],
            "success_rate": success_rate,
        })
        return StrategicCycleResult(
            system_state=state,
            evaluations=evaluations,
            conflicts=conflicts,
            resolutions=resolutions,
            decisions=decisions,
            success_rate=success_rate,
        )

    def assess_system_state(self) -> SystemState:
        agents = list(self._sub_agents.values())
        if agents:
            performance = sum(a.reputation.overall_score() / 100 for a in agents) / len(agents)
        else:
            performance = 0.5

        emergent = []
        if self._rng.random() > 0.7:
            emergent.append("Spontaneous inter-agent collaboration")
        if self._rng.random() > 0.8:
            emergent.append("Novel strategy emergence")

        return SystemState(
            sub_agent_count=len(agents),
            overall_performance=performance,
            emergent_behaviors=emergent,
        )

    def evaluate_sub_agents(self) -> list[AgentEvaluation]:
        evaluations = []
        for agent_id, agent in self._sub_agents.items():
            progress = agent.goal_hierarchy.evaluate_goal_progress(agent.gather_progress_data())
            evaluations.append(AgentEvaluation(
                agent_id=agent_id,
                reputation_score=agent.reputation.overall_score(),
                goal_progress=progress.overall_progress() / 100,
                autonomy_level=agent.autonomy_level,
                strategic_contribution=self.strategic_contribution(agent),
                strategic_effectiveness=agent.strategic_effectiveness(),
                risk_tolerance=agent.personality.risk_tolerance,
            ))
        return evaluations

    @staticmethod
    def strategic_contribution(agent: AgenticAgent) -> float:
        return agent.reputation.overall_score() / 100 * agent.autonomy_level

    # ── Conflicts ────────────────────────────────────────────────

    def detect_conflicts(self) -> list[AgentConflict]:
        conflicts = []
        for a, b in itertools.combinations(self._sub_agents.values(), 2):
            pair = [a.agent_id, b.agent_id]

            goal_a = a.goal_hierarchy.get_primary_goal()
            goal_b = b.goal_hierarchy.get_primary_goal()
            if goal_a and goal_b and goal_a.description == goal_b.description:
                conflicts.append(AgentConflict(
                    type=ConflictType.GOAL_CONFLICT,
                    agents=pair,
                    description=f"Both pursue '{goal_a.description}'",
                    severity=0.6,
                ))

            if a.autonomy_level + b.autonomy_level > AUTONOMY_CONTENTION:
                conflicts.append(AgentConflict(
                    type=ConflictType.RESOURCE_CONFLICT,
                    agents=pair,
                    description="Two highly autonomous agents contend for the same resources",
                    severity=0.5,
                ))

            gap = abs(a.personality.risk_tolerance - b.personality.risk_tolerance)
            if gap > RISK_TOLERANCE_GAP:
                conflicts.append(AgentConflict(
                    type=ConflictType.STRATEGY_CONFLICT,
                    agents=pair,
                    description=f"Risk tolerance differs by {gap:.0f}",
                    severity=min(gap / 100, 1.0),
                ))
        return conflicts

    def resolve_conflict(self, conflict: AgentConflict) -> Resolution:
        agents = [self._sub_agents[a] for a in conflict.agents if a in self._sub_agents]
        if not agents:
            return Resolution(
                conflict_id=conflict.id,
                strategy="status_quo",
                description="Agents no longer registered; no intervention",
                success=False,
            )

        if conflict.type == ConflictType.GOAL_CONFLICT:
            dominant = max(agents, key=self.strategic_contribution)
            return Resolution(
                conflict_id=conflict.id,
                strategy="prioritize",
                description=f"Prioritize {dominant.agent_id}'s goals while adjusting others",
                decisions={
                    "dominant": dominant.agent_id,
                    "contribution": self.strategic_contribution(dominant),
                    "adjust": [a.agent_id for a in agents if a is not dominant],
                },
            )

        if conflict.type == ConflictType.RESOURCE_CONFLICT:
            allocation = self.allocate_resources(agents)
            self.resource_allocation.update(allocation)
            return Resolution(
                conflict_id=conflict.id,
                strategy="reallocate",
                description="Reallocate contested resources by reputation",
                decisions={"allocation": allocation},
            )

        best = max(agents, key=lambda a: a.strategic_effectiveness())
        return Resolution(
            conflict_id=conflict.id,
            strategy="adopt_best",
            description=f"Adopt {best.agent_id}'s strategy as primary approach",
            decisions={
                "primary": best.agent_id,
                "effectiveness": best.strategic_effectiveness(),
            },
        )

    @staticmethod
    def allocate_resources(agents: list[AgenticAgent]) -> dict[AgentId, int]:
        """Integer percentages proportional to reputation, summing to 100."""
        scores = [max(a.reputation.overall_score(), 0.0) for a in agents]
        total = sum(scores)
        if total == 0:
            scores = [1.0] * len(agents)
            total = float(len(agents))
        shares = [int(s / total * 100) for s in scores]
        # hand the rounding remainder to the strongest agent
        shares[scores.index(max(scores))] += 100 - sum(shares)
        return {a.agent_id: share for a, share in zip(agents, shares)}

    # ── Decisions ────────────────────────────────────────────────

    def _strategic_decision(
        self, kind: DecisionType, target: str, rationale: str,
        impact: str, urgency: Urgency, plan: list[str],
    ) -> AgentDecision:
        return AgentDecision(
            agent_id=self.agent_id,
            type=kind,
            description=rationale,
            rationale=rationale,
            confidence=80,
            target=target,
            implementation=plan,
            metadata={"impact": impact, "urgency": urgency.value},
        )

    def make_strategic_decisions(
        self, state: SystemState, evaluations: list[AgentEvaluation],
    ) -> list[AgentDecision]:
        decisions = []

        if state.overall_performance < PERFORMANCE_FLOOR:
            decisions.append(self._strategic_decision(
                DecisionType.STRATEGY_PIVOT, "system",
                f"System performance below threshold ({state.overall_performance:.2f})",
                "high", Urgency.HIGH,
                [
                    "Analyze underperforming components",
                    "Implement performance optimization strategy",
                    "Monitor performance improvements",
                    "Adjust agent parameters based on results",
                ],
            ))

        for evaluation in evaluations:
            if evaluation.goal_progress < GOAL_PROGRESS_FLOOR:
                decisions.append(self._strategic_decision(
                    DecisionType.GOAL_ADJUSTMENT, evaluation.agent_id,
                    f"Agent goal progress below threshold ({evaluation.goal_progress:.2f})",
                    "medium", Urgency.MEDIUM,
                    [
                        "Analyze root cause of goal underperformance",
                        "Escalate lagging goals",
                        "Monitor improved performance",
                    ],
                ))

        reputations = [e.reputation_score for e in evaluations]
        if len(reputations) > 1 and max(reputations) - min(reputations) > REPUTATION_SPREAD:
            decisions.append(self._strategic_decision(
                DecisionType.RESOURCE_ALLOCATION, "system",
                f"Reputation spread of {max(reputations) - min(reputations):.1f} across agents",
                "high", Urgency.MEDIUM,
                ["Shift resources toward stronger agents", "Review weaker agents' focus"],
            ))

        regime = self.market_regime.current_regime
        if regime in _REGIME_PIVOTS:
            decisions.append(self._strategic_decision(
                DecisionType.STRATEGY_PIVOT, "system",
                f"Adapt system strategy to {regime.value} regime",
                "high", _REGIME_PIVOTS[regime],
                ["Recalibrate agent thresholds", "Rebalance hunting domains"],
            ))

        return decisions

    def adapt_sub_agent_goals(self, decisions: list[AgentDecision]) -> int:
        """Escalate each lagging goal of every agent flagged for adjustment."""
        adapted = 0
        for decision in decisions:
            if decision.type != DecisionType.GOAL_ADJUSTMENT:
                continue
            agent = self._sub_agents.get(decision.target or "")
            if agent is None:
                continue
            hierarchy = agent.goal_hierarchy
            progress = hierarchy.evaluate_goal_progress(agent.gather_progress_data())
            for goal_id in progress.underperforming_goals():
                goal = hierarchy.require_goal(goal_id)
                if hierarchy.autonomous_goal_evolution(
                    goal_id,
                    {"priority": max(1, goal.priority - 1)},
                    f"Strategic orchestrator decision: {decision.rationale}",
                ):
                    adapted += 1
        return adapted

    def _execute_strategic(self, decision: AgentDecision) -> ExecutionResult:
        success = self._rng.random() > 0.2
        decision.status = DecisionStatus.COMPLETED if success else DecisionStatus.FAILED
        decision.actual_outcome = {"score": 0.8 if success else 0.2}
        return ExecutionResult(
            decision_id=decision.id,
            success=success,
            outcome=dict(decision.actual_outcome),
        )

    def evolve_strategic_approach(self, results: list[ExecutionResult]) -> float:
        if not results:
            return 0.0
        success_rate = sum(1 for r in results if r.success) / len(results)
        self.performance_history.append(success_rate)
        del self.performance_history[:-PERFORMANCE_HISTORY_LIMIT]
        return success_rate

    async def _log_decisions(self, decisions: list[AgentDecision]) -> list[int]:
        if self._database is None:
            return []
        ids = []
        for decision in decisions:
            ids.append(await self._database.log_strategic_decision(StrategicDecisionLog(
                type=decision.type.value,
                target_agent=decision.target,
                rationale=decision.rationale,
                impact=decision.metadata.get("impact", "medium"),
                urgency=Urgency(decision.metadata.get("urgency", "medium")),
                execution_plan=decision.implementation,
            )))
        return ids

    async def _record_outcomes(
        self, logged_ids: list[int], results: list[ExecutionResult], success_rate: float,
    ) -> None:
        if self._database is None:
            return
        for decision_id, result in zip(logged_ids, results):
            await self._database.update_strategic_decision(
                decision_id,
                status="completed" if result.success else "failed",
                execution_result=str(result.outcome),
                success_rate=success_rate,
            )

    # ── Sub-agent traffic ────────────────────────────────────────

    def process_sub_agent_update(self, agent_id: AgentId, discoveries: list[Any]) -> dict[str, Any]:
        """Acknowledge a batch of discoveries and recommend what to do with it."""
        self.get_sub_agent(agent_id)
        top = max(discoveries, key=lambda d: d.alpha_value, default=None)
        if top is None:
            action, urgency = "continue_hunting", Urgency.LOW
        elif top.urgency == Urgency.HIGH:
            action, urgency = "publish_immediately", Urgency.HIGH
        else:
            action, urgency = "queue_for_review", Urgency.MEDIUM
        return {
            "acknowledged": True,
            "agent_id": agent_id,
            "count": len(discoveries),
            "top_discovery": top.description if top else None,
            "top_alpha": top.alpha_value if top else None,
            "recommended_action": action,
            "urgency": urgency.value,
        }

    async def receive_message(self, message: AgentMessage) -> AgentResponse:
        known = message.sender in self._sub_agents
        return AgentResponse(
            responder=self.agent_id,
            accepted=known,
            message=(
                f"Orchestrator routed {message.type} from {message.sender}"
                if known else f"Unknown sender {message.sender}"
            ),
        )

    # ── Decision-cycle hooks ─────────────────────────────────────

    def gather_progress_data(self) -> dict[str, Any]:
        agents = list(self._sub_agents.values())
        avg_reputation = (
            sum(a.reputation.overall_score() for a in agents) / len(agents) if agents else 50.0
        )
        recent = self.performance_history[-10:]
        success = sum(recent) / len(recent) * 100 if recent else 50.0
        return {
            "reputation": {
                "score": self.reputation.overall_score(),
                "trust": self.reputation.current().trustworthiness,
            },
            "social": {
                "reach": len(agents) * 25,
                "engagement": avg_reputation,
                "follower_growth": success,
            },
            "content": {"quality_score": avg_reputation},
            "posting": {"frequency": min(len(self.decision_history) * 5, 100)},
            "timing": {"accuracy": success},
            "risk": {"management_score": 100 - len(self.detect_conflicts()) * 10},
        }

    async def analyze_competition(self) -> CompetitiveAnalysis:
        return CompetitiveAnalysis(
            competitors=["single-agent bots", "manual analysts"],
            our_rank=1,
            relative_accuracy=0.7,
            relative_speed=0.8,
            competitive_advantages=["Multi-agent coordination", "Autonomous conflict resolution"],
        )

    async def identify_opportunities(self) -> list[Opportunity]:
        if len(self._sub_agents) < 2:
            return []
        return [Opportunity(
            type="coordination",
            description="Cross-agent signal confirmation",
            probability=0.7,
            expected_value=0.75,
        )]

    async def assess_threats(self) -> ThreatAssessment:
        conflicts = self.detect_conflicts()
        if not conflicts:
            return ThreatAssessment()
        return ThreatAssessment(threats=[Threat(
            type="coordination_breakdown",
            description=f"{len(conflicts)} unresolved inter-agent conflicts",
            severity=max(c.severity for c in conflicts),
        )])

    async def assess_resources(self) -> ResourceAssessment:
        return ResourceAssessment(availability=0.8, allocations=dict(self.resource_allocation))

    async def execute_specific_decision(self, decision: AgentDecision) -> ExecutionResult:
        return self._execute_strategic(decision)

    def calculate_performance_metrics(self) -> PerformanceMetrics:
        recent = self.performance_history[-10:]
        success = sum(recent) / len(recent) * 100 if recent else 50.0
        return PerformanceMetrics(
            success_rate=success,
            efficiency=75,
            adaptability=70,
            innovation=65,
            collaboration=min(len(self._sub_agents) * 30, 100),
        )
