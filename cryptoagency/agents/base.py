"""AgenticAgent: the shared autonomous decision cycle.

One cycle: snapshot own state, score goals, read the environment,
generate options, rank them, let each pass an autonomy-weighted
execution gate, execute, then learn from the results. Concrete agents
fill in the environment readers and the executor for their decision types.
"""

from __future__ import annotations

import functools
import logging
import random
from abc import ABC, abstractmethod
from typing import Any

from cryptoagency.agents.models import (
    AgentConflict,
    AgentDecision,
    AgentMessage,
    AgentResponse,
    AgentStateSnapshot,
    CompetitiveAnalysis,
    DecisionOption,
    DecisionStatus,
    DecisionType,
    EnvironmentAnalysis,
    ExecutionResult,
    GoalEvaluation,
    Opportunity,
    Resolution,
    ResourceAssessment,
    ThreatAssessment,
)
from cryptoagency.core.goals import GoalHierarchy, GoalStructure
from cryptoagency.core.personality import AgentPersonality, PerformanceMetrics
from cryptoagency.core.regime import MarketRegime, RegimeType
from cryptoagency.core.reputation import ReputationModel
from cryptoagency.events.bus import EventBus
from cryptoagency.types import AgentId, RiskLevel, Urgency, clamp, make_rng

_logger = logging.getLogger(__name__)

EXECUTION_THRESHOLD = 0.6
PIVOT_PROGRESS = 40.0
EFFECTIVENESS_WINDOW = 10
MIN_AUTONOMY = 0.3
MAX_AUTONOMY = 1.0
AUTONOMY_STEP = 0.05
DECISION_HISTORY_LIMIT = 500

# Decision type -> personality trait(s) whose mean scores alignment
_ALIGNMENT_TRAITS: dict[DecisionType, tuple[str, ...]] = {
    DecisionType.GOAL_MODIFICATION: ("adaptive",),
    DecisionType.STRATEGY_PIVOT: ("analytical", "creative"),
    DecisionType.OPPORTUNITY_PURSUIT: ("aggressive",),
    DecisionType.THREAT_RESPONSE: ("cautious",),
    DecisionType.LEARNING_ADAPTATION: ("curious",),
}

_VOLATILITY_FACTOR = {"high": 1.2, "medium": 1.0}


class AgenticAgent(ABC):
    """Base class for every autonomous agent."""

    def __init__(
        self,
        agent_id: AgentId,
        goals: GoalStructure,
        traits: dict[str, float],
        autonomy_level: float = 0.8,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        history_limit: int = DECISION_HISTORY_LIMIT,
    ) -> None:
        self.agent_id = agent_id
        self.goal_hierarchy = GoalHierarchy(goals)
        self.personality = AgentPersonality(traits)
        self.reputation = ReputationModel()
        self.market_regime = MarketRegime()
        self.autonomy_level = clamp(autonomy_level, 0.0, 1.0)
        self.decision_history: list[AgentDecision] = []
        self._history_limit = max(history_limit, 1)
        self._rng = rng or make_rng()
        self._event_bus = event_bus

    # ── Hooks ────────────────────────────────────────────────────

    @abstractmethod
    def gather_progress_data(self) -> dict[str, Any]:
        """Nested KPI data for goal scoring."""

    @abstractmethod
    async def analyze_competition(self) -> CompetitiveAnalysis: ...

    @abstractmethod
    async def identify_opportunities(self) -> list[Opportunity]: ...

    @abstractmethod
    async def assess_threats(self) -> ThreatAssessment: ...

    @abstractmethod
    async def assess_resources(self) -> ResourceAssessment: ...

    @abstractmethod
    async def execute_specific_decision(self, decision: AgentDecision) -> ExecutionResult: ...

    @abstractmethod
    def calculate_performance_metrics(self) -> PerformanceMetrics: ...

    # ── Cycle ────────────────────────────────────────────────────

    async def autonomous_decision_cycle(self) -> list[AgentDecision]:
        """Run one full think-decide-act-learn cycle."""
        await self._emit("agent.cycle_started", {"autonomy": self.autonomy_level})

        state = self.assess_state()
        goals = self.evaluate_goals()
        environment = await self.analyze_environment()

        options = self.generate_options(state, goals, environment)
        decisions = self.make_decisions(self.rank_options(options), environment.resources)

        results = [await self.execute_decision(d) for d in decisions]
        self.learn_from_results(results)
        self.record_decisions(decisions)

        _logger.info(
            "%s cycle: %d options, %d decisions, %d succeeded",
            self.agent_id, len(options), len(decisions),
            sum(1 for r in results if r.success),
        )
        await self._emit("agent.cycle_completed", {
            "options": len(options),
            "decisions": [d.type.value for d in decisions],
            "successes": sum(1 for r in results if r.success),
        })
        return decisions

    def assess_state(self) -> AgentStateSnapshot:
        progress = self.goal_hierarchy.evaluate_goal_progress(self.gather_progress_data())
        return AgentStateSnapshot(
            agent_id=self.agent_id,
            performance=self.calculate_performance_metrics(),
            goal_progress=progress.overall_progress(),
            reputation_score=self.reputation.overall_score(),
            reputation_trend=self.reputation.assess_trend(),
            personality_profile=self.personality.profile(),
            autonomy_level=self.autonomy_level,
            strategic_effectiveness=self.strategic_effectiveness(),
            environment_adaptation=self.environment_adaptation(),
        )

    def evaluate_goals(self) -> GoalEvaluation:
        progress = self.goal_hierarchy.evaluate_goal_progress(self.gather_progress_data())
        underperforming = progress.underperforming_goals()
        overall = progress.overall_progress()
        return GoalEvaluation(
            progress=progress.as_dict(),
            overall_progress=overall,
            underperforming=underperforming,
            modification_needed=bool(underperforming),
            pivot_required=overall < PIVOT_PROGRESS,
        )

    async def analyze_environment(self) -> EnvironmentAnalysis:
        return EnvironmentAnalysis(
            regime=self.market_regime.current_regime,
            conditions=self.market_regime.conditions(),
            competition=await self.analyze_competition(),
            opportunities=await self.identify_opportunities(),
            threats=await self.assess_threats(),
            resources=await self.assess_resources(),
        )

    def generate_options(
        self,
        state: AgentStateSnapshot,
        goals: GoalEvaluation,
        environment: EnvironmentAnalysis,
    ) -> list[DecisionOption]:
        options: list[DecisionOption] = []

        for goal_id in goals.underperforming:
            goal = self.goal_hierarchy.require_goal(goal_id)
            options.append(DecisionOption(
                type=DecisionType.GOAL_MODIFICATION,
                description=f"Refocus underperforming goal: {goal.description}",
                expected_value=0.7,
                confidence=75,
                risk=RiskLevel.MEDIUM,
                urgency=Urgency.MEDIUM,
                target=goal_id,
                implementation=[
                    "Analyze goal performance gaps",
                    "Identify improvement strategies",
                    "Adjust goal parameters",
                    "Monitor progress",
                ],
            ))

        if state.strategic_effectiveness < 0.6:
            options.append(DecisionOption(
                type=DecisionType.STRATEGY_PIVOT,
                description="Aggressive strategy pivot toward higher-return plays",
                expected_value=0.8,
                confidence=70,
                risk=RiskLevel.HIGH,
                urgency=Urgency.HIGH,
                metadata={"strategy": "aggressive"},
            ))
            options.append(DecisionOption(
                type=DecisionType.STRATEGY_PIVOT,
                description="Conservative strategy pivot toward proven plays",
                expected_value=0.6,
                confidence=85,
                risk=RiskLevel.LOW,
                urgency=Urgency.MEDIUM,
                metadata={"strategy": "conservative"},
            ))

        for opportunity in environment.opportunities:
            if opportunity.probability > 0.6:
                options.append(DecisionOption(
                    type=DecisionType.OPPORTUNITY_PURSUIT,
                    description=f"Pursue opportunity: {opportunity.description}",
                    expected_value=opportunity.expected_value,
                    confidence=opportunity.probability * 100,
                    risk=RiskLevel.MEDIUM,
                    urgency=opportunity.urgency,
                    target=opportunity.id,
                ))

        if environment.threats.overall_severity > 0.5:
            for threat in environment.threats.threats:
                options.append(DecisionOption(
                    type=DecisionType.THREAT_RESPONSE,
                    description=f"Mitigate threat: {threat.description}",
                    expected_value=threat.severity,
                    confidence=80,
                    risk=RiskLevel.LOW,
                    urgency=Urgency.HIGH if threat.severity > 0.7 else Urgency.MEDIUM,
                    metadata={"threat_type": threat.type},
                ))

        if state.environment_adaptation < 0.7:
            options.append(DecisionOption(
                type=DecisionType.LEARNING_ADAPTATION,
                description=f"Adapt behaviour to the {environment.regime.value} regime",
                expected_value=0.8,
                confidence=85,
                risk=RiskLevel.LOW,
                urgency=Urgency.LOW,
            ))

        return options

    # ── Ranking & gating ─────────────────────────────────────────

    def risk_multiplier(self, risk: RiskLevel) -> float:
        tolerance = self.personality.risk_tolerance
        if risk == RiskLevel.LOW:
            return 1.0
        if risk == RiskLevel.MEDIUM:
            return 1.1 if tolerance > 0 else 0.9
        return 1.2 if tolerance > 20 else 0.7

    def risk_adjusted_value(self, option: DecisionOption) -> float:
        return option.expected_value * self.risk_multiplier(option.risk)

    def personality_alignment(self, option: DecisionOption) -> float:
        """How well an option fits this agent's temperament, 0-1."""
        traits = _ALIGNMENT_TRAITS.get(option.type)
        if traits is None:
            return 0.5
        strengths = [self.personality.get_trait(t) or 50.0 for t in traits]
        return sum(strengths) / len(strengths) / 100

    def rank_options(self, options: list[DecisionOption]) -> list[DecisionOption]:
        def compare(a: DecisionOption, b: DecisionOption) -> int:
            va, vb = self.risk_adjusted_value(a), self.risk_adjusted_value(b)
            if abs(va - vb) > 0.1:
                return -1 if va > vb else 1
            pa, pb = self.personality_alignment(a), self.personality_alignment(b)
            return (pb > pa) - (pb < pa)

        return sorted(options, key=functools.cmp_to_key(compare))

    def execution_probability(
        self,
        option: DecisionOption,
        resources: ResourceAssessment | None = None,
    ) -> float:
        resources = resources or ResourceAssessment()
        strategic_alignment = 0.7 if self.goal_hierarchy.get_primary_goal() else 0.5
        return (
            self.autonomy_level * 0.3
            + option.confidence / 100 * 0.25
            + self.personality_alignment(option) * 0.2
            + resources.availability * 0.15
            + strategic_alignment * 0.1
        )

    def should_execute(
        self,
        option: DecisionOption,
        resources: ResourceAssessment | None = None,
    ) -> bool:
        probability = self.execution_probability(option, resources)
        return probability * self._rng.uniform(0.9, 1.1) > EXECUTION_THRESHOLD

    def make_decisions(
        self,
        ranked: list[DecisionOption],
        resources: ResourceAssessment | None = None,
    ) -> list[AgentDecision]:
        decisions = []
        for option in ranked:
            if not self.should_execute(option, resources):
                continue
            decisions.append(AgentDecision(
                agent_id=self.agent_id,
                type=option.type,
                description=option.description,
                rationale=(
                    f"Risk-adjusted value {self.risk_adjusted_value(option):.2f}, "
                    f"alignment {self.personality_alignment(option):.2f}"
                ),
                confidence=option.confidence,
                target=option.target,
                expected_outcome={"value": option.expected_value},
                implementation=list(option.implementation),
                metadata={**option.metadata, "urgency": option.urgency.value},
            ))
        return decisions

    # ── Execution & learning ─────────────────────────────────────

    async def execute_decision(self, decision: AgentDecision) -> ExecutionResult:
        decision.status = DecisionStatus.EXECUTING
        try:
            result = await self.execute_specific_decision(decision)
        except Exception as e:
            _logger.warning("%s failed to execute %s: %s", self.agent_id, decision.id, e)
            result = ExecutionResult(decision_id=decision.id, success=False, error=str(e))

        decision.status = DecisionStatus.COMPLETED if result.success else DecisionStatus.FAILED
        decision.actual_outcome = dict(result.outcome)
        decision.error = result.error
        await self._emit("agent.decision_executed", {
            "decision_id": decision.id,
            "type": decision.type.value,
            "status": decision.status.value,
        })
        return result

    def learn_from_results(self, results: list[ExecutionResult]) -> None:
        """Feed execution outcomes into reputation, personality and autonomy."""
        if not results:
            return

        success_rate = sum(1 for r in results if r.success) / len(results) * 100
        performance = PerformanceMetrics(
            success_rate=success_rate,
            efficiency=75,
            adaptability=70,
            innovation=65,
            collaboration=60,
        )
        self.reputation.update(
            accuracy=success_rate,
            consistency=performance.efficiency,
            responsiveness=performance.adaptability,
        )

        volatility = self.market_regime.conditions().volatility
        self.personality.evolve(performance, _VOLATILITY_FACTOR.get(volatility, 0.8))

        if success_rate > 80:
            self.autonomy_level = min(MAX_AUTONOMY, self.autonomy_level + AUTONOMY_STEP)
        elif success_rate < 50:
            self.autonomy_level = max(MIN_AUTONOMY, self.autonomy_level - AUTONOMY_STEP)

    def record_decisions(self, decisions: list[AgentDecision]) -> None:
        self.decision_history.extend(decisions)
        del self.decision_history[:-self._history_limit]

    def strategic_effectiveness(self) -> float:
        recent = self.decision_history[-EFFECTIVENESS_WINDOW:]
        if not recent:
            return 0.5
        completed = sum(1 for d in recent if d.status == DecisionStatus.COMPLETED)
        return completed / len(recent)

    def environment_adaptation(self) -> float:
        return 0.5

    # ── Inter-agent ──────────────────────────────────────────────

    def set_market_regime(self, **conditions: Any) -> RegimeType:
        return self.market_regime.update_conditions(**conditions)

    async def receive_message(self, message: AgentMessage) -> AgentResponse:
        return AgentResponse(
            responder=self.agent_id,
            accepted=True,
            message=f"{self.agent_id} acknowledged {message.type} from {message.sender}",
        )

    async def negotiate_conflict(self, conflict: AgentConflict) -> Resolution:
        return Resolution(
            conflict_id=conflict.id,
            strategy="compromise",
            description=f"{self.agent_id} proposes a compromise on {conflict.type.value}",
        )

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.emit(topic, {"agent_id": self.agent_id, **data}, source=self.agent_id)
