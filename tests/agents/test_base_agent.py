"""Tests for the shared autonomous decision cycle."""

import pytest

from cryptoagency.agents.base import AgenticAgent
from cryptoagency.agents.models import (
    AgentConflict,
    AgentDecision,
    AgentMessage,
    CompetitiveAnalysis,
    ConflictType,
    DecisionOption,
    DecisionStatus,
    DecisionType,
    ExecutionResult,
    ResourceAssessment,
    ThreatAssessment,
)
from cryptoagency.core.goals import GoalStructure
from cryptoagency.core.personality import PerformanceMetrics
from cryptoagency.events.bus import EventBus
from cryptoagency.types import RiskLevel, make_rng


class StubAgent(AgenticAgent):
    def __init__(self, traits=None, autonomy_level=0.8, fail=False, event_bus=None,
                 availability=0.8, history_limit=500):
        super().__init__(
            agent_id="stub",
            goals=GoalStructure(primary="Be useful", secondary=["Be fast"], tactical=["Be right"]),
            traits=traits or {"adaptive": 70, "analytical": 70, "aggressive": 50, "cautious": 50},
            autonomy_level=autonomy_level,
            rng=make_rng(7),
            event_bus=event_bus,
            history_limit=history_limit,
        )
        self.fail = fail
        self.availability = availability
        self.executed = []

    def gather_progress_data(self):
        return {}

    async def analyze_competition(self):
        return CompetitiveAnalysis()

    async def identify_opportunities(self):
        return []

    async def assess_threats(self):
        return ThreatAssessment()

    async def assess_resources(self):
        return ResourceAssessment(availability=self.availability)

    async def execute_specific_decision(self, decision: AgentDecision):
        if self.fail:
            raise RuntimeError("exchange offline")
        self.executed.append(decision)
        return ExecutionResult(decision_id=decision.id, success=True, outcome={"score": 0.9})

    def calculate_performance_metrics(self):
        return PerformanceMetrics()


def _option(type_, value, risk=RiskLevel.LOW, confidence=80):
    return DecisionOption(type=type_, description=type_.value, expected_value=value,
                          confidence=confidence, risk=risk)


@pytest.mark.asyncio
async def test_cycle_produces_and_executes_decisions():
    bus = EventBus()
    agent = StubAgent(event_bus=bus)

    decisions = await agent.autonomous_decision_cycle()

    assert decisions
    assert agent.decision_history == decisions
    assert all(d.status == DecisionStatus.COMPLETED for d in decisions)
    assert agent.executed == decisions
    assert any(d.type == DecisionType.GOAL_MODIFICATION for d in decisions)

    topics = [e.topic for e in bus.history(limit=100)]
    assert topics[0] == "agent.cycle_completed"
    assert topics[-1] == "agent.cycle_started"
    assert "agent.decision_executed" in topics
    assert bus.history()[0].data["agent_id"] == "stub"


@pytest.mark.asyncio
async def test_failed_execution_is_recorded_not_raised():
    agent = StubAgent(fail=True)
    decisions = await agent.autonomous_decision_cycle()

    assert decisions
    assert all(d.status == DecisionStatus.FAILED for d in decisions)
    assert all(d.error == "exchange offline" for d in decisions)
    assert agent.strategic_effectiveness() == 0.0


def test_options_from_underperforming_goals():
    agent = StubAgent()
    state = agent.assess_state()
    goals = agent.evaluate_goals()

    assert goals.modification_needed
    assert goals.pivot_required
    assert len(goals.underperforming) == 3
    assert state.strategic_effectiveness == 0.5


@pytest.mark.asyncio
async def test_generate_options_covers_goals_pivots_and_learning():
    agent = StubAgent()
    options = agent.generate_options(
        agent.assess_state(), agent.evaluate_goals(), await agent.analyze_environment(),
    )
    types = [o.type for o in options]

    assert types.count(DecisionType.GOAL_MODIFICATION) == 3
    assert types.count(DecisionType.STRATEGY_PIVOT) == 2
    assert DecisionType.LEARNING_ADAPTATION in types
    assert DecisionType.THREAT_RESPONSE not in types


def test_rank_prefers_higher_risk_adjusted_value():
    agent = StubAgent(traits={"aggressive": 80, "cautious": 20})
    risky = _option(DecisionType.STRATEGY_PIVOT, 0.8, RiskLevel.HIGH)
    safe = _option(DecisionType.STRATEGY_PIVOT, 0.6, RiskLevel.LOW)

    assert agent.rank_options([safe, risky]) == [risky, safe]


def test_cautious_agent_discounts_high_risk():
    agent = StubAgent(traits={"aggressive": 20, "cautious": 80})
    assert agent.risk_multiplier(RiskLevel.HIGH) == 0.7
    assert agent.risk_multiplier(RiskLevel.MEDIUM) == 0.9
    assert agent.risk_multiplier(RiskLevel.LOW) == 1.0


def test_close_values_break_ties_on_personality():
    agent = StubAgent(traits={"aggressive": 90, "cautious": 20})
    pursue = _option(DecisionType.OPPORTUNITY_PURSUIT, 0.60)
    defend = _option(DecisionType.THREAT_RESPONSE, 0.62)

    assert agent.rank_options([defend, pursue]) == [pursue, defend]


def test_personality_alignment_defaults():
    agent = StubAgent(traits={"adaptive": 80})
    assert agent.personality_alignment(_option(DecisionType.GOAL_MODIFICATION, 0.5)) == pytest.approx(0.8)
    # missing trait counts as neutral
    assert agent.personality_alignment(_option(DecisionType.LEARNING_ADAPTATION, 0.5)) == pytest.approx(0.5)
    assert agent.personality_alignment(_option(DecisionType.RESOURCE_ALLOCATION, 0.5)) == 0.5


def test_execution_gate():
    confident = StubAgent(autonomy_level=0.9)
    timid = StubAgent(autonomy_level=0.3)
    option = _option(DecisionType.LEARNING_ADAPTATION, 0.8, confidence=85)
    hopeless = _option(DecisionType.LEARNING_ADAPTATION, 0.8, confidence=0)

    assert all(confident.should_execute(option) for _ in range(20))
    assert not any(timid.should_execute(hopeless) for _ in range(20))


def test_resource_availability_gates_execution():
    agent = StubAgent(autonomy_level=0.9)
    option = _option(DecisionType.LEARNING_ADAPTATION, 0.8, confidence=36)
    starved = ResourceAssessment(availability=0.0)
    plentiful = ResourceAssessment(availability=1.0)

    gap = agent.execution_probability(option, plentiful) - agent.execution_probability(option, starved)
    assert gap == pytest.approx(0.15)
    assert all(agent.should_execute(option, plentiful) for _ in range(20))
    assert not any(agent.should_execute(option, starved) for _ in range(20))
    assert agent.make_decisions([option], starved) == []


@pytest.mark.asyncio
async def test_cycle_gates_on_assessed_resources(monkeypatch):
    agent = StubAgent(availability=0.1)
    seen = []
    gate = agent.should_execute

    def spy(option, resources=None):
        seen.append(resources)
        return gate(option, resources)

    monkeypatch.setattr(agent, "should_execute", spy)
    await agent.autonomous_decision_cycle()

    assert seen
    assert all(r.availability == 0.1 for r in seen)


def test_learning_from_success_raises_autonomy():
    agent = StubAgent(autonomy_level=0.8)
    agent.learn_from_results([ExecutionResult(decision_id="d", success=True)])

    assert agent.autonomy_level == pytest.approx(0.85)
    assert len(agent.reputation.history()) == 1
    assert len(agent.personality.evolution_history) == 1


def test_learning_from_failure_lowers_autonomy_with_floor():
    agent = StubAgent(autonomy_level=0.32)
    agent.learn_from_results([ExecutionResult(decision_id="d", success=False)])
    assert agent.autonomy_level == 0.3


def test_learning_without_results_is_a_no_op():
    agent = StubAgent()
    agent.learn_from_results([])
    assert agent.reputation.history() == []
    assert agent.autonomy_level == 0.8


@pytest.mark.asyncio
async def test_messages_and_negotiation():
    agent = StubAgent()
    response = await agent.receive_message(AgentMessage(sender="other", type="alert"))
    assert response.accepted
    assert response.responder == "stub"

    conflict = AgentConflict(type=ConflictType.RESOURCE_CONFLICT, agents=["stub", "other"],
                             description="both want bandwidth")
    resolution = await agent.negotiate_conflict(conflict)
    assert resolution.conflict_id == conflict.id
    assert resolution.strategy == "compromise"


def test_set_market_regime():
    agent = StubAgent()
    assert agent.set_market_regime(sentiment=-0.5, momentum="bearish").value == "bear"
    assert agent.market_regime.current_regime.value == "bear"


@pytest.mark.asyncio
async def test_decision_history_is_bounded():
    agent = StubAgent(history_limit=2)
    decisions = await agent.autonomous_decision_cycle()
    assert len(decisions) > 2

    assert agent.decision_history == decisions[-2:]
    agent.record_decisions([])
    assert len(agent.decision_history) == 2
