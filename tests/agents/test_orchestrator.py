"""Tests for the strategic orchestrator."""

from datetime import timedelta

import pytest

from cryptoagency.agents.base import AgenticAgent
from cryptoagency.agents.market_hunter import AlphaDiscovery
from cryptoagency.agents.models import (
    AgentMessage,
    CompetitiveAnalysis,
    ConflictType,
    DecisionType,
    ExecutionResult,
    ResourceAssessment,
    ThreatAssessment,
    utcnow,
)
from cryptoagency.agents.orchestrator import StrategicOrchestratorAgent, SystemState
from cryptoagency.core.goals import GoalStructure
from cryptoagency.core.personality import PerformanceMetrics
from cryptoagency.events.bus import EventBus
from cryptoagency.exceptions import AgentNotRegisteredError
from cryptoagency.types import Urgency, make_rng


class Worker(AgenticAgent):
    def __init__(self, agent_id, primary="Find alpha", autonomy=0.5, aggressive=50, cautious=50):
        super().__init__(
            agent_id,
            GoalStructure(primary=primary, secondary=["s1", "s2"], tactical=["t1"]),
            {"aggressive": aggressive, "cautious": cautious},
            autonomy_level=autonomy,
            rng=make_rng(1),
        )

    def gather_progress_data(self):
        return {}

    async def analyze_competition(self):
        return CompetitiveAnalysis()

    async def identify_opportunities(self):
        return []

    async def assess_threats(self):
        return ThreatAssessment()

    async def assess_resources(self):
        return ResourceAssessment()

    async def execute_specific_decision(self, decision):
        return ExecutionResult(decision_id=decision.id, success=True)

    def calculate_performance_metrics(self):
        return PerformanceMetrics()


def _orchestrator(*agents, **kwargs) -> StrategicOrchestratorAgent:
    orchestrator = StrategicOrchestratorAgent(rng=make_rng(3), **kwargs)
    for agent in agents:
        orchestrator.register_sub_agent(agent)
    return orchestrator


def _discovery(alpha, urgency):
    return AlphaDiscovery(type="whale_movement", description=f"whale {alpha}", alpha_value=alpha,
                          confidence=0.8, urgency=urgency, source="onchain_analysis",
                          expiration_time=utcnow() + timedelta(hours=1), actionable_insight="")


def test_registry():
    orchestrator = _orchestrator(Worker("a"), Worker("b"))
    assert set(orchestrator.sub_agents) == {"a", "b"}
    assert orchestrator.get_sub_agent("a").agent_id == "a"

    orchestrator.unregister_sub_agent("a")
    assert set(orchestrator.sub_agents) == {"b"}
    with pytest.raises(AgentNotRegisteredError):
        orchestrator.unregister_sub_agent("a")
    with pytest.raises(AgentNotRegisteredError):
        orchestrator.get_sub_agent("a")


def test_no_conflicts_between_compatible_agents():
    orchestrator = _orchestrator(Worker("a", primary="A"), Worker("b", primary="B"))
    assert orchestrator.detect_conflicts() == []


def test_detects_every_conflict_kind():
    orchestrator = _orchestrator(
        Worker("a", autonomy=0.9, aggressive=90, cautious=10),
        Worker("b", autonomy=0.9, aggressive=20, cautious=60),
    )
    conflicts = orchestrator.detect_conflicts()

    assert {c.type for c in conflicts} == {
        ConflictType.GOAL_CONFLICT,
        ConflictType.RESOURCE_CONFLICT,
        ConflictType.STRATEGY_CONFLICT,
    }
    strategy = next(c for c in conflicts if c.type == ConflictType.STRATEGY_CONFLICT)
    assert strategy.severity == 1.0
    assert all(c.agents == ["a", "b"] for c in conflicts)


def test_resolutions_by_conflict_type():
    orchestrator = _orchestrator(
        Worker("a", autonomy=0.95, aggressive=90, cautious=10),
        Worker("b", autonomy=0.9, aggressive=20, cautious=60),
    )
    by_type = {c.type: orchestrator.resolve_conflict(c) for c in orchestrator.detect_conflicts()}

    goal = by_type[ConflictType.GOAL_CONFLICT]
    assert goal.strategy == "prioritize"
    assert goal.decisions["dominant"] == "a"
    assert goal.decisions["adjust"] == ["b"]

    resource = by_type[ConflictType.RESOURCE_CONFLICT]
    assert resource.strategy == "reallocate"
    assert sum(resource.decisions["allocation"].values()) == 100
    assert orchestrator.resource_allocation == resource.decisions["allocation"]

    assert by_type[ConflictType.STRATEGY_CONFLICT].strategy == "adopt_best"


def test_allocate_resources_sums_to_100():
    agents = [Worker("a"), Worker("b"), Worker("c")]
    allocation = StrategicOrchestratorAgent.allocate_resources(agents)

    assert allocation == {"a": 34, "b": 33, "c": 33}


def test_allocation_follows_reputation():
    strong, weak = Worker("strong"), Worker("weak")
    for _ in range(3):
        weak.reputation.update(accuracy=0, consistency=0, influence=0, trustworthiness=0)
    allocation = StrategicOrchestratorAgent.allocate_resources([strong, weak])

    assert allocation["strong"] > allocation["weak"]
    assert sum(allocation.values()) == 100


def test_strategic_decisions():
    strong, weak = Worker("strong"), Worker("weak")
    for _ in range(3):
        weak.reputation.update(accuracy=0, consistency=0, influence=0, trustworthiness=0)
    orchestrator = _orchestrator(strong, weak)
    orchestrator.set_market_regime(sentiment=0.9, momentum="bullish", volatility="high")

    decisions = orchestrator.make_strategic_decisions(
        SystemState(sub_agent_count=2, overall_performance=0.5),
        orchestrator.evaluate_sub_agents(),
    )
    types = [d.type for d in decisions]

    assert types.count(DecisionType.STRATEGY_PIVOT) == 2
    assert types.count(DecisionType.GOAL_ADJUSTMENT) == 2
    assert DecisionType.RESOURCE_ALLOCATION in types
    regime_pivot = decisions[-1]
    assert regime_pivot.metadata == {"impact": "high", "urgency": Urgency.HIGH.value}


def test_healthy_system_needs_no_decisions():
    orchestrator = _orchestrator()
    decisions = orchestrator.make_strategic_decisions(
        SystemState(sub_agent_count=0, overall_performance=0.9), [],
    )
    assert decisions == []


def test_goal_adjustment_escalates_modifiable_goals():
    worker = Worker("w")
    orchestrator = _orchestrator(worker)
    decisions = orchestrator.make_strategic_decisions(
        SystemState(sub_agent_count=1, overall_performance=0.9),
        orchestrator.evaluate_sub_agents(),
    )

    # secondary x2 and tactical x1; the primary is locked
    assert orchestrator.adapt_sub_agent_goals(decisions) == 3
    assert [g.priority for g in worker.goal_hierarchy.get_secondary_goals()] == [1, 1]
    assert worker.goal_hierarchy.get_tactical_goals()[0].priority == 2
    assert worker.goal_hierarchy.get_primary_goal().priority == 1


@pytest.mark.asyncio
async def test_strategic_cycle_logs_decisions(db):
    bus = EventBus()
    orchestrator = _orchestrator(
        Worker("a", autonomy=0.9), Worker("b", autonomy=0.9),
        event_bus=bus, database=db,
    )

    result = await orchestrator.autonomous_strategic_cycle()

    assert result.system_state.sub_agent_count == 2
    assert len(result.evaluations) == 2
    assert len(result.resolutions) == len(result.conflicts) >= 2
    assert result.decisions
    assert await db.count("strategic_decisions") == len(result.decisions)
    assert orchestrator.performance_history == [result.success_rate]
    assert orchestrator.decision_history == result.decisions
    assert bus.history("orchestrator.cycle_completed")
    assert len(bus.history("orchestrator.conflict_resolved")) == len(result.conflicts)


@pytest.mark.asyncio
async def test_strategic_cycle_without_database():
    orchestrator = _orchestrator(Worker("a"))
    result = await orchestrator.autonomous_strategic_cycle()
    assert 0.0 <= result.success_rate <= 1.0


def test_process_sub_agent_update():
    orchestrator = _orchestrator(Worker("market-hunter"))

    idle = orchestrator.process_sub_agent_update("market-hunter", [])
    assert idle["recommended_action"] == "continue_hunting"
    assert idle["urgency"] == "low"
    assert idle["top_alpha"] is None

    hot = orchestrator.process_sub_agent_update("market-hunter", [
        _discovery(0.75, Urgency.MEDIUM), _discovery(0.9, Urgency.HIGH),
    ])
    assert hot["recommended_action"] == "publish_immediately"
    assert hot["top_alpha"] == 0.9
    assert hot["count"] == 2

    calm = orchestrator.process_sub_agent_update("market-hunter", [_discovery(0.8, Urgency.LOW)])
    assert calm["recommended_action"] == "queue_for_review"

    with pytest.raises(AgentNotRegisteredError):
        orchestrator.process_sub_agent_update("stranger", [])


@pytest.mark.asyncio
async def test_messages_from_unknown_agents_are_declined():
    orchestrator = _orchestrator(Worker("a"))
    assert (await orchestrator.receive_message(AgentMessage(sender="a"))).accepted
    assert not (await orchestrator.receive_message(AgentMessage(sender="z"))).accepted
