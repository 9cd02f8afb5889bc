"""Tests for the agency bench: scenarios, feedback and strategic reporting."""

from datetime import timedelta

import pytest
import pytest_asyncio

from cryptoagency.agents.models import utcnow
from cryptoagency.bench import (
    FULL_SYSTEM_PARTS,
    TEST_TYPES,
    AgencyBench,
    detect_emergent_behaviors,
    system_efficiency,
)
from cryptoagency.events.bus import EventBus
from cryptoagency.exceptions import (
    InvalidFeedbackError,
    SuggestionNotFoundError,
    UnknownTestTypeError,
)
from cryptoagency.storage.models import AgentSuggestion, AlphaDiscoveryLog
from cryptoagency.types import Urgency


@pytest_asyncio.fixture
async def bench(db):
    return AgencyBench(db, seed=7, event_bus=EventBus())


async def _rated(db, bench, agent_id, type_, scores):
    for score in scores:
        suggestion_id = await db.log_agent_suggestion(
            AgentSuggestion(agent_id=agent_id, type=type_, confidence=0.7)
        )
        await bench.collect_feedback(suggestion_id, f"rated {score}", score)


# ── Helpers ──────────────────────────────────────────────────────


def test_emergent_behaviors():
    types = ["autonomous-decision"] * 2 + ["alpha-discovery"] * 6 + ["adaptation"]
    assert detect_emergent_behaviors(types) == [
        "high-autonomy-tendency", "aggressive-alpha-hunting", "active-learning",
    ]
    assert detect_emergent_behaviors(["strategic-decision"]) == []


def test_system_efficiency():
    assert system_efficiency({}) == 0.0
    parts = {
        "autonomous-decision": {"success_rate": 0.5},
        "alpha-discovery": {"discoveries_per_cycle": 4.0},
    }
    # discoveries per cycle is capped at 1
    assert system_efficiency(parts) == pytest.approx(0.75)


# ── Scenarios ────────────────────────────────────────────────────


def test_bench_wiring(bench):
    assert set(bench.agents) == {"strategic-orchestrator", "market-hunter", "performance-optimizer"}
    assert set(bench.orchestrator.sub_agents) == {"market-hunter", "performance-optimizer"}
    status = bench.status()
    assert status["running"] is False
    assert status["tests_run"] == 0
    assert status["alpha_threshold"] == 0.7


@pytest.mark.asyncio
async def test_unknown_test_type(bench):
    with pytest.raises(UnknownTestTypeError):
        await bench.run("moon-shot")
    assert bench.results == []


@pytest.mark.asyncio
async def test_autonomous_decision(bench, db):
    result = await bench.run("autonomous-decision", rounds=2)

    assert result.status == "completed"
    assert result.metrics["total_cycles"] == 6
    assert 0 <= result.metrics["success_rate"] <= 1
    assert set(result.suggestion_types) <= {"autonomous-decision"}
    assert await db.count("agent_suggestions") == len(result.suggestion_ids)
    assert await db.count("agent_performance") == 6
    assert await db.count("system_metrics") == 1


@pytest.mark.asyncio
async def test_strategic_oversight(bench, db):
    result = await bench.run("strategic-oversight", rounds=2)

    assert result.metrics["strategic_cycles"] == 2
    assert result.suggestion_types == ["strategic-decision", "strategic-decision"]
    assert 0 <= result.metrics["conflict_resolution_rate"] <= 1
    assert len(bench.optimizer.cycle_history) == 2
    assert await db.count("strategic_decisions") == result.metrics["strategic_decisions"]


@pytest.mark.asyncio
async def test_alpha_discovery(bench, db):
    result = await bench.run("alpha-discovery", rounds=3)

    assert result.metrics["hunt_cycles"] == 3
    found = result.metrics["alpha_discoveries"]
    assert result.metrics["discoveries_per_cycle"] == pytest.approx(found / 3)
    assert await db.count("alpha_discoveries") == found
    assert len(result.suggestion_ids) == found


@pytest.mark.asyncio
async def test_seeded_benches_agree(db):
    first = await AgencyBench(db, seed=11).run("alpha-discovery", rounds=2)
    second = await AgencyBench(db, seed=11).run("alpha-discovery", rounds=2)
    assert first.metrics == second.metrics


@pytest.mark.asyncio
async def test_inter_agent_communication(bench):
    result = await bench.run("inter-agent-communication", rounds=2)

    assert result.metrics["communication_events"] == 2
    assert result.metrics["communication_success_rate"] == 1.0
    assert result.suggestion_types == ["inter-agent-response"] * 2


@pytest.mark.asyncio
async def test_learning_adaptation(bench):
    result = await bench.run("learning-adaptation", rounds=2)

    assert result.metrics["learning_cycles"] == 6
    assert result.metrics["adaptations"] == len(result.suggestion_ids)
    assert all(t == "adaptation" for t in result.suggestion_types)


@pytest.mark.asyncio
async def test_full_system(bench, db):
    bus = bench._bus
    result = await bench.run("full-system", rounds=1)

    for part in FULL_SYSTEM_PARTS:
        assert part in result.metrics
    assert result.metrics["total_suggestions"] == len(result.suggestion_ids)
    assert 0 <= result.metrics["system_efficiency"] <= 1
    assert result.metrics["strategic_cycles"] == 1

    (metrics,) = await db.get_system_metrics_history()
    assert metrics["system_efficiency"] == pytest.approx(result.metrics["system_efficiency"])
    topics = [e.topic for e in bus.history("bench.*")]
    assert topics == ["bench.test_completed", "bench.test_started"]


@pytest.mark.asyncio
async def test_failed_scenario_is_recorded(bench):
    async def broken_hunt():
        raise RuntimeError("feed down")

    bench.market_hunter.autonomous_hunt = broken_hunt

    with pytest.raises(RuntimeError):
        await bench.run("alpha-discovery")

    (result,) = bench.results
    assert result.status == "failed"
    assert result.error == "feed down"
    assert result.end_time is not None
    assert not bench.is_running


@pytest.mark.asyncio
async def test_full_system_survives_a_failing_part(bench):
    async def broken_hunt():
        raise RuntimeError("feed down")

    bench.market_hunter.autonomous_hunt = broken_hunt
    result = await bench.run("full-system", rounds=1)

    assert result.status == "completed"
    assert "alpha-discovery" not in result.metrics
    assert "inter-agent-communication" not in result.metrics
    assert "autonomous-decision" in result.metrics


def test_every_test_type_has_a_runner(bench):
    for test_type in TEST_TYPES[:-1]:
        assert callable(bench._scenario(test_type))


# ── Feedback & reporting ─────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("text,score", [("", 5), ("   ", 5), ("fine", 0), ("fine", 11)])
async def test_invalid_feedback(bench, db, text, score):
    suggestion_id = await db.log_agent_suggestion(
        AgentSuggestion(agent_id="market-hunter", type="alpha-discovery", confidence=0.7)
    )
    with pytest.raises(InvalidFeedbackError):
        await bench.collect_feedback(suggestion_id, text, score)


@pytest.mark.asyncio
async def test_feedback_for_unknown_suggestion(bench):
    with pytest.raises(SuggestionNotFoundError):
        await bench.collect_feedback(12345, "good", 8)


@pytest.mark.asyncio
async def test_feedback_is_logged_and_emitted(bench, db):
    await _rated(db, bench, "market-hunter", "alpha-discovery", [8])

    (entry,) = await db.get_feedback_log("suggestion_rating")
    assert entry["source_type"] == "human"
    assert entry["feedback_data"]["score"] == 8
    assert bench._bus.history("bench.feedback")[0].data["score"] == 8


@pytest.mark.asyncio
async def test_visualization_data(bench):
    await bench.run("learning-adaptation", rounds=1)
    data = await bench.visualization_data()

    assert data["session_id"] == bench.session_id
    assert len(data["test_results"]) == 1
    assert len(data["system_metrics"]) == 1
    assert data["feedback_summary"]["total_feedback"] == 0
    assert data["top_performing_agents"] == []


@pytest.mark.asyncio
async def test_strategic_feedback_on_empty_database(bench, db):
    feedback = await bench.strategic_feedback()

    assert feedback.overall_performance == 0
    assert feedback.agent_recommendations == []
    assert feedback.system_recommendations == []
    assert feedback.emergent_insights == []
    assert feedback.action_priorities == []
    (entry,) = await db.get_feedback_log("strategic_feedback")
    assert entry["target_agent"] == "strategic-orchestrator"


@pytest.mark.asyncio
async def test_strategic_feedback_recommendations(bench, db):
    await _rated(db, bench, "market-hunter", "alpha-discovery", [9, 9])
    await _rated(db, bench, "strategic-orchestrator", "strategic-decision", [2, 3])

    feedback = await bench.strategic_feedback()

    assert feedback.overall_performance == pytest.approx(0.575 / 3)
    by_type = {r.type: r for r in feedback.agent_recommendations}
    assert by_type["enhancement"].agent_id == "market-hunter"
    assert by_type["improvement"].agent_id == "strategic-orchestrator"
    assert [r.type for r in feedback.system_recommendations] == ["performance"]
    assert len(feedback.emergent_insights) == 1
    # two high and two low scores: no quality action
    assert feedback.action_priorities == []


@pytest.mark.asyncio
async def test_strategic_feedback_action_priorities(bench, db):
    await _rated(db, bench, "market-hunter", "alpha-discovery", [4])
    now = utcnow()
    await db.log_alpha_discovery(AlphaDiscoveryLog(
        type="narrative", description="weak story", alpha_value=0.71, confidence=0.4,
        urgency=Urgency.LOW, source="social", discovery_time=now,
        expiration_time=now + timedelta(hours=1),
    ))

    feedback = await bench.strategic_feedback()

    assert [p.priority for p in feedback.action_priorities] == [1, 2]
    assert {r.type for r in feedback.system_recommendations} == {"performance", "confidence"}


@pytest.mark.asyncio
async def test_results_are_bounded(db):
    bench = AgencyBench(db, seed=7, results_limit=3)
    for _ in range(5):
        last = await bench.run("learning-adaptation", rounds=1)

    assert len(bench.results) == 3
    assert bench.results[-1] is last
    assert bench.status()["tests_run"] == 5

    data = await bench.visualization_data(limit=2)
    assert [r["id"] for r in data["test_results"]] == [r.id for r in bench.results[-2:]]
    assert (await bench.visualization_data(limit=0))["test_results"] == []
