"""Agency bench: drives the agents and records what they propose.

A bench owns one orchestrator, one market hunter and one performance
optimizer wired together, runs them through named test scenarios for a
number of rounds, and logs every decision, discovery and response as a
suggestion a human can later rate. The reporting half turns those
ratings back into strategic feedback.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cryptoagency.agents.base import AgenticAgent
from cryptoagency.agents.market_hunter import MarketHunterAgent
from cryptoagency.agents.models import ExecutionResult, utcnow
from cryptoagency.agents.optimizer import PerformanceOptimizerAgent
from cryptoagency.agents.orchestrator import StrategicOrchestratorAgent
from cryptoagency.agents.signals import SignalFeed
from cryptoagency.events.bus import EventBus
from cryptoagency.exceptions import InvalidFeedbackError, UnknownTestTypeError
from cryptoagency.storage.database import AgenticDatabase
from cryptoagency.storage.models import (
    AgentPerformanceLog,
    AgentSuggestion,
    AlphaDiscoveryLog,
    FeedbackLog,
    SystemMetricsLog,
)
from cryptoagency.types import Urgency, make_rng, new_id

_logger = logging.getLogger(__name__)

TEST_TYPES = (
    "autonomous-decision",
    "strategic-oversight",
    "alpha-discovery",
    "inter-agent-communication",
    "learning-adaptation",
    "full-system",
)
FULL_SYSTEM_PARTS = TEST_TYPES[:4]
REPUTATION_CHANGE = 0.1
RESULTS_LIMIT = 200


# ── Results ──────────────────────────────────────────────────────


class BenchResult(BaseModel):
    id: str = Field(default_factory=lambda: f"test_{new_id()}")
    session_id: str
    type: str
    rounds: int
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime | None = None
    duration_ms: float | None = None
    status: str = "running"  # running | completed | failed
    metrics: dict[str, Any] = Field(default_factory=dict)
    suggestion_ids: list[int] = Field(default_factory=list)
    suggestion_types: list[str] = Field(default_factory=list)
    error: str | None = None


class AgentRecommendation(BaseModel):
    agent_id: str
    type: str  # enhancement | improvement
    priority: str
    recommendation: str
    expected_impact: str


class SystemRecommendation(BaseModel):
    type: str  # performance | confidence
    priority: str
    recommendation: str
    expected_impact: str


class EmergentInsight(BaseModel):
    type: str
    description: str
    significance: str = "medium"
    actionable: bool = True


class ActionPriority(BaseModel):
    action: str
    priority: int
    urgency: str
    expected_impact: str
    timeframe: str


class StrategicFeedback(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    overall_performance: float
    agent_recommendations: list[AgentRecommendation] = Field(default_factory=list)
    system_recommendations: list[SystemRecommendation] = Field(default_factory=list)
    emergent_insights: list[EmergentInsight] = Field(default_factory=list)
    action_priorities: list[ActionPriority] = Field(default_factory=list)


def detect_emergent_behaviors(suggestion_types: list[str]) -> list[str]:
    frequency = Counter(suggestion_types)
    behaviors = []
    if frequency["autonomous-decision"] > frequency["strategic-decision"]:
        behaviors.append("high-autonomy-tendency")
    if frequency["alpha-discovery"] > 5:
        behaviors.append("aggressive-alpha-hunting")
    if frequency["adaptation"] > 0:
        behaviors.append("active-learning")
    return behaviors


def system_efficiency(parts: dict[str, dict[str, Any]]) -> float:
    """Mean of the headline rate of every completed sub-test."""
    rates = []
    if "autonomous-decision" in parts:
        rates.append(parts["autonomous-decision"]["success_rate"])
    if "strategic-oversight" in parts:
        rates.append(parts["strategic-oversight"]["conflict_resolution_rate"])
    if "alpha-discovery" in parts:
        rates.append(min(parts["alpha-discovery"]["discoveries_per_cycle"], 1.0))
    if "inter-agent-communication" in parts:
        rates.append(parts["inter-agent-communication"]["communication_success_rate"])
    return sum(rates) / len(rates) if rates else 0.0


# ── Bench ────────────────────────────────────────────────────────


class AgencyBench:
    def __init__(
        self,
        database: AgenticDatabase,
        seed: int | None = None,
        event_bus: EventBus | None = None,
        pause_seconds: float = 0.0,
        alpha_threshold: float = 0.7,
        history_limit: int = 1000,
        results_limit: int = RESULTS_LIMIT,
    ) -> None:
        self.database = database
        self.session_id = f"session_{new_id()}"
        self._bus = event_bus
        self._pause = pause_seconds
        self._rng = make_rng(seed)

        self.market_hunter = MarketHunterAgent(
            feed=SignalFeed(make_rng(self._rng.getrandbits(32))),
            rng=make_rng(self._rng.getrandbits(32)),
            event_bus=event_bus,
            threshold=alpha_threshold,
            history_limit=history_limit,
        )
        self.optimizer = PerformanceOptimizerAgent(rng=make_rng(self._rng.getrandbits(32)), event_bus=event_bus)
        self.orchestrator = StrategicOrchestratorAgent(
            rng=make_rng(self._rng.getrandbits(32)), event_bus=event_bus, database=database,
        )
        self.orchestrator.register_sub_agent(self.market_hunter)
        self.orchestrator.register_sub_agent(self.optimizer)
        self.optimizer.watch(self.market_hunter)
        self.optimizer.watch(self.orchestrator)

        self.agents: dict[str, AgenticAgent] = {
            a.agent_id: a for a in (self.orchestrator, self.market_hunter, self.optimizer)
        }
        self.results: list[BenchResult] = []
        self.tests_run = 0
        self._results_limit = max(results_limit, 1)
        self._active = 0

    @property
    def is_running(self) -> bool:
        return self._active > 0

    def status(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "running": self.is_running,
            "tests_run": self.tests_run,
            "agents": list(self.agents),
            "regime": self.orchestrator.market_regime.current_regime.value,
            "alpha_threshold": self.market_hunter.current_threshold,
        }

    async def run(self, test_type: str, rounds: int = 3) -> BenchResult:
        """Run one named scenario and log its system metrics."""
        if test_type not in TEST_TYPES:
            raise UnknownTestTypeError(
                f"Unknown test type {test_type!r}; expected one of {', '.join(TEST_TYPES)}"
            )

        result = BenchResult(session_id=self.session_id, type=test_type, rounds=rounds)
        self.results.append(result)
        del self.results[:-self._results_limit]
        self.tests_run += 1
        self._active += 1
        await self._emit("bench.test_started", {"test_id": result.id, "type": test_type})
        try:
            if test_type == "full-system":
                await self._full_system(result, rounds)
            else:
                result.metrics = await self._scenario(test_type)(result, rounds)
            result.status = "completed"
        except Exception as e:
            result.status = "failed"
            result.error = str(e)
            _logger.error("Bench test %s failed: %s", test_type, e)
            raise
        finally:
            result.end_time = utcnow()
            result.duration_ms = (result.end_time - result.start_time).total_seconds() * 1000
            self._active -= 1

        await self._log_system_metrics(result)
        await self._emit("bench.test_completed", {
            "test_id": result.id,
            "type": test_type,
            "suggestions": len(result.suggestion_ids),
            "metrics": {k: v for k, v in result.metrics.items() if not isinstance(v, dict)},
        })
        _logger.info(
            "Bench %s finished: %d suggestions in %.0fms",
            test_type, len(result.suggestion_ids), result.duration_ms,
        )
        return result

    def _scenario(self, test_type: str):
        return {
            "autonomous-decision": self._autonomous_decision,
            "strategic-oversight": self._strategic_oversight,
            "alpha-discovery": self._alpha_discovery,
            "inter-agent-communication": self._inter_agent_communication,
            "learning-adaptation": self._learning_adaptation,
        }[test_type]

    async def _suggest(self, result: BenchResult, suggestion: AgentSuggestion) -> int:
        suggestion_id = await self.database.log_agent_suggestion(suggestion)
        result.suggestion_ids.append(suggestion_id)
        result.suggestion_types.append(suggestion.type)
        return suggestion_id

    async def _between_rounds(self) -> None:
        if self._pause > 0:
            await asyncio.sleep(self._pause)

    # ── Scenarios ────────────────────────────────────────────────

    async def _autonomous_decision(self, result: BenchResult, rounds: int) -> dict[str, Any]:
        cycles = productive = 0
        for _ in range(rounds):
            for agent_id, agent in self.agents.items():
                decisions = await agent.autonomous_decision_cycle()
                cycles += 1
                if decisions:
                    productive += 1
                for decision in decisions:
                    await self._suggest(result, AgentSuggestion(
                        agent_id=agent_id,
                        type="autonomous-decision",
                        data=decision.model_dump(mode="json"),
                        confidence=decision.confidence / 100,
                        urgency=Urgency(decision.metadata.get("urgency", "medium")),
                        expected_value=decision.expected_outcome.get("value"),
                        rationale=decision.rationale or "Autonomous decision cycle",
                    ))
                await self._log_performance(agent)
            await self._between_rounds()
        return {
            "total_cycles": cycles,
            "productive_cycles": productive,
            "success_rate": productive / cycles if cycles else 0.0,
        }

    async def _strategic_oversight(self, result: BenchResult, rounds: int) -> dict[str, Any]:
        cycles = detected = resolved = decisions = 0
        improvements = []
        for _ in range(rounds):
            cycle = await self.orchestrator.autonomous_strategic_cycle()
            cycles += 1
            detected += len(cycle.conflicts)
            resolved += sum(1 for r in cycle.resolutions if r.success)
            decisions += len(cycle.decisions)
            await self._suggest(result, AgentSuggestion(
                agent_id=self.orchestrator.agent_id,
                type="strategic-decision",
                data={
                    "decisions": [d.model_dump(mode="json") for d in cycle.decisions],
                    "resolutions": [r.model_dump(mode="json") for r in cycle.resolutions],
                    "emergent_behaviors": cycle.system_state.emergent_behaviors,
                },
                confidence=0.7,
                urgency=Urgency.HIGH if cycle.conflicts else Urgency.MEDIUM,
                expected_value=cycle.success_rate,
                rationale=(
                    f"{len(cycle.decisions)} strategic decisions, "
                    f"{len(cycle.conflicts)} conflicts"
                ),
            ))

            optimization = await self.optimizer.autonomous_optimization_cycle()
            improvements.append(optimization.impact.overall_improvement)
            await self._between_rounds()
        return {
            "strategic_cycles": cycles,
            "strategic_decisions": decisions,
            "conflicts_detected": detected,
            "conflicts_resolved": resolved,
            "conflict_resolution_rate": resolved / detected if detected else 0.0,
            "average_optimization_improvement": (
                sum(improvements) / len(improvements) if improvements else 0.0
            ),
        }

    async def _alpha_discovery(self, result: BenchResult, rounds: int) -> dict[str, Any]:
        hunts = found = 0
        for _ in range(rounds):
            discoveries = await self.market_hunter.autonomous_hunt()
            hunts += 1
            found += len(discoveries)
            for discovery in discoveries:
                await self._suggest(result, AgentSuggestion(
                    agent_id=self.market_hunter.agent_id,
                    type="alpha-discovery",
                    data=discovery.model_dump(mode="json"),
                    confidence=discovery.confidence,
                    urgency=discovery.urgency,
                    expected_value=discovery.alpha_value,
                    rationale=discovery.actionable_insight,
                ))
                await self.database.log_alpha_discovery(AlphaDiscoveryLog(
                    type=discovery.type,
                    description=discovery.description,
                    alpha_value=discovery.alpha_value,
                    confidence=discovery.confidence,
                    urgency=discovery.urgency,
                    source=discovery.source,
                    discovery_time=discovery.discovery_time,
                    expiration_time=discovery.expiration_time,
                    actionable_insight=discovery.actionable_insight,
                    supporting_data=discovery.supporting_data,
                ))
            await self._between_rounds()
        return {
            "hunt_cycles": hunts,
            "alpha_discoveries": found,
            "discoveries_per_cycle": found / hunts if hunts else 0.0,
        }

    async def _inter_agent_communication(self, result: BenchResult, rounds: int) -> dict[str, Any]:
        events = delivered = 0
        for _ in range(rounds):
            discoveries = await self.market_hunter.autonomous_hunt()
            events += 1
            response = self.orchestrator.process_sub_agent_update(
                self.market_hunter.agent_id, discoveries,
            )
            if response.get("acknowledged"):
                delivered += 1
                await self._suggest(result, AgentSuggestion(
                    agent_id=self.orchestrator.agent_id,
                    type="inter-agent-response",
                    data={
                        "trigger": [d.description for d in discoveries],
                        "response": response,
                    },
                    confidence=0.6,
                    urgency=Urgency(response["urgency"]),
                    expected_value=response.get("top_alpha"),
                    rationale=f"Orchestrator recommends {response['recommended_action']}",
                ))
            await self._between_rounds()
        return {
            "communication_events": events,
            "successful_communications": delivered,
            "communication_success_rate": delivered / events if events else 0.0,
        }

    async def _learning_adaptation(self, result: BenchResult, rounds: int) -> dict[str, Any]:
        baseline = {
            agent_id: {
                "reputation": agent.reputation.overall_score(),
                "goals": len(agent.goal_hierarchy.all_goals()),
                "personality": agent.personality.all_traits(),
            }
            for agent_id, agent in self.agents.items()
        }
        cycles = adaptations = 0
        for _ in range(rounds):
            for agent_id, agent in self.agents.items():
                outcome = ExecutionResult(
                    decision_id=f"learning_{new_id()}",
                    success=self._rng.random() > 0.3,
                    outcome={"value": self._rng.random() * 100},
                )
                agent.learn_from_results([outcome])
                cycles += 1

                before = baseline[agent_id]
                reputation = agent.reputation.overall_score()
                goals = len(agent.goal_hierarchy.all_goals())
                if abs(reputation - before["reputation"]) > REPUTATION_CHANGE or goals != before["goals"]:
                    adaptations += 1
                    traits = agent.personality.all_traits()
                    await self._suggest(result, AgentSuggestion(
                        agent_id=agent_id,
                        type="adaptation",
                        data={
                            "reputation_delta": reputation - before["reputation"],
                            "goal_delta": goals - before["goals"],
                            "personality_changes": {
                                name: value - before["personality"].get(name, 0.0)
                                for name, value in traits.items()
                                if abs(value - before["personality"].get(name, 0.0)) > 0.05
                            },
                            "autonomy": agent.autonomy_level,
                        },
                        confidence=0.8,
                        urgency=Urgency.LOW,
                        rationale="Learning adaptation detected",
                    ))
            await self._between_rounds()
        return {
            "learning_cycles": cycles,
            "adaptations": adaptations,
            "adaptation_rate": adaptations / cycles if cycles else 0.0,
        }

    async def _full_system(self, result: BenchResult, rounds: int) -> None:
        parts = [
            BenchResult(session_id=self.session_id, type=t, rounds=rounds)
            for t in FULL_SYSTEM_PARTS
        ]
        outcomes = await asyncio.gather(
            *(self._scenario(p.type)(p, rounds) for p in parts),
            return_exceptions=True,
        )

        metrics: dict[str, Any] = {}
        for part, outcome in zip(parts, outcomes):
            if isinstance(outcome, Exception):
                _logger.warning("Full-system part %s failed: %s", part.type, outcome)
                continue
            metrics[part.type] = outcome
            result.suggestion_ids.extend(part.suggestion_ids)
            result.suggestion_types.extend(part.suggestion_types)

        metrics["total_suggestions"] = len(result.suggestion_ids)
        metrics["system_efficiency"] = system_efficiency(metrics)
        if "strategic-oversight" in metrics:
            oversight = metrics["strategic-oversight"]
            metrics["conflicts_resolved"] = oversight["conflicts_resolved"]
            metrics["strategic_cycles"] = oversight["strategic_cycles"]
        result.metrics = metrics

    # ── Logging ──────────────────────────────────────────────────

    async def _log_performance(self, agent: AgenticAgent) -> None:
        state = agent.assess_state()
        history = agent.decision_history
        await self.database.log_agent_performance(agent.agent_id, AgentPerformanceLog(
            metrics=state.performance.model_dump(),
            goal_progress=state.goal_progress,
            reputation_score=state.reputation_score,
            autonomy_level=state.autonomy_level,
            decision_count=len(history),
            success_rate=state.strategic_effectiveness,
            adaptation_score=state.environment_adaptation,
        ))

    async def _log_system_metrics(self, result: BenchResult) -> None:
        efficiency = result.metrics.get("system_efficiency", 0.0)
        await self.database.log_system_metrics(SystemMetricsLog(
            overall_performance=efficiency,
            agent_count=len(self.agents),
            active_conflicts=0,
            resolved_conflicts=result.metrics.get("conflicts_resolved", 0),
            emergent_behaviors=detect_emergent_behaviors(result.suggestion_types),
            strategic_decisions=result.metrics.get("strategic_cycles", 0),
            system_efficiency=efficiency,
        ))

    # ── Feedback & reporting ─────────────────────────────────────

    async def collect_feedback(self, suggestion_id: int, feedback: str, score: int) -> None:
        """Record a human rating (1-10) of one suggestion."""
        if not feedback or not feedback.strip():
            raise InvalidFeedbackError("Feedback text is required")
        if not 1 <= score <= 10:
            raise InvalidFeedbackError(f"Score must be between 1 and 10, got {score}")

        await self.database.update_suggestion_feedback(suggestion_id, feedback, score)
        await self.database.log_feedback(FeedbackLog(
            source_type="human",
            type="suggestion_rating",
            data={"suggestion_id": suggestion_id, "feedback": feedback, "score": score},
            impact_score=score,
        ))
        await self._emit("bench.feedback", {"suggestion_id": suggestion_id, "score": score})

    async def visualization_data(self, limit: int = 100) -> dict[str, Any]:
        suggestions, metrics, alpha, summary, top, weak = await asyncio.gather(
            self.database.get_recent_suggestions(limit),
            self.database.get_system_metrics_history(7),
            self.database.get_alpha_discovery_stats(),
            self.database.get_feedback_summary(),
            self.database.get_top_performing_agents(5),
            self.database.get_underperforming_areas(),
        )
        recent = self.results[-limit:] if limit > 0 else []
        return {
            "session_id": self.session_id,
            "timestamp": utcnow().isoformat(),
            "suggestions": suggestions,
            "system_metrics": metrics,
            "alpha_stats": alpha,
            "feedback_summary": summary,
            "top_performing_agents": top,
            "underperforming_areas": weak,
            "test_results": [r.model_dump(mode="json") for r in recent],
        }

    async def strategic_feedback(self) -> StrategicFeedback:
        data = await self.visualization_data()
        feedback = StrategicFeedback(
            overall_performance=self._overall_performance(data),
            agent_recommendations=self._agent_recommendations(data),
            system_recommendations=self._system_recommendations(data),
            emergent_insights=self._emergent_insights(data),
            action_priorities=self._action_priorities(data),
        )
        await self.database.log_feedback(FeedbackLog(
            source_type="system",
            target_agent=self.orchestrator.agent_id,
            type="strategic_feedback",
            data=feedback.model_dump(mode="json"),
            impact_score=feedback.overall_performance,
        ))
        return feedback

    @staticmethod
    def _overall_performance(data: dict[str, Any]) -> float:
        avg_score = (data["feedback_summary"] or {}).get("avg_score") or 0
        validation = (data["alpha_stats"] or {}).get("avg_validation_outcome") or 0
        metrics = data["system_metrics"]
        efficiency = (metrics[0].get("system_efficiency") or 0) if metrics else 0
        return (avg_score / 10 + validation + efficiency) / 3

    @staticmethod
    def _agent_recommendations(data: dict[str, Any]) -> list[AgentRecommendation]:
        recommendations = [
            AgentRecommendation(
                agent_id=agent["agent_id"],
                type="enhancement",
                priority="medium",
                recommendation=(
                    f"Increase autonomy level for {agent['agent_id']} - "
                    "consistently high performance"
                ),
                expected_impact="positive",
            )
            for agent in data["top_performing_agents"]
            if (agent.get("avg_feedback_score") or 0) > 8
        ]
        recommendations.extend(
            AgentRecommendation(
                agent_id=area["agent_id"],
                type="improvement",
                priority="high",
                recommendation=(
                    f"Focus on {area['suggestion_type']} quality for {area['agent_id']} - "
                    f"low avg score: {area['avg_score']:.1f}"
                ),
                expected_impact="critical",
            )
            for area in data["underperforming_areas"]
        )
        return recommendations

    @staticmethod
    def _system_recommendations(data: dict[str, Any]) -> list[SystemRecommendation]:
        recommendations = []
        avg_score = (data["feedback_summary"] or {}).get("avg_score")
        if avg_score is not None and avg_score < 6:
            recommendations.append(SystemRecommendation(
                type="performance",
                priority="high",
                recommendation=(
                    "Overall system performance below threshold - "
                    "consider retraining or goal adjustment"
                ),
                expected_impact="critical",
            ))
        avg_confidence = (data["alpha_stats"] or {}).get("avg_confidence")
        if avg_confidence is not None and avg_confidence < 0.6:
            recommendations.append(SystemRecommendation(
                type="confidence",
                priority="medium",
                recommendation="Alpha discovery confidence low - improve market analysis",
                expected_impact="moderate",
            ))
        return recommendations

    @staticmethod
    def _emergent_insights(data: dict[str, Any]) -> list[EmergentInsight]:
        frequency = Counter(s["suggestion_type"] for s in data["suggestions"])
        if not frequency:
            return []
        dominant, count = frequency.most_common(1)[0]
        return [EmergentInsight(
            type="behavioral_pattern",
            description=f"Dominant suggestion type: {dominant} ({count} occurrences)",
        )]

    @staticmethod
    def _action_priorities(data: dict[str, Any]) -> list[ActionPriority]:
        priorities = []
        summary = data["feedback_summary"] or {}
        if (summary.get("low_score_count") or 0) > (summary.get("high_score_count") or 0):
            priorities.append(ActionPriority(
                action="Improve suggestion quality across all agents",
                priority=1,
                urgency="high",
                expected_impact="high",
                timeframe="24 hours",
            ))
        alpha = data["alpha_stats"] or {}
        total = alpha.get("total_discoveries") or 0
        if total and (alpha.get("validated_count") or 0) / total < 0.5:
            priorities.append(ActionPriority(
                action="Enhance alpha validation mechanisms",
                priority=2,
                urgency="medium",
                expected_impact="medium",
                timeframe="48 hours",
            ))
        return priorities

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        if self._bus:
            await self._bus.emit(topic, {"session_id": self.session_id, **data}, source="bench")
