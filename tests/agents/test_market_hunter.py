"""Tests for the market hunter agent."""

from datetime import datetime, timedelta, timezone

import pytest

from cryptoagency.agents.market_hunter import (
    DOMAINS,
    AlphaDiscovery,
    MarketHunterAgent,
    context_relevance,
    hunting_context,
    rank_discoveries,
    trading_session,
)
from cryptoagency.agents.models import AgentDecision, DecisionType, utcnow
from cryptoagency.agents.signals import (
    ArbitrageOpportunity,
    HuntingEnvironment,
    InfluencerSignal,
    MacroSignal,
    SignalFeed,
    WhaleMovement,
)
from cryptoagency.events.bus import EventBus
from cryptoagency.types import Urgency, make_rng

# Sweep every enabled domain regardless of volatility
FULL_SWEEP = {"high": 8, "medium": 8, "low": 8}

ASIAN_MORNING = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)


class FixedFeed(SignalFeed):
    """Feed with one known observation per interesting domain."""

    def __init__(self, volatility=0.5, data_quality=0.8, broken=()):
        super().__init__(make_rng(0))
        self.volatility = volatility
        self.data_quality = data_quality
        self.broken = set(broken)

    def environment(self):
        return HuntingEnvironment(regime="crab", volatility=self.volatility, volume=0.5,
                                  competitor_activity=0.5, data_quality=self.data_quality)

    def whale_movements(self):
        if "whale" in self.broken:
            raise RuntimeError("node unreachable")
        return [WhaleMovement(asset="BTC", amount_usd=5e7, direction="inflow",
                              confidence=0.9, market_impact=0.9)]

    def narrative_signals(self):
        return []

    def arbitrage_opportunities(self):
        return [
            ArbitrageOpportunity(asset="ETH", buy_venue="kraken", sell_venue="okx",
                                 spread=0.004, liquidity_score=0.9),
            ArbitrageOpportunity(asset="SOL", buy_venue="binance", sell_venue="bybit",
                                 spread=0.095, liquidity_score=0.8),
        ]

    def influencer_signals(self):
        return [InfluencerSignal(influencer="@macrobull", asset="BTC", stance="bullish",
                                 historical_accuracy=0.9, followup_potential=0.2)]

    def technical_breakouts(self):
        return []

    def institutional_flows(self):
        return []

    def derivatives_signals(self):
        return []

    def macro_signals(self):
        return [MacroSignal(event="CPI print", direction="risk_on", confidence=0.7)]


def _discovery(alpha, urgency=Urgency.MEDIUM):
    now = utcnow()
    return AlphaDiscovery(type="t", description=f"{alpha}", alpha_value=alpha, confidence=0.5,
                          urgency=urgency, source="s", expiration_time=now + timedelta(hours=1),
                          actionable_insight="")


def test_rank_discoveries():
    low = _discovery(0.70)
    urgent = _discovery(0.86, Urgency.HIGH)
    strong = _discovery(0.90, Urgency.LOW)

    assert rank_discoveries([low, strong, urgent]) == [urgent, strong, low]


@pytest.mark.asyncio
async def test_hunt_filters_ranks_and_counts():
    bus = EventBus()
    hunter = MarketHunterAgent(feed=FixedFeed(), event_bus=bus, sweep_sizes=FULL_SWEEP)

    found = await hunter.autonomous_hunt()

    assert [d.type for d in found] == ["arbitrage", "whale_movement", "macro_signal"]
    assert found[0].alpha_value == pytest.approx(0.95)
    assert found[1].urgency == Urgency.HIGH
    assert hunter.discoveries == found
    assert hunter.domain_stats["whale"].discoveries == 1
    # below-threshold influencer still counts as a domain hit
    assert hunter.domain_stats["influencer"].last_count == 1
    assert hunter.domain_stats["narrative"].hunts == 1
    assert hunter.domain_stats["narrative"].last_count == 0
    assert bus.history("hunter.*")[0].data["discoveries"] == 3


@pytest.mark.asyncio
async def test_failing_domain_contributes_nothing():
    hunter = MarketHunterAgent(feed=FixedFeed(broken={"whale"}), sweep_sizes=FULL_SWEEP)
    found = await hunter.autonomous_hunt()

    assert "whale_movement" not in [d.type for d in found]
    assert len(found) == 2
    assert hunter.domain_stats["whale"].last_count == 0


@pytest.mark.asyncio
async def test_disabled_domains_are_skipped():
    hunter = MarketHunterAgent(feed=FixedFeed(), disabled_domains={"arbitrage"},
                               sweep_sizes=FULL_SWEEP)
    assert "arbitrage" not in hunter.available_domains()

    found = await hunter.autonomous_hunt()
    assert [d.type for d in found] == ["whale_movement", "macro_signal"]
    assert hunter.domain_stats["arbitrage"].hunts == 0

    hunter.enable_domain("arbitrage")
    assert hunter.available_domains() == DOMAINS


def test_disable_unknown_domain():
    with pytest.raises(ValueError):
        MarketHunterAgent(feed=FixedFeed()).disable_domain("astrology")


@pytest.mark.asyncio
async def test_history_is_bounded():
    hunter = MarketHunterAgent(feed=FixedFeed(), history_limit=4, sweep_sizes=FULL_SWEEP)
    await hunter.autonomous_hunt()
    await hunter.autonomous_hunt()
    assert len(hunter.discoveries) == 4


def test_optimal_threshold():
    calm = HuntingEnvironment(regime="crab", volatility=0.5, volume=0.5,
                              competitor_activity=0.5, data_quality=0.8)
    wild = calm.model_copy(update={"volatility": 5.0})

    assert MarketHunterAgent.optimal_threshold(calm) == pytest.approx(0.7)
    assert MarketHunterAgent.optimal_threshold(wild) == 0.95


def test_threshold_deadband():
    hunter = MarketHunterAgent(feed=FixedFeed())
    small = HuntingEnvironment(regime="crab", volatility=0.9, volume=0.5,
                               competitor_activity=0.5, data_quality=0.8)
    large = small.model_copy(update={"volatility": 1.0, "data_quality": 0.6})

    assert not hunter.adaptive_threshold_adjustment(small)
    assert hunter.current_threshold == 0.7
    assert hunter.adaptive_threshold_adjustment(large)
    assert hunter.current_threshold == pytest.approx(0.76)


@pytest.mark.asyncio
async def test_hunt_adjusts_threshold_after_filtering():
    feed = FixedFeed(volatility=1.0, data_quality=0.6)
    hunter = MarketHunterAgent(feed=feed, sweep_sizes=FULL_SWEEP)
    found = await hunter.autonomous_hunt()

    assert len(found) == 3
    assert hunter.current_threshold == pytest.approx(0.76)


@pytest.mark.asyncio
@pytest.mark.parametrize("regime,threshold,strategy", [
    ("euphoria", 0.8, "contrarian"),
    ("despair", 0.85, "contrarian"),
    ("bull", 0.72, "momentum"),
    ("bear", 0.75, "defensive"),
    ("crab", 0.7, "balanced"),
    ("accumulation", 0.68, "balanced"),
])
async def test_adapt_to_market_regime(regime, threshold, strategy):
    hunter = MarketHunterAgent(feed=FixedFeed())
    assert await hunter.adapt_to_market_regime(regime) == threshold
    assert hunter.strategy == strategy


@pytest.mark.asyncio
async def test_validation_drives_competitive_rank():
    hunter = MarketHunterAgent(feed=FixedFeed(), sweep_sizes=FULL_SWEEP)
    await hunter.autonomous_hunt()

    assert hunter.competitive_analysis().our_rank == 3
    assert hunter.competitive_analysis().threat_level == "high"

    hunter.validate_discovery(0, 0.9)
    hunter.validate_discovery(1, 0.8)
    rejected = hunter.validate_discovery(2, 0.2)

    assert rejected.validated is False
    assert hunter.validated_share() == pytest.approx(2 / 3)
    assert hunter.competitive_analysis().our_rank == 1


@pytest.mark.asyncio
async def test_idle_domains_and_competition_produce_hunter_options():
    feed = FixedFeed(volatility=1.0, data_quality=0.6)
    hunter = MarketHunterAgent(feed=feed, sweep_sizes=FULL_SWEEP)
    await hunter.autonomous_hunt()
    hunter.current_threshold = 0.7

    options = hunter.generate_options(
        hunter.assess_state(), hunter.evaluate_goals(), await hunter.analyze_environment(),
    )
    by_type = {o.type: o for o in options}

    idle = by_type[DecisionType.HUNTING_STRATEGY_UPDATE].metadata["idle_domains"]
    assert set(idle) == {"narrative", "technical", "institutional", "derivatives"}
    assert by_type[DecisionType.THRESHOLD_ADJUSTMENT].metadata["threshold"] == pytest.approx(0.76)
    assert DecisionType.COMPETITIVE_PIVOT in by_type


@pytest.mark.asyncio
async def test_execute_hunter_decisions():
    hunter = MarketHunterAgent(feed=FixedFeed(), sweep_sizes=FULL_SWEEP)
    await hunter.autonomous_hunt()

    rotate = AgentDecision(agent_id=hunter.agent_id, type=DecisionType.HUNTING_STRATEGY_UPDATE,
                           description="rotate", metadata={"idle_domains": ["narrative"]})
    result = await hunter.execute_specific_decision(rotate)
    assert result.success
    assert hunter.strategy == "rotating"
    assert hunter.domain_stats["narrative"].resting == 3
    assert "narrative" not in hunter.available_domains()

    adjust = AgentDecision(agent_id=hunter.agent_id, type=DecisionType.THRESHOLD_ADJUSTMENT,
                           description="adjust", metadata={"threshold": 0.99})
    await hunter.execute_specific_decision(adjust)
    assert hunter.current_threshold == 0.95

    pivot = AgentDecision(agent_id=hunter.agent_id, type=DecisionType.COMPETITIVE_PIVOT,
                          description="pivot")
    result = await hunter.execute_specific_decision(pivot)
    assert result.outcome == {"score": 0.9, "strategy": "stealth"}


@pytest.mark.asyncio
async def test_decision_cycle_with_simulated_feed():
    hunter = MarketHunterAgent(rng=make_rng(42))
    await hunter.autonomous_hunt()
    decisions = await hunter.autonomous_decision_cycle()

    assert hunter.decision_history == decisions
    assert all(d.agent_id == "market-hunter" for d in decisions)


@pytest.mark.asyncio
async def test_history_limit_zero_keeps_nothing():
    hunter = MarketHunterAgent(feed=FixedFeed(), history_limit=0, sweep_sizes=FULL_SWEEP)
    found = await hunter.autonomous_hunt()

    assert found
    assert hunter.discoveries == []


# ── Ground selection ─────────────────────────────────────────────


def _environment(volatility=0.5, volume=0.5, regime="crab"):
    return HuntingEnvironment(regime=regime, volatility=volatility, volume=volume,
                              competitor_activity=0.5, data_quality=0.8)


@pytest.mark.parametrize("hour,session", [
    (0, "asian"), (6, "asian"), (7, "european"), (12, "european"),
    (13, "overlap"), (15, "overlap"), (16, "american"), (23, "american"),
])
def test_trading_session(hour, session):
    assert trading_session(hour) == session


def test_hunting_context():
    context = hunting_context(_environment(0.9, 0.8, "euphoria"), ASIAN_MORNING)
    assert context.model_dump() == {
        "volatility": "high", "trend": "bullish", "volume": "high", "session": "asian",
    }
    quiet = hunting_context(_environment(0.1, 0.1, "despair"), ASIAN_MORNING)
    assert (quiet.volatility, quiet.trend, quiet.volume) == ("low", "bearish", "low")


def test_context_relevance():
    wild = hunting_context(_environment(0.9, 0.8, "bull"), ASIAN_MORNING)
    assert context_relevance("whale", wild) == pytest.approx(1.0)
    assert context_relevance("derivatives", wild) == pytest.approx(1.0)
    assert context_relevance("macro", wild) == pytest.approx(0.7)

    calm = hunting_context(_environment(0.2), ASIAN_MORNING)
    assert context_relevance("macro", calm) == pytest.approx(1.0)
    assert context_relevance("influencer", calm) == pytest.approx(0.5)


def test_fresh_grounds_ranked_by_context():
    hunter = MarketHunterAgent(feed=FixedFeed(), exploration_rate=0.0)
    context = hunting_context(_environment(0.2), ASIAN_MORNING)

    # untried domains score 0.5 on history and full recency
    assert hunter.source_score("macro", context, ASIAN_MORNING) == pytest.approx(0.9)
    assert hunter.source_score("whale", context, ASIAN_MORNING) == pytest.approx(0.78)
    assert hunter.select_hunting_grounds(_environment(0.2), ASIAN_MORNING) == [
        "macro", "whale", "narrative",
    ]


@pytest.mark.parametrize("volatility,count", [(0.9, 6), (0.5, 4), (0.2, 3)])
def test_sweep_size_follows_volatility(volatility, count):
    hunter = MarketHunterAgent(feed=FixedFeed())
    grounds = hunter.select_hunting_grounds(_environment(volatility), ASIAN_MORNING)

    assert len(grounds) == count
    assert len(set(grounds)) == count


def test_sweep_size_bounded_by_available_domains():
    hunter = MarketHunterAgent(feed=FixedFeed(), disabled_domains=set(DOMAINS[2:]))
    assert sorted(hunter.select_hunting_grounds(_environment(0.9))) == ["narrative", "whale"]


@pytest.mark.asyncio
async def test_productive_grounds_outscore_idle_ones():
    hunter = MarketHunterAgent(feed=FixedFeed(), sweep_sizes=FULL_SWEEP, exploration_rate=0.0)
    await hunter.autonomous_hunt()
    later = utcnow() + timedelta(hours=24)
    context = hunting_context(_environment(0.2), later)

    whale = hunter.domain_stats["whale"]
    assert whale.success_rate == 1.0
    assert whale.signal_quality == pytest.approx(0.9)
    assert hunter.domain_stats["narrative"].success_rate == 0.0
    assert hunter.domain_stats["narrative"].idle_streak == 1
    assert (hunter.source_score("whale", context, later)
            > hunter.source_score("narrative", context, later))


@pytest.mark.asyncio
async def test_hunt_sweeps_only_selected_grounds():
    bus = EventBus()
    hunter = MarketHunterAgent(feed=FixedFeed(volatility=0.2), event_bus=bus)
    await hunter.autonomous_hunt()

    assert len(hunter.last_grounds) == 3
    hunted = {d for d, s in hunter.domain_stats.items() if s.hunts}
    assert hunted == set(hunter.last_grounds)
    assert bus.history("hunter.*")[0].data["grounds"] == hunter.last_grounds


@pytest.mark.asyncio
async def test_rotation_rests_idle_grounds():
    hunter = MarketHunterAgent(feed=FixedFeed(), sweep_sizes=FULL_SWEEP)
    await hunter.autonomous_hunt()
    options = hunter.generate_options(
        hunter.assess_state(), hunter.evaluate_goals(), await hunter.analyze_environment(),
    )
    (rotation,) = [o for o in options if o.type == DecisionType.HUNTING_STRATEGY_UPDATE]
    idle = rotation.metadata["idle_domains"]
    assert "narrative" in idle

    decision = AgentDecision(agent_id=hunter.agent_id, type=rotation.type,
                             description=rotation.description, metadata=rotation.metadata)
    await hunter.execute_specific_decision(decision)

    for _ in range(3):
        await hunter.autonomous_hunt()
        assert not set(idle) & set(hunter.last_grounds)
        assert hunter.domain_stats["narrative"].hunts == 1

    await hunter.autonomous_hunt()
    assert set(idle) <= set(hunter.last_grounds)
    assert hunter.domain_stats["narrative"].hunts == 2
