"""Simulated signal feed: the only "market data" the agents ever see.

Prices follow a geometric Brownian motion per asset; every other
observation is drawn from the same seeded random source, so a feed built
with a fixed seed replays identically.
"""

from __future__ import annotations

import math
import random

from pydantic import BaseModel

from cryptoagency.types import make_rng

ASSETS = ["BTC", "ETH", "SOL"]
BASE_PRICES: dict[str, float] = {"BTC": 65_000.0, "ETH": 3_200.0, "SOL": 150.0}
GBM_DRIFT = 0.05  # annualised
GBM_SIGMA = 0.80  # annualised
STEP_SECONDS = 60.0

VENUES = ["binance", "coinbase", "kraken", "okx", "bybit"]
NARRATIVES = ["ETF inflows", "halving supply shock", "L2 scaling", "restaking", "AI agents"]
INFLUENCERS = ["@onchainwizard", "@macrobull", "@deribit_desk", "@ledgerwatch"]
PATTERNS = ["ascending triangle", "bull flag", "double bottom", "range breakout"]
INSTITUTIONS = ["spot ETF issuer", "corporate treasury", "hedge fund", "market maker"]
DERIVATIVE_SIGNALS = ["funding flip", "open interest spike", "basis widening", "skew inversion"]
MACRO_EVENTS = ["FOMC rate decision", "CPI print", "DXY breakdown", "liquidity injection"]
REGIME_LABELS = ["bull", "bear", "crab", "euphoria", "despair", "accumulation", "distribution"]


# ── Observations ─────────────────────────────────────────────────


class WhaleMovement(BaseModel):
    asset: str
    amount_usd: float
    direction: str  # inflow | outflow
    confidence: float
    market_impact: float


class NarrativeSignal(BaseModel):
    narrative: str
    strength: float
    velocity: float


class ArbitrageOpportunity(BaseModel):
    asset: str
    buy_venue: str
    sell_venue: str
    spread: float  # fraction, 0.01 == 1%
    liquidity_score: float


class InfluencerSignal(BaseModel):
    influencer: str
    asset: str
    stance: str
    historical_accuracy: float
    followup_potential: float


class TechnicalBreakout(BaseModel):
    asset: str
    pattern: str
    price: float
    reliability: float
    momentum: float


class InstitutionalFlow(BaseModel):
    institution: str
    asset: str
    flow_usd: float
    certainty: float
    market_impact: float


class DerivativesSignal(BaseModel):
    asset: str
    signal: str
    confidence: float


class MacroSignal(BaseModel):
    event: str
    direction: str  # risk_on | risk_off
    confidence: float


class HuntingEnvironment(BaseModel):
    regime: str
    volatility: float  # 0-1
    volume: float  # 0-1
    competitor_activity: float  # 0-1
    data_quality: float  # 0-1


# ── Feed ─────────────────────────────────────────────────────────


class GBMPriceWalk:
    """dS = S * (mu * dt + sigma * dW), one step per call."""

    def __init__(self, rng: random.Random, step_seconds: float = STEP_SECONDS) -> None:
        self._rng = rng
        self._prices = dict(BASE_PRICES)
        self._dt = step_seconds / (365.25 * 24 * 3600)

    def next_price(self, asset: str) -> float:
        current = self._prices.get(asset, 100.0)
        shock = GBM_SIGMA * math.sqrt(self._dt) * self._rng.gauss(0, 1)
        self._prices[asset] = current * math.exp(GBM_DRIFT * self._dt + shock)
        return self._prices[asset]

    def current_price(self, asset: str) -> float:
        return self._prices.get(asset, 100.0)


class SignalFeed:
    """Draws 0-3 observations per domain on every call."""

    def __init__(self, rng: random.Random | None = None, max_per_domain: int = 3) -> None:
        self._rng = rng or make_rng()
        self._max = max_per_domain
        self.prices = GBMPriceWalk(self._rng)

    def _count(self) -> int:
        return self._rng.randint(0, self._max)

    def _u(self, low: float = 0.0, high: float = 1.0) -> float:
        return round(self._rng.uniform(low, high), 4)

    def environment(self) -> HuntingEnvironment:
        return HuntingEnvironment(
            regime=self._rng.choice(REGIME_LABELS),
            volatility=self._u(),
            volume=self._u(),
            competitor_activity=self._u(),
            data_quality=self._u(0.6, 1.0),
        )

    def whale_movements(self) -> list[WhaleMovement]:
        return [
            WhaleMovement(
                asset=self._rng.choice(ASSETS),
                amount_usd=round(self._rng.uniform(5e6, 2.5e8), 2),
                direction=self._rng.choice(["inflow", "outflow"]),
                confidence=self._u(0.5, 1.0),
                market_impact=self._u(),
            )
            for _ in range(self._count())
        ]

    def narrative_signals(self) -> list[NarrativeSignal]:
        return [
            NarrativeSignal(
                narrative=self._rng.choice(NARRATIVES),
                strength=self._u(0.4, 1.0),
                velocity=self._u(),
            )
            for _ in range(self._count())
        ]

    def arbitrage_opportunities(self) -> list[ArbitrageOpportunity]:
        found = []
        for _ in range(self._count()):
            buy, sell = self._rng.sample(VENUES, 2)
            found.append(ArbitrageOpportunity(
                asset=self._rng.choice(ASSETS),
                buy_venue=buy,
                sell_venue=sell,
                spread=self._u(0.0, 0.02),
                liquidity_score=self._u(0.3, 1.0),
            ))
        return found

    def influencer_signals(self) -> list[InfluencerSignal]:
        return [
            InfluencerSignal(
                influencer=self._rng.choice(INFLUENCERS),
                asset=self._rng.choice(ASSETS),
                stance=self._rng.choice(["bullish", "bearish"]),
                historical_accuracy=self._u(0.3, 1.0),
                followup_potential=self._u(),
            )
            for _ in range(self._count())
        ]

    def technical_breakouts(self) -> list[TechnicalBreakout]:
        found = []
        for _ in range(self._count()):
            asset = self._rng.choice(ASSETS)
            found.append(TechnicalBreakout(
                asset=asset,
                pattern=self._rng.choice(PATTERNS),
                price=round(self.prices.next_price(asset), 2),
                reliability=self._u(0.5, 1.0),
                momentum=self._u(),
            ))
        return found

    def institutional_flows(self) -> list[InstitutionalFlow]:
        return [
            InstitutionalFlow(
                institution=self._rng.choice(INSTITUTIONS),
                asset=self._rng.choice(ASSETS),
                flow_usd=round(self._rng.uniform(1e7, 1e9), 2),
                certainty=self._u(0.5, 1.0),
                market_impact=self._u(),
            )
            for _ in range(self._count())
        ]

    def derivatives_signals(self) -> list[DerivativesSignal]:
        return [
            DerivativesSignal(
                asset=self._rng.choice(ASSETS),
                signal=self._rng.choice(DERIVATIVE_SIGNALS),
                confidence=self._u(0.5, 1.0),
            )
            for _ in range(self._count())
        ]

    def macro_signals(self) -> list[MacroSignal]:
        return [
            MacroSignal(
                event=self._rng.choice(MACRO_EVENTS),
                direction=self._rng.choice(["risk_on", "risk_off"]),
                confidence=self._u(0.5, 1.0),
            )
            for _ in range(self._count())
        ]
