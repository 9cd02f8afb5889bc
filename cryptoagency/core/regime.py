"""Market regime classifier with transition history and next-regime odds."""

from __future__ import annotations

import logging
import time
from collections import Counter
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

_logger = logging.getLogger(__name__)

TRANSITION_WINDOW = 10


class RegimeType(str, Enum):
    BULL = "bull"
    BEAR = "bear"
    CRAB = "crab"
    EUPHORIA = "euphoria"
    DESPAIR = "despair"
    ACCUMULATION = "accumulation"
    DISTRIBUTION = "distribution"


class MarketConditions(BaseModel):
    volatility: Literal["low", "medium", "high", "extreme"] = "medium"
    volume: Literal["low", "medium", "high"] = "medium"
    sentiment: float = Field(default=0.0, ge=-1.0, le=1.0)
    momentum: Literal["bullish", "bearish", "neutral"] = "neutral"
    news_flow: Literal["light", "moderate", "heavy"] = "moderate"
    institutional_activity: Literal["low", "medium", "high"] = "medium"


class RegimeRecord(BaseModel):
    """A regime the market has left, and how long it lasted."""

    regime: RegimeType
    timestamp: float = Field(default_factory=time.time)
    duration_seconds: float = 0.0


def classify(conditions: MarketConditions) -> tuple[RegimeType, float]:
    """Map conditions to (regime, confidence). First matching rule wins."""
    s = conditions.sentiment
    momentum = conditions.momentum

    if s > 0.7 and momentum == "bullish" and conditions.volatility == "high":
        return RegimeType.EUPHORIA, 0.9
    if s < -0.7 and momentum == "bearish" and conditions.volume == "high":
        return RegimeType.DESPAIR, 0.9
    if s > 0.3 and momentum == "bullish":
        return RegimeType.BULL, 0.8
    if s < -0.3 and momentum == "bearish":
        return RegimeType.BEAR, 0.8
    if conditions.volatility == "low" and conditions.volume == "low" and abs(s) < 0.2:
        if s > 0:
            return RegimeType.ACCUMULATION, 0.7
        return RegimeType.DISTRIBUTION, 0.7
    return RegimeType.CRAB, 0.6


class MarketRegime:
    """Current regime as seen by one agent."""

    def __init__(self) -> None:
        self._regime = RegimeType.CRAB
        self._confidence = 0.5
        self._conditions = MarketConditions()
        self._history: list[RegimeRecord] = []
        self._regime_started = time.time()

    @property
    def current_regime(self) -> RegimeType:
        return self._regime

    @property
    def confidence(self) -> float:
        return self._confidence

    def conditions(self) -> MarketConditions:
        return self._conditions.model_copy()

    def history(self) -> list[RegimeRecord]:
        return list(self._history)

    def update_conditions(self, **changes) -> RegimeType:
        """Merge new observations, reclassify and record any transition."""
        merged = self._conditions.model_dump()
        merged.update(changes)
        self._conditions = MarketConditions(**merged)

        regime, confidence = classify(self._conditions)
        self._confidence = confidence
        if regime != self._regime:
            now = time.time()
            self._history.append(RegimeRecord(
                regime=self._regime,
                timestamp=now,
                duration_seconds=now - self._regime_started,
            ))
            _logger.info(
                "Regime change: %s -> %s (confidence %.2f)",
                self._regime.value, regime.value, confidence,
            )
            self._regime = regime
            self._regime_started = now
        return self._regime

    def predict_next(self) -> list[tuple[RegimeType, float]]:
        """Probability of each regime following the current one.

        Based on consecutive transitions in the recent history window;
        uniform when the window holds no transitions.
        """
        window = [r.regime for r in self._history[-TRANSITION_WINDOW:]]
        transitions = Counter(zip(window, window[1:]))
        total = sum(transitions.values())

        predictions = []
        for regime in RegimeType:
            if total == 0:
                probability = 1 / len(RegimeType)
            else:
                probability = transitions[(self._regime, regime)] / total
            predictions.append((regime, probability))
        predictions.sort(key=lambda p: p[1], reverse=True)
        return predictions
