"""Reputation model: smoothed, decaying 0-100 metrics with trend detection."""

from __future__ import annotations

from pydantic import BaseModel

SMOOTHING_WEIGHT = 0.7  # weight kept by the current value
DECAY_RATE = 0.95
TREND_MARGIN = 5.0

SCORE_WEIGHTS: dict[str, float] = {
    "accuracy": 0.25,
    "consistency": 0.15,
    "responsiveness": 0.10,
    "influence": 0.20,
    "trustworthiness": 0.20,
    "expertise": 0.10,
}


class ReputationMetrics(BaseModel):
    accuracy: float = 50.0
    consistency: float = 50.0
    responsiveness: float = 50.0
    influence: float = 50.0
    trustworthiness: float = 50.0
    expertise: float = 50.0

    def score(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in SCORE_WEIGHTS.items())


class ReputationModel:
    """Tracks an agent's standing.

    Every update blends supplied observations into the current metrics
    and then decays *all* metrics, so an agent that stops producing good
    results slowly loses reputation.
    """

    def __init__(self) -> None:
        self._metrics = ReputationMetrics()
        self._history: list[ReputationMetrics] = []

    def update(self, **observations: float) -> None:
        unknown = set(observations) - set(SCORE_WEIGHTS)
        if unknown:
            raise ValueError(f"Unknown reputation metrics: {sorted(unknown)}")

        self._history.append(self._metrics.model_copy())

        values = self._metrics.model_dump()
        for name, observed in observations.items():
            values[name] = values[name] * SMOOTHING_WEIGHT + observed * (1 - SMOOTHING_WEIGHT)
        for name in values:
            values[name] *= DECAY_RATE
        self._metrics = ReputationMetrics(**values)

    def current(self) -> ReputationMetrics:
        return self._metrics.model_copy()

    def history(self) -> list[ReputationMetrics]:
        return [m.model_copy() for m in self._history]

    def overall_score(self) -> float:
        return self._metrics.score()

    def assess_trend(self) -> str:
        """'improving', 'declining' or 'stable' against recent history."""
        if len(self._history) < 3:
            return "stable"

        recent = [m.score() for m in self._history[-3:]]
        weighted = (recent[0] * 1 + recent[1] * 2 + recent[2] * 3) / 6
        current = self.overall_score()

        if current > weighted + TREND_MARGIN:
            return "improving"
        if current < weighted - TREND_MARGIN:
            return "declining"
        return "stable"
