"""Agent personality: bounded traits that drift with performance."""

from __future__ import annotations

from pydantic import BaseModel

from cryptoagency.types import clamp

EVOLUTION_MIN_CHANGE = 2.0
PROFILE_MIN_STRENGTH = 60.0


class PerformanceMetrics(BaseModel):
    """Performance on a 0-100 scale, fed to personality evolution."""

    success_rate: float = 50.0
    efficiency: float = 50.0
    adaptability: float = 50.0
    innovation: float = 50.0
    collaboration: float = 50.0


def _trait_factor(trait: str, perf: PerformanceMetrics) -> float:
    if trait == "analytical":
        return (perf.success_rate - 50) * 0.1
    if trait == "creative":
        return (perf.innovation - 50) * 0.1
    if trait == "social":
        return (perf.collaboration - 50) * 0.1
    if trait == "aggressive":
        return (perf.efficiency - 50) * 0.1
    if trait == "cautious":
        return (50 - perf.efficiency) * 0.1
    if trait == "adaptive":
        return (perf.adaptability - 50) * 0.1
    return (perf.success_rate - 50) * 0.05


class AgentPersonality:
    def __init__(self, traits: dict[str, float]) -> None:
        self._traits = {name: clamp(value, 0, 100) for name, value in traits.items()}
        self._evolution_history: list[dict[str, float]] = []

    def get_trait(self, name: str) -> float:
        return self._traits.get(name, 0.0)

    def all_traits(self) -> dict[str, float]:
        return dict(self._traits)

    @property
    def evolution_history(self) -> list[dict[str, float]]:
        return [dict(snapshot) for snapshot in self._evolution_history]

    @property
    def risk_tolerance(self) -> float:
        return self.get_trait("aggressive") - self.get_trait("cautious")

    def evolve(self, performance: PerformanceMetrics, environment_factor: float = 1.0) -> bool:
        """Nudge traits toward what recent performance rewards.

        Changes of EVOLUTION_MIN_CHANGE or less are ignored. Returns
        whether any trait moved.
        """
        self._evolution_history.append(dict(self._traits))

        evolved = False
        for name, current in self._traits.items():
            delta = _trait_factor(name, performance) * environment_factor
            new_value = clamp(current + delta, 0, 100)
            if abs(new_value - current) > EVOLUTION_MIN_CHANGE:
                self._traits[name] = new_value
                evolved = True
        return evolved

    def profile(self) -> str:
        strong = sorted(
            ((name, value) for name, value in self._traits.items() if value > PROFILE_MIN_STRENGTH),
            key=lambda t: t[1],
            reverse=True,
        )[:3]
        if not strong:
            return "balanced"
        return ", ".join(name for name, _ in strong)
