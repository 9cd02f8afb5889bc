"""Core types shared across all cryptoagency subsystems."""

from __future__ import annotations

import random
import uuid
from enum import Enum
from typing import TypeAlias

# ── ID Types ──────────────────────────────────────────────────────────────────

AgentId: TypeAlias = str
GoalId: TypeAlias = str
DecisionId: TypeAlias = str


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def make_rng(seed: int | None = None) -> random.Random:
    """Build the random source agents and feeds draw from."""
    return random.Random(seed)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ── Shared Levels ─────────────────────────────────────────────────────────────


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


URGENCY_WEIGHT: dict[Urgency, int] = {
    Urgency.HIGH: 3,
    Urgency.MEDIUM: 2,
    Urgency.LOW: 1,
}
