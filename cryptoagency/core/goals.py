"""Goal hierarchy: primary, secondary and tactical goals with KPI scoring.

The primary goal anchors the tree and is never rewritten by an agent.
Secondary goals hang off the primary; tactical goals are spread
round-robin across the secondary goals.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cryptoagency.exceptions import GoalNotFoundError
from cryptoagency.types import GoalId, new_id

_logger = logging.getLogger(__name__)

PRIMARY_KPIS = ["reputation_score", "influence_reach", "trust_index"]
SECONDARY_KPIS = ["engagement_rate", "follower_growth", "content_quality"]
TACTICAL_KPIS = ["posting_frequency", "timing_accuracy", "risk_management"]

UNDERPERFORMING_THRESHOLD = 60.0
UNKNOWN_KPI_SCORE = 50.0

# KPI name -> path into the progress data dict
_KPI_PATHS: dict[str, tuple[str, str]] = {
    "reputation_score": ("reputation", "score"),
    "influence_reach": ("social", "reach"),
    "trust_index": ("reputation", "trust"),
    "engagement_rate": ("social", "engagement"),
    "follower_growth": ("social", "follower_growth"),
    "content_quality": ("content", "quality_score"),
    "posting_frequency": ("posting", "frequency"),
    "timing_accuracy": ("timing", "accuracy"),
    "risk_management": ("risk", "management_score"),
}


class Goal(BaseModel):
    """A single goal node."""

    id: GoalId = Field(default_factory=lambda: f"goal_{new_id()}")
    description: str
    priority: int = 5
    measurable: bool = False
    kpis: list[str] = Field(default_factory=list)
    target_value: float | None = None
    deadline: datetime | None = None
    parent_goal: GoalId | None = None
    child_goals: list[GoalId] = Field(default_factory=list)
    autonomously_modifiable: bool = True


class GoalStructure(BaseModel):
    """Seed descriptions an agent's hierarchy is built from."""

    primary: str
    secondary: list[str] = Field(default_factory=list)
    tactical: list[str] = Field(default_factory=list)


def score_kpi(kpi: str, data: dict[str, Any]) -> float:
    """Read one KPI's score (0-100) out of nested progress data."""
    path = _KPI_PATHS.get(kpi)
    if path is None:
        return UNKNOWN_KPI_SCORE
    section, key = path
    value = float((data.get(section) or {}).get(key) or 0)
    if kpi == "influence_reach":
        return min(value, 100.0)
    return value


class GoalProgress:
    """Progress snapshot for every measurable goal of a hierarchy."""

    def __init__(self, progress: dict[GoalId, float], primary_id: GoalId | None) -> None:
        self._progress = dict(progress)
        self._primary_id = primary_id

    def overall_progress(self) -> float:
        if self._primary_id is None:
            return 0.0
        return self._progress.get(self._primary_id, 0.0)

    def goal_progress(self, goal_id: GoalId) -> float:
        return self._progress.get(goal_id, 0.0)

    def underperforming_goals(self, threshold: float = UNDERPERFORMING_THRESHOLD) -> list[GoalId]:
        return [gid for gid, value in self._progress.items() if value < threshold]

    def as_dict(self) -> dict[GoalId, float]:
        return dict(self._progress)


class GoalHierarchy:
    """Tree of goals owned by one agent."""

    def __init__(self, structure: GoalStructure) -> None:
        self._goals: dict[GoalId, Goal] = {}
        self._primary_id: GoalId | None = None
        self._secondary_ids: list[GoalId] = []
        self._tactical_ids: list[GoalId] = []
        self._build(structure)

    def _build(self, structure: GoalStructure) -> None:
        self._primary_id = self.create_goal(
            description=structure.primary,
            priority=1,
            measurable=True,
            kpis=list(PRIMARY_KPIS),
            autonomously_modifiable=False,
        )

        for description in structure.secondary:
            self._secondary_ids.append(self.create_goal(
                description=description,
                priority=2,
                measurable=True,
                kpis=list(SECONDARY_KPIS),
                parent_goal=self._primary_id,
            ))

        for i, description in enumerate(structure.tactical):
            if self._secondary_ids:
                parent = self._secondary_ids[i % len(self._secondary_ids)]
            else:
                parent = self._primary_id
            self._tactical_ids.append(self.create_goal(
                description=description,
                priority=3,
                measurable=True,
                kpis=list(TACTICAL_KPIS),
                parent_goal=parent,
            ))

    def create_goal(self, **fields: Any) -> GoalId:
        """Add a goal and link it under its parent. Returns the new ID."""
        fields.pop("id", None)
        fields.pop("child_goals", None)
        goal = Goal(**fields)
        self._goals[goal.id] = goal
        if goal.parent_goal and goal.parent_goal in self._goals:
            self._goals[goal.parent_goal].child_goals.append(goal.id)
        return goal.id

    def get_goal(self, goal_id: GoalId) -> Goal | None:
        return self._goals.get(goal_id)

    def require_goal(self, goal_id: GoalId) -> Goal:
        goal = self._goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"No goal with id {goal_id}")
        return goal

    def get_primary_goal(self) -> Goal | None:
        if self._primary_id is None:
            return None
        return self._goals.get(self._primary_id)

    def get_secondary_goals(self) -> list[Goal]:
        return [self._goals[gid] for gid in self._secondary_ids]

    def get_tactical_goals(self) -> list[Goal]:
        return [self._goals[gid] for gid in self._tactical_ids]

    def all_goals(self) -> list[Goal]:
        return list(self._goals.values())

    def autonomous_goal_evolution(
        self, goal_id: GoalId, updates: dict[str, Any], reason: str,
    ) -> bool:
        """Let the owning agent rewrite a goal.

        Returns False when the goal is unknown or locked against
        autonomous modification.
        """
        goal = self._goals.get(goal_id)
        if goal is None or not goal.autonomously_modifiable:
            return False

        old_description = goal.description
        updates = {k: v for k, v in updates.items() if k != "id"}
        updated = goal.model_copy(update=updates)
        self._goals[goal_id] = updated
        _logger.info(
            "Goal %s evolved (%s): %r -> %r",
            goal_id, reason, old_description, updated.description,
        )
        return True

    def evaluate_goal_progress(self, data: dict[str, Any]) -> GoalProgress:
        """Score every measurable goal as the mean of its KPI scores."""
        progress: dict[GoalId, float] = {}
        for goal in self._goals.values():
            if not goal.measurable or not goal.kpis:
                continue
            scores = [score_kpi(kpi, data) for kpi in goal.kpis]
            progress[goal.id] = sum(scores) / len(scores)
        return GoalProgress(progress, self._primary_id)
