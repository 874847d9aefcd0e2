"""Pydantic models for YAML scenario schema.

A scenario file lists the robots to spawn, an optional initial ball, a
timeline of actions keyed on exact cycle numbers, and reactions to
domain events.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from behavior_gym.types import Ball, GameState, SimulationConfig


class PoseCommand(BaseModel):
    """Teleport one robot."""

    robot: int
    position: tuple[float, float]
    orientation: float = 0.0


class TimelineEntry(BaseModel):
    """Actions that fire when ``cycle_count`` equals ``cycle``.

    Applied in field order: log, game_state, force_pose, ball/clear_ball,
    finish. Cycle 0 is setup time and cannot carry timeline actions.
    """

    cycle: int = Field(ge=1)
    log: str | None = None
    game_state: GameState | None = None
    force_pose: list[PoseCommand] = Field(default_factory=list)
    ball: Ball | None = None
    clear_ball: bool = False
    finish: bool = False


class EventReaction(BaseModel):
    """What the scenario does when a domain event fires."""

    log: str | None = None
    clear_ball: bool = False
    finish_after: int | None = Field(default=None, ge=1)


class ScenarioDefinition(BaseModel):
    """Top-level scenario definition loaded from YAML."""

    name: str
    description: str = ""
    robots: list[int] = Field(default_factory=list)
    ball: Ball | None = None
    timeline: list[TimelineEntry] = Field(default_factory=list)
    events: dict[str, EventReaction] = Field(default_factory=dict)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def last_cycle(self) -> int:
        """Highest cycle any timeline entry is keyed on (0 if none)."""
        return max((entry.cycle for entry in self.timeline), default=0)
