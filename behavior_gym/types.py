"""Core type definitions for the behavior simulator: world state and errors."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class GameState(str, Enum):
    """Match phases, declared in the order they occur during a match."""

    INITIAL = "Initial"
    READY = "Ready"
    SET = "Set"
    PLAYING = "Playing"
    FINISHED = "Finished"

    @property
    def rank(self) -> int:
        """Position of this phase in the match progression."""
        return list(GameState).index(self)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ScenarioError(Exception):
    """Base class for errors that abort a scenario run."""


class SetupError(ScenarioError):
    """Raised when scenario setup cannot complete. Fatal before any cycle."""


class InvalidAgentNumberError(SetupError):
    """Raised when the host rejects an agent number passed to spawn."""

    def __init__(self, number: int, reason: str) -> None:
        self.number = number
        self.reason = reason
        super().__init__(f"Cannot spawn robot {number}: {reason}")


class InvocationError(ScenarioError):
    """Raised when a callback violates a host precondition."""


class UnknownRobotError(InvocationError):
    """Raised when an operation addresses a robot id that was never spawned."""

    def __init__(self, robot_id: int) -> None:
        self.robot_id = robot_id
        super().__init__(f"Unknown robot id: {robot_id}")


class PhaseRegressionError(InvocationError):
    """Raised when the game state is moved backward along the match phases."""

    def __init__(self, current: GameState, requested: GameState) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Game state cannot go back from {current.value} to {requested.value}"
        )


class FinishedResetError(InvocationError):
    """Raised when something tries to clear the finished flag."""

    def __init__(self) -> None:
        super().__init__("finished is one-way and cannot be reset to false")


class ReentrantCallbackError(InvocationError):
    """Raised when the host is re-entered from inside a scenario callback."""

    def __init__(self, operation: str, active: str) -> None:
        self.operation = operation
        self.active = active
        super().__init__(f"Cannot {operation} while callback '{active}' is running")


# ---------------------------------------------------------------------------
# World state
# ---------------------------------------------------------------------------


class Ball(BaseModel):
    """Ball record. Immutable: a new ball replaces the old one wholesale."""

    model_config = ConfigDict(frozen=True)

    position: tuple[float, float]
    velocity: tuple[float, float] = (0.0, 0.0)


class Pose(BaseModel):
    """Planar robot pose in field coordinates."""

    position: tuple[float, float]
    orientation: float = 0.0


class Robot(BaseModel):
    """A spawned robot. ``id`` is assigned by the host and never changes."""

    id: int
    number: int
    pose: Pose


class GameControllerState(BaseModel):
    """Subset of the game controller message the scenario can drive."""

    model_config = ConfigDict(validate_assignment=True)

    game_state: GameState = GameState.INITIAL

    def __setattr__(self, name: str, value: Any) -> None:
        # Unknown phase names fall through to pydantic's validation error
        if name == "game_state" and value in [s.value for s in GameState]:
            requested = GameState(value)
            if requested.rank < self.game_state.rank:
                raise PhaseRegressionError(self.game_state, requested)
        super().__setattr__(name, value)


_BOOL = TypeAdapter(bool)


class WorldState(BaseModel):
    """Shared mutable state owned by the host and mutated by the scenario.

    ``cycle_count`` is advanced by the host only. ``finished`` can go from
    false to true but never back.
    """

    model_config = ConfigDict(validate_assignment=True)

    cycle_count: int = Field(default=0, ge=0)
    finished: bool = False
    ball: Ball | None = None
    robots: list[Robot] = Field(default_factory=list)
    game_controller_state: GameControllerState = Field(default_factory=GameControllerState)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "finished":
            value = _BOOL.validate_python(value)
            if self.finished and not value:
                raise FinishedResetError()
        elif name == "game_controller_state":
            value = GameControllerState.model_validate(value)
            current = self.game_controller_state.game_state
            if value.game_state.rank < current.rank:
                raise PhaseRegressionError(current, value.game_state)
        elif name == "cycle_count" and value < self.cycle_count:
            msg = f"cycle_count cannot decrease ({self.cycle_count} -> {value})"
            raise ValueError(msg)
        super().__setattr__(name, value)

    def robot(self, robot_id: int) -> Robot:
        """Look up a spawned robot by id.

        Raises:
            UnknownRobotError: If no robot with that id exists.
        """
        for robot in self.robots:
            if robot.id == robot_id:
                return robot
        raise UnknownRobotError(robot_id)


class SimulationConfig(BaseModel):
    """Host configuration for a single scenario run."""

    max_cycles: int = Field(default=10000, ge=1)
    cycle_duration: float = Field(default=0.012, gt=0)
    field_half_length: float = 4.5
    field_half_width: float = 3.0
    goal_half_width: float = 0.75
    ball_deceleration: float = Field(default=0.6, ge=0)
    max_agent_number: int = 7
    seed: int = 42
