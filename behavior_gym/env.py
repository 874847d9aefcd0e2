"""ScenarioEnv — Gymnasium environment stepping a scenario one cycle at a time."""

from __future__ import annotations

import json
import string
from collections.abc import Callable
from typing import Any, ClassVar

import gymnasium as gym
from gymnasium import spaces
from pydantic import BaseModel, ValidationError

from behavior_gym.host import SimulatorHost
from behavior_gym.scenarios.declarative import DeclarativeScenario
from behavior_gym.scenarios.runtime import Scenario
from behavior_gym.scenarios.schema import PoseCommand, ScenarioDefinition
from behavior_gym.types import Ball, ScenarioError, SimulationConfig


class OperatorCommand(BaseModel):
    """Perturbations an agent may inject before a cycle."""

    force_pose: PoseCommand | None = None
    ball: Ball | None = None
    clear_ball: bool = False


class ScenarioEnv(gym.Env):  # type: ignore[type-arg]
    """Gymnasium environment over a SimulatorHost.

    Each ``step`` optionally applies operator commands (force a robot pose,
    place or remove the ball) and then advances the host by one cycle.

    Actions are JSON strings, e.g.
    ``{"force_pose": {"robot": 7, "position": [0, 0], "orientation": 0}}``.
    Observations are JSON strings of the world state.
    """

    metadata: ClassVar[dict[str, list[str]]] = {"render_modes": ["human", "json"]}  # type: ignore[misc]

    def __init__(
        self,
        scenario_factory: Callable[[], Scenario],
        config: SimulationConfig | None = None,
        render_mode: str | None = None,
    ) -> None:
        super().__init__()
        self.scenario_factory = scenario_factory
        self.config = config or SimulationConfig()
        self.render_mode = render_mode

        _charset = string.printable.strip() + " "
        self.action_space = spaces.Text(min_length=2, max_length=2048, charset=_charset)
        self.observation_space = spaces.Text(min_length=0, max_length=8192, charset=_charset)

        self.host: SimulatorHost | None = None

    def reset(
        self,
        *,
        seed: int | None = None,
        options: dict[str, Any] | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Start a fresh host and run the scenario's setup.

        Raises:
            SetupError: If the scenario cannot be set up.
        """
        super().reset(seed=seed)
        self.host = SimulatorHost(self.config)
        self.host.load(self.scenario_factory())
        return self._make_observation(), {"cycle": 0}

    def step(
        self, action: str
    ) -> tuple[str, float, bool, bool, dict[str, Any]]:
        """Apply operator commands from ``action`` and advance one cycle.

        Returns:
            Tuple of (observation, reward, terminated, truncated, info).
            Reward is 1.0 on the cycle the scenario finishes, else 0.0.
        """
        host = self._require_host()
        info: dict[str, Any] = {}

        try:
            command = OperatorCommand.model_validate_json(action)
        except ValidationError:
            info["parse_error"] = True
            command = OperatorCommand()

        try:
            self._apply_command(host, command)
            events = host.tick()
        except (ScenarioError, ValidationError) as exc:
            info["error"] = str(exc)
            return self._make_observation(), 0.0, True, False, info

        terminated = host.state.finished
        truncated = not terminated and host.state.cycle_count >= self.config.max_cycles
        reward = 1.0 if terminated else 0.0

        info.update({"cycle": host.state.cycle_count, "events": events})
        return self._make_observation(), reward, terminated, truncated, info

    def render(self) -> str | None:  # type: ignore[override]
        """Render the world state.

        Returns:
            JSON string if render_mode is 'json', None otherwise.
        """
        if self.host is None:
            return None
        state = self.host.state
        if self.render_mode == "human":
            ball = state.ball.position if state.ball is not None else "none"
            print(
                f"Cycle {state.cycle_count} | "
                f"State: {state.game_controller_state.game_state.value} | "
                f"Ball: {ball} | "
                f"Robots: {len(state.robots)}"
            )
            return None
        elif self.render_mode == "json":
            return self._make_observation()
        return None

    def _require_host(self) -> SimulatorHost:
        if self.host is None:
            raise RuntimeError("Call reset() before step()")
        return self.host

    @staticmethod
    def _apply_command(host: SimulatorHost, command: OperatorCommand) -> None:
        if command.force_pose is not None:
            pose = command.force_pose
            host.force_pose(pose.robot, pose.position, pose.orientation)
        cycle = host.state.cycle_count
        if command.clear_ball:
            host.state.ball = None
            host.trace.log(cycle, "ball", "operator", action="clear")
        elif command.ball is not None:
            host.state.ball = command.ball
            host.trace.log(
                cycle, "ball", "operator",
                action="set", position=command.ball.position, velocity=command.ball.velocity,
            )

    def _make_observation(self) -> str:
        host = self._require_host()
        return json.dumps(host.state.model_dump(mode="json"))


def make_env(
    definition: ScenarioDefinition,
    render_mode: str | None = None,
) -> ScenarioEnv:
    """Create a ScenarioEnv running a YAML scenario definition.

    Args:
        definition: Scenario to run; its ``simulation`` block configures the host.
        render_mode: One of 'human', 'json', or None.
    """
    return ScenarioEnv(
        scenario_factory=lambda: DeclarativeScenario(definition),
        config=definition.simulation,
        render_mode=render_mode,
    )
