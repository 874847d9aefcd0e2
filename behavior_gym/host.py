"""SimulatorHost — owns the clock and world state and drives a scenario."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from behavior_gym.physics import BallKinematics, GoalDetector
from behavior_gym.trace import RunTrace, TraceLogger
from behavior_gym.types import (
    InvalidAgentNumberError,
    InvocationError,
    Pose,
    ReentrantCallbackError,
    Robot,
    ScenarioError,
    SetupError,
    SimulationConfig,
    WorldState,
)

if TYPE_CHECKING:
    from behavior_gym.scenarios.runtime import Scenario

logger = logging.getLogger(__name__)

# Domain events the host can raise, dispatched as ``on_<name>``.
DOMAIN_EVENTS: tuple[str, ...] = ("goal",)


class RunResult(BaseModel):
    """Outcome of ``SimulatorHost.run``."""

    scenario: str
    cycles: int
    finished: bool
    truncated: bool = False
    failed: bool = False
    failed_stage: str | None = None
    error: str | None = None
    goals: int = 0


class SimulatorHost:
    """Deterministic single-threaded host for one scenario run.

    Owns the ``WorldState`` and advances it one tick at a time: clock,
    ball kinematics, domain events, then the scenario's ``on_cycle``.
    Callbacks are strictly serialized; re-entering the host from inside a
    callback raises ``ReentrantCallbackError``.
    """

    def __init__(self, config: SimulationConfig | None = None) -> None:
        self.config = config or SimulationConfig()
        self.state = WorldState()
        self.trace = TraceLogger()
        self._kinematics = BallKinematics(self.config)
        self._goal_detector = GoalDetector(self.config)
        self._scenario: Scenario | None = None
        self._active_callback: str | None = None
        self._setup_complete = False
        self._goals = 0

    @property
    def scenario(self) -> Scenario | None:
        return self._scenario

    @property
    def active_callback(self) -> str | None:
        """Name of the callback currently running, if any."""
        return self._active_callback

    # ------------------------------------------------------------------
    # Operations granted to scenarios
    # ------------------------------------------------------------------

    def spawn(self, number: int) -> int:
        """Create a robot with the default pose for its agent number.

        The robot id is the agent number. Spawning is only possible before
        the first tick.

        Raises:
            InvalidAgentNumberError: Number out of range or already spawned.
            InvocationError: Called after setup completed.
        """
        if self._setup_complete:
            msg = f"Cannot spawn robot {number} after setup has completed"
            raise InvocationError(msg)
        if not 1 <= number <= self.config.max_agent_number:
            raise InvalidAgentNumberError(
                number, f"agent numbers range from 1 to {self.config.max_agent_number}"
            )
        if any(robot.id == number for robot in self.state.robots):
            raise InvalidAgentNumberError(number, "already spawned")

        robot = Robot(id=number, number=number, pose=self._default_pose(number))
        self.state.robots.append(robot)
        self.trace.log(
            self.state.cycle_count, "spawn", self._source(),
            robot_id=robot.id, position=robot.pose.position,
        )
        logger.debug("Spawned robot %d at %s", robot.id, robot.pose.position)
        return robot.id

    def force_pose(
        self,
        robot_id: int,
        position: tuple[float, float],
        orientation: float,
    ) -> None:
        """Teleport a spawned robot.

        Raises:
            UnknownRobotError: If ``robot_id`` was never spawned.
        """
        robot = self.state.robot(robot_id)
        robot.pose = Pose(position=position, orientation=orientation)
        self.trace.log(
            self.state.cycle_count, "force_pose", self._source(),
            robot_id=robot_id, position=robot.pose.position, orientation=orientation,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, scenario: Scenario) -> None:
        """Bind ``scenario`` and run its setup.

        Raises:
            SetupError: If setup violated any host precondition.
        """
        if self._scenario is not None:
            msg = f"Host already runs scenario '{self._scenario.name}'"
            raise InvocationError(msg)
        self._scenario = scenario
        scenario.bind(self)
        logger.info("Loading scenario '%s'", scenario.name)

        try:
            with self._callback("setup"):
                scenario.setup()
        except SetupError:
            raise
        except (ScenarioError, ValidationError) as exc:
            msg = f"Setup of scenario '{scenario.name}' failed: {exc}"
            raise SetupError(msg) from exc
        self._setup_complete = True

    def tick(self) -> list[str]:
        """Advance the simulation by one cycle.

        Returns:
            Names of the domain events fired during this cycle.
        """
        if self._active_callback is not None:
            raise ReentrantCallbackError("tick", self._active_callback)
        if self._scenario is None or not self._setup_complete:
            raise InvocationError("Cannot tick before a scenario has been loaded")
        if self.state.finished:
            raise InvocationError("Cannot tick a finished run")

        self.state.cycle_count += 1
        cycle = self.state.cycle_count

        before = self.state.ball
        self.state.ball = self._kinematics.step(before)

        events: list[str] = []
        side = self._goal_detector.crossed(before, self.state.ball)
        if side is not None:
            self._goals += 1
            self.trace.log(cycle, "event", "host", event="goal", side=side)
            logger.info("Goal in the %s goal at cycle %d", side, cycle)
            events.append("goal")

        for event in events:
            with self._callback(f"on_{event}"):
                self._scenario.handle_event(event)

        with self._callback("on_cycle"):
            self._scenario.on_cycle()

        if self.state.finished:
            logger.info("Scenario '%s' finished at cycle %d", self._scenario.name, cycle)
        return events

    def run(self, scenario: Scenario) -> RunResult:
        """Load ``scenario`` and tick until it finishes or the cycle limit hits.

        Scenario errors end the run immediately and are reported in the
        result; there is no rollback of state already mutated.
        """
        try:
            self.load(scenario)
        except SetupError as exc:
            logger.error("Run aborted during setup: %s", exc)
            return self._result(scenario, failed_stage="setup", error=str(exc))

        truncated = False
        while not self.state.finished:
            if self.state.cycle_count >= self.config.max_cycles:
                truncated = True
                logger.warning(
                    "Scenario '%s' hit the cycle limit (%d)",
                    scenario.name, self.config.max_cycles,
                )
                break
            try:
                self.tick()
            except (ScenarioError, ValidationError) as exc:
                logger.error(
                    "Run aborted at cycle %d: %s", self.state.cycle_count, exc
                )
                return self._result(scenario, failed_stage="cycle", error=str(exc))

        return self._result(scenario, truncated=truncated)

    def run_trace(self) -> RunTrace:
        """Snapshot of everything traced so far."""
        name = self._scenario.name if self._scenario is not None else ""
        return RunTrace(scenario_name=name, entries=self.trace.entries)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _callback(self, name: str) -> Iterator[None]:
        """Run one scenario callback, recording what it changed."""
        if self._active_callback is not None:
            raise ReentrantCallbackError(name, self._active_callback)
        before = self._observable()
        self._active_callback = name
        try:
            yield
        finally:
            self._active_callback = None
        self._record_changes(name, before)

    def _observable(self) -> dict[str, Any]:
        return {
            "game_state": self.state.game_controller_state.game_state,
            "ball": self.state.ball,
            "finished": self.state.finished,
        }

    def _record_changes(self, source: str, before: dict[str, Any]) -> None:
        cycle = self.state.cycle_count
        after = self._observable()

        if after["game_state"] != before["game_state"]:
            self.trace.log(
                cycle, "game_state", source,
                **{"from": before["game_state"].value, "to": after["game_state"].value},
            )
            logger.info("Cycle %d: game state -> %s", cycle, after["game_state"].value)

        if after["ball"] is not before["ball"]:
            ball = after["ball"]
            if ball is None:
                self.trace.log(cycle, "ball", source, action="clear")
            else:
                self.trace.log(
                    cycle, "ball", source,
                    action="set", position=ball.position, velocity=ball.velocity,
                )

        if after["finished"] and not before["finished"]:
            self.trace.log(cycle, "finish", source)

    def _source(self) -> str:
        return self._active_callback or "host"

    def _default_pose(self, number: int) -> Pose:
        # Own half touchline, facing into the field
        x = -self.config.field_half_length + 0.5 * number
        return Pose(position=(x, self.config.field_half_width), orientation=-math.pi / 2)

    def _result(self, scenario: Scenario, **kwargs: Any) -> RunResult:
        failed_stage = kwargs.get("failed_stage")
        return RunResult(
            scenario=scenario.name,
            cycles=self.state.cycle_count,
            finished=self.state.finished,
            failed=failed_stage is not None,
            goals=self._goals,
            **kwargs,
        )
