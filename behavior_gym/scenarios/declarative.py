"""DeclarativeScenario — runs a ScenarioDefinition loaded from YAML."""

from __future__ import annotations

import logging
from functools import partial

from behavior_gym.scenarios.runtime import ScriptedScenario
from behavior_gym.scenarios.schema import EventReaction, ScenarioDefinition, TimelineEntry

logger = logging.getLogger(__name__)


class DeclarativeScenario(ScriptedScenario):
    """Turns a definition's robots, ball, timeline and events into callbacks."""

    def __init__(self, definition: ScenarioDefinition) -> None:
        super().__init__()
        self.definition = definition
        self.name = definition.name
        self._pending_finish: dict[str, int] = {}

    def setup(self) -> None:
        for number in self.definition.robots:
            self.spawn(number)
        if self.definition.ball is not None:
            self.state.ball = self.definition.ball
        for entry in self.definition.timeline:
            self.at(entry.cycle, partial(self._apply, entry))
        for event, reaction in self.definition.events.items():
            self.on(event, partial(self._react, event, reaction))

    def _apply(self, entry: TimelineEntry) -> None:
        if entry.log:
            logger.info("%s", entry.log)
        if entry.game_state is not None:
            self.set_game_state(entry.game_state)
        for pose in entry.force_pose:
            self.force_pose(pose.robot, pose.position, pose.orientation)
        if entry.ball is not None:
            self.state.ball = entry.ball
        elif entry.clear_ball:
            self.clear_ball()
        if entry.finish:
            self.finish()

    def _react(self, event: str, reaction: EventReaction) -> None:
        if reaction.log:
            logger.info("%s", reaction.log)
        ball = self.state.ball
        if ball is not None:
            logger.info("Ball was at x: %s y: %s", ball.position[0], ball.position[1])
        if reaction.clear_ball:
            self.clear_ball()
        if reaction.finish_after is not None:
            previous = self._pending_finish.get(event)
            if previous is not None:
                self.schedule.cancel(previous, self.finish)
            target = self.after(reaction.finish_after, self.finish)
            self._pending_finish[event] = target
            logger.debug("'%s' scheduled finish at cycle %d", event, target)
