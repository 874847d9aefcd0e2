"""Scenario runtime — the callback contract a scenario implements for the host.

A scenario is loaded once (``setup``), then called once per tick
(``on_cycle``) and whenever the host detects a domain event such as a goal.
All communication with the host goes through the shared ``WorldState`` and
the host operations ``spawn`` and ``force_pose``.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from behavior_gym.types import Ball, GameState, InvocationError, WorldState

if TYPE_CHECKING:
    from behavior_gym.host import SimulatorHost

logger = logging.getLogger(__name__)

Action = Callable[[], None]


class Schedule:
    """Sorted table of actions keyed on the exact tick they fire at.

    Each entry fires at most once. Entries whose tick has already passed
    when the table is consulted are dropped without firing.
    """

    def __init__(self) -> None:
        self._ticks: list[int] = []
        self._actions: dict[int, list[Action]] = {}

    def at(self, tick: int, action: Action) -> None:
        """Schedule ``action`` for exactly ``tick``."""
        if tick < 0:
            msg = f"Cannot schedule an action at negative tick {tick}"
            raise InvocationError(msg)
        if tick not in self._actions:
            bisect.insort(self._ticks, tick)
            self._actions[tick] = []
        self._actions[tick].append(action)

    def due(self, cycle: int) -> list[Action]:
        """Remove and return the actions keyed exactly on ``cycle``.

        Earlier ticks still in the table were missed by the clock; they are
        discarded, not applied late.
        """
        missed = bisect.bisect_left(self._ticks, cycle)
        for tick in self._ticks[:missed]:
            logger.debug(
                "Dropping %d action(s) scheduled for cycle %d (clock at %d)",
                len(self._actions[tick]), tick, cycle,
            )
            del self._actions[tick]
        del self._ticks[:missed]

        if self._ticks and self._ticks[0] == cycle:
            self._ticks.pop(0)
            return self._actions.pop(cycle)
        return []

    def cancel(self, tick: int, action: Action) -> bool:
        """Remove one pending ``action`` at ``tick``. Returns False if absent."""
        actions = self._actions.get(tick)
        if not actions or action not in actions:
            return False
        actions.remove(action)
        if not actions:
            del self._actions[tick]
            self._ticks.remove(tick)
        return True

    def pending(self) -> list[int]:
        """Ticks that still have actions waiting, in ascending order."""
        return list(self._ticks)

    def clear(self) -> None:
        self._ticks.clear()
        self._actions.clear()

    def __len__(self) -> int:
        return sum(len(actions) for actions in self._actions.values())


class Scenario:
    """Base class for scenario scripts.

    Subclasses override ``setup`` and ``on_cycle`` and either define
    ``on_<event>`` methods or register handlers with ``on()``.
    """

    name: str = "scenario"

    def __init__(self) -> None:
        self._host: SimulatorHost | None = None
        self._handlers: dict[str, list[Action]] = {}

    def bind(self, host: SimulatorHost) -> None:
        """Attach the scenario to the host that will drive it."""
        self._host = host

    @property
    def host(self) -> SimulatorHost:
        if self._host is None:
            msg = f"Scenario '{self.name}' is not bound to a host"
            raise InvocationError(msg)
        return self._host

    @property
    def state(self) -> WorldState:
        """The host's shared world state."""
        return self.host.state

    # -- callbacks -----------------------------------------------------------

    def setup(self) -> None:
        """Runs once before the first tick."""

    def on_cycle(self) -> None:
        """Runs once per tick, after physics and event callbacks."""

    def on(self, event: str, handler: Action) -> None:
        """Register a handler for a named domain event."""
        self._handlers.setdefault(event, []).append(handler)

    def handle_event(self, event: str) -> bool:
        """Dispatch a domain event. Returns False if nothing handled it."""
        handlers = list(self._handlers.get(event, []))
        method = getattr(self, f"on_{event}", None)
        if event != "cycle" and callable(method):
            handlers.append(method)
        for handler in handlers:
            handler()
        return bool(handlers)

    # -- host operations -----------------------------------------------------

    def spawn(self, number: int) -> int:
        return self.host.spawn(number)

    def force_pose(
        self,
        robot_id: int,
        position: tuple[float, float],
        orientation: float,
    ) -> None:
        self.host.force_pose(robot_id, position, orientation)


class ScriptedScenario(Scenario):
    """Scenario whose actions are keyed on exact ``cycle_count`` values.

    Scripts fill ``self.schedule`` with ``at()`` (absolute tick) and
    ``after()`` (relative to the current tick); ``on_cycle`` fires whatever
    is due for the current count.
    """

    def __init__(self) -> None:
        super().__init__()
        self.schedule = Schedule()

    def at(self, tick: int, action: Action) -> None:
        self.schedule.at(tick, action)

    def after(self, ticks: int, action: Action) -> int:
        """Schedule ``action`` ``ticks`` cycles from now. Returns the target tick."""
        target = self.state.cycle_count + ticks
        self.schedule.at(target, action)
        return target

    def on_cycle(self) -> None:
        for action in self.schedule.due(self.state.cycle_count):
            action()

    # -- state mutations usable as scheduled actions -------------------------

    def set_game_state(self, game_state: GameState | str) -> None:
        self.state.game_controller_state.game_state = game_state

    def set_ball(
        self,
        position: tuple[float, float],
        velocity: tuple[float, float] = (0.0, 0.0),
    ) -> None:
        self.state.ball = Ball(position=position, velocity=velocity)

    def clear_ball(self) -> None:
        self.state.ball = None

    def finish(self) -> None:
        self.state.finished = True
