"""Kinematic ball model and goal detection used by the simulator host.

This is deliberately not a physics engine: the ball rolls in a straight
line and slows down at a constant rate. Robots do not move on their own.
"""

from __future__ import annotations

import math

from behavior_gym.types import Ball, SimulationConfig


class BallKinematics:
    """Advances the ball by one cycle."""

    def __init__(self, config: SimulationConfig) -> None:
        self._dt = config.cycle_duration
        self._deceleration = config.ball_deceleration

    def step(self, ball: Ball | None) -> Ball | None:
        if ball is None:
            return None
        vx, vy = ball.velocity
        speed = math.hypot(vx, vy)
        if speed == 0.0:
            return ball

        x, y = ball.position
        position = (x + vx * self._dt, y + vy * self._dt)
        scale = max(0.0, speed - self._deceleration * self._dt) / speed
        return Ball(position=position, velocity=(vx * scale, vy * scale))


class GoalDetector:
    """Detects the ball crossing a goal line between the posts.

    A goal is reported on the cycle the ball moves from inside the field
    across ``|x| == field_half_length``; a ball that is placed behind the
    line or keeps rolling inside the goal is not reported again.
    """

    def __init__(self, config: SimulationConfig) -> None:
        self._half_length = config.field_half_length
        self._goal_half_width = config.goal_half_width

    def crossed(self, before: Ball | None, after: Ball | None) -> str | None:
        """Return ``"left"``/``"right"`` for the goal scored in, else None."""
        if before is None or after is None:
            return None
        x_before = before.position[0]
        x_after, y_after = after.position
        if abs(x_before) > self._half_length or abs(x_after) <= self._half_length:
            return None
        if abs(y_after) >= self._goal_half_width:
            return None
        return "right" if x_after > 0 else "left"
