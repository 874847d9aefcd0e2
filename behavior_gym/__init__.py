"""behavior-gym — scripted robot soccer scenarios over a discrete-time simulator host."""

from behavior_gym.env import ScenarioEnv, make_env
from behavior_gym.host import RunResult, SimulatorHost
from behavior_gym.scenarios import DeclarativeScenario, Scenario, ScriptedScenario
from behavior_gym.types import (
    Ball,
    GameState,
    InvocationError,
    ScenarioError,
    SetupError,
    SimulationConfig,
    WorldState,
)

__all__ = [
    "Ball",
    "DeclarativeScenario",
    "GameState",
    "InvocationError",
    "RunResult",
    "Scenario",
    "ScenarioEnv",
    "ScenarioError",
    "ScriptedScenario",
    "SetupError",
    "SimulationConfig",
    "SimulatorHost",
    "WorldState",
    "make_env",
]

__version__ = "0.1.0"
