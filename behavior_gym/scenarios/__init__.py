"""Scenario system for the behavior simulator.

Provides the callback runtime scenarios implement, YAML-based scenario
definitions with a loader and validator, and a scenario that executes
such definitions.
"""

from behavior_gym.scenarios.declarative import DeclarativeScenario
from behavior_gym.scenarios.loader import load_all_scenarios, load_scenario, validate_scenario
from behavior_gym.scenarios.runtime import Schedule, Scenario, ScriptedScenario
from behavior_gym.scenarios.schema import (
    EventReaction,
    PoseCommand,
    ScenarioDefinition,
    TimelineEntry,
)

__all__ = [
    "DeclarativeScenario",
    "EventReaction",
    "PoseCommand",
    "Scenario",
    "ScenarioDefinition",
    "Schedule",
    "ScriptedScenario",
    "TimelineEntry",
    "load_all_scenarios",
    "load_scenario",
    "validate_scenario",
]
