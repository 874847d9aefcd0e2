"""YAML scenario loader and validator.

Loads ScenarioDefinition objects from YAML files and checks them against
what the simulator host accepts before a run is attempted.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from behavior_gym.host import DOMAIN_EVENTS
from behavior_gym.scenarios.schema import ScenarioDefinition


def load_scenario(path: Path) -> ScenarioDefinition:
    """Load a single scenario from a YAML file.

    Args:
        path: Path to a YAML file containing one scenario definition.

    Returns:
        Parsed and validated ScenarioDefinition.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        yaml.YAMLError: If the YAML is malformed.
        pydantic.ValidationError: If the data does not match the schema.
    """
    with open(path) as fh:
        raw = yaml.safe_load(fh)
    return ScenarioDefinition.model_validate(raw)


def load_all_scenarios(directory: Path) -> list[ScenarioDefinition]:
    """Load all YAML scenarios from a directory, sorted by name.

    Raises:
        FileNotFoundError: If the directory does not exist.
    """
    if not directory.is_dir():
        msg = f"Scenario directory does not exist: {directory}"
        raise FileNotFoundError(msg)

    scenarios: list[ScenarioDefinition] = []
    for ext in ("*.yaml", "*.yml"):
        for yaml_path in sorted(directory.glob(ext)):
            scenarios.append(load_scenario(yaml_path))

    scenarios.sort(key=lambda s: s.name)
    return scenarios


def validate_scenario(scenario: ScenarioDefinition) -> list[str]:
    """Check a definition for errors the host would only report mid-run.

    Returns:
        List of validation error strings. Empty if valid.
    """
    config = scenario.simulation
    errors: list[str] = []

    seen: set[int] = set()
    for number in scenario.robots:
        if number in seen:
            errors.append(f"Robot {number} is spawned more than once")
        if not 1 <= number <= config.max_agent_number:
            errors.append(
                f"Robot {number} is outside the agent numbers 1-{config.max_agent_number}"
            )
        seen.add(number)

    last_state = None
    last_state_cycle = 0
    for entry in sorted(scenario.timeline, key=lambda e: e.cycle):
        for pose in entry.force_pose:
            if pose.robot not in seen:
                errors.append(f"Cycle {entry.cycle}: force_pose on unspawned robot {pose.robot}")
        if entry.ball is not None and entry.clear_ball:
            errors.append(f"Cycle {entry.cycle}: both sets and clears the ball")
        if entry.cycle > config.max_cycles:
            errors.append(
                f"Cycle {entry.cycle} is never reached (max_cycles={config.max_cycles})"
            )
        if entry.game_state is not None:
            if last_state is not None and entry.game_state.rank < last_state.rank:
                errors.append(
                    f"Cycle {entry.cycle}: game state goes back from "
                    f"{last_state.value} (cycle {last_state_cycle}) to {entry.game_state.value}"
                )
            last_state = entry.game_state
            last_state_cycle = entry.cycle

    for event in scenario.events:
        if event not in DOMAIN_EVENTS:
            errors.append(f"Event '{event}' is never raised by the host")

    return errors
