"""Tests for YAML scenarios (schema, loader, validator) and full runs.

Covers:
    - ScenarioDefinition: Pydantic validation, defaults, nested ball/poses
    - load_scenario / load_all_scenarios: YAML files, errors, sorting
    - validate_scenario: robots, poses, phase order, events, cycle limit
    - DeclarativeScenario: timeline and event reactions applied via the host
    - The shipped ball-search scenario, stepped cycle by cycle, with and
      without a goal, plus the same script written in Python
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from behavior_gym.host import SimulatorHost
from behavior_gym.scenarios.declarative import DeclarativeScenario
from behavior_gym.scenarios.loader import load_all_scenarios, load_scenario, validate_scenario
from behavior_gym.scenarios.runtime import ScriptedScenario
from behavior_gym.scenarios.schema import ScenarioDefinition, TimelineEntry
from behavior_gym.types import Ball, GameState

SCENARIO_DIR = Path(__file__).resolve().parent.parent / "scenarios"
BALL_SEARCH = SCENARIO_DIR / "ball_search.yaml"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _minimal_scenario_dict() -> dict:
    """Return a minimal valid scenario dict for testing."""
    return {
        "name": "test-scenario",
        "robots": [1],
        "timeline": [
            {"cycle": 10, "game_state": "Ready"},
            {"cycle": 20, "finish": True},
        ],
    }


def _write_scenario_yaml(path: Path, data: dict) -> Path:
    """Write a scenario dict to a YAML file and return the path."""
    with open(path, "w") as fh:
        yaml.safe_dump(data, fh)
    return path


def _tick_to(host: SimulatorHost, cycle: int) -> list[str]:
    """Tick until ``cycle_count == cycle``; return all events fired."""
    events: list[str] = []
    while host.state.cycle_count < cycle:
        events.extend(host.tick())
    return events


def _shoot_at_right_goal(host: SimulatorHost) -> int:
    """Place a ball just in front of the right goal; return the goal cycle."""
    host.state.ball = Ball(position=(4.44, 0.0), velocity=(4.0, 0.0))
    while "goal" not in host.tick():
        pass
    return host.state.cycle_count


class BallSearchScript(ScriptedScenario):
    """The ball-search scenario written as a Python script."""

    name = "ball-search-script"

    def __init__(self) -> None:
        super().__init__()
        self.game_end_time: int | None = None

    def setup(self) -> None:
        self.spawn(7)
        self.set_ball((0.0, 0.0))
        self.at(100, lambda: self.set_game_state("Ready"))
        self.at(1600, lambda: self.set_game_state("Set"))
        self.at(1700, lambda: self.set_game_state("Playing"))
        self.at(1900, self._kick)
        self.at(2000, self.clear_ball)
        self.at(6000, self.finish)

    def _kick(self) -> None:
        self.force_pose(7, (-3.0, 0.0), 0.0)
        self.set_ball((-2.0, 0.0), (9.0, 2.0))

    def on_goal(self) -> None:
        self.clear_ball()
        if self.game_end_time is not None:
            self.schedule.cancel(self.game_end_time, self.finish)
        self.game_end_time = self.after(200, self.finish)


# ---------------------------------------------------------------------------
# ScenarioDefinition
# ---------------------------------------------------------------------------


class TestScenarioDefinition:
    """Tests for the ScenarioDefinition Pydantic model."""

    def test_minimal_valid_scenario(self) -> None:
        scenario = ScenarioDefinition.model_validate(_minimal_scenario_dict())
        assert scenario.name == "test-scenario"
        assert scenario.robots == [1]
        assert scenario.timeline[0].game_state is GameState.READY

    def test_default_values(self) -> None:
        scenario = ScenarioDefinition.model_validate({"name": "empty"})
        assert scenario.description == ""
        assert scenario.robots == []
        assert scenario.ball is None
        assert scenario.timeline == []
        assert scenario.events == {}
        assert scenario.simulation.max_cycles == 10000
        assert scenario.last_cycle == 0

    def test_missing_name_raises(self) -> None:
        with pytest.raises(ValidationError):
            ScenarioDefinition.model_validate({"robots": [1]})

    def test_cycle_zero_timeline_entry_rejected(self) -> None:
        """Cycle 0 belongs to setup, not the timeline."""
        with pytest.raises(ValidationError):
            TimelineEntry.model_validate({"cycle": 0, "finish": True})

    def test_unknown_game_state_rejected(self) -> None:
        data = _minimal_scenario_dict()
        data["timeline"][0]["game_state"] = "Overtime"
        with pytest.raises(ValidationError):
            ScenarioDefinition.model_validate(data)

    def test_simulation_overrides(self) -> None:
        data = _minimal_scenario_dict()
        data["simulation"] = {"max_cycles": 50, "goal_half_width": 1.0}
        scenario = ScenarioDefinition.model_validate(data)
        assert scenario.simulation.max_cycles == 50
        assert scenario.simulation.goal_half_width == 1.0

    def test_last_cycle(self) -> None:
        scenario = ScenarioDefinition.model_validate(_minimal_scenario_dict())
        assert scenario.last_cycle == 20


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class TestLoader:
    """Tests for load_scenario and load_all_scenarios."""

    def test_load_valid_yaml(self, tmp_path: Path) -> None:
        path = _write_scenario_yaml(tmp_path / "scenario.yaml", _minimal_scenario_dict())
        scenario = load_scenario(path)
        assert scenario.name == "test-scenario"

    def test_load_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_scenario(tmp_path / "nonexistent.yaml")

    def test_load_invalid_yaml_raises(self, tmp_path: Path) -> None:
        bad_path = tmp_path / "bad.yaml"
        bad_path.write_text("name: [unterminated\n")
        with pytest.raises(yaml.YAMLError):
            load_scenario(bad_path)

    def test_load_valid_yaml_but_bad_schema_raises(self, tmp_path: Path) -> None:
        path = _write_scenario_yaml(tmp_path / "bad.yaml", {"name": "x", "robots": "seven"})
        with pytest.raises(ValidationError):
            load_scenario(path)

    def test_load_all_sorted_by_name(self, tmp_path: Path) -> None:
        for name, filename in (("zulu", "a.yaml"), ("alpha", "b.yml"), ("mike", "c.yaml")):
            data = _minimal_scenario_dict()
            data["name"] = name
            _write_scenario_yaml(tmp_path / filename, data)
        (tmp_path / "notes.txt").write_text("ignored")
        names = [s.name for s in load_all_scenarios(tmp_path)]
        assert names == ["alpha", "mike", "zulu"]

    def test_load_all_missing_dir_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_all_scenarios(tmp_path / "missing")

    def test_shipped_scenarios_load_and_validate(self) -> None:
        scenarios = load_all_scenarios(SCENARIO_DIR)
        assert {s.name for s in scenarios} >= {"ball-search", "penalty-shot"}
        for scenario in scenarios:
            assert validate_scenario(scenario) == []


# ---------------------------------------------------------------------------
# validate_scenario
# ---------------------------------------------------------------------------


class TestValidateScenario:
    """Static checks against the host's preconditions."""

    def _validate(self, **changes: object) -> list[str]:
        data = _minimal_scenario_dict()
        data.update(changes)
        return validate_scenario(ScenarioDefinition.model_validate(data))

    def test_valid(self) -> None:
        assert self._validate() == []

    def test_duplicate_robot(self) -> None:
        errors = self._validate(robots=[7, 7])
        assert any("more than once" in e for e in errors)

    def test_robot_number_out_of_range(self) -> None:
        errors = self._validate(robots=[8])
        assert any("outside the agent numbers" in e for e in errors)

    def test_force_pose_unspawned_robot(self) -> None:
        errors = self._validate(
            timeline=[{"cycle": 5, "force_pose": [{"robot": 3, "position": [0, 0]}]}]
        )
        assert errors == ["Cycle 5: force_pose on unspawned robot 3"]

    def test_ball_set_and_cleared(self) -> None:
        errors = self._validate(
            timeline=[{"cycle": 5, "ball": {"position": [0, 0]}, "clear_ball": True}]
        )
        assert errors == ["Cycle 5: both sets and clears the ball"]

    def test_backward_game_state(self) -> None:
        errors = self._validate(
            timeline=[
                {"cycle": 200, "game_state": "Ready"},
                {"cycle": 100, "game_state": "Playing"},
            ]
        )
        assert len(errors) == 1
        assert "goes back from Playing" in errors[0]

    def test_unknown_event(self) -> None:
        errors = self._validate(events={"kickoff": {"finish_after": 5}})
        assert errors == ["Event 'kickoff' is never raised by the host"]

    def test_cycle_beyond_limit(self) -> None:
        errors = self._validate(simulation={"max_cycles": 15})
        assert errors == ["Cycle 20 is never reached (max_cycles=15)"]


# ---------------------------------------------------------------------------
# DeclarativeScenario
# ---------------------------------------------------------------------------


class TestDeclarativeScenario:
    """Definitions executed through the host."""

    def test_setup_spawns_and_places_ball(self) -> None:
        data = _minimal_scenario_dict()
        data["ball"] = {"position": [1.0, 2.0]}
        host = SimulatorHost()
        host.load(DeclarativeScenario(ScenarioDefinition.model_validate(data)))
        assert [r.id for r in host.state.robots] == [1]
        assert host.state.ball == Ball(position=(1.0, 2.0))

    def test_run_follows_timeline(self) -> None:
        definition = ScenarioDefinition.model_validate(_minimal_scenario_dict())
        host = SimulatorHost(definition.simulation)
        result = host.run(DeclarativeScenario(definition))
        assert result.finished is True
        assert result.cycles == 20
        assert host.run_trace().game_state_timeline == [(10, "Ready")]

    def test_setup_error_from_definition(self) -> None:
        data = _minimal_scenario_dict()
        data["robots"] = [2, 2]
        definition = ScenarioDefinition.model_validate(data)
        result = SimulatorHost().run(DeclarativeScenario(definition))
        assert result.failed_stage == "setup"

    def test_event_reaction_without_finish(self) -> None:
        data = _minimal_scenario_dict()
        data["timeline"] = [{"cycle": 400, "finish": True}]
        data["events"] = {"goal": {"clear_ball": True}}
        host = SimulatorHost()
        host.load(DeclarativeScenario(ScenarioDefinition.model_validate(data)))
        _shoot_at_right_goal(host)
        assert host.state.ball is None
        assert host.state.finished is False


# ---------------------------------------------------------------------------
# Ball search, end to end
# ---------------------------------------------------------------------------


def _ball_search_host(scripted: bool) -> SimulatorHost:
    definition = load_scenario(BALL_SEARCH)
    host = SimulatorHost(definition.simulation)
    host.load(BallSearchScript() if scripted else DeclarativeScenario(definition))
    return host


@pytest.fixture(params=["yaml", "python"])
def ball_search(request: pytest.FixtureRequest) -> SimulatorHost:
    return _ball_search_host(scripted=request.param == "python")


class TestBallSearch:
    """The literal ball-search timeline, from YAML and from Python."""

    def test_setup_state(self, ball_search: SimulatorHost) -> None:
        state = ball_search.state
        assert state.cycle_count == 0
        assert [r.id for r in state.robots] == [7]
        assert state.ball == Ball(position=(0.0, 0.0), velocity=(0.0, 0.0))
        assert state.game_controller_state.game_state is GameState.INITIAL

    def test_phase_changes_at_exact_cycles(self, ball_search: SimulatorHost) -> None:
        gc = ball_search.state.game_controller_state
        for cycle, before, after in (
            (100, GameState.INITIAL, GameState.READY),
            (1600, GameState.READY, GameState.SET),
            (1700, GameState.SET, GameState.PLAYING),
        ):
            _tick_to(ball_search, cycle - 1)
            assert gc.game_state is before
            ball_search.tick()
            assert gc.game_state is after

    def test_kick_and_ball_removal(self, ball_search: SimulatorHost) -> None:
        state = ball_search.state
        _tick_to(ball_search, 1899)
        assert state.robot(7).pose.position != (-3.0, 0.0)

        ball_search.tick()
        pose = state.robot(7).pose
        assert pose.position == (-3.0, 0.0)
        assert pose.orientation == 0.0
        assert state.ball == Ball(position=(-2.0, 0.0), velocity=(9.0, 2.0))

        _tick_to(ball_search, 1999)
        assert state.ball is not None
        ball_search.tick()
        assert state.ball is None

    def test_finishes_at_6000_without_goal(self, ball_search: SimulatorHost) -> None:
        events = _tick_to(ball_search, 5999)
        assert events == []
        assert ball_search.state.finished is False
        ball_search.tick()
        assert ball_search.state.finished is True

    def test_goal_finishes_200_cycles_later(self, ball_search: SimulatorHost) -> None:
        _tick_to(ball_search, 2500)
        goal_cycle = _shoot_at_right_goal(ball_search)
        assert ball_search.state.ball is None

        _tick_to(ball_search, goal_cycle + 199)
        assert ball_search.state.finished is False
        ball_search.tick()
        assert ball_search.state.finished is True
        assert ball_search.state.cycle_count == goal_cycle + 200

    def test_second_goal_moves_the_finish(self, ball_search: SimulatorHost) -> None:
        _tick_to(ball_search, 2100)
        first_goal = _shoot_at_right_goal(ball_search)
        _tick_to(ball_search, first_goal + 50)
        second_goal = _shoot_at_right_goal(ball_search)

        _tick_to(ball_search, first_goal + 200)
        assert ball_search.state.finished is False
        _tick_to(ball_search, second_goal + 199)
        assert ball_search.state.finished is False
        ball_search.tick()
        assert ball_search.state.finished is True
        assert ball_search.state.cycle_count == second_goal + 200

    def test_late_goal_still_finishes_at_6000(self, ball_search: SimulatorHost) -> None:
        _tick_to(ball_search, 5900)
        goal_cycle = _shoot_at_right_goal(ball_search)
        assert goal_cycle + 200 > 6000

        _tick_to(ball_search, 5999)
        assert ball_search.state.finished is False
        ball_search.tick()
        assert ball_search.state.finished is True
        assert ball_search.state.cycle_count == 6000

    def test_full_run_result(self) -> None:
        definition = load_scenario(BALL_SEARCH)
        host = SimulatorHost(definition.simulation)
        result = host.run(DeclarativeScenario(definition))

        assert result.finished is True
        assert result.cycles == 6000
        assert result.goals == 0
        trace = host.run_trace()
        assert trace.game_state_timeline == [(100, "Ready"), (1600, "Set"), (1700, "Playing")]
        assert [(e.cycle, e.detail["action"]) for e in trace.of_kind("ball")] == [
            (0, "set"),
            (1900, "set"),
            (2000, "clear"),
        ]
        assert trace.cycles_of("force_pose") == [1900]
        assert trace.cycles_of("finish") == [6000]
