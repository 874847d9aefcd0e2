"""CLI for behavior-gym.

Thin Typer wrappers around the loader and host for running and checking
scenario files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer

from behavior_gym.host import SimulatorHost
from behavior_gym.scenarios import DeclarativeScenario, load_all_scenarios, load_scenario, validate_scenario

app = typer.Typer(
    name="behavior-gym",
    help="Run scripted robot soccer scenarios against the behavior simulator.",
    add_completion=False,
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def run(
    scenario: Annotated[
        Path, typer.Option(help="Path to a scenario YAML file.")
    ] = Path("scenarios/ball_search.yaml"),
    max_cycles: Annotated[
        int | None, typer.Option(help="Override the scenario's cycle limit.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
) -> None:
    """Run a single scenario until it finishes."""
    _setup_logging(verbose)
    definition = load_scenario(scenario)
    config = definition.simulation
    if max_cycles is not None:
        config = config.model_copy(update={"max_cycles": max_cycles})

    host = SimulatorHost(config)
    result = host.run(DeclarativeScenario(definition))

    typer.echo(f"Scenario: {result.scenario}")
    typer.echo(f"Cycles:   {result.cycles}")
    typer.echo(f"Finished: {result.finished}")
    typer.echo(f"Goals:    {result.goals}")
    typer.echo("---")
    for cycle, game_state in host.run_trace().game_state_timeline:
        typer.echo(f"  {cycle:>6}  {game_state}")

    if result.failed:
        typer.echo(f"\nFailed during {result.failed_stage}: {result.error}", err=True)
        raise typer.Exit(code=1)
    if result.truncated:
        typer.echo(f"\nStopped at cycle limit ({config.max_cycles}) before finishing.")


@app.command()
def validate(
    scenario_dir: Annotated[
        Path, typer.Option(help="Directory containing scenario YAML files.")
    ] = Path("scenarios"),
) -> None:
    """Check every scenario in a directory. Exit code 1 if any has errors."""
    scenarios = load_all_scenarios(scenario_dir)
    failures = 0
    for definition in scenarios:
        errors = validate_scenario(definition)
        status = "OK" if not errors else f"{len(errors)} error(s)"
        typer.echo(f"{definition.name}: {status}")
        for error in errors:
            typer.echo(f"  - {error}")
        failures += bool(errors)

    if failures:
        raise typer.Exit(code=1)


@app.command("list")
def list_scenarios(
    scenario_dir: Annotated[
        Path, typer.Option(help="Directory containing scenario YAML files.")
    ] = Path("scenarios"),
) -> None:
    """List scenarios with their robots and last scripted cycle."""
    scenarios = load_all_scenarios(scenario_dir)
    if not scenarios:
        typer.echo("No scenarios found.")
        return

    name_width = max(len(s.name) for s in scenarios)
    header = f"{'Scenario':<{name_width}}  {'Robots':<16}  {'Last cycle':>10}"
    typer.echo(header)
    typer.echo("-" * len(header))
    for definition in scenarios:
        robots = ",".join(str(n) for n in definition.robots) or "-"
        typer.echo(f"{definition.name:<{name_width}}  {robots:<16}  {definition.last_cycle:>10}")


if __name__ == "__main__":
    app()
