"""Run tracing for the behavior simulator.

Records host operations and scenario-visible world state changes per
cycle, so tests and the CLI can inspect how a scenario unfolded.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Core data structures
# ---------------------------------------------------------------------------


@dataclass
class TraceEntry:
    """A single recorded change within a run."""

    cycle: int
    kind: str
    detail: dict[str, Any]
    source: str = "host"
    timestamp: float = field(default_factory=time.monotonic)


@dataclass
class RunTrace:
    """Complete trace for one scenario run."""

    scenario_name: str
    entries: list[TraceEntry]

    def of_kind(self, kind: str) -> list[TraceEntry]:
        """Entries of one kind, in the order they were recorded."""
        return [e for e in self.entries if e.kind == kind]

    def cycles_of(self, kind: str) -> list[int]:
        return [e.cycle for e in self.of_kind(kind)]

    @property
    def game_state_timeline(self) -> list[tuple[int, str]]:
        """(cycle, game state) pairs for every phase change."""
        return [(e.cycle, e.detail["to"]) for e in self.of_kind("game_state")]


# ---------------------------------------------------------------------------
# Trace logger
# ---------------------------------------------------------------------------


class TraceLogger:
    """Accumulates TraceEntry records for the current run."""

    def __init__(self) -> None:
        self._entries: list[TraceEntry] = []

    def log(self, cycle: int, kind: str, source: str = "host", **detail: Any) -> None:
        """Append an entry.

        Args:
            cycle: The cycle the change happened in.
            kind: Category, e.g. 'spawn', 'force_pose', 'ball', 'event'.
            source: The callback or operation that caused it.
            **detail: Kind-specific values.
        """
        self._entries.append(
            TraceEntry(cycle=cycle, kind=kind, detail=detail, source=source)
        )

    @property
    def entries(self) -> list[TraceEntry]:
        return list(self._entries)
