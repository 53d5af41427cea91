# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from .model import Coordinate


class FleetbuildError(Exception):
    """Base class for every error raised by fleetbuild."""


# ----------------------------------------------------------------------
# Configuration errors: fatal, raised before any project is touched
# ----------------------------------------------------------------------

class ConfigError(FleetbuildError):
    pass


class ManifestError(ConfigError):
    pass


class GraphError(ConfigError):
    pass


class DuplicateCoordinateError(GraphError):
    def __init__(self, coordinate: Coordinate, projects: Sequence[str]):
        self.coordinate = coordinate
        self.projects = list(projects)
        super().__init__(
            f"Projects {self.projects} all report the same coordinate {coordinate}"
        )


class CycleError(GraphError):
    def __init__(self, cycle: Sequence[Coordinate]):
        # cycle[0] == cycle[-1], e.g. [a, b, c, a]
        self.cycle = list(cycle)
        path = " -> ".join(str(c) for c in self.cycle)
        super().__init__(f"Dependency cycle: {path}")


# ----------------------------------------------------------------------
# External tool errors
# ----------------------------------------------------------------------

@dataclass
class SCMError(FleetbuildError):
    """Non-zero exit from a version-control command."""
    repository: str
    cmd: str
    exit_code: int
    stderr: str = ""

    def __str__(self) -> str:
        msg = f"{self.repository}: {self.cmd} failed with status {self.exit_code}"
        if self.stderr:
            msg += f"\n{self.stderr.strip()}"
        return msg


@dataclass
class DeployError(FleetbuildError):
    """Non-zero exit from the deployment command."""
    service: str
    cmd: str
    exit_code: int
    details: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"[{self.service}] deploy failed (exit={self.exit_code}): {self.cmd}"
