# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class Scope(str, Enum):
    """Dependency scope as declared in a manifest."""
    COMPILE = "compile"
    PARENT = "parent"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "Scope":
        # Maven treats a missing <scope> as compile
        if value is None or value.strip() == "" or value.strip() == "compile":
            return cls.COMPILE
        if value.strip() == "parent":
            return cls.PARENT
        return cls.OTHER


class Status(str, Enum):
    """Lifecycle status of one project during a run."""
    NEW = "new"
    MANIFEST_READ = "manifest-read"

    # sync outcomes
    PULL = "pull"
    REBASE = "rebase"
    LOCAL = "local"
    MISSING = "missing"
    UNRECOGNIZED_BRANCH = "unrecognized-branch"

    # build outcomes
    UP_TO_DATE = "up-to-date"
    DIRTY = "dirty"
    BUILD = "build"
    FAIL = "fail"

    # deploy outcome
    DEPLOYED = "deployed"

    # absorbing failure states
    DIRTY_FAIL = "dirty-fail"
    UPSTREAM_FAIL = "upstream-fail"

    def __str__(self) -> str:
        return self.value


class SyncMode(str, Enum):
    PULL = "pull"
    REBASE = "rebase"
    LOCAL = "local"


class Phase(str, Enum):
    SYNC = "sync"
    BUILD = "build"
    DEPLOY = "deploy"

    @classmethod
    def parse_list(cls, text: str) -> List["Phase"]:
        """Parse 'sync, build' style lists, rejecting unknown names."""
        names = [p.strip().lower() for p in text.split(",")]
        names = [n for n in names if n]
        if not names:
            raise ValueError("No execution phases were specified")
        phases: List[Phase] = []
        for n in names:
            try:
                phases.append(cls(n))
            except ValueError:
                raise ValueError(f"Unknown phase: {n}") from None
        return phases


ALL_PHASES = (Phase.SYNC, Phase.BUILD, Phase.DEPLOY)


@dataclass(frozen=True)
class Coordinate:
    """Unique (group, name) identity of a project."""
    group: str
    name: str

    def __str__(self) -> str:
        return f"{self.group}:{self.name}"


@dataclass(frozen=True)
class DependencyRef:
    """
    One declared dependency edge.

    Equality and hashing use the coordinate only, so a compile and a parent
    reference to the same project collapse to one edge.
    """
    coordinate: Coordinate
    scope: Scope = field(default=Scope.COMPILE, compare=False)

    @property
    def orders_build(self) -> bool:
        return self.scope in (Scope.COMPILE, Scope.PARENT)

    def __str__(self) -> str:
        return f"{self.coordinate}:{self.scope.value}"


@dataclass(frozen=True)
class Fatal:
    """
    A condition that halts the whole run.

    Returned (not raised) by project phases so the driver can stop the loop
    and still print the run report.
    """
    kind: str
    project: str | None
    message: str
    details: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.project:
            lines.append(f"project={self.project}")
        for d in self.details:
            lines.append(f"\t{d}")
        return "\n".join(lines)
