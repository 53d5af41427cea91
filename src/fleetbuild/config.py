"""
Run configuration for fleetbuild.

Branch policy, per-run settings, and the build-file schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ConfigError
from .model import ALL_PHASES, Phase, SyncMode

DEFAULT_PULL_BRANCHES = ["master"]
DEFAULT_BASIS_BRANCH = "master"
DEFAULT_BUILD_FILE = "fleetbuild_workspace.py"
BUILD_FILE_ENV = "FLEETBUILD_FILE"


# =============================================================================
# Branch policy
# =============================================================================


@dataclass(frozen=True)
class BranchPolicy:
    """Which branches get pulled, rebased, or left alone during sync."""

    pull: frozenset[str] = frozenset(DEFAULT_PULL_BRANCHES)
    rebase: frozenset[str] = frozenset()
    local: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        checks = [
            ("pull", self.pull, "rebase", self.rebase),
            ("pull", self.pull, "local", self.local),
            ("rebase", self.rebase, "local", self.local),
        ]
        for a_name, a, b_name, b in checks:
            both = sorted(a & b)
            if both:
                raise ConfigError(
                    f"The following branches are both {a_name} and {b_name} branches: {both}"
                )

    @classmethod
    def of(
        cls,
        pull: Sequence[str] = DEFAULT_PULL_BRANCHES,
        rebase: Sequence[str] = (),
        local: Sequence[str] = (),
    ) -> "BranchPolicy":
        return cls(frozenset(pull), frozenset(rebase), frozenset(local))

    def is_pull(self, branch: str, basis_branch: Optional[str] = None) -> bool:
        # the basis branch is always pulled, never rebased onto itself
        return branch in self.pull or (basis_branch is not None and branch == basis_branch)

    def classify(self, branch: str, basis_branch: Optional[str] = None) -> Optional[SyncMode]:
        """Priority pull > rebase > local; None if the branch is in no set."""
        if self.is_pull(branch, basis_branch):
            return SyncMode.PULL
        if branch in self.rebase:
            return SyncMode.REBASE
        if branch in self.local:
            return SyncMode.LOCAL
        return None


# =============================================================================
# Build-file schema
# =============================================================================


class WorkspaceConfig(BaseModel):
    """The `config` section of a build file."""

    model_config = ConfigDict(extra="forbid")

    project_dir: Optional[str] = None
    pull_branches: Optional[List[str]] = None
    rebase_branches: Optional[List[str]] = None
    local_branches: Optional[List[str]] = None
    basis_branch: Optional[str] = None


class ProjectDesc(BaseModel):
    """
    One entry of the build file's project list.

    Exactly one of `library` / `service` names the project. `repo` is only
    needed when the project is a sub-directory of a larger repository.
    """

    model_config = ConfigDict(extra="forbid")

    library: Optional[str] = None
    service: Optional[str] = None
    repo: Optional[str] = None
    scm: Optional[str] = None
    mvn_flags: List[str] = Field(default_factory=list)
    basis_branch: Optional[str] = None
    always_build: bool = False

    # service-only knobs
    archive: Optional[str] = None
    wlp: Optional[str] = None
    restart: Union[bool, str, None] = None

    @field_validator("scm")
    @classmethod
    def _known_scm(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("git", "git-svn"):
            raise ValueError(f"Unsupported scm {v!r} (expected 'git' or 'git-svn')")
        return v

    @model_validator(mode="after")
    def _one_kind(self) -> "ProjectDesc":
        if (self.library is None) == (self.service is None):
            raise ValueError("Project needs exactly one of 'library' or 'service'")
        if self.library is not None and (self.archive or self.wlp or self.restart is not None):
            raise ValueError(f"Library {self.library!r} cannot set archive/wlp/restart")
        return self

    @property
    def name(self) -> str:
        return self.library or self.service  # type: ignore[return-value]

    @property
    def is_service(self) -> bool:
        return self.service is not None

    @property
    def repository(self) -> str:
        return self.repo or self.name

    @property
    def display_name(self) -> str:
        return self.name if self.repository == self.name else f"{self.repository}/{self.name}"

    @property
    def should_restart(self) -> bool:
        if self.restart is None:
            return True
        if isinstance(self.restart, str):
            return self.restart.strip().lower() in ("true", "yes")
        return bool(self.restart)

    @property
    def archive_name(self) -> str:
        return self.archive or f"{self.name}.war"

    @property
    def service_name(self) -> str:
        if self.wlp:
            return self.wlp
        return self.name[: -len("-service")] if self.name.endswith("-service") else self.name


class BuildFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    config: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    projects: List[ProjectDesc] = Field(default_factory=list)

    @field_validator("projects", mode="before")
    @classmethod
    def _bare_names(cls, v):
        # a bare string is shorthand for {"library": name}
        if isinstance(v, list):
            return [{"library": p} if isinstance(p, str) else p for p in v]
        return v


# =============================================================================
# Run configuration
# =============================================================================


@dataclass
class RunConfig:
    """Effective settings for one run (command line merged over build file)."""

    project_dir: Path
    branches: BranchPolicy = field(default_factory=BranchPolicy)
    basis_branch: str = DEFAULT_BASIS_BRANCH
    phases: List[Phase] = field(default_factory=lambda: list(ALL_PHASES))
    auto_reset: bool = False
    project_list: List[str] = field(default_factory=list)
    workers: int = 1

    @classmethod
    def resolve(
        cls,
        build_file: BuildFile,
        *,
        project_dir: Optional[str | Path] = None,
        pull_branches: Optional[Sequence[str]] = None,
        rebase_branches: Optional[Sequence[str]] = None,
        local_branches: Optional[Sequence[str]] = None,
        basis_branch: Optional[str] = None,
        phases: Optional[Sequence[Phase]] = None,
        auto_reset: bool = False,
        project_list: Sequence[str] = (),
        workers: int = 1,
    ) -> "RunConfig":
        """
        Precedence: explicit argument > build-file config > built-in default.

        Raises:
            ConfigError: missing/nonexistent project dir, overlapping branch
                sets, or no phases.
        """
        cfg = build_file.config

        pdir = project_dir or cfg.project_dir
        if not pdir:
            raise ConfigError("No project directory given (use --projects-dir or config.project_dir)")
        pdir_path = Path(pdir).expanduser().resolve()
        if not pdir_path.exists():
            raise ConfigError(f"Unable to locate projects directory {pdir_path}")

        branches = BranchPolicy.of(
            pull=_first(pull_branches, cfg.pull_branches, DEFAULT_PULL_BRANCHES),
            rebase=_first(rebase_branches, cfg.rebase_branches, []),
            local=_first(local_branches, cfg.local_branches, []),
        )

        phase_list = list(phases) if phases is not None else list(ALL_PHASES)
        if not phase_list:
            raise ConfigError("No execution phases were specified")
        if workers < 1:
            raise ConfigError(f"workers must be >= 1, got {workers}")

        return cls(
            project_dir=pdir_path,
            branches=branches,
            basis_branch=basis_branch or cfg.basis_branch or DEFAULT_BASIS_BRANCH,
            phases=phase_list,
            auto_reset=auto_reset,
            project_list=list(project_list),
            workers=workers,
        )


def _first(*candidates):
    for c in candidates:
        if c is not None:
            return list(c)
    return []


def split_branch_list(text: Optional[str]) -> Optional[List[str]]:
    """'master, develop' -> ['master', 'develop']; None stays None."""
    if text is None:
        return None
    return [b.strip() for b in text.split(",") if b.strip()]
