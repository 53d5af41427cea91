# project.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .cache import LOG_FILE_NAME, RevisionCache
from .config import BranchPolicy
from .errors import DeployError, SCMError
from .executor import BuildResult, summarize_failure
from .git_facts.git import GitRepository
from .model import Coordinate, DependencyRef, Fatal, Status, SyncMode
from .ui.console import get_console

# Statuses after which no build is ever attempted
NO_BUILD_STATES = frozenset({
    Status.DIRTY_FAIL,
    Status.UPSTREAM_FAIL,
    Status.MISSING,
    Status.UNRECOGNIZED_BRANCH,
})

# Statuses that skip sync: the project is already known to have failed
NO_SYNC_STATES = frozenset({Status.DIRTY_FAIL, Status.UPSTREAM_FAIL})


class Builder(Protocol):
    def build(self, project_root: Path, extra_flags: Sequence[str] = ()) -> BuildResult: ...


class Deployer(Protocol):
    def deploy(self, archive_path: Path, service_name: str, restart: bool) -> None: ...


# ----------------------------------------------------------------------
# Deploy strategies
# ----------------------------------------------------------------------

class NoDeploy:
    """Libraries are built and installed, never deployed."""
    deploys = False

    def deploy(self, project: "Project") -> None:
        return None


@dataclass
class ArchiveDeploy:
    """Services push target/<archive> to a named deployment."""
    executor: Deployer
    archive: str
    service: str
    restart: bool = True
    deploys = True

    def archive_path(self, project: "Project") -> Path:
        return project.root / "target" / self.archive

    def deploy(self, project: "Project") -> None:
        self.executor.deploy(self.archive_path(project), self.service, self.restart)


# ----------------------------------------------------------------------
# Project
# ----------------------------------------------------------------------

@dataclass(eq=False)
class Project:
    """
    One buildable project and its sync -> build -> deploy lifecycle.

    `root` is where the manifest, state file and build log live; for a
    sub-project that is a directory inside `repo.path`. Only the state
    machine methods below change `status`.
    """
    name: str
    root: Path
    repo: GitRepository
    coordinate: Coordinate
    builder: Builder
    cache: RevisionCache
    dependencies: List[DependencyRef] = field(default_factory=list)
    branches: BranchPolicy = field(default_factory=BranchPolicy)
    basis_branch: str = "master"
    deployer: NoDeploy | ArchiveDeploy = field(default_factory=NoDeploy)
    auto_reset: bool = False
    always_build: bool = False
    build_flags: List[str] = field(default_factory=list)
    status: Status = Status.NEW

    # filled in by the graph builder: coordinate -> project depending on us
    downstream: Dict[Coordinate, "Project"] = field(default_factory=dict)

    failure_summary: List[str] = field(default_factory=list)
    deploy_error: Optional[DeployError] = None

    def __repr__(self) -> str:
        return f"Project({self.name!r}, {self.coordinate}, status={self.status.value})"

    @property
    def upstream(self) -> List[DependencyRef]:
        """Declared compile/parent dependencies, minus any self-reference."""
        seen = set()
        out: List[DependencyRef] = []
        for dep in self.dependencies:
            if not dep.orders_build or dep.coordinate == self.coordinate:
                continue
            if dep.coordinate in seen:
                continue
            seen.add(dep.coordinate)
            out.append(dep)
        return out

    @property
    def is_service(self) -> bool:
        return self.deployer.deploys

    def current_branch(self) -> str:
        return self.repo.current_branch()

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self) -> Optional[Fatal]:
        """Bring the working tree up to date according to the branch policy."""
        console = get_console()

        if self.status in NO_SYNC_STATES:
            console.print_project(self.name, f"Skipping sync because of {self.status.value} condition")
            return None

        if not self.repo.exists():
            console.print_project(self.name, "No local repository - skipping")
            self.status = Status.MISSING
            return None

        try:
            branch = self.repo.current_branch()
            mode = self.branches.classify(branch, self.basis_branch)

            if mode is None:
                self.status = Status.UNRECOGNIZED_BRANCH
                return Fatal(
                    kind="unrecognized-branch",
                    project=self.name,
                    message=f"Branch {branch} is not a recognized branch for pull, rebase or local",
                )

            # local branches are only checked when the run will reset workspaces
            if mode is not SyncMode.LOCAL or self.auto_reset:
                fatal = self._verify_clean_workspace()
                if fatal is not None:
                    return fatal

            if mode is SyncMode.PULL:
                console.print_project(self.name, f"Pulling {branch}")
                self.repo.pull()
                self.status = Status.PULL
            elif mode is SyncMode.REBASE:
                console.print_project(self.name, f"Rebasing {branch} onto {self.basis_branch}")
                self.repo.fetch_and_rebase(self.basis_branch)
                self.status = Status.REBASE
            else:
                console.print_project(self.name, f"Skipping sync on project branch {branch}")
                self.status = Status.LOCAL
        except SCMError as e:
            return Fatal(kind="scm", project=self.name, message=str(e))

        return None

    def _verify_clean_workspace(self) -> Optional[Fatal]:
        modified = self.repo.status()
        if not modified:
            return None
        return Fatal(
            kind="dirty-workspace",
            project=self.name,
            message=f"Workspace {self.repo.path} is not clean",
            details=sorted(set(modified)),
        )

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> Optional[Fatal]:
        """
        Build unless the project is known-bad or its clean HEAD matches the
        revision saved by the last successful build.
        """
        if self.status in NO_BUILD_STATES:
            return None

        console = get_console()
        if not self.repo.exists():
            self.status = Status.MISSING
            return None

        try:
            if not self.should_build():
                self.status = Status.UP_TO_DATE
                return None

            if self.auto_reset:
                modified = self.repo.status()
                if modified:
                    noun = "file" if len(modified) == 1 else "files"
                    console.print_project(
                        self.name, f"{len(modified)} modified {noun} - aborting the build"
                    )
                    self.status = Status.DIRTY
                    return None

            self.repo.save_local_exclusion(LOG_FILE_NAME)
            result = self.builder.build(self.root, list(self.build_flags))

            if result.success:
                self.status = Status.BUILD
                self._save_build_state()
                result.log_path.unlink(missing_ok=True)
                if self.auto_reset:
                    modified = self.repo.status()
                    if modified:
                        console.print_project(
                            self.name, f"{len(modified)} modified files - resetting the workspace"
                        )
                        self.repo.hard_reset()
            else:
                self.status = Status.FAIL
                self.failure_summary = summarize_failure(result.log_path)
                console.print_project(self.name, f"build failed - see {result.log_path} for details")
                console.print_failure_summary(self.name, self.failure_summary)
        except SCMError as e:
            return Fatal(kind="scm", project=self.name, message=str(e))

        return None

    def should_build(self) -> bool:
        console = get_console()
        if self.always_build:
            console.print_project(self.name, "Always-build flag forces a build regardless of SCM status")
            return True

        saved = self.cache.read(self.root)
        current = self.repo.commit_id()
        if saved is not None and saved == current:
            console.print_project(
                self.name,
                f"current commit ID matches saved commit ID - skipping build ({saved})",
            )
            return False
        return True

    def _save_build_state(self) -> None:
        self.cache.save(self.root, self.repo.commit_id())
        self.repo.save_local_exclusion(self.cache.file_name)
        self.invalidate_downstream()

    def invalidate_downstream(self) -> None:
        """Erase every downstream project's saved revision so it rebuilds."""
        console = get_console()
        for dp in self.downstream.values():
            if self.cache.erase(dp.root):
                console.print_project(self.name, f"Invalidating build state for {dp.name}")

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def deploy(self) -> Optional[Fatal]:
        """
        Deploy a freshly built service. A deploy failure is recorded on the
        project (status stays `build`) and does not stop the run.
        """
        if not self.deployer.deploys or self.status is not Status.BUILD:
            return None
        try:
            self.deployer.deploy(self)
        except DeployError as e:
            self.deploy_error = e
            get_console().print_failure(self.name, str(e), exit_code=e.exit_code, details=e.details)
            return None
        self.status = Status.DEPLOYED
        return None

    # ------------------------------------------------------------------
    # Failure propagation
    # ------------------------------------------------------------------

    def has_local_changes(self) -> bool:
        # TODO: rebase/local-branch projects count as changed even with a clean
        # tree; only pull-branch projects are checked against the working tree.
        if not self.branches.is_pull(self.repo.current_branch(), self.basis_branch):
            return True
        return bool(self.repo.status())

    @property
    def dirty_fail(self) -> bool:
        if self.status in NO_SYNC_STATES:
            return True
        return self.status is Status.FAIL and self.has_local_changes()

    @property
    def blocks_downstream(self) -> bool:
        return self.dirty_fail or self.deploy_error is not None

    def mark_upstream_failed(self) -> None:
        self.status = Status.UPSTREAM_FAIL
