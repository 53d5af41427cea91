"""Shared fakes for fleetbuild tests: in-memory SCM, recording build/deploy executors."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from fleetbuild.cache import LOG_FILE_NAME, RevisionCache
from fleetbuild.config import BranchPolicy
from fleetbuild.errors import DeployError, SCMError
from fleetbuild.executor import BuildResult
from fleetbuild.git_facts.git import MISSING_REPO
from fleetbuild.model import Coordinate, DependencyRef, Scope, Status
from fleetbuild.project import ArchiveDeploy, Project
from fleetbuild.ui.console import Console, set_console

SHA_A = "a" * 40
SHA_B = "b" * 40

GROUP = "com.example"


class FakeRepo:
    """In-memory GitRepository stand-in that records every call."""

    def __init__(
        self,
        path: Path,
        branch: str = "master",
        modified: Sequence[str] = (),
        commit: str = SHA_A,
        exists: bool = True,
    ):
        self.path = Path(path)
        self.name = self.path.name
        self.branch = branch
        self.modified: List[str] = list(modified)
        self.commit = commit
        self.present = exists
        self.calls: List[str] = []
        self.exclusions: List[str] = []
        self.fail_on: Optional[str] = None

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise SCMError(repository=self.name, cmd=f"git {name}", exit_code=1, stderr="boom")

    def exists(self) -> bool:
        return self.present

    def current_branch(self) -> str:
        if not self.present:
            return MISSING_REPO
        return self.branch

    def pull(self) -> None:
        self._call("pull")

    def fetch_and_rebase(self, basis: str, remote: str = "origin") -> None:
        self._call(f"rebase:{basis}")

    def status(self) -> List[str]:
        return list(self.modified)

    def commit_id(self) -> str:
        return "" if self.modified else self.commit

    def short_commit(self) -> str:
        return self.commit[:7] if self.present else ""

    def hard_reset(self) -> None:
        self._call("reset")
        self.modified = []

    def save_local_exclusion(self, entry: str) -> None:
        if entry not in self.exclusions:
            self.exclusions.append(entry)


class FakeBuilder:
    """Records build order; roots listed in `failing` fail with an optional log."""

    def __init__(self):
        self.built: List[str] = []
        self.failing: Dict[str, str] = {}
        # files a build leaves behind in the working tree, per project
        self.leftovers: Dict[str, List[str]] = {}
        self.repos: Dict[str, FakeRepo] = {}

    def build(self, project_root: Path, extra_flags: Sequence[str] = ()) -> BuildResult:
        root = Path(project_root)
        self.built.append(root.name)
        log_path = root / LOG_FILE_NAME
        log_path.write_text("[INFO] building\n", encoding="utf-8")
        if root.name in self.leftovers:
            self.repos[root.name].modified.extend(self.leftovers[root.name])
        if root.name in self.failing:
            log_path.write_text(self.failing[root.name], encoding="utf-8")
            return BuildResult(success=False, log_path=log_path)
        return BuildResult(success=True, log_path=log_path)


class FakeDeployer:
    def __init__(self):
        self.deployed: List[tuple] = []
        self.failing: set = set()

    def deploy(self, archive_path, service_name: str, restart: bool) -> None:
        if service_name in self.failing:
            raise DeployError(service=service_name, cmd=f"dev-deploy {archive_path}", exit_code=3)
        self.deployed.append((Path(archive_path).name, service_name, restart))


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield


@pytest.fixture
def cache():
    return RevisionCache()


@pytest.fixture
def builder():
    return FakeBuilder()


@pytest.fixture
def deployer():
    return FakeDeployer()


@pytest.fixture
def make_project(tmp_path, cache, builder, deployer):
    """
    Factory for projects backed by FakeRepo.

    deps are project names in the same group; they are declared with
    compile scope unless given as (name, scope) pairs.
    """

    def factory(
        name: str,
        deps: Sequence = (),
        *,
        branch: str = "master",
        modified: Sequence[str] = (),
        commit: str = SHA_A,
        exists: bool = True,
        service: bool = False,
        branches: Optional[BranchPolicy] = None,
        basis_branch: str = "master",
        auto_reset: bool = False,
        always_build: bool = False,
        status: Status = Status.MANIFEST_READ,
    ) -> Project:
        root = tmp_path / name
        if exists:
            root.mkdir()
        repo = FakeRepo(root, branch=branch, modified=modified, commit=commit, exists=exists)
        builder.repos[name] = repo

        dependencies = []
        for d in deps:
            dep_name, scope = d if isinstance(d, tuple) else (d, Scope.COMPILE)
            dependencies.append(DependencyRef(Coordinate(GROUP, dep_name), scope))

        kwargs = {}
        if service:
            kwargs["deployer"] = ArchiveDeploy(executor=deployer, archive=f"{name}.war", service=name)

        return Project(
            name=name,
            root=root,
            repo=repo,
            coordinate=Coordinate(GROUP, name),
            builder=builder,
            cache=cache,
            dependencies=dependencies,
            branches=branches or BranchPolicy.of(pull=["master"], rebase=["feature"], local=["spike"]),
            basis_branch=basis_branch,
            auto_reset=auto_reset,
            always_build=always_build,
            status=status,
            **kwargs,
        )

    return factory
