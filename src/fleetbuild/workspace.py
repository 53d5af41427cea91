# workspace.py
from __future__ import annotations

import os
import runpy
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from pydantic import ValidationError

from .cache import STATE_FILE_NAME, RevisionCache
from .config import BUILD_FILE_ENV, DEFAULT_BUILD_FILE, BuildFile, ProjectDesc, RunConfig
from .errors import ConfigError
from .executor import DevDeployExecutor, MavenExecutor
from .git_facts.git import GitRepository, open_repository
from .manifest import PomReader
from .model import Coordinate, DependencyRef, Status
from .project import ArchiveDeploy, Builder, Deployer, NoDeploy, Project
from .ui.console import get_console

# group used for projects whose clone is not on disk yet
MISSING_GROUP = "<missing>"


class ManifestReader(Protocol):
    def read(self, root: str | Path) -> Tuple[Coordinate, List[DependencyRef]]: ...


# ---------------------------------------------------------------------
# Build-file discovery / loading
# ---------------------------------------------------------------------

def find_build_file(path_arg: Optional[str] = None) -> Path:
    """
    Locate the build file.

    Order: explicit path, then fleetbuild_workspace.py in the current
    directory, then $FLEETBUILD_FILE.

    Raises:
        ConfigError: nothing found
    """
    if path_arg:
        path = Path(path_arg).expanduser()
        if not path.exists() and path.suffix != ".py":
            path = Path(str(path) + ".py")
        if not path.exists():
            raise ConfigError(f"Build file not found: {path_arg}")
        return path

    default = Path(DEFAULT_BUILD_FILE)
    if default.exists():
        return default

    env_path = os.environ.get(BUILD_FILE_ENV)
    if env_path:
        path = Path(env_path).expanduser()
        if not path.exists():
            raise ConfigError(f"Build file from ${BUILD_FILE_ENV} not found: {env_path}")
        return path

    raise ConfigError(
        f"No build file found (looked for ./{DEFAULT_BUILD_FILE} and ${BUILD_FILE_ENV})"
    )


def load_build_file(path: str | Path) -> BuildFile:
    """
    Load a build file from a python file path.

    The file must define either:
      - workspace() -> BuildFile | dict
      - WORKSPACE = BuildFile | dict
    """
    bf_path = Path(path).expanduser().resolve()
    if not bf_path.exists():
        raise ConfigError(f"Build file not found: {bf_path}")
    if bf_path.suffix != ".py":
        raise ConfigError(f"Build file must be a .py file, got: {bf_path.name}")

    module_name = f"fleetbuild_workspace_{bf_path.stem}"
    globals_dict = runpy.run_path(str(bf_path), run_name=module_name)

    if "workspace" not in globals_dict and "WORKSPACE" not in globals_dict:
        raise ConfigError(f"{bf_path.name} must define workspace() or WORKSPACE")

    # the dsl helpers validate as they build, so workspace() can fail too
    try:
        if "workspace" in globals_dict and callable(globals_dict["workspace"]):
            value = globals_dict["workspace"]()
        else:
            value = globals_dict["WORKSPACE"]
        if isinstance(value, BuildFile):
            return value
        return BuildFile.model_validate(value)
    except ValidationError as e:
        raise ConfigError(f"Invalid build file {bf_path.name}:\n{e}") from e


# ---------------------------------------------------------------------
# Project construction
# ---------------------------------------------------------------------

def select_projects(descs: Sequence[ProjectDesc], names: Sequence[str]) -> List[ProjectDesc]:
    """Keep build-file order; an empty selection keeps everything."""
    if not names:
        return list(descs)
    wanted = set(names)
    chosen = [d for d in descs if d.display_name in wanted or d.name in wanted]
    known = {d.display_name for d in descs} | {d.name for d in descs}
    for n in sorted(wanted - known):
        get_console().print_info(f"Ignoring unknown project {n}")
    return chosen


def locate(desc: ProjectDesc, project_dir: Path) -> Tuple[GitRepository, Path]:
    """Return the repository and the project root (a sub-directory for sub-projects)."""
    repo = open_repository(project_dir / desc.repository, desc.scm)
    root = repo.path if desc.repository == desc.name else repo.path / desc.name
    return repo, root


def open_repositories(build_file: BuildFile, run_config: RunConfig) -> List[Tuple[str, GitRepository]]:
    """(display name, repository) for every selected project, without reading manifests."""
    return [
        (desc.display_name, locate(desc, run_config.project_dir)[0])
        for desc in select_projects(build_file.projects, run_config.project_list)
    ]


def create_projects(
    build_file: BuildFile,
    run_config: RunConfig,
    *,
    cache: Optional[RevisionCache] = None,
    builder: Optional[Builder] = None,
    deploy_executor: Optional[Deployer] = None,
    manifest_reader: Optional[ManifestReader] = None,
) -> List[Project]:
    cache = cache or RevisionCache(STATE_FILE_NAME)
    builder = builder or MavenExecutor()
    deploy_executor = deploy_executor or DevDeployExecutor()
    manifest_reader = manifest_reader or PomReader()

    projects: List[Project] = []
    for desc in select_projects(build_file.projects, run_config.project_list):
        repo, root = locate(desc, run_config.project_dir)

        if root.exists():
            coordinate, deps = manifest_reader.read(root)
            status = Status.MANIFEST_READ
        elif repo.exists():
            raise ConfigError(f"Sub-project directory {root} does not exist")
        else:
            coordinate, deps = Coordinate(MISSING_GROUP, desc.display_name), []
            status = Status.NEW

        if desc.is_service:
            deployer = ArchiveDeploy(
                executor=deploy_executor,
                archive=desc.archive_name,
                service=desc.service_name,
                restart=desc.should_restart,
            )
        else:
            deployer = NoDeploy()

        projects.append(
            Project(
                name=desc.display_name,
                root=root,
                repo=repo,
                coordinate=coordinate,
                builder=builder,
                cache=cache,
                dependencies=deps,
                branches=run_config.branches,
                basis_branch=desc.basis_branch or run_config.basis_branch,
                deployer=deployer,
                auto_reset=run_config.auto_reset,
                always_build=desc.always_build,
                build_flags=list(desc.mvn_flags),
                status=status,
            )
        )
    return projects
