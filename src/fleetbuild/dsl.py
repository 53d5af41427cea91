# src/fleetbuild/dsl.py
from __future__ import annotations

from typing import Any, List, Optional, Union

from .config import BuildFile, ProjectDesc, WorkspaceConfig


# ---------------------------------------------------------------------
# Project helpers
# ---------------------------------------------------------------------

def library(
    name: str,
    *,
    repo: Optional[str] = None,
    scm: Optional[str] = None,
    mvn_flags: Optional[List[str]] = None,
    basis_branch: Optional[str] = None,
    always_build: bool = False,
) -> ProjectDesc:
    """A project that is built and installed but never deployed."""
    return ProjectDesc(
        library=name,
        repo=repo,
        scm=scm,
        mvn_flags=mvn_flags or [],
        basis_branch=basis_branch,
        always_build=always_build,
    )


def service(
    name: str,
    *,
    repo: Optional[str] = None,
    scm: Optional[str] = None,
    mvn_flags: Optional[List[str]] = None,
    basis_branch: Optional[str] = None,
    archive: Optional[str] = None,
    wlp: Optional[str] = None,
    restart: Union[bool, str, None] = None,
) -> ProjectDesc:
    """
    A deployable project.

    archive defaults to "<name>.war"; wlp (the deployment target) defaults
    to the name without a "-service" suffix.
    """
    return ProjectDesc(
        service=name,
        repo=repo,
        scm=scm,
        mvn_flags=mvn_flags or [],
        basis_branch=basis_branch,
        archive=archive,
        wlp=wlp,
        restart=restart,
    )


# ---------------------------------------------------------------------
# Workspace helper (single-file story)
# ---------------------------------------------------------------------

def ws(
    *projects: Union[ProjectDesc, str],
    project_dir: Optional[str] = None,
    pull_branches: Optional[List[str]] = None,
    rebase_branches: Optional[List[str]] = None,
    local_branches: Optional[List[str]] = None,
    basis_branch: Optional[str] = None,
) -> BuildFile:
    """
    Workspace definition helper. Use this name so you can define your own
    def workspace(): return ws(...).

    Users can write:
        from fleetbuild import ws, library, service

        def workspace():
            return ws(
                "core-lib",
                library("util", repo="platform"),
                service("orders-service"),
                project_dir="~/src",
            )

    Projects are built in dependency order; the order given here only
    breaks ties.
    """
    items: List[Any] = [library(p) if isinstance(p, str) else p for p in projects]
    return BuildFile(
        config=WorkspaceConfig(
            project_dir=project_dir,
            pull_branches=pull_branches,
            rebase_branches=rebase_branches,
            local_branches=local_branches,
            basis_branch=basis_branch,
        ),
        projects=items,
    )
