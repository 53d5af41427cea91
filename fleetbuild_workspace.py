# fleetbuild_workspace.py
# Example workspace: shared libraries first, services on top.
# Build order comes from the pom.xml dependencies, not from this list.
from __future__ import annotations
from fleetbuild.dsl import ws, library, service

def workspace():
    return ws(
        # parent pom and shared code
        "platform-parent",
        library("platform-util", repo="platform"),
        library("platform-persistence", repo="platform"),

        # generated client code changes often; never trust the cache
        library("api-clients", always_build=True, mvn_flags=["-DskipTests"]),

        # services pushed to the development server after a build
        service("orders-service"),
        service("billing-service", archive="billing.war", restart="no"),
        service("search", repo="search-engine", scm="git-svn", wlp="search-app"),

        project_dir="~/src",
        pull_branches=["master", "develop"],
        rebase_branches=["feature"],
        basis_branch="master",
    )
