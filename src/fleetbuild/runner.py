# runner.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .dag import ProjectGraph, build_graph, topo_levels, topo_order
from .errors import CycleError, GraphError, SCMError
from .git_facts.git import GitRepository
from .model import ALL_PHASES, Fatal, Phase, Status
from .project import Project
from .timing import Stopwatch
from .ui.console import get_console

TOTAL_TIMER = "__total__"


# ----------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectOutcome:
    name: str
    status: Status
    elapsed: Optional[float]   # None if the project was never reached
    branch: str
    failure_summary: List[str] = field(default_factory=list)


@dataclass
class RunReport:
    """Everything the run produced, including the fatal condition if any."""
    outcomes: List[ProjectOutcome]
    total_elapsed: float
    fatal: Optional[Fatal] = None

    @property
    def ok(self) -> bool:
        return self.fatal is None

    def status_of(self, name: str) -> Status:
        for o in self.outcomes:
            if o.name == name:
                return o.status
        raise KeyError(name)

    @property
    def failed(self) -> List[str]:
        bad = (Status.FAIL, Status.DIRTY, Status.DIRTY_FAIL, Status.UPSTREAM_FAIL)
        return [o.name for o in self.outcomes if o.status in bad]


@dataclass(frozen=True)
class BranchRow:
    name: str
    modified: int
    commit: str
    branch: str


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _run_phases(project: Project, phases: Sequence[Phase]) -> Optional[Fatal]:
    # phases always run in sync -> build -> deploy order
    for phase in ALL_PHASES:
        if phase not in phases:
            continue
        if phase is Phase.SYNC:
            fatal = project.sync()
        elif phase is Phase.BUILD:
            fatal = project.build()
        else:
            fatal = project.deploy()
        if fatal is not None:
            return fatal
    return None


def _propagate_failure(project: Project) -> None:
    """Mark direct downstream projects of a dirty-failed project."""
    console = get_console()
    for dp in project.downstream.values():
        console.print_upstream_fail(project.name, dp.name)
        dp.mark_upstream_failed()


def _process(project: Project, phases: Sequence[Phase], watches: Stopwatch) -> Optional[Fatal]:
    watches.start(project.name)
    try:
        fatal = _run_phases(project, phases)
        if fatal is None and project.blocks_downstream:
            _propagate_failure(project)
        return fatal
    except SCMError as e:
        return Fatal(kind="scm", project=project.name, message=str(e))
    finally:
        watches.stop(project.name)


def _branch_of(project: Project) -> str:
    try:
        return project.current_branch()
    except SCMError:
        return "?"


def _report(order: Iterable[Project], watches: Stopwatch, fatal: Optional[Fatal]) -> RunReport:
    outcomes = [
        ProjectOutcome(
            name=p.name,
            status=p.status,
            elapsed=watches.elapsed(p.name) if p.name in watches else None,
            branch=_branch_of(p),
            failure_summary=list(p.failure_summary),
        )
        for p in order
    ]
    return RunReport(outcomes=outcomes, total_elapsed=watches.elapsed(TOTAL_TIMER), fatal=fatal)


def _run_sequential(order: List[Project], phases: Sequence[Phase], watches: Stopwatch) -> Optional[Fatal]:
    for project in order:
        fatal = _process(project, phases, watches)
        if fatal is not None:
            return fatal
    return None


def _run_levels(graph: ProjectGraph, phases: Sequence[Phase], watches: Stopwatch, workers: int) -> Optional[Fatal]:
    """
    Run each dependency level on a thread pool.

    A level finishes (failure propagation included) before the next level
    starts, so a downstream project never runs before its upstreams' outcome
    is known. The first fatal result stops scheduling after its level.
    """
    with ThreadPoolExecutor(max_workers=workers) as pool:
        for level in topo_levels(graph):
            futures = [pool.submit(_process, p, phases, watches) for p in level]
            fatals = [f.result() for f in futures]
            for fatal in fatals:
                if fatal is not None:
                    return fatal
    return None


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_projects(
    projects: Sequence[Project],
    *,
    phases: Sequence[Phase] = ALL_PHASES,
    workers: int = 1,
) -> RunReport:
    """
    Sync, build and deploy `projects` in dependency order.

    Graph errors (duplicate coordinate, cycle) abort before any phase runs.
    Any fatal phase result stops the run; projects not yet reached keep
    their current status in the report. Nothing already pulled or rebased
    is rolled back.
    """
    watches = Stopwatch()
    watches.start(TOTAL_TIMER)

    try:
        graph = build_graph(projects)
        order = topo_order(graph)
    except GraphError as e:
        details = [str(c) for c in e.cycle] if isinstance(e, CycleError) else []
        fatal = Fatal(kind="graph", project=None, message=str(e), details=details)
        return _report(projects, watches, fatal)

    get_console().print_debug("Build order: " + ", ".join(p.name for p in order))

    if workers > 1:
        fatal = _run_levels(graph, phases, watches, workers)
    else:
        fatal = _run_sequential(order, phases, watches)

    return _report(order, watches, fatal)


def branch_report(repos: Iterable[Tuple[str, GitRepository]]) -> List[BranchRow]:
    """Read-only overview of (name, repository) pairs. Runs no mutating command."""
    rows: List[BranchRow] = []
    for name, repo in repos:
        if not repo.exists():
            rows.append(BranchRow(name, 0, "", repo.current_branch()))
            continue
        rows.append(
            BranchRow(
                name=name,
                modified=len(repo.status()),
                commit=repo.short_commit(),
                branch=repo.current_branch(),
            )
        )
    return rows
