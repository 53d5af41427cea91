# dag.py
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Tuple

from .errors import CycleError, DuplicateCoordinateError
from .model import Coordinate

if TYPE_CHECKING:
    from .project import Project

ProjectGraph = Dict[Coordinate, "Project"]


def build_graph(projects: Iterable[Project]) -> ProjectGraph:
    """
    Index projects by coordinate and link every upstream edge.

    Requires:
      - project.coordinate: unique across the run
      - project.upstream: DependencyRefs read from the manifest

    Dependencies on coordinates outside the run (third-party artifacts,
    projects not selected) are not edges and are silently dropped.
    The returned dict keeps the enumeration order of `projects`.
    """
    projects = list(projects)

    graph: ProjectGraph = {}
    for p in projects:
        other = graph.get(p.coordinate)
        if other is not None:
            raise DuplicateCoordinateError(p.coordinate, [other.name, p.name])
        graph[p.coordinate] = p

    for p in projects:
        p.downstream = {}

    for p in projects:
        for dep in p.upstream:
            up = graph.get(dep.coordinate)
            if up is None or up is p:
                continue
            # edge up -> p (up must build before p)
            up.downstream[p.coordinate] = p

    return graph


def upstream_projects(project: Project, graph: ProjectGraph) -> List[Project]:
    """In-graph projects `project` depends on, in declaration order."""
    out: List[Project] = []
    for dep in project.upstream:
        up = graph.get(dep.coordinate)
        if up is not None and up is not project:
            out.append(up)
    return out


_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2


def topo_order(graph: ProjectGraph) -> List[Project]:
    """
    Order projects so every upstream project precedes its downstreams.

    Depth-first over the upstream relation: a project is emitted only after
    everything it depends on. Roots and dependencies are both visited in
    enumeration order (the order projects were given to build_graph), so
    the result is deterministic for a given input order.

    Uses an explicit stack, so long dependency chains do not hit the
    interpreter's recursion limit.

    Raises:
      CycleError naming the coordinates on the cycle.
    """
    color: Dict[Coordinate, int] = {c: _UNVISITED for c in graph}
    rank: Dict[Coordinate, int] = {c: i for i, c in enumerate(graph)}
    order: List[Project] = []

    def upstream_iter(p: Project) -> Iterator[Project]:
        return iter(sorted(upstream_projects(p, graph), key=lambda u: rank[u.coordinate]))

    for root in graph.values():
        if color[root.coordinate] != _UNVISITED:
            continue

        # stack entries mirror the current DFS path
        color[root.coordinate] = _IN_PROGRESS
        stack: List[Tuple[Project, Iterator[Project]]] = [(root, upstream_iter(root))]
        while stack:
            p, ups = stack[-1]
            up = next(ups, None)
            if up is None:
                stack.pop()
                color[p.coordinate] = _DONE
                order.append(p)
                continue

            state = color[up.coordinate]
            if state == _IN_PROGRESS:
                path = [q.coordinate for q, _ in stack]
                start = path.index(up.coordinate)
                raise CycleError(path[start:] + [up.coordinate])
            if state == _UNVISITED:
                color[up.coordinate] = _IN_PROGRESS
                stack.append((up, upstream_iter(up)))

    return order


def topo_levels(graph: ProjectGraph) -> List[List[Project]]:
    """
    Group the topological order into levels.

    level(p) = 0 for projects with no in-graph upstream, else
    1 + max(level(upstream)). Projects in one level have no ordering
    relationship and may run in parallel; within a level the topo_order
    sequence is kept.
    """
    order = topo_order(graph)
    level: Dict[Coordinate, int] = {}
    for p in order:
        ups = upstream_projects(p, graph)
        level[p.coordinate] = 1 + max((level[u.coordinate] for u in ups), default=-1)

    levels: List[List[Project]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
    for p in order:
        levels[level[p.coordinate]].append(p)
    return levels
