"""Task dependency leveling.

Contains utilities for:
- computing the level of every task in a project's dependency graph,
- grouping leveled tasks into rows for the hierarchy view,
- finding cycles and checking whether a new edge would close one.

An edge is a ``(task_id, depends_on_task_id)`` pair. All functions are pure:
traversal state lives in local variables, never at module level.
"""

import logging
from collections import deque
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from .choices import TaskStatus, label_for

logger = logging.getLogger(__name__)

Edge = Tuple[Hashable, Hashable]

_EXHAUSTED = object()


class DependencyCycleError(ValueError):
    """Raised when a dependency cycle is found where none is allowed."""

    def __init__(self, cycle: List[Hashable]):
        self.cycle = cycle
        path = " -> ".join(str(node) for node in cycle)
        super().__init__(f"Circular dependency detected: {path}")


def _task_ids(tasks: Sequence[Dict[str, Any]]) -> List[Hashable]:
    """Return task ids in input order, deduped."""
    ids: List[Hashable] = []
    seen: Set[Hashable] = set()
    for t in tasks:
        tid = t["id"]
        if tid not in seen:
            seen.add(tid)
            ids.append(tid)
    return ids


def _dependency_map(ids: Iterable[Hashable], edges: Iterable[Edge]) -> Dict[Hashable, List[Hashable]]:
    """Build adjacency map: id -> ids it depends on.

    Edges with an endpoint outside `ids` are dropped. Duplicate edges count once.
    """
    graph: Dict[Hashable, List[Hashable]] = {tid: [] for tid in ids}
    for task_id, depends_on in edges:
        if task_id not in graph or depends_on not in graph:
            continue
        deps = graph[task_id]
        if depends_on not in deps:
            deps.append(depends_on)
    return graph


def _edge_graph(edges: Iterable[Edge]) -> Dict[Hashable, List[Hashable]]:
    """Adjacency map over every id that appears in `edges`."""
    graph: Dict[Hashable, List[Hashable]] = {}
    for task_id, depends_on in edges:
        deps = graph.setdefault(task_id, [])
        graph.setdefault(depends_on, [])
        if depends_on not in deps:
            deps.append(depends_on)
    return graph


def compute_levels(tasks: Sequence[Dict[str, Any]],
                   edges: Iterable[Edge],
                   strict: bool = False) -> Dict[Hashable, int]:
    """Assign every task an integer level.

    A task with no dependencies gets level 0; any other task gets one more than
    the highest level among its dependencies.

    Args:
        tasks: sequence of task dicts, each with a unique 'id'.
        edges: (task_id, depends_on_task_id) pairs. Pairs naming an unknown
               task are ignored.
        strict: raise DependencyCycleError on a cycle instead of breaking it.

    Returns:
        Dict mapping each task id to its level.

    When a task that is still being computed is reached again (a cycle), that
    revisit counts as level 0. The result then terminates but does not reflect
    a true partial order.
    """
    ids = _task_ids(tasks)
    graph = _dependency_map(ids, edges)

    levels: Dict[Hashable, int] = {}   # done
    in_progress: Set[Hashable] = set()

    for root in ids:
        if root in levels:
            continue

        # frame: [node, iterator over its dependencies, highest dependency level]
        in_progress.add(root)
        stack: List[List[Any]] = [[root, iter(graph[root]), -1]]
        while stack:
            frame = stack[-1]
            dep = next(frame[1], _EXHAUSTED)

            if dep is _EXHAUSTED:
                node = frame[0]
                levels[node] = frame[2] + 1
                in_progress.discard(node)
                stack.pop()
                if stack:
                    stack[-1][2] = max(stack[-1][2], levels[node])
                continue

            if dep in levels:
                frame[2] = max(frame[2], levels[dep])
            elif dep in in_progress:
                path = [f[0] for f in stack]
                cycle = path[path.index(dep):] + [dep]
                if strict:
                    raise DependencyCycleError(cycle)
                logger.debug("Breaking dependency cycle %s at %s", cycle, dep)
                frame[2] = max(frame[2], 0)
            else:
                in_progress.add(dep)
                stack.append([dep, iter(graph[dep]), -1])

    return levels


def build_task_nodes(tasks: Sequence[Dict[str, Any]],
                     edges: Iterable[Edge],
                     strict: bool = False) -> List[Dict[str, Any]]:
    """Return one node dict per task with its dependencies, dependents and level."""
    edges = list(edges)
    ids = _task_ids(tasks)
    graph = _dependency_map(ids, edges)

    dependents: Dict[Hashable, List[Hashable]] = {tid: [] for tid in ids}
    for tid, deps in graph.items():
        for dep in deps:
            dependents[dep].append(tid)

    levels = compute_levels(tasks, edges, strict=strict)

    nodes: List[Dict[str, Any]] = []
    seen: Set[Hashable] = set()
    for t in tasks:
        tid = t["id"]
        if tid in seen:
            continue
        seen.add(tid)
        status = t.get("status", TaskStatus.TODO)
        nodes.append({
            "id": tid,
            "title": t.get("title", ""),
            "status": status,
            "status_label": label_for(TaskStatus, status),
            "dependencies": list(graph[tid]),
            "dependents": dependents[tid],
            "level": levels[tid],
        })
    return nodes


def level_label(level: int) -> str:
    if level == 0:
        return "Level 0 (no dependencies)"
    return f"Level {level} (depends on level {level - 1})"


def group_by_level(nodes: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Bucket nodes into ordered level groups, skipping empty levels."""
    buckets: Dict[int, List[Dict[str, Any]]] = {}
    for node in nodes:
        buckets.setdefault(node["level"], []).append(node)

    return [
        {"level": level, "label": level_label(level), "tasks": buckets[level]}
        for level in sorted(buckets)
    ]


def find_cycle(edges: Iterable[Edge]) -> Optional[List[Hashable]]:
    """Return one dependency cycle as a path (e.g. [a, b, a]), or None.

    A self-dependency is reported as [a, a].
    """
    graph = _edge_graph(edges)
    done: Set[Hashable] = set()
    in_progress: Set[Hashable] = set()

    for root in graph:
        if root in done:
            continue
        in_progress.add(root)
        stack: List[Tuple[Hashable, Any]] = [(root, iter(graph[root]))]
        while stack:
            node, deps = stack[-1]
            dep = next(deps, _EXHAUSTED)
            if dep is _EXHAUSTED:
                in_progress.discard(node)
                done.add(node)
                stack.pop()
            elif dep in in_progress:
                path = [n for n, _ in stack]
                return path[path.index(dep):] + [dep]
            elif dep not in done:
                in_progress.add(dep)
                stack.append((dep, iter(graph[dep])))
    return None


def would_create_cycle(edges: Iterable[Edge], task_id: Hashable, depends_on_task_id: Hashable) -> bool:
    """Check whether adding task_id -> depends_on_task_id would close a cycle.

    True for a self-dependency, or when depends_on_task_id already depends
    (directly or transitively) on task_id.
    """
    if task_id == depends_on_task_id:
        return True

    graph = _edge_graph(edges)
    queue = deque([depends_on_task_id])
    visited = {depends_on_task_id}
    while queue:
        node = queue.popleft()
        for dep in graph.get(node, []):
            if dep == task_id:
                return True
            if dep not in visited:
                visited.add(dep)
                queue.append(dep)
    return False
