"""Reachability and lateness, computed once all key items are placed.

Determines which areas block which other areas, and from that how late in
the game each area is (by number of slots encountered up to that point).
"""

from __future__ import annotations

from collections.abc import Container, Iterable, Mapping

from keyrando.errors import AssignmentError
from keyrando.graph import Node


def compute_included_areas(
    nodes: Mapping[str, Node],
    loops: Mapping[str, set[str]],
    is_place: Container[str],
) -> dict[str, set[str]]:
    """Compute every node's transitive prerequisites.

    Dependency edges in the loop table are not followed. The result for a
    node contains itself when it is an area or event (`is_place`), and the
    areas and events of every prerequisite; items are traversed but never
    included.

    Args:
        nodes: Final requirement graph, including placed item nodes.
        loops: Loop table from the last collapsing pass.
        is_place: Names of areas and events.

    Returns:
        Node name -> set of area/event names, for every node.

    Raises:
        AssignmentError: If a dependency loop survived loop breaking.
    """
    included: dict[str, set[str] | None] = {}

    def visit(name: str, path: list[str]) -> set[str]:
        path = path + [name]
        if name in included:
            result = included[name]
            if result is None:
                raise AssignmentError(
                    f"Loop from {name} to {nodes[name].req} - path {','.join(path)}"
                )
            return result
        if name not in nodes:
            raise AssignmentError(f"Unknown dependency {name} - path {','.join(path)}")
        included[name] = None
        result = set()
        if name in is_place:
            result.add(name)
        ignored = loops.get(name, set())
        for free in sorted(nodes[name].req.free_vars()):
            if free not in ignored:
                result |= visit(free, path)
        included[name] = result
        return result

    for name in sorted(nodes):
        visit(name, [])
    return {name: result for name, result in included.items() if result is not None}


class AreaOrder:
    """Total order of areas by final difficulty."""

    def __init__(self, areas: Iterable[str], nodes: Mapping[str, Node]) -> None:
        self.order = sorted(sorted(areas), key=lambda a: nodes[a].cum_key_count)
        self.index = {area: i for i, area in enumerate(self.order)}

    def latest(self, names: Iterable[str]) -> str:
        """Return the latest of the given areas (the earliest area if none).

        Raises:
            AssignmentError: If a name is not an ordered area.
        """
        best = 0
        for name in names:
            if name not in self.index:
                raise AssignmentError(f"No order for area {name}")
            best = max(best, self.index[name])
        return self.order[best]


def compute_lateness(
    areas: Iterable[str],
    nodes: Mapping[str, Node],
    groups: Mapping[str, frozenset[str]],
) -> dict[str, float]:
    """Normalize difficulty into a lateness value in [0, 1].

    Each area's lateness is its cumulative count over the maximum among all
    areas. A combined-weight group takes the latest value among its areas,
    and every member shares it. Groups without areas use their own nodes'
    values, capped at 1.
    """
    areas = set(areas)
    total = max((nodes[a].cum_key_count for a in areas), default=0)

    def ratio(name: str) -> float:
        if total <= 0:
            return 0.0
        return min(1.0, nodes[name].cum_key_count / total)

    lateness: dict[str, float] = {}
    seen: set[frozenset[str]] = set()
    for name in sorted(groups):
        group = groups[name]
        if group in seen:
            continue
        seen.add(group)
        members = [m for m in group if m in areas] or [m for m in group if m in nodes]
        if not members:
            continue
        value = max(ratio(m) for m in members)
        for same in group:
            lateness[same] = value
    return lateness
