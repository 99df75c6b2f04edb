"""Requirement collapsing.

The core routine of key item placement. Given the current graph of areas,
events and already placed items, reduce the requirement of every node to
one expressed only in terms of unplaced items. Whether an area depends on an
item is then a single `Expr.needs` check, and the item can go anywhere
that doesn't need it.

Placed items point back to areas, so the graph can contain cycles. They are
broken heuristically by ignoring dependency edges which are not logically
needed; the ignored edges form the loop table.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto

from keyrando.errors import AssignmentError, HardLoopError
from keyrando.expr import FALSE, Expr
from keyrando.graph import Node


class VisitState(Enum):
    """DFS marking for cycle detection."""

    IN_PROGRESS = auto()
    DONE = auto()


@dataclass
class CollapseResult:
    """Result of a collapsing pass.

    Attributes:
        reqs: Node name -> requirement in terms of unplaced items only.
        loops: Node name -> dependencies ignored to keep the graph acyclic.
    """

    reqs: dict[str, Expr] = field(default_factory=dict)
    loops: dict[str, set[str]] = field(default_factory=dict)


def find_loops(nodes: Mapping[str, Node], loops: dict[str, set[str]]) -> bool:
    """Run one cycle detection pass, snipping cycles into `loops`.

    On each cycle found, the first edge along it whose source does not need
    its target, with the source's already ignored dependencies removed, is
    added to the loop table. This doesn't work in a small portion of cases,
    where every edge is needed.

    Args:
        nodes: The requirement graph.
        loops: Loop table, updated in place.

    Returns:
        True if a new edge was added to the loop table.

    Raises:
        HardLoopError: If a cycle has no droppable edge.
    """
    state: dict[str, VisitState] = {}
    path: list[str] = []
    found = False

    def visit(name: str) -> None:
        nonlocal found
        if name in state:
            if state[name] is VisitState.IN_PROGRESS:
                cycle = path[path.index(name) :] + [name]
                for fro, to in zip(cycle, cycle[1:]):
                    # Edges dropped earlier still count as gone
                    ignored = {dep: FALSE for dep in loops.get(fro, ())}
                    if not nodes[fro].req.substitute(ignored).needs(to):
                        loops.setdefault(fro, set()).add(to)
                        found = True
                        return
                raise HardLoopError(cycle)
            return
        state[name] = VisitState.IN_PROGRESS
        path.append(name)
        for free in sorted(nodes[name].req.free_vars()):
            if free in nodes and free not in loops.get(name, ()):
                visit(free)
        path.pop()
        state[name] = VisitState.DONE

    for name in sorted(nodes):
        visit(name)
    return found


def collapse_reqs(nodes: Mapping[str, Node]) -> CollapseResult:
    """Collapse every node requirement down to unplaced items.

    The loop table is rebuilt from scratch. Detection passes repeat until
    one adds no edge, then each node's requirement gets its ignored
    dependencies replaced by false and every other node name replaced by
    that node's collapsed requirement.

    Raises:
        HardLoopError: If a cycle can't be broken.
        AssignmentError: If a cycle survives loop breaking (internal error).
    """
    result = CollapseResult()
    loops = result.loops
    while find_loops(nodes, loops):
        pass

    simplified: dict[str, Expr | None] = {}

    def simplify_req(name: str) -> Expr:
        if name in simplified:
            req = simplified[name]
            if req is None:
                raise AssignmentError(f"Loop detection failed on {name} - internal error")
            return req
        simplified[name] = None
        req = nodes[name].req
        if name in loops:
            req = req.substitute({dep: FALSE for dep in loops[name]})
        req = req.substitute(
            {
                free: simplify_req(free)
                for free in sorted(req.free_vars())
                if free in nodes
            }
        )
        simplified[name] = req
        return req

    for name in sorted(nodes):
        result.reqs[name] = simplify_req(name)
    return result
