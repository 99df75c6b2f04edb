"""Requirement graph construction.

Builds one node per area and event from the annotation requirements, with
config flags substituted in. Key item nodes are added later, as items get
placed.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field

from keyrando.annotations import AreaAnnotation, Annotations, UniqueCategory
from keyrando.errors import AssignmentError
from keyrando.expr import FALSE, TRUE, Expr, Named


def categories(allow_quest: bool, allow_shops: bool) -> list[UniqueCategory]:
    """Slot categories usable for an item, in consumption order.

    World slots come before shop slots, key slots before quest slots.
    """
    result = [UniqueCategory.KEY_LOT]
    if allow_shops:
        result.append(UniqueCategory.KEY_SHOP)
    if allow_quest:
        result.append(UniqueCategory.QUEST_LOT)
        if allow_shops:
            result.append(UniqueCategory.QUEST_SHOP)
    return result


def empty_counts() -> dict[UniqueCategory, int]:
    return {cat: 0 for cat in categories(True, True)}


@dataclass
class Node:
    """A node in the requirement graph: an area, an event or a placed item.

    Attributes:
        name: Unique node name.
        req: Requirement to reach the node. For a placed item, the area it
            was placed in.
        counts: Remaining unique slots per category.
        cum_key_count: Rough difficulty, the number of slots available
            before reaching this node. -1 until computed.
        weight: Selection weight multiplier, adjusted during placement.
    """

    name: str
    req: Expr = TRUE
    counts: dict[UniqueCategory, int] = field(default_factory=empty_counts)
    cum_key_count: int = -1
    weight: float = 1.0

    @property
    def key_count(self) -> int:
        """Slots able to hold key items."""
        return self.count(False, True)

    def count(self, allow_quest: bool, allow_shops: bool) -> int:
        return sum(self.counts[cat] for cat in categories(allow_quest, allow_shops))

    def add_item(self, allow_quest: bool, allow_shops: bool) -> None:
        """Consume one slot, preferring world slots over shops.

        Raises:
            AssignmentError: If no slot of an allowed category is left.
        """
        for cat in categories(allow_quest, allow_shops):
            if self.counts[cat] > 0:
                self.counts[cat] -= 1
                return
        raise AssignmentError(
            f"Cannot add item to {self.name} in quest {allow_quest}, "
            f"shops {allow_shops}"
        )

    def add_shop_capacity(self, allow_quest: bool, amount: int) -> None:
        cat = UniqueCategory.QUEST_SHOP if allow_quest else UniqueCategory.KEY_SHOP
        self.counts[cat] += amount


def _components(edges: list[tuple[str, str]]) -> dict[str, frozenset[str]]:
    """Connected components of an undirected graph, keyed by member."""
    adjacent: dict[str, set[str]] = {}
    for a, b in edges:
        adjacent.setdefault(a, set()).add(b)
        adjacent.setdefault(b, set()).add(a)

    groups: dict[str, frozenset[str]] = {}
    for start in sorted(adjacent):
        if start in groups:
            continue
        members: set[str] = set()
        queue: deque[str] = deque([start])
        while queue:
            name = queue.popleft()
            if name in members:
                continue
            members.add(name)
            queue.extend(adjacent[name] - members)
        group = frozenset(members)
        for name in members:
            groups[name] = group
    return groups


class KeyItemGraph:
    """The requirement graph over areas and events.

    Attributes:
        areas: Sorted names of usable areas (candidates for key items).
        unused_areas: Areas whose requirement is vacuously false.
        events: Names of events.
        items: Sorted names of key items referenced by any requirement.
        nodes: All nodes by name. Placed items are added later.
        item_events: Item -> events which the item triggers.
        combined_weights: Name -> its combined-weight group.
    """

    def __init__(
        self,
        ann: Annotations,
        config: Mapping[str, bool],
        explain: bool = False,
    ) -> None:
        self.ann = ann
        self.explain = explain
        self.areas: list[str] = []
        self.unused_areas: set[str] = set()
        self.events: set[str] = set(ann.events)
        self.items: list[str] = []
        self.nodes: dict[str, Node] = {}
        self.item_events: dict[str, set[str]] = {}
        self.combined_weights: dict[str, frozenset[str]] = {}

        self._item_set: set[str] = set()
        self._equivalent: dict[str, str] = {}
        self._weight_edges: list[tuple[str, str]] = []

        self._build(config)

    def _build(self, config: Mapping[str, bool]) -> None:
        ann = self.ann
        aliases = ann.area_aliases
        subst: dict[str, Expr] = {
            flag: TRUE if value else FALSE for flag, value in config.items()
        }
        for name, base in aliases.items():
            if name != base:
                subst[name] = Named(base)

        area_reqs = {
            name: area.req.substitute(subst)
            for name, area in sorted(ann.areas.items())
            if aliases[name] == name
        }
        # Areas only reachable through unused areas are unused too
        while True:
            newly = {
                name
                for name, req in area_reqs.items()
                if req.is_false() and name not in self.unused_areas
            }
            if not newly:
                break
            self.unused_areas |= newly
            falses = {name: FALSE for name in newly}
            area_reqs = {
                name: req.substitute(falses) for name, req in area_reqs.items()
            }
        for name, base in aliases.items():
            if name == base:
                continue
            own = ann.areas[name].req.substitute(subst)
            if base in self.unused_areas or own.is_false():
                self.unused_areas.add(name)
        subst.update({name: FALSE for name in self.unused_areas})

        for name, ev in sorted(ann.events.items()):
            req = ev.req.substitute(subst)
            if req.is_false():
                raise AssignmentError(f"Event {name} can't have no requirements")
            self._process_dependencies(ev, req.free_vars(), assign_items=True)
            # Events are never placed nor hold items, so they are in the graph upfront
            self.nodes[name] = Node(name=name, req=req)

        area_counts = self._area_counts()
        for name, req in area_reqs.items():
            if name in self.unused_areas:
                continue
            self._process_dependencies(ann.areas[name], req.free_vars(), False)
            self.nodes[name] = Node(name=name, req=req, counts=area_counts[name])
            self.areas.append(name)
        self.items = sorted(self._item_set)

        self._build_combined_weights()
        self._compute_cumulative_counts()

    def _process_dependencies(
        self, area: AreaAnnotation, frees: frozenset[str], assign_items: bool
    ) -> None:
        ann = self.ann
        name = area.name
        event_areas = ann.event_areas
        dependent_areas: set[str] = set()
        other = False
        for free in sorted(frees):
            if free in ann.items:
                self._item_set.add(free)
                if assign_items:
                    if free in self.item_events:
                        raise AssignmentError(f"{free} activates multiple events")
                    self.item_events[free] = {name}
                    if area.always_before is not None:
                        self.item_events[free].add(area.always_before)
                other = True
            elif free in ann.areas:
                dependent_areas.add(free)
            elif free in ann.events:
                if free in event_areas:
                    dependent_areas.add(event_areas[free])
                else:
                    other = True
            else:
                raise AssignmentError(
                    f"Unknown dependency {free} in requirements for {name}"
                )
        if len(dependent_areas) == 1 and not other:
            self._equivalent[name] = next(iter(dependent_areas))
            if self.explain:
                print(
                    "Collapsed events for key item generation: "
                    f"{name} -> {self._equivalent[name]}"
                )
        # Weight base: a key item placed in the base area also weighs on this one
        self._weight_edges.append((name, name))
        if area.weight_base is not None:
            self._weight_edges.append((area.weight_base, name))

    def _area_counts(self) -> dict[str, dict[UniqueCategory, int]]:
        counts = self.ann.unique_counts()
        aliases = self.ann.area_aliases
        result: dict[str, dict[UniqueCategory, int]] = {}
        for name, scopes in self.ann.area_scopes.items():
            # Slots in alias areas count towards the base area
            area_counts = result.setdefault(aliases.get(name, name), empty_counts())
            for scope in scopes:
                if scope in counts:
                    cat, count = counts[scope]
                    area_counts[cat] += count
        return result

    def _build_combined_weights(self) -> None:
        edges = self._weight_edges + list(self._equivalent.items())
        self.combined_weights = _components(edges)
        if self.explain:
            explained: set[str] = set()
            for name in sorted(self.combined_weights):
                group = self.combined_weights[name]
                if name in explained or len(group) == 1:
                    continue
                print(f"Combined group: [{','.join(sorted(group))}]")
                explained |= group

    def group(self, name: str) -> frozenset[str]:
        """Combined-weight group of a name (a singleton if ungrouped)."""
        return self.combined_weights.get(name, frozenset([name]))

    def _compute_cumulative_counts(self) -> None:
        """Rough area difficulty: the number of key slots needed to get there.

        Each node's count is the maximum, over its area and event
        dependencies, of their own key slots plus their cumulative count.
        """
        visiting: set[str] = set()

        def cumulative(name: str) -> int:
            node = self.nodes[name]
            if node.cum_key_count != -1:
                return node.key_count + node.cum_key_count
            if name in visiting:
                raise AssignmentError(f"Cycle in area requirements at {name}")
            visiting.add(name)
            deps = [
                free
                for free in sorted(node.req.free_vars())
                if free in self.nodes
            ]
            node.cum_key_count = max((cumulative(free) for free in deps), default=0)
            visiting.discard(name)
            return node.key_count + node.cum_key_count

        for name in sorted(self.nodes):
            cumulative(name)
            if self.explain:
                node = self.nodes[name]
                print(
                    f"{name} ({node.counts[UniqueCategory.KEY_SHOP]} shop / "
                    f"{node.key_count} area / "
                    f"{node.counts[UniqueCategory.QUEST_LOT]} quest / "
                    f"{node.cum_key_count} cumulative): {node.req}"
                )
