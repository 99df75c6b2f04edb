"""Key item placement.

Assigns key items to areas one at a time, in random order. Each item may go
to any area whose collapsed requirement doesn't need it, so no item ever
gates its own location. Area weights are adjusted after every placement to
favor chains of progression over flat distributions.
"""

from __future__ import annotations

import random
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field

from keyrando.annotations import Annotations, ItemKey, LocationScope, UniqueCategory
from keyrando.collapse import collapse_reqs
from keyrando.config import Config
from keyrando.errors import AssignmentError
from keyrando.expr import Expr, Named
from keyrando.graph import KeyItemGraph, Node
from keyrando.reachability import AreaOrder, compute_included_areas, compute_lateness
from keyrando.sampling import weighted_choice, weighted_shuffle

# Items placed ahead of everything else, claiming quest slots upfront
ASHES_GROUP = "ashes"
ASHES_MAX_WEIGHT = 3


@dataclass
class Assignment:
    """Result of key item assignment, read by downstream item placement.

    Attributes:
        priority: Key items, last placed first.
        required_events: Events which gate other areas or events.
        assign: Item -> areas and events its placement activates.
        restricted_items: Item -> slots where it must not be placed.
        effective_location: Slot -> area used for difficulty instead of its
            own, for slots gated by quest items placed later in the game.
        location_lateness: Area or event -> lateness in [0, 1].
        included_areas: Area or event -> areas and events required to
            reach it, itself included.
    """

    priority: list[ItemKey] = field(default_factory=list)
    required_events: set[str] = field(default_factory=set)
    assign: dict[ItemKey, set[str]] = field(default_factory=dict)
    restricted_items: dict[ItemKey, list[LocationScope]] = field(default_factory=dict)
    effective_location: dict[LocationScope, str] = field(default_factory=dict)
    location_lateness: dict[str, float] = field(default_factory=dict)
    included_areas: dict[str, set[str]] = field(default_factory=dict)


@dataclass
class Placement:
    """Record of one key item placement."""

    item: str
    area: str
    allowed: list[str]
    forced: bool = False
    redundant: bool = False

    @property
    def outside_logic(self) -> bool:
        """True if a forced placement ignored the allowed areas."""
        return self.forced and self.area not in self.allowed


class KeyItemsPermutation:
    """One key item assignment run.

    All state (node graph, weights, loop table) belongs to the instance.
    Every attempt must use a fresh instance.
    """

    def __init__(self, ann: Annotations, config: Config, explain: bool = False) -> None:
        self.ann = ann
        self.config = config
        self.explain = explain
        self.graph = KeyItemGraph(
            ann, ann.resolve_config(config.logic_options()), explain=explain
        )
        self.nodes: dict[str, Node] = self.graph.nodes
        self.areas: list[str] = self.graph.areas
        self.loops: dict[str, set[str]] = {}
        self.placements: list[Placement] = []

    def weight(
        self,
        area: str,
        allow_quest: bool = False,
        late_factor: float = 0.1,
        remove_quest: int = 0,
    ) -> float:
        """Selection weight of an area: free slots plus a share of difficulty.

        Zero when no eligible slot is left, after reserving `remove_quest`.
        """
        node = self.nodes[area]
        count = node.count(allow_quest, True) - remove_quest
        if count <= 0:
            return 0.0
        count += int(node.cum_key_count * late_factor)
        return count * node.weight

    def adjust_weight(self, area: str, factor: float) -> None:
        """Scale the weight of an area and its combined-weight group."""
        if factor == 1:
            return
        for shared in self.graph.group(area):
            if shared in self.nodes:
                self.nodes[shared].weight *= factor

    def add_item(self, item: str, area: str, forced: bool) -> None:
        """Place an item node in the graph, consuming a slot unless forced."""
        self.nodes[item] = Node(name=item, req=Named(area))
        if forced:
            return
        self.nodes[area].add_item(allow_quest=False, allow_shops=True)

    def collapse(self) -> dict[str, Expr]:
        """Collapse requirements, keeping the loop table for reachability."""
        result = collapse_reqs(self.nodes)
        self.loops = result.loops
        return result.reqs

    def item_order(self, rng: random.Random) -> list[str]:
        """Random placement order, with endgame items last.

        In race mode, items flagged to go first are moved to the front, since
        there may be a single spot available to them early on.
        """
        order = list(self.graph.items)
        rng.shuffle(order)
        order.sort(key=lambda i: 1 if self.ann.items[i].endgame else 0)
        if self.ann.race_mode_items:
            order.sort(key=lambda i: 0 if self.ann.items[i].race_mode_first else 1)
        return order

    def forced_placements(
        self, order: list[str], preset: Mapping[str, str] | None
    ) -> dict[str, str]:
        """Item -> area placements that override random choice."""
        forced: dict[str, str] = {}
        aliases = self.ann.area_aliases
        if self.config.option("norandom"):
            for item in order:
                locations = self.ann.items[item].locations
                if not locations or locations[0] not in self.ann.slots:
                    raise AssignmentError(f"No known location for key item {item}")
                area = self.ann.slots[locations[0]].area
                forced[item] = aliases.get(area, area)
        elif preset:
            forced.update(preset)
        for item, area in forced.items():
            if area not in self.nodes or area in self.graph.events:
                raise AssignmentError(f"Cannot force {item} into unknown area {area}")
        return forced

    def assign_items(
        self, rng: random.Random, preset: Mapping[str, str] | None = None
    ) -> Assignment:
        """Assign every key item to an area.

        Args:
            rng: Random source, consumed in a fixed sequence.
            preset: Optional forced item -> area placements.

        Returns:
            The completed Assignment.

        Raises:
            HardLoopError: If a dependency loop can't be broken (retry with
                another seed).
            AssignmentError: On any other failure.
        """
        ann = self.ann
        order = self.item_order(rng)
        ret = Assignment()

        # Events required to access other things get less weight than dead ends
        for node in self.nodes.values():
            ret.required_events.update(
                v for v in node.req.free_vars() if v in self.graph.events
            )

        if ASHES_GROUP in ann.item_groups:
            self._assign_ashes(rng, ret)

        forced_map = self.forced_placements(order, preset)
        scaling = self.config.keyitems.chain_weight
        late = self.config.keyitems.late_factor
        area_events = ann.area_events

        reqs = self.collapse()
        for item in order:
            needing = [a for a in self.areas if reqs[a].needs(item)]
            allowed = [a for a in self.areas if a not in needing]
            redundant = not needing
            triggered = self.graph.item_events.get(item, set())
            allowed = [
                a
                for a in allowed
                if ann.areas[a].until is None or ann.areas[a].until in triggered
            ]

            selected = weighted_choice(
                rng, allowed, lambda a: self.weight(a, late_factor=late)
            )
            forced = forced_map.get(item)
            if forced is not None:
                if self.explain and forced not in allowed:
                    print(
                        f"Warning: Key item {item} put in non-random location "
                        f"{forced} which isn't normally allowed by logic",
                        file=sys.stderr,
                    )
                selected = forced
            if selected is None:
                raise AssignmentError(f"No available area for key item {item}")
            self.add_item(item, selected, forced is not None)
            self.placements.append(
                Placement(item, selected, allowed, forced is not None, redundant)
            )

            item_ann = ann.items[item]
            ret.priority.append(item_ann.key)
            ret.assign[item_ann.key] = {selected}
            option = item_ann.skip_events_option
            if not (option and self.config.option(option)):
                ret.assign[item_ann.key].update(area_events.get(selected, []))
            if self.explain:
                print(f"Adding {item} to {','.join(sorted(ret.assign[item_ann.key]))}")

            reqs = self.collapse()
            if redundant:
                continue
            # Chain heuristic: discourage the used area, encourage areas
            # depending on the item just placed
            self.adjust_weight(selected, 1 / scaling)
            adjusted: set[frozenset[str]] = set()
            for area in needing:
                group = self.graph.group(area)
                if group in adjusted:
                    continue
                self.adjust_weight(area, scaling)
                adjusted.add(group)

        # The last placed item has the highest priority
        ret.priority.reverse()

        self._compute_reachability(ret)
        self._assign_quest_items(rng, ret)
        self._compute_effective_locations(ret)
        ret.location_lateness = compute_lateness(
            self.areas, self.nodes, self.graph.combined_weights
        )
        return ret

    def _assign_ashes(self, rng: random.Random, ret: Assignment) -> None:
        """Let single-item quest unlocks claim an area ahead of key items.

        Slots unlocked by exactly one unique item add shop capacity to the
        area the item is assigned to.
        """
        # TODO: check that a slot can't get an item which transitively requires that slot
        order = weighted_shuffle(
            rng,
            self.areas,
            lambda a: min(
                self.nodes[a].key_count - self.nodes[a].counts[UniqueCategory.KEY_SHOP],
                ASHES_MAX_WEIGHT,
            ),
        )
        index = 0
        for scope, slot in self.ann.slots.items():
            if (
                slot.quest_reqs is None
                or slot.has_any_tags(self.ann.no_key_tags)
                or scope.unique_id <= 0
                or len(slot.item_reqs) != 1
            ):
                continue
            key = slot.item_reqs[0]
            if key in ret.assign:
                raise AssignmentError(f"Multiple assignments for {slot.quest_reqs}")
            if index >= len(order):
                raise AssignmentError(f"No area left for quest item {slot.quest_reqs}")
            area = order[index]
            index += 1
            if self.explain:
                print(f"Assigning key quest item {slot.quest_reqs} to {area}")
            node = self.nodes[area]
            node.add_shop_capacity(False, slot.count)
            node.add_item(allow_quest=False, allow_shops=False)
            ret.assign.setdefault(key, set()).update(self.graph.group(area))

    def _compute_reachability(self, ret: Assignment) -> None:
        places = set(self.areas) | self.graph.events
        included = compute_included_areas(self.nodes, self.loops, places)
        for name, node in self.nodes.items():
            # Weights are redefined for quest selection
            node.weight = 1.0
            if name in places:
                node.cum_key_count = sum(
                    self.nodes[n].count(True, True) for n in included[name]
                )
        # The traversal includes items too, only keep areas and events
        ret.included_areas = {
            name: result for name, result in included.items() if name in places
        }
        for area in self.graph.unused_areas:
            ret.included_areas[area] = set()

    def _assign_quest_items(self, rng: random.Random, ret: Assignment) -> None:
        """Record restricted slots and assign quest items to areas."""
        ann = self.ann
        aliases = ann.area_aliases
        quest_late = self.config.keyitems.quest_late_factor
        # Quest item -> area -> number of slots there requiring the item
        quest_area_slots: dict[str, dict[str, int]] = {}
        for scope, slot in ann.slots.items():
            area = aliases.get(slot.area, slot.area)
            if slot.quest_reqs is not None:
                for token in slot.quest_reqs.split():
                    if token not in ann.items:
                        continue
                    ret.restricted_items.setdefault(ann.items[token].key, []).append(scope)
                    counts = quest_area_slots.setdefault(token, {})
                    counts[area] = counts.get(area, 0) + 1
            for tag in slot.tags:
                kind, sep, value = tag.partition(":")
                if not sep or kind != "exclude":
                    continue
                if value not in ann.items:
                    raise AssignmentError(f"Unknown item {value} excluded from {scope}")
                ret.restricted_items.setdefault(ann.items[value].key, []).append(scope)

        area_events = ann.area_events
        for quest_item in sorted(quest_area_slots):
            key = ann.items[quest_item].key
            if key in ret.assign:
                if self.explain:
                    print(
                        f"{quest_item} already assigned to "
                        f"{', '.join(sorted(ret.assign[key]))}"
                    )
                continue
            slots = quest_area_slots[quest_item]
            if key in ann.item_restrict:
                restricted = ann.item_restrict[key].allowed_areas(ret.included_areas)
                allowed = [a for a in self.areas if a in restricted]
            else:
                allowed = list(self.areas)
            selected = weighted_choice(
                rng,
                allowed,
                lambda a: self.weight(a, True, quest_late, slots.get(a, 0)),
            )
            if selected is None:
                raise AssignmentError(f"No available area for quest item {quest_item}")
            if self.explain:
                print(f"Selecting {quest_item} to go in {selected}")
            self.nodes[selected].add_item(allow_quest=True, allow_shops=True)
            ret.assign[key] = {selected, *area_events.get(selected, [])}

    def _compute_effective_locations(self, ret: Assignment) -> None:
        """Point quest-gated slots at the latest area among their requirements."""
        aliases = self.ann.area_aliases
        areas = set(self.areas)
        order = AreaOrder(self.areas, self.nodes)
        for scope, slot in self.ann.slots.items():
            if slot.quest_reqs is None:
                continue
            area = aliases.get(slot.area, slot.area)
            if area in self.graph.unused_areas:
                continue
            names = [aliases.get(a, a) for a in slot.area_reqs]
            for key in slot.item_reqs:
                if key not in ret.assign:
                    raise AssignmentError(f"No assignment for {key} required by {scope}")
                names.extend(a for a in sorted(ret.assign[key]) if a in areas)
            effective = order.latest(names)
            if area != effective:
                ret.effective_location[scope] = effective
