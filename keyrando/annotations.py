"""Annotation data for key item placement.

Areas, events, items and item slots are described in a YAML annotation
file. This module holds the parsed model and the loaders; requirement text
is parsed into `Expr` trees at load time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from keyrando.expr import TRUE, Expr, parse_expr


class UniqueCategory(Enum):
    """Slot categories for unique items.

    Key slots can host key items; quest slots only quest items. Shop slots
    are bought rather than found in the world.
    """

    KEY_LOT = "key_lot"
    KEY_SHOP = "key_shop"
    QUEST_LOT = "quest_lot"
    QUEST_SHOP = "quest_shop"

    @classmethod
    def from_string(cls, s: str) -> UniqueCategory:
        """Parse a category from its annotation name."""
        try:
            return cls(s.lower())
        except ValueError:
            valid = ", ".join(c.value for c in cls)
            raise ValueError(
                f"Unknown slot category: '{s}'. Valid options: {valid}"
            ) from None


@dataclass(frozen=True)
class ItemKey:
    """Stable item identifier (param category and row id)."""

    type: int
    id: int

    @classmethod
    def parse(cls, s: str) -> ItemKey:
        """Parse an item key in ``type:id`` format, e.g. ``3:8109``."""
        parts = str(s).split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid item key '{s}', expected 'type:id'")
        try:
            return cls(int(parts[0]), int(parts[1]))
        except ValueError:
            raise ValueError(f"Invalid item key '{s}', expected 'type:id'") from None

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


@dataclass(frozen=True)
class LocationScope:
    """A group of item locations treated as one slot.

    A positive `unique_id` means the scope holds a unique item.
    """

    name: str
    unique_id: int = 0

    def __str__(self) -> str:
        return self.name


@dataclass
class AreaAnnotation:
    """An area or an event.

    Both carry a requirement expression. Events additionally may happen in
    an `area`; alias areas fold into their `alias` base area.
    """

    name: str
    req: Expr = TRUE
    weight_base: str | None = None
    until: str | None = None
    always_before: str | None = None
    alias: str | None = None
    area: str | None = None


@dataclass
class ItemAnnotation:
    """A key item to be placed."""

    name: str
    key: ItemKey
    endgame: bool = False  # Placed after every other item
    race_mode_first: bool = False  # Placed first when race mode items exist
    # Option which, when enabled, stops the item activating its area's events
    skip_events_option: str | None = None
    locations: list[LocationScope] = field(default_factory=list)


@dataclass
class SlotAnnotation:
    """An item slot in the world."""

    scope: LocationScope
    area: str
    tags: list[str] = field(default_factory=list)
    quest_reqs: str | None = None
    item_reqs: list[ItemKey] = field(default_factory=list)
    area_reqs: list[str] = field(default_factory=list)
    category: UniqueCategory | None = None
    count: int = 1

    def has_any_tags(self, tags: set[str]) -> bool:
        """Check if the slot carries any of the given tags."""
        return any(tag in tags for tag in self.tags)


@dataclass
class ItemRestriction:
    """Where a quest item may be placed.

    Attributes:
        areas: Explicitly allowed areas.
        after: Areas which must be passed first. Every area whose
            reachability closure contains one of them is allowed.
    """

    areas: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)

    def allowed_areas(self, included_areas: Mapping[str, set[str]]) -> set[str]:
        """Resolve allowed areas against the reachability closures."""
        allowed = set(self.areas)
        if self.after:
            for area, included in included_areas.items():
                if any(a in included for a in self.after):
                    allowed.add(area)
        return allowed


@dataclass
class Annotations:
    """All annotation data for one game."""

    areas: dict[str, AreaAnnotation] = field(default_factory=dict)
    events: dict[str, AreaAnnotation] = field(default_factory=dict)
    items: dict[str, ItemAnnotation] = field(default_factory=dict)
    slots: dict[LocationScope, SlotAnnotation] = field(default_factory=dict)
    item_groups: dict[str, list[str]] = field(default_factory=dict)
    race_mode_items: set[str] = field(default_factory=set)
    no_key_tags: set[str] = field(default_factory=set)
    item_restrict: dict[ItemKey, ItemRestriction] = field(default_factory=dict)
    config: dict[str, bool] = field(default_factory=dict)

    @property
    def area_aliases(self) -> dict[str, str]:
        """Map each area to its base area (itself unless aliased)."""
        return {name: area.alias or name for name, area in self.areas.items()}

    @property
    def event_areas(self) -> dict[str, str]:
        """Map events to the area they happen in."""
        return {name: ev.area for name, ev in self.events.items() if ev.area}

    @property
    def area_events(self) -> dict[str, list[str]]:
        """Map areas to the events happening in them."""
        result: dict[str, list[str]] = {}
        for name, ev in sorted(self.events.items()):
            if ev.area:
                result.setdefault(ev.area, []).append(name)
        return result

    @property
    def area_scopes(self) -> dict[str, list[LocationScope]]:
        """Map every area to the slot scopes it contains."""
        result: dict[str, list[LocationScope]] = {name: [] for name in self.areas}
        for scope, slot in self.slots.items():
            result.setdefault(slot.area, []).append(scope)
        return result

    def unique_counts(self) -> dict[LocationScope, tuple[UniqueCategory, int]]:
        """Per-scope unique item counts, for slots with a category."""
        return {
            scope: (slot.category, slot.count)
            for scope, slot in self.slots.items()
            if slot.category is not None
        }

    def item_names_by_key(self) -> dict[ItemKey, str]:
        return {item.key: name for name, item in self.items.items()}

    def resolve_config(self, options: Mapping[str, bool]) -> dict[str, bool]:
        """Resolve logic flags: annotation defaults overridden by options."""
        return {
            flag: bool(options.get(flag, default))
            for flag, default in self.config.items()
        }


# =============================================================================
# Loading
# =============================================================================


def _tag_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(v) for v in value]


def _area_from_dict(data: dict[str, Any]) -> AreaAnnotation:
    return AreaAnnotation(
        name=data["name"],
        req=parse_expr(data.get("req")),
        weight_base=data.get("weight_base"),
        until=data.get("until"),
        always_before=data.get("always_before"),
        alias=data.get("alias"),
        area=data.get("area"),
    )


def annotations_from_dict(data: dict[str, Any]) -> Annotations:
    """Build Annotations from a dictionary (e.g., parsed YAML).

    Slot quest requirements are split into item requirements (tokens naming
    items) and area requirements (tokens naming areas).
    """
    ann = Annotations(
        config={k: bool(v) for k, v in (data.get("config") or {}).items()},
        no_key_tags=set(_tag_list(data.get("no_key_tags"))),
        race_mode_items=set(_tag_list(data.get("race_mode_items"))),
        item_groups={
            k: _tag_list(v) for k, v in (data.get("item_groups") or {}).items()
        },
    )
    for entry in data.get("areas") or []:
        area = _area_from_dict(entry)
        ann.areas[area.name] = area
    for entry in data.get("events") or []:
        ev = _area_from_dict(entry)
        ann.events[ev.name] = ev
    for entry in data.get("items") or []:
        item = ItemAnnotation(
            name=entry["name"],
            key=ItemKey.parse(entry["key"]),
            endgame=entry.get("endgame", False),
            race_mode_first=entry.get("race_mode_first", False),
            skip_events_option=entry.get("skip_events_option"),
            locations=[LocationScope(s) for s in _tag_list(entry.get("locations"))],
        )
        ann.items[item.name] = item

    for entry in data.get("slots") or []:
        scope = LocationScope(entry["scope"], entry.get("unique_id", 0))
        quest_reqs = entry.get("quest_reqs")
        item_reqs: list[ItemKey] = []
        area_reqs: list[str] = []
        for token in _tag_list(quest_reqs):
            if token in ann.items:
                item_reqs.append(ann.items[token].key)
            elif token in ann.areas:
                area_reqs.append(token)
        category = entry.get("category")
        ann.slots[scope] = SlotAnnotation(
            scope=scope,
            area=entry["area"],
            tags=_tag_list(entry.get("tags")),
            quest_reqs=quest_reqs,
            item_reqs=item_reqs,
            area_reqs=area_reqs,
            category=UniqueCategory.from_string(category) if category else None,
            count=entry.get("count", 1),
        )

    # Item locations refer to slots by scope name; resolve the unique ids
    scopes_by_name = {scope.name: scope for scope in ann.slots}
    for item in ann.items.values():
        item.locations = [scopes_by_name.get(s.name, s) for s in item.locations]

    for name, entry in (data.get("restrictions") or {}).items():
        if name not in ann.items:
            raise ValueError(f"Restriction for unknown item '{name}'")
        ann.item_restrict[ann.items[name].key] = ItemRestriction(
            areas=_tag_list(entry.get("areas")),
            after=_tag_list(entry.get("after")),
        )
    return ann


def load_annotations(path: str | Path) -> Annotations:
    """Load annotations from a YAML file.

    Args:
        path: Path to the annotation file.

    Returns:
        Parsed Annotations.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return annotations_from_dict(data)


def load_preset(path: str | Path) -> dict[str, str]:
    """Load forced key item placements (item name -> area) from a YAML preset."""
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return {str(k): str(v) for k, v in (data.get("items") or {}).items()}
