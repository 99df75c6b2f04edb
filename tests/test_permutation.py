"""Tests for key item placement."""

import random

import pytest

from keyrando.annotations import ItemKey, LocationScope, annotations_from_dict
from keyrando.config import Config
from keyrando.errors import AssignmentError, HardLoopError
from keyrando.permutation import KeyItemsPermutation, Placement

X = ItemKey(3, 1)
Y = ItemKey(3, 2)
SEEDS = range(30)


def key_slot(scope: str, unique_id: int, area: str, **extra) -> dict:
    """Helper to create a key slot entry."""
    return {
        "scope": scope,
        "unique_id": unique_id,
        "area": area,
        "category": "key_lot",
        **extra,
    }


def make_data() -> dict:
    """Three areas in a chain: B needs X, C needs Y and B."""
    return {
        "items": [
            {"name": "X", "key": "3:1", "locations": ["a1"]},
            {"name": "Y", "key": "3:2", "locations": ["b1"]},
        ],
        "areas": [
            {"name": "A"},
            {"name": "B", "req": "X"},
            {"name": "C", "req": "Y AND B"},
        ],
        "slots": [
            key_slot("a1", 1, "A"),
            key_slot("a2", 2, "A"),
            key_slot("b1", 3, "B"),
            key_slot("b2", 4, "B"),
            key_slot("c1", 5, "C"),
            key_slot("c2", 6, "C"),
        ],
    }


def run(data: dict | None = None, seed: int = 1, config: Config | None = None, **kw):
    """Run one assignment; returns (perm, assignment)."""
    ann = annotations_from_dict(data or make_data())
    perm = KeyItemsPermutation(ann, config or Config(), explain=kw.pop("explain", False))
    return perm, perm.assign_items(random.Random(seed), **kw)


class TestAssignItems:
    """Main placement loop."""

    @pytest.mark.parametrize("seed", SEEDS)
    def test_items_never_gate_their_area(self, seed):
        _, a = run(seed=seed)
        assert a.assign[X] == {"A"}
        assert a.assign[Y] in ({"A"}, {"B"})

    def test_placements_within_allowed(self):
        perm, _ = run()
        assert [p.item for p in perm.placements] in (["X", "Y"], ["Y", "X"])
        for p in perm.placements:
            assert p.area in p.allowed
            assert not p.forced

    def test_priority_is_reverse_placement_order(self):
        perm, a = run(seed=3)
        keys = [perm.ann.items[p.item].key for p in perm.placements]
        assert a.priority == list(reversed(keys))

    def test_same_seed_same_result(self):
        _, first = run(seed=11)
        _, second = run(seed=11)
        assert first.assign == second.assign
        assert first.priority == second.priority
        assert first.location_lateness == second.location_lateness

    def test_included_areas(self):
        _, a = run()
        assert a.included_areas["A"] == {"A"}
        assert {"A", "B"} <= a.included_areas["B"]
        assert {"A", "B", "C"} <= a.included_areas["C"]

    @pytest.mark.parametrize("seed", range(5))
    def test_lateness(self, seed):
        _, a = run(seed=seed)
        assert a.location_lateness["C"] == 1.0
        assert all(0.0 <= v <= 1.0 for v in a.location_lateness.values())
        assert a.location_lateness["A"] <= a.location_lateness["B"]

    def test_slots_consumed(self):
        perm, _ = run()
        assert sum(perm.nodes[a].key_count for a in ("A", "B", "C")) == 4

    def test_no_available_area(self):
        data = make_data()
        data["slots"] = [s for s in data["slots"] if s["area"] != "A"]
        with pytest.raises(AssignmentError, match="No available area for key item X"):
            run(data)

    def test_until_area_only_for_triggering_items(self):
        data = make_data()
        data["areas"].append({"name": "E", "until": "opengate"})
        data["events"] = [{"name": "opengate", "req": "Y AND A"}]
        data["slots"] += [key_slot("e1", 7, "E"), key_slot("e2", 8, "E")]
        for seed in SEEDS:
            _, a = run(data, seed=seed)
            assert "E" not in a.assign[X]


class TestItemOrder:
    """Placement order."""

    def test_endgame_last(self):
        data = make_data()
        data["items"][0]["endgame"] = True
        ann = annotations_from_dict(data)
        perm = KeyItemsPermutation(ann, Config())
        for seed in range(10):
            assert perm.item_order(random.Random(seed))[-1] == "X"

    def test_race_mode_first(self):
        data = make_data()
        data["items"][1]["race_mode_first"] = True
        data["race_mode_items"] = ["Y"]
        ann = annotations_from_dict(data)
        perm = KeyItemsPermutation(ann, Config())
        for seed in range(10):
            assert perm.item_order(random.Random(seed))[0] == "Y"


class TestForcedPlacement:
    """Preset and non-random placements."""

    def test_preset(self):
        perm, a = run(preset={"Y": "B"})
        assert a.assign[Y] == {"B"}
        forced = [p for p in perm.placements if p.item == "Y"][0]
        assert forced.forced
        assert not forced.outside_logic
        # Forced placements don't use up slots
        assert perm.nodes["B"].key_count == 2

    def test_norandom_uses_item_locations(self):
        config = Config(options={"norandom": True})
        _, a = run(config=config)
        assert a.assign[X] == {"A"}
        assert a.assign[Y] == {"B"}

    def test_norandom_without_location(self):
        data = make_data()
        data["items"][1]["locations"] = []
        with pytest.raises(AssignmentError, match="No known location for key item Y"):
            run(data, config=Config(options={"norandom": True}))

    def test_preset_unknown_area(self):
        with pytest.raises(AssignmentError, match="Cannot force Y into unknown area Z"):
            run(preset={"Y": "Z"})

    def test_forced_hard_loop(self):
        with pytest.raises(HardLoopError):
            run(preset={"X": "B"})

    def test_forced_into_every_alternative_is_hard_loop(self):
        data = {
            "items": [{"name": "X", "key": "3:1"}],
            "areas": [
                {"name": "A"},
                {"name": "B", "req": "P OR Q"},
                {"name": "P", "req": "X"},
                {"name": "Q", "req": "X"},
            ],
            "slots": [key_slot("a1", 1, "A"), key_slot("b1", 2, "B")],
        }
        with pytest.raises(HardLoopError):
            run(data, preset={"X": "B"})

    def test_forced_outside_logic_warns(self, capsys):
        data = make_data()
        data["areas"].append({"name": "E", "until": "opengate"})
        data["events"] = [{"name": "opengate", "req": "Y AND A"}]
        data["slots"].append(key_slot("e1", 7, "E"))
        perm, a = run(data, preset={"X": "E"}, explain=True)
        assert a.assign[X] == {"E"}
        placement = [p for p in perm.placements if p.item == "X"][0]
        assert placement.outside_logic
        assert "E" not in placement.allowed
        err = capsys.readouterr().err
        assert "Warning: Key item X put in non-random location E" in err


class TestEvents:
    """Events activated by placements."""

    def make_event_data(self) -> dict:
        data = make_data()
        data["areas"].append({"name": "D", "req": "boss"})
        data["events"] = [{"name": "boss", "req": "B", "area": "B"}]
        data["items"][1]["skip_events_option"] = "noboss"
        return data

    def test_placement_activates_area_events(self):
        _, a = run(self.make_event_data(), preset={"Y": "B"})
        assert a.assign[Y] == {"B", "boss"}
        assert a.required_events == {"boss"}

    def test_skip_events_option(self):
        config = Config(options={"noboss": True})
        _, a = run(self.make_event_data(), config=config, preset={"Y": "B"})
        assert a.assign[Y] == {"B"}

    def test_event_lateness_follows_area(self):
        _, a = run(self.make_event_data(), preset={"Y": "B"})
        assert a.location_lateness["boss"] == a.location_lateness["B"]


class TestQuestItems:
    """Restricted slots and quest item placement."""

    def make_quest_data(self, restriction: dict | None = None) -> dict:
        data = make_data()
        data["items"].append({"name": "Q", "key": "3:9"})
        data["slots"].append(
            {"scope": "npc", "unique_id": 10, "area": "B", "quest_reqs": "Q"}
        )
        if restriction is not None:
            data["restrictions"] = {"Q": restriction}
        return data

    def test_quest_item_assigned(self):
        _, a = run(self.make_quest_data())
        assert len(a.assign[ItemKey(3, 9)]) == 1
        assert a.restricted_items[ItemKey(3, 9)] == [LocationScope("npc", 10)]

    def test_quest_item_restriction(self):
        for seed in range(10):
            _, a = run(self.make_quest_data({"areas": ["C"]}), seed=seed)
            assert a.assign[ItemKey(3, 9)] == {"C"}
            assert a.effective_location[LocationScope("npc", 10)] == "C"

    def test_quest_item_no_area(self):
        with pytest.raises(AssignmentError, match="No available area for quest item Q"):
            run(self.make_quest_data({"areas": ["nowhere"]}))

    def test_exclude_tag(self):
        data = make_data()
        data["slots"][4]["tags"] = "exclude:X"
        _, a = run(data)
        assert a.restricted_items[X] == [LocationScope("c1", 5)]

    def test_exclude_unknown_item(self):
        data = make_data()
        data["slots"][4]["tags"] = "exclude:W"
        with pytest.raises(AssignmentError, match="Unknown item W excluded from c1"):
            run(data)


class TestEffectiveLocation:
    """Slots gated by key items placed later."""

    @pytest.mark.parametrize("seed", SEEDS)
    def test_points_to_item_area(self, seed):
        data = make_data()
        data["slots"].append(
            {"scope": "npc", "unique_id": 10, "area": "A", "quest_reqs": "Y"}
        )
        _, a = run(data, seed=seed)
        scope = LocationScope("npc", 10)
        if a.assign[Y] == {"B"}:
            assert a.effective_location[scope] == "B"
        else:
            assert scope not in a.effective_location
        assert a.restricted_items[Y] == [scope]


class TestAshes:
    """Single-item quest unlocks claiming areas upfront."""

    def make_ashes_data(self) -> dict:
        data = make_data()
        data["item_groups"] = {"ashes": ["ash"]}
        data["items"].append({"name": "ash", "key": "3:50"})
        data["slots"].append(
            {"scope": "ashslot", "unique_id": 20, "area": "A", "quest_reqs": "ash"}
        )
        return data

    def test_ash_claims_area(self):
        perm, a = run(self.make_ashes_data())
        areas = a.assign[ItemKey(3, 50)]
        assert areas & {"A", "B", "C"}
        assert areas <= set(perm.graph.areas)

    def test_multiple_assignments(self):
        data = self.make_ashes_data()
        data["slots"].append(
            {"scope": "ashslot2", "unique_id": 21, "area": "B", "quest_reqs": "ash"}
        )
        with pytest.raises(AssignmentError, match="Multiple assignments for ash"):
            run(data)


class TestWeights:
    """Area weight formula and adjustments."""

    def make_perm(self) -> KeyItemsPermutation:
        return KeyItemsPermutation(annotations_from_dict(make_data()), Config())

    def test_weight_formula(self):
        perm = self.make_perm()
        assert perm.nodes["C"].cum_key_count == 2
        assert perm.weight("C", late_factor=0.5) == 3
        assert perm.weight("A") == 2
        assert perm.weight("A", remove_quest=2) == 0

    def record_adjustments(self, monkeypatch, perm) -> list[tuple[str, float]]:
        """Record adjust_weight calls made while placing items."""
        calls: list[tuple[str, float]] = []
        adjust = perm.adjust_weight

        def recording(area: str, factor: float) -> None:
            calls.append((area, factor))
            adjust(area, factor)

        monkeypatch.setattr(perm, "adjust_weight", recording)
        return calls

    def expected_adjustments(self, perm, needing) -> list[tuple[str, float]]:
        expected = []
        for p in perm.placements:
            if p.redundant:
                continue
            expected.append((p.area, 1 / 3))
            expected.extend((area, 3.0) for area in needing[p.item])
        return expected

    @pytest.mark.parametrize("seed", range(10))
    def test_chain_heuristic(self, monkeypatch, seed):
        perm = self.make_perm()
        calls = self.record_adjustments(monkeypatch, perm)
        perm.assign_items(random.Random(seed))
        # X is needed by B and C, Y by C alone
        needing = {"X": ["B", "C"], "Y": ["C"]}
        assert calls == self.expected_adjustments(perm, needing)

    @pytest.mark.parametrize("seed", range(5))
    def test_chain_heuristic_once_per_group(self, monkeypatch, seed):
        data = make_data()
        # C2 only depends on C, so both share one combined-weight group
        data["areas"].append({"name": "C2", "req": "C"})
        perm = KeyItemsPermutation(annotations_from_dict(data), Config())
        assert perm.graph.group("C2") == frozenset({"C", "C2"})
        calls = self.record_adjustments(monkeypatch, perm)
        perm.assign_items(random.Random(seed))
        needing = {"X": ["B", "C"], "Y": ["C"]}
        assert calls == self.expected_adjustments(perm, needing)

    @pytest.mark.parametrize("seed", range(5))
    def test_redundant_placement_not_adjusted(self, monkeypatch, seed):
        data = make_data()
        data["items"].append({"name": "R", "key": "3:7"})
        data["events"] = [{"name": "ringbell", "req": "R AND A"}]
        data["slots"].append(key_slot("a3", 9, "A"))
        perm = KeyItemsPermutation(annotations_from_dict(data), Config())
        calls = self.record_adjustments(monkeypatch, perm)
        perm.assign_items(random.Random(seed))
        redundant = [p for p in perm.placements if p.item == "R"][0]
        assert redundant.redundant
        assert redundant.allowed == perm.areas
        needing = {"X": ["B", "C"], "Y": ["C"]}
        assert calls == self.expected_adjustments(perm, needing)
        assert len(calls) == 5

    def test_adjust_weight(self):
        perm = self.make_perm()
        perm.adjust_weight("A", 3)
        assert perm.nodes["A"].weight == 3
        assert perm.weight("A") == 6
        perm.adjust_weight("A", 1 / 3)
        assert perm.nodes["A"].weight == pytest.approx(1)


def test_placement_outside_logic():
    assert Placement("X", "B", ["A"], forced=True).outside_logic
    assert not Placement("X", "B", ["A"]).outside_logic
    assert not Placement("X", "A", ["A"], forced=True).outside_logic
