import json

import pytest

from baseplanner.planning.errors import PlanStoreError
from baseplanner.planning.keys import (
    FacilityCategory, extraction_key, road_key, tower_key, overlay_key
)
from baseplanner.planning.store import ColonyPlan, PlanRepository, JsonPlanRepository


def test_upsert_keeps_creation_tick_unless_refreshed(plan):
    key = extraction_key("src1")
    plan.upsert_entry(key, [(1, 1)], tick=10)
    plan.upsert_entry(key, [(2, 2)], tick=20)

    assert plan.get_entry(key).coordinates == [(2, 2)]
    assert plan.get_entry(key).created_at == 10

    plan.upsert_entry(key, [(2, 2)], tick=30, refresh=True)
    assert plan.get_entry(key).created_at == 30


def test_add_coordinates_skips_duplicates(plan):
    key = tower_key("Spawn1")
    plan.add_coordinates(key, [(1, 1), (2, 2)], tick=5)
    plan.add_coordinates(key, [(2, 2), (3, 3)], tick=9)

    assert plan.coordinates(key) == [(1, 1), (2, 2), (3, 3)]
    assert plan.get_entry(key).created_at == 5


def test_delete_entry(plan):
    key = extraction_key("src1")
    plan.upsert_entry(key, [(1, 1)], tick=0)

    assert plan.delete_entry(key)
    assert not plan.delete_entry(key)
    assert plan.get_entry(key) is None


def test_entries_with_prefix_filters_by_category(plan):
    plan.upsert_entry(extraction_key("b"), [(1, 1)], tick=0)
    plan.upsert_entry(extraction_key("a"), [(2, 2)], tick=0)
    plan.upsert_entry(tower_key("Spawn1"), [(3, 3)], tick=0)

    found = plan.entries_with_prefix(FacilityCategory.EXTRACTION_SITE)

    assert [k.discriminator for k, _ in found] == ["a", "b"]


def test_indexes_track_mutations(plan):
    road = road_key("a", "b")
    plan.upsert_entry(road, [(5, 5), (6, 5)], tick=0)
    plan.upsert_entry(extraction_key("s"), [(7, 5)], tick=0)
    plan.upsert_entry(overlay_key((7, 5)), [(7, 5)], tick=0)

    assert plan.road_at((6, 5))
    assert plan.non_road_at((7, 5)) == extraction_key("s")

    plan.delete_entry(road)
    assert not plan.road_at((6, 5))
    assert plan.road_tiles() == set()


def test_round_trip_preserves_coordinates_and_metadata(plan):
    plan.upsert_entry(extraction_key("src1"), [(9, 10)], tick=100)
    plan.upsert_entry(road_key("anchor:Spawn1", "source:src1"), [(6, 5), (7, 5), (8, 5)], tick=150)
    plan.upsert_entry(tower_key("Spawn1"), [(27, 25), (23, 25)], tick=175)
    plan.last_plan_tick = 200

    restored = ColonyPlan.from_dict("W1N1", json.loads(json.dumps(plan.to_dict())))

    assert restored.to_dict() == plan.to_dict()
    assert restored.last_plan_tick == 200
    for key, entry in plan.items():
        assert restored.get_entry(key) == entry


def test_persisted_shape_is_flat_string_keyed(plan):
    plan.upsert_entry(extraction_key("src1"), [(9, 10)], tick=100)

    data = plan.to_dict()

    assert data["entries"]["extraction_site:src1"] == {"coordinates": ["9,10"], "createdAt": 100}


def test_repository_get_or_create_and_discard(repository):
    plan = repository.get_or_create("W1N1")

    assert repository.get_or_create("W1N1") is plan
    assert repository.colony_ids() == ["W1N1"]
    assert repository.discard("W1N1")
    assert "W1N1" not in repository


def test_json_repository_round_trip(tmp_path):
    path = tmp_path / "store.json"
    repo = JsonPlanRepository(path)
    plan = repo.get_or_create("W1N1")
    plan.upsert_entry(extraction_key("src1"), [(9, 10)], tick=3)
    repo.get_or_create("W2N2").upsert_entry(tower_key("Spawn2"), [(1, 2)], tick=4)
    repo.save()

    loaded = JsonPlanRepository(path)
    loaded.load()

    assert loaded.to_dict() == repo.to_dict()


def test_json_repository_missing_file_starts_empty(tmp_path):
    repo = JsonPlanRepository(tmp_path / "missing.json")
    repo.load()

    assert repo.colony_ids() == []


def test_json_repository_rejects_bad_json(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PlanStoreError):
        JsonPlanRepository(path).load()


def test_load_rejects_malformed_coordinates():
    repo = PlanRepository()
    data = {"W1N1": {"lastPlanTick": 0, "entries": {"tower_site:a": {"coordinates": ["1;2"], "createdAt": 0}}}}

    with pytest.raises(PlanStoreError):
        repo.load_dict(data)
