import json

import pytest

from baseplanner.planning.errors import SnapshotError
from baseplanner.planning.structures import StructureKind
from baseplanner.planning.terrain import rough, wall
from baseplanner.planning.world import ColonySnapshot, load_world, save_world


def _world_dict(**overrides):
    data = {
        "colony": "W1N1",
        "tick": 120,
        "tier": 4,
        "terrain": [
            "......",
            ".#~...",
            "......",
            "......",
        ],
        "anchors": {"Spawn1": [4, 2]},
        "sources": {"src1": [0, 0]},
        "minerals": {"m1": [5, 3]},
        "controller": [5, 0],
        "structures": [
            {"kind": "road", "pos": [3, 3]},
            {"kind": "tower", "pos": [2, 3], "marker": True},
        ],
    }
    data.update(overrides)
    return data


def test_from_dict_reads_every_field():
    snapshot = ColonySnapshot.from_dict(_world_dict())

    assert (snapshot.width, snapshot.height) == (6, 4)
    assert snapshot.tick == 120 and snapshot.tier == 4
    assert snapshot.terrain_at((1, 1)) is wall
    assert snapshot.terrain_at((2, 1)) is rough
    assert snapshot.controller == (5, 0)
    assert snapshot.has_structure((3, 3), StructureKind.ROAD)
    assert snapshot.has_marker((2, 3), StructureKind.TOWER)
    assert not snapshot.has_structure((2, 3), StructureKind.TOWER)
    # anchors stand on the grid as structures
    assert snapshot.has_structure((4, 2), StructureKind.ANCHOR)


def test_round_trip():
    data = _world_dict()

    again = ColonySnapshot.from_dict(ColonySnapshot.from_dict(data).to_dict())

    assert again.to_dict() == ColonySnapshot.from_dict(data).to_dict()
    assert again.count_structures(StructureKind.ANCHOR) == 1


@pytest.mark.parametrize("data", [
    {"terrain": ["..."]},
    _world_dict(terrain=["...", ".."]),
    _world_dict(terrain=["..x"]),
    _world_dict(structures=[{"kind": "moat", "pos": [1, 1]}]),
    _world_dict(anchors={"Spawn1": [1]}),
])
def test_malformed_snapshots_raise(data):
    with pytest.raises(SnapshotError):
        ColonySnapshot.from_dict(data)


def test_buildable_excludes_walls_nodes_and_occupied(make_snapshot):
    snapshot = make_snapshot(walls=[(1, 1)], sources={"src1": (2, 2)})
    snapshot.add_marker((3, 3), StructureKind.ROAD)

    assert snapshot.is_buildable((4, 4))
    assert not snapshot.is_buildable((1, 1))
    assert not snapshot.is_buildable((2, 2))
    assert not snapshot.is_buildable((3, 3))
    assert not snapshot.is_buildable((-1, 0))


def test_structure_queries(make_snapshot):
    snapshot = make_snapshot()
    snapshot.add_structure((6, 5), StructureKind.CONTAINER)
    snapshot.add_marker((5, 7), StructureKind.CONTAINER)
    snapshot.add_structure((1, 1), StructureKind.CONTAINER)

    assert snapshot.find_structures(StructureKind.CONTAINER) == [(1, 1), (6, 5)]
    assert snapshot.structures_in_range((5, 5), 2, StructureKind.CONTAINER) == [(6, 5), (5, 7)]
    assert snapshot.structures_in_range((5, 5), 2, StructureKind.CONTAINER, include_markers=False) == [(6, 5)]


def test_complete_and_destroy(make_snapshot):
    snapshot = make_snapshot()
    snapshot.add_marker((5, 5), StructureKind.ROAD)
    snapshot.add_marker((6, 5), StructureKind.TOWER)

    assert snapshot.complete_markers() == 2
    assert snapshot.has_structure((5, 5), StructureKind.ROAD)

    assert snapshot.destroy_structure((5, 5), StructureKind.ROAD)
    assert not snapshot.destroy_structure((5, 5), StructureKind.ROAD)
    assert snapshot.occupants_at((5, 5)) == []


def test_load_world_accepts_single_and_multiple(tmp_path):
    single = tmp_path / "one.json"
    single.write_text(json.dumps(_world_dict()), encoding="utf-8")
    several = tmp_path / "many.json"
    several.write_text(json.dumps({"colonies": [_world_dict(), _world_dict(colony="W2N2")]}), encoding="utf-8")

    assert [s.colony_id for s in load_world(single)] == ["W1N1"]
    assert [s.colony_id for s in load_world(several)] == ["W1N1", "W2N2"]


def test_save_world_round_trip(tmp_path):
    path = tmp_path / "out.json"
    snapshot = ColonySnapshot.from_dict(_world_dict())

    save_world(path, [snapshot])

    assert load_world(path)[0].to_dict() == snapshot.to_dict()


def test_load_world_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_world(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{nope", encoding="utf-8")
    with pytest.raises(SnapshotError):
        load_world(bad)
