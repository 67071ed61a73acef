from collections import Counter

import pytest

from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.keys import FacilityCategory, conduit_key, road_key, storage_key
from baseplanner.planning.maintenance import MaintenanceScheduler
from baseplanner.planning.planner import BasePlanner, ColonyPlanner
from baseplanner.planning.store import ColonyPlan, PlanRepository
from baseplanner.planning.structures import StructureKind


@pytest.fixture
def colony(make_snapshot):
    return make_snapshot(
        tier=8,
        anchors={"Spawn1": (25, 25)},
        sources={"src1": (10, 10), "src2": (40, 12)},
        minerals={"m1": (8, 40)},
        controller=(35, 40),
    )


def _converge(planner, snapshot, tick=0, limit=100):
    # connectors are rate limited, so a fresh layout needs several passes
    for _ in range(limit):
        report = planner.plan_colony(snapshot, tick=tick, force=True)
        if not report.changed:
            return True
    return False


def _non_road_coordinates(plan):
    coords = []
    for key, entry in plan.items():
        if key.category.claims_footprint:
            coords.extend(entry.coordinates)
    return coords


def test_first_pass_plans_every_facility(colony, repository):
    planner = BasePlanner(repository)

    report = planner.plan_colony(colony, tick=0)

    plan = repository.get("W1N1")
    categories = {key.category for key in plan.keys()}
    assert report.changed
    assert plan.last_plan_tick == 0
    assert {
        FacilityCategory.EXTRACTION_SITE,
        FacilityCategory.CONTROL_BUFFER_SITE,
        FacilityCategory.MINERAL_SITE,
        FacilityCategory.STORAGE_SITE,
        FacilityCategory.TOWER_SITE,
        FacilityCategory.EXTENSION_SITE,
        FacilityCategory.CONDUIT_SITE,
        FacilityCategory.ROAD_SEGMENT,
    } <= categories
    assert len(plan.coordinates(conduit_key('source', 'src1'))) == 1


def test_replanning_a_converged_layout_changes_nothing(colony, repository):
    planner = BasePlanner(repository)
    assert _converge(planner, colony)
    before = repository.get("W1N1").to_dict()

    report = planner.plan_colony(colony, tick=0, force=True)

    assert not report.changed
    assert repository.get("W1N1").to_dict() == before


def test_no_two_facilities_share_a_tile(colony, repository):
    planner = BasePlanner(repository)
    _converge(planner, colony)

    counts = Counter(_non_road_coordinates(repository.get("W1N1")))

    assert counts
    assert max(counts.values()) == 1


def test_roads_and_facilities_disjoint_after_sweep(colony, repository, config):
    planner = BasePlanner(repository, config)
    _converge(planner, colony)

    MaintenanceScheduler(config).sweep(repository, {"W1N1": colony}, tick=1000)

    plan = repository.get("W1N1")
    assert plan.road_tiles().isdisjoint(plan.non_road_claims())


def test_planned_sites_stay_off_nodes_and_walls(colony, repository):
    planner = BasePlanner(repository)
    _converge(planner, colony)

    for pos in _non_road_coordinates(repository.get("W1N1")):
        assert colony.is_walkable(pos)
        assert not colony.is_node(pos)


def test_extension_allowance_respected(colony, repository):
    colony.tier = 2
    planner = BasePlanner(repository)
    _converge(planner, colony)

    plan = repository.get("W1N1")
    planned = sum(len(e.coordinates) for _, e in plan.entries_with_prefix(FacilityCategory.EXTENSION_SITE))
    assert planned == 5


def test_tier_gates_late_facilities(colony, repository):
    colony.tier = 3
    planner = BasePlanner(repository)

    planner.plan_colony(colony, tick=0)

    plan = repository.get("W1N1")
    assert plan.get_entry(storage_key("Spawn1")) is None
    assert not plan.entries_with_prefix(FacilityCategory.CONDUIT_SITE)
    assert not plan.entries_with_prefix(FacilityCategory.TRADE_DEPOT_SITE)


def test_trade_depot_follows_built_storage(colony, repository):
    colony.add_structure((25, 24), StructureKind.STORAGE)
    planner = BasePlanner(repository)

    planner.plan_colony(colony, tick=0)

    plan = repository.get("W1N1")
    assert plan.entries_with_prefix(FacilityCategory.TRADE_DEPOT_SITE)
    assert plan.coordinates(conduit_key('storage'))


def test_unreachable_conduit_is_dropped(make_snapshot):
    walls = [(x, y) for x in range(29, 32) for y in range(29, 32) if (x, y) != (30, 30)]
    snapshot = make_snapshot(walls=walls, tier=8, anchors={"Spawn1": (5, 5)})
    plan = ColonyPlan("W1N1")
    plan.upsert_entry(conduit_key('controller'), [(30, 30)], tick=0)
    plan.upsert_entry(conduit_key('storage'), [(10, 10)], tick=0)

    dropped = ColonyPlanner().revalidate_conduits(snapshot, plan)

    assert dropped == 1
    assert plan.get_entry(conduit_key('controller')) is None
    assert plan.coordinates(conduit_key('storage')) == [(10, 10)]


def test_run_tick_respects_plan_interval(colony, repository):
    planner = BasePlanner(repository, PlannerConfig(plan_interval=50))

    assert len(planner.run_tick([colony], 0).planned) == 1
    assert planner.run_tick([colony], 10).planned == []
    assert len(planner.run_tick([colony], 50).planned) == 1


def test_run_tick_sweeps_on_cleanup_interval(colony, repository):
    planner = BasePlanner(repository, PlannerConfig(cleanup_interval=100))

    assert len(planner.run_tick([colony], 100).sweep) == 1
    assert planner.run_tick([colony], 150).sweep == []


def test_run_tick_returns_orders_per_colony(colony, make_snapshot, repository):
    other = make_snapshot("W2N2", tier=2, anchors={"Spawn1": (10, 10)}, sources={"s": (20, 20)})
    planner = BasePlanner(repository)

    report = planner.run_tick([other, colony], 0)

    assert sorted(report.orders) == ["W1N1", "W2N2"]
    assert 0 < len(report.orders["W1N1"]) <= planner.config.max_orders_per_tick
    assert report.orders["W2N2"][0].kind is StructureKind.CONTAINER


def test_colonies_are_planned_independently(colony, make_snapshot):
    repository = PlanRepository()
    planner = BasePlanner(repository)
    alone = BasePlanner(PlanRepository())
    other = make_snapshot("W2N2", tier=8, anchors={"Spawn1": (10, 10)}, sources={"s": (20, 20)})

    planner.run_tick([colony, other], 0)
    alone.run_tick([colony], 0)

    assert repository.get("W1N1").to_dict() == alone.repository.get("W1N1").to_dict()


def test_run_tick_reports_demolished_roads(make_snapshot, repository):
    snapshot = make_snapshot()
    snapshot.add_structure((10, 10), StructureKind.ROAD)
    snapshot.add_structure((10, 10), StructureKind.LAB)
    plan = repository.get_or_create("W1N1")
    plan.upsert_entry(road_key("a", "b"), [(9, 10), (10, 10)], tick=0)
    planner = BasePlanner(repository, PlannerConfig(cleanup_interval=100, plan_interval=1000))
    plan.last_plan_tick = 0

    report = planner.run_tick([snapshot], 100)

    assert [(d.kind, d.pos) for d in report.demolitions["W1N1"]] == [(StructureKind.ROAD, (10, 10))]
    assert not snapshot.has_structure((10, 10), StructureKind.ROAD)
