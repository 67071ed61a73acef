"""
Planning Package - Automated Base Layout Planner

This package decides where a colony's infrastructure goes, connects it with
roads, keeps the plan consistent across ticks and turns it into construction
orders. Everything runs single-threaded and tick-bounded: the only early exit
is a path search running out of its operation budget, which simply defers
that piece of work to the next replanning cycle.

MODULES:
--------
config.py
    PlannerConfig dataclass with every tunable (intervals, path costs,
    selector radii, tier tables, connector quotas, protect list).

world.py
    ColonySnapshot: terrain, occupants, nodes, anchors, tier and tick for one
    colony. JSON loading and saving of world files.

store.py
    Plan Store: PlanEntry, ColonyPlan and the PlanRepository /
    JsonPlanRepository persistence layer.

keys.py
    FacilityCategory enum and FacilityKey (category + discriminator).

sites.py
    SiteSelector: candidate generation and scoring per facility category.

roads.py
    RoadNetworkBuilder: cached least-cost roads between infrastructure nodes.

clusters.py
    ClusterConnector: flood-fill clustering and rate-limited bridging.

maintenance.py
    MaintenanceScheduler: dedup, singleton collapse, conflict and stale-road
    pruning, abandoned colony discard; one SweepResult per colony.

emitter.py
    ConstructionEmitter: ordered construction orders, defensive overlays and
    demolition orders for roads removed by maintenance.

planner.py
    ColonyPlanner (one replanning pass) and BasePlanner (per-tick driver).

render.py
    Off-screen pygame rendering of a plan for debugging.

USAGE:
------
```python
from baseplanner.planning import BasePlanner, PlannerConfig, PlanRepository, load_world

planner = BasePlanner(PlanRepository(), PlannerConfig())
for snapshot in load_world("world.json"):
    report = planner.run_tick([snapshot], tick=snapshot.tick)
    for order in report.orders[snapshot.colony_id]:
        print(order.kind.value, order.pos)
```
"""

from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.errors import PlannerError, PlanStoreError, SnapshotError
from baseplanner.planning.keys import FacilityCategory, FacilityKey
from baseplanner.planning.structures import StructureKind, Occupant
from baseplanner.planning.world import ColonySnapshot, load_world, save_world
from baseplanner.planning.store import PlanEntry, ColonyPlan, PlanRepository, JsonPlanRepository
from baseplanner.planning.sites import SiteSelector
from baseplanner.planning.roads import RoadNetworkBuilder
from baseplanner.planning.clusters import ClusterConnector
from baseplanner.planning.maintenance import MaintenanceScheduler, SweepResult
from baseplanner.planning.emitter import ConstructionEmitter, ConstructionOrder, DemolitionOrder
from baseplanner.planning.planner import BasePlanner, ColonyPlanner, PlanningReport, TickReport

__all__ = [
    # Configuration
    'PlannerConfig',

    # Errors
    'PlannerError',
    'PlanStoreError',
    'SnapshotError',

    # Data model
    'FacilityCategory',
    'FacilityKey',
    'StructureKind',
    'Occupant',
    'ColonySnapshot',
    'load_world',
    'save_world',
    'PlanEntry',
    'ColonyPlan',
    'PlanRepository',
    'JsonPlanRepository',

    # Components
    'SiteSelector',
    'RoadNetworkBuilder',
    'ClusterConnector',
    'MaintenanceScheduler',
    'SweepResult',
    'ConstructionEmitter',
    'ConstructionOrder',
    'DemolitionOrder',

    # Orchestration
    'BasePlanner',
    'ColonyPlanner',
    'PlanningReport',
    'TickReport',
]
