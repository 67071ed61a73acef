"""
Per-tick orchestration of the layout planner.

BasePlanner.run_tick processes every observed colony in colony id order:

    1. replanning (every plan_interval ticks): site selection -> roads ->
       perimeter roads -> cluster connection, all written to the colony plan
    2. maintenance sweep (every cleanup_interval ticks) over every colony
    3. construction orders for every observed colony, plus demolition orders
       for roads the sweep removed

Colonies are independent; each ColonyPlan is written only by its own pass.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Iterable, Optional

from baseplanner.config import get_planner_logger, PerformanceTimer
from baseplanner.planning.clusters import ClusterConnector
from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.costs import build_cost_matrix
from baseplanner.planning.emitter import ConstructionEmitter, ConstructionOrder, DemolitionOrder
from baseplanner.planning.keys import (
    FacilityCategory, extraction_key, control_buffer_key, mineral_key, storage_key,
    conduit_key, trade_depot_key, tower_key, extension_key
)
from baseplanner.planning.maintenance import MaintenanceScheduler, SweepResult
from baseplanner.planning.roads import RoadNetworkBuilder
from baseplanner.planning.sites import SiteSelector
from baseplanner.planning.store import ColonyPlan, PlanRepository
from baseplanner.planning.structures import StructureKind
from baseplanner.planning.utils import BLOCKED
from baseplanner.planning.world import ColonySnapshot


@dataclass
class PlanningReport:
    """What one replanning pass added to a colony plan."""
    colony_id: str
    tick: int
    sites: Dict[str, int] = field(default_factory=dict)  # category value -> coordinates added
    revalidated: int = 0
    roads: int = 0
    perimeter_tiles: int = 0
    connectors: int = 0
    overlays: int = 0
    elapsed: float = 0.0

    @property
    def changed(self) -> bool:
        return bool(self.sites or self.revalidated or self.roads or self.perimeter_tiles
                    or self.connectors or self.overlays)


@dataclass
class TickReport:
    tick: int
    planned: List[PlanningReport] = field(default_factory=list)
    sweep: List[SweepResult] = field(default_factory=list)
    orders: Dict[str, List[ConstructionOrder]] = field(default_factory=dict)
    demolitions: Dict[str, List[DemolitionOrder]] = field(default_factory=dict)


class ColonyPlanner:
    """
    Runs one replanning pass over one colony.

    Owns the site selector, road builder and cluster connector; every write to
    the colony plan during a pass goes through here.
    """

    def __init__(self, config: PlannerConfig = None):
        self.config = config or PlannerConfig()
        self.logger = get_planner_logger()
        self.selector = SiteSelector(self.config)
        self.roads = RoadNetworkBuilder(self.config)
        self.connector = ClusterConnector(self.config, self.roads)

    def _record(self, report: PlanningReport, category: FacilityCategory, count: int = 1):
        report.sites[category.value] = report.sites.get(category.value, 0) + count

    def plan(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int) -> PlanningReport:
        """
        Run site selection, road building and cluster connection for one colony.

        Args:
            snapshot: World snapshot of the colony
            plan: The colony plan (mutated in place)
            tick: Current tick

        Returns:
            PlanningReport
        """
        report = PlanningReport(snapshot.colony_id, tick)
        with PerformanceTimer(self.logger, f"Planning {snapshot.colony_id} at tick {tick}") as timer:
            self.plan_containers(snapshot, plan, tick, report)
            self.plan_storage(snapshot, plan, tick, report)
            self.plan_towers(snapshot, plan, tick, report)
            self.plan_conduits(snapshot, plan, tick, report)
            self.plan_trade_depot(snapshot, plan, tick, report)
            self.plan_extensions(snapshot, plan, tick, report)

            report.roads = self.roads.plan_roads(snapshot, plan, tick)
            if self.config.plan_perimeter_roads:
                report.perimeter_tiles = self.roads.plan_perimeter_roads(snapshot, plan, tick)
            report.connectors = self.connector.connect(snapshot, plan, tick)

        plan.last_plan_tick = tick
        report.elapsed = timer.elapsed
        if report.changed:
            self.logger.info(f"[{snapshot.colony_id}] Plan updated at tick {tick}: sites={report.sites}, "
                             f"roads={report.roads}, connectors={report.connectors}")
        return report

    # -------------------------
    # Site passes
    # -------------------------
    def plan_containers(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int, report: PlanningReport):
        costs = build_cost_matrix(snapshot, plan, self.config)
        for source_id in sorted(snapshot.sources):
            key = extraction_key(source_id)
            if plan.coordinates(key):
                continue
            pos = self.selector.select_extraction_site(snapshot, plan, source_id, costs)
            if pos is not None:
                plan.upsert_entry(key, [pos], tick)
                self._record(report, key.category)

        key = control_buffer_key()
        if snapshot.controller is not None and not plan.coordinates(key):
            pos = self.selector.select_control_buffer_site(snapshot, plan)
            if pos is not None:
                plan.upsert_entry(key, [pos], tick)
                self._record(report, key.category)

        for mineral_id in sorted(snapshot.minerals):
            key = mineral_key(mineral_id)
            if plan.coordinates(key):
                continue
            pos = self.selector.select_mineral_site(snapshot, plan, mineral_id)
            if pos is not None:
                plan.upsert_entry(key, [pos], tick)
                self._record(report, key.category)

    def plan_storage(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int, report: PlanningReport):
        if snapshot.tier < self.config.storage_min_tier or not snapshot.anchors:
            return
        if plan.entries_with_prefix(FacilityCategory.STORAGE_SITE):
            return
        anchor_id = sorted(snapshot.anchors)[0]
        pos = self.selector.select_storage_site(snapshot, plan, anchor_id)
        if pos is not None:
            plan.upsert_entry(storage_key(anchor_id), [pos], tick)
            self._record(report, FacilityCategory.STORAGE_SITE)

    def plan_towers(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int, report: PlanningReport):
        for anchor_id, count in self.selector.tower_allocation(snapshot).items():
            key = tower_key(anchor_id)
            have = plan.coordinates(key)
            if len(have) >= count:
                continue
            sites = self.selector.select_tower_sites(snapshot, plan, anchor_id, count - len(have))
            if sites:
                plan.add_coordinates(key, sites, tick)
                self._record(report, key.category, len(sites))

    def plan_conduits(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int, report: PlanningReport):
        """
        Keep one conduit per resource node, one at the control point and one at
        the storage. A planned, unbuilt conduit the anchors can no longer reach
        is dropped and reselected.
        """
        if snapshot.tier < self.config.conduit_min_tier:
            return

        report.revalidated += self.revalidate_conduits(snapshot, plan)
        costs = build_cost_matrix(snapshot, plan, self.config)

        wanted = [(conduit_key('source', source_id),
                   lambda sid=source_id: self.selector.select_source_conduit(snapshot, plan, sid, costs))
                  for source_id in sorted(snapshot.sources)]
        wanted.append((conduit_key('controller'),
                       lambda: self.selector.select_controller_conduit(snapshot, plan, costs)))
        wanted.append((conduit_key('storage'),
                       lambda: self.selector.select_storage_conduit(snapshot, plan, costs)))

        for key, select in wanted:
            if plan.coordinates(key):
                continue
            pos = select()
            if pos is not None:
                plan.upsert_entry(key, [pos], tick)
                self._record(report, key.category)
                x, y = pos
                costs[y, x] = BLOCKED

    def revalidate_conduits(self, snapshot: ColonySnapshot, plan: ColonyPlan) -> int:
        """Delete planned conduits whose anchor path is now incomplete. Returns the count."""
        dropped = 0
        for key, entry in plan.entries_with_prefix(FacilityCategory.CONDUIT_SITE):
            if not entry.coordinates:
                continue
            pos = entry.coordinates[0]
            if snapshot.has_structure(pos, StructureKind.CONDUIT, include_markers=True):
                continue
            result = self.selector.path_from_anchor(snapshot, plan, pos)
            if result is not None and result.incomplete:
                plan.delete_entry(key)
                dropped += 1
                self.logger.info(f"[{snapshot.colony_id}] Conduit {key} at {pos} is unreachable, reselecting")
        return dropped

    def plan_trade_depot(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int, report: PlanningReport):
        if snapshot.tier < self.config.depot_min_tier:
            return
        key = trade_depot_key()
        if plan.coordinates(key):
            return
        pos = self.selector.select_trade_depot_site(snapshot, plan)
        if pos is not None:
            plan.upsert_entry(key, [pos], tick)
            self._record(report, key.category)

    def plan_extensions(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int, report: PlanningReport):
        def unbuilt(coords):
            return sum(1 for pos in coords
                       if not snapshot.has_structure(pos, StructureKind.EXTENSION))

        total_unbuilt = sum(unbuilt(e.coordinates)
                            for _, e in plan.entries_with_prefix(FacilityCategory.EXTENSION_SITE))

        for anchor_id in sorted(snapshot.anchors):
            key = extension_key(anchor_id)
            anchor_unbuilt = unbuilt(plan.coordinates(key))
            quota = self.selector.extension_quota(snapshot, anchor_unbuilt, total_unbuilt)
            if quota <= 0:
                continue
            sites = self.selector.select_extension_sites(snapshot, plan, anchor_id, quota)
            if sites:
                plan.add_coordinates(key, sites, tick)
                total_unbuilt += len(sites)
                self._record(report, key.category, len(sites))


class BasePlanner:
    """
    Tick driver over every colony.

    Args:
        repository: Plan Store for all colonies; the caller loads and saves it
        config: Planner configuration
    """

    def __init__(self, repository: PlanRepository, config: PlannerConfig = None):
        self.config = config or PlannerConfig()
        self.repository = repository
        self.logger = get_planner_logger()
        self.colony_planner = ColonyPlanner(self.config)
        self.maintenance = MaintenanceScheduler(self.config)
        self.emitter = ConstructionEmitter(self.config)

    def is_replan_due(self, plan: ColonyPlan, tick: int) -> bool:
        return plan.last_plan_tick is None or tick - plan.last_plan_tick >= self.config.plan_interval

    def plan_colony(self, snapshot: ColonySnapshot, tick: Optional[int] = None,
                    force: bool = False) -> Optional[PlanningReport]:
        """
        Replan one colony if its interval has elapsed (or when forced).

        Returns:
            PlanningReport, or None when the colony was not due
        """
        tick = snapshot.tick if tick is None else tick
        plan = self.repository.get_or_create(snapshot.colony_id)
        if not force and not self.is_replan_due(plan, tick):
            return None
        report = self.colony_planner.plan(snapshot, plan, tick)
        report.overlays = self.emitter.plan_overlays(snapshot, plan, tick)
        return report

    def run_tick(self, snapshots: Iterable[ColonySnapshot], tick: int) -> TickReport:
        """
        Run one tick over every observed colony.

        Args:
            snapshots: Snapshots of the colonies observed this tick
            tick: Current tick

        Returns:
            TickReport with planning reports, sweep results and orders per colony
        """
        observed = {s.colony_id: s for s in snapshots}
        report = TickReport(tick)

        for colony_id in sorted(observed):
            planning = self.plan_colony(observed[colony_id], tick)
            if planning is not None:
                report.planned.append(planning)

        if self.maintenance.is_due(tick):
            report.sweep = self.maintenance.sweep(self.repository, observed, tick)
            for result in report.sweep:
                if result.demolished_roads:
                    report.demolitions[result.colony_id] = self.emitter.demolitions(result)

        for colony_id in sorted(observed):
            plan = self.repository.get(colony_id)
            if plan is None:
                continue
            report.orders[colony_id] = self.emitter.emit(observed[colony_id], plan)

        return report
