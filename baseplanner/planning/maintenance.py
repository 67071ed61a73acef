"""
Maintenance sweeps over the Plan Store.

The sweep runs on a much longer interval than replanning. For every colony it
collapses singleton entries, deduplicates and bounds-checks coordinates,
resolves footprint conflicts, removes road tiles that sit under non-road
structures (demolishing a real road found there) and, on the lower-frequency
road prune interval, drops old road entries nothing was ever built along.
Defensive overlays whose protected structure is gone are dropped too.
Colonies that are not observed and have no recent entry are discarded.

Each colony is swept inside its own error boundary: a failure is reported in
that colony's SweepResult and logged, and the other colonies are still swept.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional

from baseplanner.config import get_planner_logger, log_memory_usage
from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.keys import FacilityCategory, FacilityKey
from baseplanner.planning.store import ColonyPlan, PlanRepository
from baseplanner.planning.structures import StructureKind
from baseplanner.planning.utils import Pos, valid_pos
from baseplanner.planning.world import ColonySnapshot


@dataclass
class SweepResult:
    """Outcome of one colony's maintenance sweep."""
    colony_id: str
    ok: bool = True
    error: Optional[str] = None
    collapsed: int = 0  # singleton entries collapsed to one coordinate
    dropped_coordinates: int = 0  # duplicates, out-of-bounds and conflicting coordinates
    deleted_entries: int = 0
    pruned_road_tiles: int = 0
    stale_roads: int = 0
    demolished_roads: List[Pos] = field(default_factory=list)
    discarded: bool = False


class MaintenanceScheduler:
    def __init__(self, config: PlannerConfig = None):
        self.config = config or PlannerConfig()
        self.logger = get_planner_logger()
        self.protected = self.config.protected_kinds()

    # -------------------------
    # Scheduling
    # -------------------------
    def is_due(self, tick: int) -> bool:
        return tick % self.config.cleanup_interval == 0

    def is_road_prune_due(self, tick: int) -> bool:
        return tick % self.config.road_prune_interval == 0

    # -------------------------
    # Entry point
    # -------------------------
    def sweep(
        self,
        repository: PlanRepository,
        snapshots: Dict[str, ColonySnapshot],
        tick: int
    ) -> List[SweepResult]:
        """
        Sweep every colony in the repository.

        Args:
            repository: All colony plans
            snapshots: Snapshots of the colonies observed this tick, by colony id
            tick: Current tick

        Returns:
            One SweepResult per colony, in colony id order
        """
        results: List[SweepResult] = []
        prune_roads = self.is_road_prune_due(tick)

        for colony_id in repository.colony_ids():
            result = SweepResult(colony_id)
            try:
                plan = repository.get(colony_id)
                snapshot = snapshots.get(colony_id)
                if snapshot is None and self._is_abandoned(plan, tick):
                    repository.discard(colony_id)
                    result.discarded = True
                    self.logger.info(f"[{colony_id}] Discarded plan store, unseen for over "
                                     f"{self.config.unseen_age} ticks")
                else:
                    self.clean_colony(plan, snapshot, tick, result)
                    if snapshot is not None:
                        self.prune_roads_under_structures(plan, snapshot, result)
                        if prune_roads:
                            self.prune_stale_roads(plan, snapshot, tick, result)
            except Exception as e:
                result.ok = False
                result.error = f"{type(e).__name__}: {e}"
                self.logger.error(f"[{colony_id}] Maintenance sweep failed: {e}", exc_info=True)
            results.append(result)

        failed = sum(1 for r in results if not r.ok)
        self.logger.info(f"Maintenance sweep at tick {tick}: {len(results)} colonies, {failed} failed")
        log_memory_usage(self.logger, "Memory after maintenance")
        return results

    def _is_abandoned(self, plan: ColonyPlan, tick: int) -> bool:
        newest = plan.newest_created_at()
        return newest is None or tick - newest > self.config.unseen_age

    # -------------------------
    # Cleanup
    # -------------------------
    def clean_colony(
        self,
        plan: ColonyPlan,
        snapshot: Optional[ColonySnapshot],
        tick: int,
        result: SweepResult
    ):
        """
        Collapse singletons, deduplicate, drop out-of-bounds coordinates and
        resolve footprint conflicts.

        With a snapshot, non-road coordinates on walls or under a different
        non-road structure are dropped as well, and so are defensive overlays
        whose protected structure is gone. The first entry in key order keeps
        a contested coordinate.
        """
        width = snapshot.width if snapshot else self.config.width
        height = snapshot.height if snapshot else self.config.height
        claimed: Dict[Pos, FacilityKey] = {}

        for key, entry in list(plan.items()):
            coords = entry.coordinates

            if key.is_singleton and len(coords) > 1:
                plan.upsert_entry(key, coords[:1], tick, refresh=True)
                result.collapsed += 1
                result.dropped_coordinates += len(coords) - 1
                coords = coords[:1]

            kept: List[Pos] = []
            for pos in coords:
                if pos in kept or not valid_pos(pos[0], pos[1], width, height):
                    continue
                if key.category.claims_footprint:
                    if pos in claimed:
                        continue
                    if snapshot is not None and not self._footprint_valid(snapshot, key, pos):
                        continue
                kept.append(pos)

            if key.category is FacilityCategory.DEFENSIVE_OVERLAY and snapshot is not None:
                kept = [pos for pos in kept if self._is_protected(snapshot, pos)]

            if key.category.claims_footprint:
                for pos in kept:
                    claimed[pos] = key

            if len(kept) != len(coords):
                result.dropped_coordinates += len(coords) - len(kept)
                if kept:
                    plan.upsert_entry(key, kept, tick)
                else:
                    plan.delete_entry(key)
                    result.deleted_entries += 1
                    self.logger.debug(f"[{plan.colony_id}] Deleted empty entry {key}")

    def _is_protected(self, snapshot: ColonySnapshot, pos: Pos) -> bool:
        return any(o.is_built and o.kind in self.protected for o in snapshot.occupants_at(pos))

    def _footprint_valid(self, snapshot: ColonySnapshot, key: FacilityKey, pos: Pos) -> bool:
        if not snapshot.is_walkable(pos) or snapshot.is_node(pos):
            return False
        wanted = key.category.structure_kind
        for occ in snapshot.occupants_at(pos):
            if occ.kind is wanted or occ.kind in (StructureKind.ROAD, StructureKind.OVERLAY):
                continue
            return False
        return True

    # -------------------------
    # Road conflicts
    # -------------------------
    def prune_roads_under_structures(self, plan: ColonyPlan, snapshot: ColonySnapshot, result: SweepResult):
        """
        Remove road tiles covered by a non-road structure or a planned non-road
        facility, demolishing any real road standing there.
        """
        for key, entry in list(plan.items()):
            if not key.is_road:
                continue
            kept: List[Pos] = []
            for pos in entry.coordinates:
                covered = plan.non_road_at(pos) is not None or any(
                    o.kind not in (StructureKind.ROAD, StructureKind.OVERLAY)
                    for o in snapshot.occupants_at(pos)
                )
                if not covered:
                    kept.append(pos)
                    continue
                result.pruned_road_tiles += 1
                if snapshot.destroy_structure(pos, StructureKind.ROAD):
                    result.demolished_roads.append(pos)

            if len(kept) != len(entry.coordinates):
                if kept:
                    plan.upsert_entry(key, kept, entry.created_at)
                else:
                    plan.delete_entry(key)
                    result.deleted_entries += 1

        if result.pruned_road_tiles:
            self.logger.info(f"[{plan.colony_id}] Pruned {result.pruned_road_tiles} road tile(s) "
                             f"under structures, demolished {len(result.demolished_roads)}")

    def prune_stale_roads(self, plan: ColonyPlan, snapshot: ColonySnapshot, tick: int, result: SweepResult):
        """Delete road entries older than road_prune_age with no road built or marked along them."""
        for key, entry in list(plan.items()):
            if not key.is_road:
                continue
            if tick - entry.created_at <= self.config.road_prune_age:
                continue
            live = any(
                snapshot.has_structure(pos, StructureKind.ROAD, include_markers=True)
                for pos in entry.coordinates
            )
            if live:
                continue
            plan.delete_entry(key)
            result.stale_roads += 1
            result.deleted_entries += 1
            self.logger.info(f"[{plan.colony_id}] Pruned stale road entry {key}")
