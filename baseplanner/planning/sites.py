"""
Site selection.

SiteSelector proposes coordinates for every facility category. Each select_*
method returns one coordinate (or a list for towers and extensions); None or
an empty list means no legal site this cycle and the planner simply tries
again on the next replanning cycle.

A candidate is legal when it is in bounds, walkable, not a node tile, has
nothing built or marked on it, and is not claimed by another non-road plan
entry. Illegal candidates are skipped silently.
"""

from typing import List, Tuple, Dict, Optional, Callable, Iterable, Set

import numpy as np

from baseplanner.config import get_planner_logger
from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.costs import build_cost_matrix
from baseplanner.planning.keys import FacilityCategory, FacilityKey, extraction_key, control_buffer_key
from baseplanner.planning.store import ColonyPlan
from baseplanner.planning.structures import StructureKind
from baseplanner.planning.utils import (
    Pos, PathResult, DIRECTIONS_4, neighbors_8, square_ring, square_area,
    manhattan, chebyshev, search_path
)
from baseplanner.planning.world import ColonySnapshot


class SiteSelector:
    """
    Candidate generation and scoring for every facility category.

    Selectors never mutate the plan; the planner writes accepted sites back so
    the next selector in the same cycle sees them as claimed.
    """

    def __init__(self, config: PlannerConfig = None):
        self.config = config or PlannerConfig()
        self.logger = get_planner_logger()

    # -------------------------
    # Shared helpers
    # -------------------------
    def is_free(self, snapshot: ColonySnapshot, plan: ColonyPlan, pos: Pos) -> bool:
        """Legal for a new non-road facility."""
        return snapshot.is_buildable(pos) and plan.non_road_at(pos) is None

    def nearest_anchor(self, snapshot: ColonySnapshot, pos: Pos) -> Optional[Tuple[str, Pos]]:
        """Anchor closest to pos by Manhattan distance; ties go to the smaller id."""
        if not snapshot.anchors:
            return None
        return min(sorted(snapshot.anchors.items()), key=lambda item: manhattan(item[1], pos))

    def path_from_anchor(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        target: Pos,
        costs: Optional[np.ndarray] = None
    ) -> Optional[PathResult]:
        """Budgeted path from the nearest anchor to target, or None without anchors."""
        anchor = self.nearest_anchor(snapshot, target)
        if anchor is None:
            return None
        if costs is None:
            costs = build_cost_matrix(snapshot, plan, self.config)
        return search_path(costs, anchor[1], target, self.config.max_ops, self.config.heuristic_weight)

    def road_neighbors(self, snapshot: ColonySnapshot, plan: ColonyPlan, pos: Pos) -> Tuple[int, int]:
        """(planned road, built road) counts among the four neighbors of pos."""
        planned = built = 0
        for _, dx, dy in DIRECTIONS_4:
            n = (pos[0] + dx, pos[1] + dy)
            if plan.road_at(n):
                planned += 1
            if snapshot.has_structure(n, StructureKind.ROAD):
                built += 1
        return planned, built

    def node_container(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        key: FacilityKey,
        node: Pos,
        radius: int,
        exclude: Iterable[Pos] = ()
    ) -> Optional[Pos]:
        """Planned container for a node, else a built or marked one within radius not in `exclude`."""
        planned = plan.coordinates(key)
        if planned:
            return planned[0]
        exclude = set(exclude)
        existing = [pos for pos in snapshot.structures_in_range(node, radius, StructureKind.CONTAINER)
                    if pos not in exclude]
        return existing[0] if existing else None

    def node_served_containers(self, snapshot: ColonySnapshot, plan: ColonyPlan) -> Set[Pos]:
        """Containers belonging to a resource or mineral node: planned sites plus any next to the node."""
        served: Set[Pos] = set()
        for node in list(snapshot.sources.values()) + list(snapshot.minerals.values()):
            served.update(snapshot.structures_in_range(node, self.config.container_offset,
                                                       StructureKind.CONTAINER))
        for category in (FacilityCategory.EXTRACTION_SITE, FacilityCategory.MINERAL_SITE):
            for _, entry in plan.entries_with_prefix(category):
                served.update(entry.coordinates)
        return served

    def control_buffer_container(self, snapshot: ColonySnapshot, plan: ColonyPlan) -> Optional[Pos]:
        """Planned control-buffer site, else a container near the control point no other node owns."""
        if snapshot.controller is None:
            return None
        return self.node_container(snapshot, plan, control_buffer_key(), snapshot.controller,
                                   self.config.upgrade_buffer_offset + 1,
                                   exclude=self.node_served_containers(snapshot, plan))

    def _ring_scan(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        center: Pos,
        min_radius: int,
        max_radius: int
    ) -> Optional[Pos]:
        """First free tile on square rings min_radius..max_radius around center."""
        for r in range(min_radius, max_radius + 1):
            for pos in square_ring(center, r, snapshot.width, snapshot.height):
                if self.is_free(snapshot, plan, pos):
                    return pos
        return None

    # -------------------------
    # Containers
    # -------------------------
    def select_extraction_site(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        source_id: str,
        costs: Optional[np.ndarray] = None
    ) -> Optional[Pos]:
        """
        Container site next to a resource node.

        Walks the anchor-to-node path from the node end inward and takes the
        first legal tile inside the ring, testing each path tile before its
        own neighborhood. Falls back to a plain ring scan.

        Args:
            snapshot: World snapshot
            plan: Colony plan
            source_id: Resource node id
            costs: Optional precomputed cost matrix

        Returns:
            Site position, or None if a container already stands in the ring
            or no legal tile exists
        """
        source = snapshot.sources[source_id]
        offset = self.config.container_offset

        if snapshot.structures_in_range(source, offset, StructureKind.CONTAINER):
            return None

        def in_ring(pos: Pos) -> bool:
            return pos != source and chebyshev(pos, source) <= offset

        result = self.path_from_anchor(snapshot, plan, source, costs)
        if result is not None and not result.incomplete:
            for step in reversed(result.path):
                if step == source:
                    continue
                candidates = [step] + [(nx, ny) for nx, ny, _ in
                                       neighbors_8(step[0], step[1], snapshot.width, snapshot.height)]
                for pos in candidates:
                    if in_ring(pos) and self.is_free(snapshot, plan, pos):
                        return pos
        elif result is not None:
            self.logger.debug(f"[{snapshot.colony_id}] No complete path to source {source_id}, "
                              f"using ring scan")

        return self._ring_scan(snapshot, plan, source, 1, offset)

    def select_control_buffer_site(self, snapshot: ColonySnapshot, plan: ColonyPlan) -> Optional[Pos]:
        """First free tile on rings 1..upgrade_buffer_offset+1 around the control point."""
        controller = snapshot.controller
        if controller is None:
            return None
        max_radius = self.config.upgrade_buffer_offset + 1
        if self.control_buffer_container(snapshot, plan) is not None:
            return None
        return self._ring_scan(snapshot, plan, controller, 1, max_radius)

    def select_mineral_site(self, snapshot: ColonySnapshot, plan: ColonyPlan, mineral_id: str) -> Optional[Pos]:
        mineral = snapshot.minerals[mineral_id]
        offset = self.config.container_offset
        if snapshot.structures_in_range(mineral, offset, StructureKind.CONTAINER):
            return None
        return self._ring_scan(snapshot, plan, mineral, 1, offset)

    def select_storage_site(self, snapshot: ColonySnapshot, plan: ColonyPlan, anchor_id: str) -> Optional[Pos]:
        """First free tile among the eight neighbors of the anchor."""
        if snapshot.find_structures(StructureKind.STORAGE, include_markers=True):
            return None
        ax, ay = snapshot.anchors[anchor_id]
        for nx, ny, _ in neighbors_8(ax, ay, snapshot.width, snapshot.height):
            if self.is_free(snapshot, plan, (nx, ny)):
                return (nx, ny)
        return None

    # -------------------------
    # Conduits and trade depot
    # -------------------------
    def _best_scored(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        candidates: List[Pos],
        anchor: Pos,
        costs: np.ndarray,
        score_fn: Callable[[Pos, PathResult], float]
    ) -> Optional[Pos]:
        """Highest-scoring reachable candidate; the first one wins ties."""
        best: Optional[Pos] = None
        best_score = None
        for pos in candidates:
            if not self.is_free(snapshot, plan, pos) or plan.road_at(pos):
                continue
            result = search_path(costs, anchor, pos, self.config.max_ops, self.config.heuristic_weight)
            if result.incomplete:
                continue
            score = score_fn(pos, result)
            if best_score is None or score > best_score:
                best, best_score = pos, score
        if best is not None:
            self.logger.debug(f"[{snapshot.colony_id}] Best candidate {best} scored {best_score}")
        return best

    def _conduit_score(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        pos: Pos,
        base: float,
        partner: Optional[Pos]
    ) -> float:
        planned, built = self.road_neighbors(snapshot, plan, pos)
        score = base + 10 * planned + 10 * built
        if partner is not None and chebyshev(pos, partner) <= 1:
            score += 100
        return score

    def select_source_conduit(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        source_id: str,
        costs: Optional[np.ndarray] = None
    ) -> Optional[Pos]:
        """Conduit within conduit_source_radius of a resource node, next to its container if possible."""
        source = snapshot.sources[source_id]
        radius = self.config.conduit_source_radius
        if snapshot.structures_in_range(source, radius, StructureKind.CONDUIT):
            return None
        anchor = self.nearest_anchor(snapshot, source)
        if anchor is None:
            return None
        if costs is None:
            costs = build_cost_matrix(snapshot, plan, self.config)

        container = self.node_container(snapshot, plan, extraction_key(source_id), source,
                                        self.config.container_offset)
        candidates = square_area(source, radius, snapshot.width, snapshot.height)
        return self._best_scored(
            snapshot, plan, candidates, anchor[1], costs,
            lambda pos, result: self._conduit_score(snapshot, plan, pos, 0, container)
        )

    def select_controller_conduit(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        costs: Optional[np.ndarray] = None
    ) -> Optional[Pos]:
        """
        Conduit on the rings around the control point.

        Score is 100 minus path length, plus 20 on the inner ring, plus road
        adjacency, plus 100 next to the control buffer container.
        """
        controller = snapshot.controller
        if controller is None:
            return None
        min_r = self.config.conduit_controller_min_range
        max_r = self.config.conduit_controller_max_range
        if snapshot.structures_in_range(controller, max_r, StructureKind.CONDUIT):
            return None
        anchor = self.nearest_anchor(snapshot, controller)
        if anchor is None:
            return None
        if costs is None:
            costs = build_cost_matrix(snapshot, plan, self.config)

        container = self.control_buffer_container(snapshot, plan)
        candidates: List[Pos] = []
        for r in range(min_r, max_r + 1):
            candidates.extend(square_ring(controller, r, snapshot.width, snapshot.height))

        def score(pos: Pos, result: PathResult) -> float:
            base = 100 - len(result.path)
            if chebyshev(pos, controller) == min_r:
                base += 20
            return self._conduit_score(snapshot, plan, pos, base, container)

        return self._best_scored(snapshot, plan, candidates, anchor[1], costs, score)

    def select_storage_conduit(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        costs: Optional[np.ndarray] = None
    ) -> Optional[Pos]:
        """Conduit on one of the eight tiles around the built storage."""
        storages = snapshot.find_structures(StructureKind.STORAGE)
        if not storages:
            return None
        storage = storages[0]
        if snapshot.structures_in_range(storage, 1, StructureKind.CONDUIT):
            return None
        anchor = self.nearest_anchor(snapshot, storage)
        if anchor is None:
            return None
        if costs is None:
            costs = build_cost_matrix(snapshot, plan, self.config)

        candidates = square_ring(storage, 1, snapshot.width, snapshot.height)
        return self._best_scored(
            snapshot, plan, candidates, anchor[1], costs,
            lambda pos, result: self._conduit_score(snapshot, plan, pos, 100 - len(result.path), None)
        )

    def select_trade_depot_site(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        costs: Optional[np.ndarray] = None
    ) -> Optional[Pos]:
        """
        Trade depot near the built storage, preferring depot_preferred_distance.

        Score = 100 - 10 * |range - preferred| - path length + 5 per adjacent road.
        """
        storages = snapshot.find_structures(StructureKind.STORAGE)
        if not storages:
            return None
        if snapshot.find_structures(StructureKind.TRADE_DEPOT, include_markers=True):
            return None
        storage = storages[0]
        anchor = self.nearest_anchor(snapshot, storage)
        if anchor is None:
            return None
        if costs is None:
            costs = build_cost_matrix(snapshot, plan, self.config)

        preferred = self.config.depot_preferred_distance
        candidates = square_area(storage, self.config.depot_max_radius, snapshot.width, snapshot.height)

        def score(pos: Pos, result: PathResult) -> float:
            planned, built = self.road_neighbors(snapshot, plan, pos)
            deviation = abs(chebyshev(pos, storage) - preferred)
            return 100 - deviation * 10 - len(result.path) + 5 * planned + 5 * built

        return self._best_scored(snapshot, plan, candidates, anchor[1], costs, score)

    # -------------------------
    # Towers
    # -------------------------
    def tower_allocation(self, snapshot: ColonySnapshot) -> Dict[str, int]:
        """
        Split the tier's tower count round-robin across anchors sorted by id.

        Returns:
            anchor id -> number of towers it should host
        """
        anchor_ids = sorted(snapshot.anchors)
        allocation = {anchor_id: 0 for anchor_id in anchor_ids}
        if not anchor_ids:
            return allocation
        for i in range(self.config.tower_count(snapshot.tier)):
            allocation[anchor_ids[i % len(anchor_ids)]] += 1
        return allocation

    def select_tower_sites(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        anchor_id: str,
        count: int
    ) -> List[Pos]:
        """Up to `count` free tiles taken from the fixed tower offsets, in order."""
        ax, ay = snapshot.anchors[anchor_id]
        sites: List[Pos] = []
        for dx, dy in self.config.tower_offsets:
            if len(sites) >= count:
                break
            pos = (ax + dx, ay + dy)
            if pos not in sites and self.is_free(snapshot, plan, pos):
                sites.append(pos)
        return sites

    # -------------------------
    # Extensions
    # -------------------------
    def extension_quota(self, snapshot: ColonySnapshot, anchor_unbuilt: int, total_unbuilt: int) -> int:
        """
        Extensions still to plan for one anchor.

        Bounded by the per-anchor cap (less what the anchor already has planned
        but unbuilt) and by the tier allowance (less everything built or
        planned colony-wide).
        """
        allowed = self.config.extension_allowance(snapshot.tier)
        built = snapshot.count_structures(StructureKind.EXTENSION)
        remaining = allowed - built - total_unbuilt
        return max(0, min(self.config.max_extensions_per_anchor - anchor_unbuilt, remaining))

    def select_extension_sites(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        anchor_id: str,
        quota: int
    ) -> List[Pos]:
        """
        Extension sites around an anchor.

        Candidates come from the preferred offsets, then (when enabled) square
        rings from extension_ring_radius out to extension_search_radius, then
        every tile within the search radius sorted by Manhattan distance. Every
        candidate sits at least extension_min_distance (Chebyshev) from the
        anchor and off any planned road. The search gathers quota plus
        extension_entrances candidates; the surplus is then pruned, road-adjacent
        sites first, so the kept set leaves openings next to the road network.

        Args:
            snapshot: World snapshot
            plan: Colony plan
            anchor_id: Anchor the extensions cluster around
            quota: Number of sites wanted

        Returns:
            At most `quota` positions
        """
        if quota <= 0:
            return []
        cfg = self.config
        anchor = snapshot.anchors[anchor_id]
        target = quota + max(0, cfg.extension_entrances)
        sites: List[Pos] = []

        def usable(pos: Pos) -> bool:
            return (
                chebyshev(pos, anchor) >= cfg.extension_min_distance
                and snapshot.is_buildable(pos)
                and not plan.road_at(pos)
                and plan.non_road_at(pos) is None
                and pos not in sites
            )

        for dx, dy in cfg.extension_offsets:
            if len(sites) >= target:
                break
            pos = (anchor[0] + dx, anchor[1] + dy)
            if usable(pos):
                sites.append(pos)

        if len(sites) < target and cfg.extension_use_ring:
            for r in range(cfg.extension_ring_radius, cfg.extension_search_radius + 1):
                for pos in square_ring(anchor, r, snapshot.width, snapshot.height):
                    if len(sites) >= target:
                        break
                    if usable(pos):
                        sites.append(pos)

        if len(sites) < target:
            fallback = [pos for pos in square_area(anchor, cfg.extension_search_radius,
                                                   snapshot.width, snapshot.height) if usable(pos)]
            fallback.sort(key=lambda pos: manhattan(pos, anchor))
            for pos in fallback:
                if len(sites) >= target:
                    break
                sites.append(pos)

        sites = self._prune_entrances(snapshot, plan, sites, quota)
        return sites[:quota]

    def _prune_entrances(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        sites: List[Pos],
        quota: int
    ) -> List[Pos]:
        """
        Drop the surplus beyond quota, road-adjacent sites first.

        When too few sites touch a road, the remainder is removed at evenly
        spaced indices.
        """
        remove_count = min(max(0, self.config.extension_entrances), len(sites) - quota)
        if remove_count <= 0:
            return sites

        roads = plan.road_tiles() | set(snapshot.find_structures(StructureKind.ROAD, include_markers=True))

        def road_contacts(pos: Pos) -> int:
            return sum(1 for _, dx, dy in DIRECTIONS_4 if (pos[0] + dx, pos[1] + dy) in roads)

        by_contact = sorted(
            (i for i, pos in enumerate(sites) if road_contacts(pos) > 0),
            key=lambda i: -road_contacts(sites[i])
        )
        remove = set(by_contact[:remove_count])

        need = remove_count - len(remove)
        for k in range(need):
            chosen = int(((k + 0.5) * len(sites)) // need)
            attempts = 0
            while chosen in remove and attempts < len(sites):
                chosen = (chosen + 1) % len(sites)
                attempts += 1
            remove.add(chosen)

        self.logger.debug(f"[{snapshot.colony_id}] Pruned {len(remove)} extension site(s) to keep entrances open")
        return [pos for i, pos in enumerate(sites) if i not in remove]
