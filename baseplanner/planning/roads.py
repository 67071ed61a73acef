"""
Road network building.

One road entry per pair of infrastructure nodes. A path is computed once,
cached verbatim in the plan and only recomputed after maintenance deletes
the entry. Incomplete searches store nothing and are retried next cycle.
"""

from itertools import combinations
from typing import List, Dict, Optional

import numpy as np

from baseplanner.config import get_planner_logger
from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.costs import build_cost_matrix
from baseplanner.planning.keys import (
    FacilityCategory, PERIMETER_ROAD_KEY, road_key, extraction_key, mineral_key
)
from baseplanner.planning.sites import SiteSelector
from baseplanner.planning.store import ColonyPlan
from baseplanner.planning.utils import Pos, BLOCKED, DIRECTIONS_4, search_path
from baseplanner.planning.world import ColonySnapshot


class RoadNetworkBuilder:
    def __init__(self, config: PlannerConfig = None):
        self.config = config or PlannerConfig()
        self.logger = get_planner_logger()
        self.selector = SiteSelector(self.config)

    # -------------------------
    # Nodes
    # -------------------------
    def node_positions(self, snapshot: ColonySnapshot, plan: ColonyPlan) -> Dict[str, Pos]:
        """
        Infrastructure nodes the network must join, keyed by node id.

        Anchors, plus the container site of every resource node, the control
        point and every mineral: the planned site if there is one, otherwise a
        container already standing next to the node. A container next to a
        resource or mineral node never counts as the control point's.
        """
        nodes: Dict[str, Pos] = {}
        for anchor_id, pos in sorted(snapshot.anchors.items()):
            nodes[f"anchor:{anchor_id}"] = pos

        for source_id, pos in sorted(snapshot.sources.items()):
            site = self.selector.node_container(snapshot, plan, extraction_key(source_id), pos,
                                               self.config.container_offset)
            if site is not None:
                nodes[f"source:{source_id}"] = site

        if snapshot.controller is not None:
            site = self.selector.control_buffer_container(snapshot, plan)
            if site is not None:
                nodes["controller"] = site

        for mineral_id, pos in sorted(snapshot.minerals.items()):
            site = self.selector.node_container(snapshot, plan, mineral_key(mineral_id), pos,
                                               self.config.container_offset)
            if site is not None:
                nodes[f"mineral:{mineral_id}"] = site

        return nodes

    # -------------------------
    # Paths
    # -------------------------
    def find_path(
        self,
        snapshot: ColonySnapshot,
        plan: ColonyPlan,
        start: Pos,
        goal: Pos,
        costs: Optional[np.ndarray] = None
    ) -> Optional[List[Pos]]:
        """
        Road tiles from start to goal, or None when the search is incomplete.

        The start tile is never part of the road. The goal is dropped too when
        it is a blocking tile or a planned non-road facility, since the road
        only has to reach it.
        """
        if costs is None:
            costs = build_cost_matrix(snapshot, plan, self.config)
        result = search_path(costs, start, goal, self.config.max_ops, self.config.heuristic_weight)
        if result.incomplete:
            return None

        path = list(result.path)
        if path:
            gx, gy = path[-1]
            if int(costs[gy, gx]) >= BLOCKED or plan.non_road_at(path[-1]) is not None:
                path.pop()
        return path

    def plan_roads(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int) -> int:
        """
        Compute and cache a road for every node pair that has none.

        Returns:
            Number of road entries created
        """
        nodes = self.node_positions(snapshot, plan)
        if len(nodes) < 2:
            return 0

        costs = build_cost_matrix(snapshot, plan, self.config)
        created = 0
        for (id_a, pos_a), (id_b, pos_b) in combinations(sorted(nodes.items()), 2):
            key = road_key(id_a, id_b)
            if plan.get_entry(key) is not None:
                continue

            path = self.find_path(snapshot, plan, pos_a, pos_b, costs)
            if not path:
                self.logger.debug(f"[{snapshot.colony_id}] No road {key} this cycle")
                continue

            plan.upsert_entry(key, path, tick)
            created += 1
            # later searches in this cycle reuse the new road
            for x, y in path:
                if costs[y, x] < BLOCKED:
                    costs[y, x] = self.config.road_cost

        if created:
            self.logger.info(f"[{snapshot.colony_id}] Planned {created} new road(s)")
        return created

    def plan_perimeter_roads(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int) -> int:
        """
        Ring planned facilities with roads on their four sides.

        Extensions are left out so their blocks stay packed. Tiles that are
        occupied, already road, or claimed by another facility are skipped.

        Returns:
            Number of road tiles added
        """
        added: List[Pos] = []
        claims = plan.non_road_claims()
        for pos, key in sorted(claims.items()):
            if key.category is FacilityCategory.EXTENSION_SITE:
                continue
            for _, dx, dy in DIRECTIONS_4:
                n = (pos[0] + dx, pos[1] + dy)
                if n in added or plan.road_at(n) or n in claims:
                    continue
                if not snapshot.is_buildable(n):
                    continue
                added.append(n)

        if added:
            plan.add_coordinates(PERIMETER_ROAD_KEY, added, tick)
            self.logger.debug(f"[{snapshot.colony_id}] Added {len(added)} perimeter road tile(s)")
        return len(added)
