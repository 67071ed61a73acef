"""
Road cluster connection.

Every planned road and connector tile forms a 4-neighbor graph. When that
graph falls apart into several clusters, ClusterConnector bridges the closest
pairs with short connector roads. Work is capped per call (connector creations
and passes), so a large layout converges over several cycles.
"""

from itertools import combinations
from typing import List

from baseplanner.config import get_planner_logger
from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.costs import build_cost_matrix
from baseplanner.planning.keys import connector_key
from baseplanner.planning.roads import RoadNetworkBuilder
from baseplanner.planning.store import ColonyPlan
from baseplanner.planning.utils import Pos, cluster_tiles, closest_pair, row_major_index
from baseplanner.planning.world import ColonySnapshot


class ClusterConnector:
    def __init__(self, config: PlannerConfig = None, roads: RoadNetworkBuilder = None):
        self.config = config or PlannerConfig()
        self.roads = roads or RoadNetworkBuilder(self.config)
        self.logger = get_planner_logger()

    def clusters(self, plan: ColonyPlan) -> List[List[Pos]]:
        """Current road clusters, ordered by their first tile."""
        return cluster_tiles(plan.road_tiles())

    def connect(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int) -> int:
        """
        Bridge disconnected road clusters.

        Each pass re-clusters from scratch and tries every cluster pair in
        order. A pair is bridged when its closest tiles are within
        max_connector_length (Manhattan) and no connector exists for it yet.
        Clusters joined earlier in the same pass are not bridged twice.

        Connector keys use each cluster's stable index (row-major index of its
        first tile), so the same two fragments always map to the same key.

        Returns:
            Number of connectors created
        """
        cfg = self.config
        created = 0
        passes = 0

        while created < cfg.max_connectors_per_tick and passes < cfg.max_passes_per_tick:
            passes += 1
            clusters = self.clusters(plan)
            if len(clusters) <= 1:
                break

            # union-find over clusters merged during this pass
            parent = list(range(len(clusters)))

            def find(i):
                while parent[i] != i:
                    parent[i] = parent[parent[i]]
                    i = parent[i]
                return i

            costs = build_cost_matrix(snapshot, plan, cfg)
            added_this_pass = False

            for a, b in combinations(range(len(clusters)), 2):
                if created >= cfg.max_connectors_per_tick:
                    break
                if find(a) == find(b):
                    continue

                pair = closest_pair(clusters[a], clusters[b])
                if pair is None:
                    continue
                dist, tile_a, tile_b = pair
                if dist > cfg.max_connector_length:
                    continue

                key = connector_key(
                    row_major_index(clusters[a][0], snapshot.width),
                    row_major_index(clusters[b][0], snapshot.width)
                )
                if plan.coordinates(key):
                    continue

                path = self.roads.find_path(snapshot, plan, tile_a, tile_b, costs)
                if not path:
                    self.logger.debug(f"[{snapshot.colony_id}] No bridge for {key} this cycle")
                    continue

                plan.upsert_entry(key, path, tick)
                for x, y in path:
                    costs[y, x] = min(int(costs[y, x]), cfg.road_cost)
                parent[find(a)] = find(b)
                created += 1
                added_this_pass = True
                self.logger.info(f"[{snapshot.colony_id}] Connector {key}: {len(path)} tile(s), "
                                 f"bridging distance {dist}")

            if not added_this_pass:
                break

        return created
