"""
Cost matrices for road and reachability searches.
"""

import numpy as np

from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.store import ColonyPlan
from baseplanner.planning.terrain import rough, wall
from baseplanner.planning.utils import BLOCKED
from baseplanner.planning.world import ColonySnapshot


def terrain_cost_matrix(snapshot: ColonySnapshot, config: PlannerConfig) -> np.ndarray:
    """Per-tile terrain weights: plains, rough and BLOCKED for walls."""
    costs = np.full(snapshot.terrain.shape, config.plain_cost, dtype=np.int32)
    costs[snapshot.terrain == rough.code] = config.rough_cost
    costs[snapshot.terrain == wall.code] = BLOCKED
    return costs


def build_cost_matrix(snapshot: ColonySnapshot, plan: ColonyPlan, config: PlannerConfig) -> np.ndarray:
    """
    Cost matrix used for every planner path search.

    - walls and nodes block
    - built roads, road markers and planned road/connector tiles cost road_cost
    - other structures (built or marked) that block movement are BLOCKED
    - tiles claimed by a planned non-road facility are BLOCKED
    - everything else uses terrain weights

    Args:
        snapshot: World snapshot of the colony
        plan: Current colony plan
        config: Planner configuration

    Returns:
        int32 array indexed [y, x]
    """
    costs = terrain_cost_matrix(snapshot, config)

    for x, y in snapshot.node_positions:
        if snapshot.in_bounds((x, y)):
            costs[y, x] = BLOCKED

    for (x, y) in plan.road_tiles():
        if snapshot.in_bounds((x, y)) and costs[y, x] < BLOCKED:
            costs[y, x] = config.road_cost

    for (x, y), occupants in snapshot.structures.items():
        if not snapshot.in_bounds((x, y)):
            continue
        if any(o.kind.blocks_movement for o in occupants):
            costs[y, x] = BLOCKED
        elif any(o.kind.is_road for o in occupants) and costs[y, x] < BLOCKED:
            costs[y, x] = config.road_cost

    for (x, y) in plan.non_road_claims():
        if snapshot.in_bounds((x, y)):
            costs[y, x] = BLOCKED

    return costs
