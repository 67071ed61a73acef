"""
Grid and search utilities for the layout planner (NumPy-accelerated).

- Direction tables and bounded neighbor iteration.
- Distance metrics and square-ring enumeration used by the site selectors.
- Budgeted A* over a NumPy cost matrix.
- Flood-fill clustering of tile sets and a vectorized closest-pair search.
"""

import heapq
from collections import deque
from dataclasses import dataclass, field
from typing import List, Tuple, Set, Optional, Iterator, Iterable
import numpy as np

Pos = Tuple[int, int]

# cost values at or above this are impassable
BLOCKED = 255


# ============================================================================
# DIRECTION DEFINITIONS
# ============================================================================

DIRECTIONS_4 = [
    ('north', 0, -1), ('south', 0, 1),
    ('east', 1, 0), ('west', -1, 0)
]

DIRECTIONS_8 = DIRECTIONS_4 + [
    ('northeast', 1, -1), ('southeast', 1, 1),
    ('southwest', -1, 1), ('northwest', -1, -1)
]


# ============================================================================
# GRID OPERATIONS
# ============================================================================

def valid_pos(x: int, y: int, width: int, height: int) -> bool:
    """Check if position is within grid bounds."""
    return 0 <= x < width and 0 <= y < height


def neighbors_4(x: int, y: int, width: int, height: int) -> Iterator[Tuple[int, int, str]]:
    """Yield cardinal neighbors (nx, ny, direction) within bounds."""
    for direction, dx, dy in DIRECTIONS_4:
        nx, ny = x + dx, y + dy
        if valid_pos(nx, ny, width, height):
            yield (nx, ny, direction)


def neighbors_8(x: int, y: int, width: int, height: int) -> Iterator[Tuple[int, int, str]]:
    """Yield 8-connected neighbors (including diagonals) within bounds."""
    for direction, dx, dy in DIRECTIONS_8:
        nx, ny = x + dx, y + dy
        if valid_pos(nx, ny, width, height):
            yield (nx, ny, direction)


def square_ring(center: Pos, radius: int, width: int, height: int) -> List[Pos]:
    """
    Tiles at exactly Chebyshev distance `radius` from center, clipped to bounds.

    Scan order is column-major (dx outer, dy inner); selectors rely on it for
    tie-breaking, so keep it stable.

    Args:
        center: Ring center (x, y)
        radius: Ring radius; 0 yields the center itself
        width: Grid width
        height: Grid height

    Returns:
        List of in-bounds ring positions
    """
    cx, cy = center
    if radius == 0:
        return [center] if valid_pos(cx, cy, width, height) else []

    ring: List[Pos] = []
    for dx in range(-radius, radius + 1):
        for dy in range(-radius, radius + 1):
            if abs(dx) != radius and abs(dy) != radius:
                continue
            x, y = cx + dx, cy + dy
            if valid_pos(x, y, width, height):
                ring.append((x, y))
    return ring


def square_area(center: Pos, radius: int, width: int, height: int) -> List[Pos]:
    """Rings 1..radius around center (the center itself excluded)."""
    area: List[Pos] = []
    for r in range(1, radius + 1):
        area.extend(square_ring(center, r, width, height))
    return area


# ============================================================================
# DISTANCE CALCULATIONS
# ============================================================================

def manhattan(pos1: Pos, pos2: Pos) -> int:
    """Manhattan (L1) distance between two positions."""
    return abs(pos1[0] - pos2[0]) + abs(pos1[1] - pos2[1])


def chebyshev(pos1: Pos, pos2: Pos) -> int:
    """Chebyshev (king-move) distance between two positions."""
    return max(abs(pos1[0] - pos2[0]), abs(pos1[1] - pos2[1]))


def closest_pair(tiles_a: List[Pos], tiles_b: List[Pos]) -> Optional[Tuple[int, Pos, Pos]]:
    """
    Find the minimum-Manhattan-distance pair between two tile sets.

    Vectorized with NumPy: the full |A| x |B| distance matrix is built once and
    the first minimum (row-major) wins, so ties resolve in input order.

    Args:
        tiles_a: First tile list
        tiles_b: Second tile list

    Returns:
        (distance, tile_from_a, tile_from_b) or None if either list is empty
    """
    if not tiles_a or not tiles_b:
        return None

    pts_a = np.array(tiles_a, dtype=int)  # shape (n,2)
    pts_b = np.array(tiles_b, dtype=int)  # shape (m,2)

    dists = (np.abs(pts_a[:, 0][:, None] - pts_b[:, 0][None, :])
             + np.abs(pts_a[:, 1][:, None] - pts_b[:, 1][None, :]))

    i, j = np.unravel_index(int(np.argmin(dists)), dists.shape)
    return int(dists[i, j]), tiles_a[int(i)], tiles_b[int(j)]


# ============================================================================
# PATHFINDING
# ============================================================================

@dataclass
class PathResult:
    """
    Outcome of a budgeted path search.

    `path` excludes the start tile and ends on the goal. When `incomplete` is
    True the search ran out of operations or the goal is unreachable, and
    `path` is empty.
    """
    path: List[Pos] = field(default_factory=list)
    cost: float = 0.0
    ops: int = 0
    incomplete: bool = False


def search_path(
    costs: np.ndarray,
    start: Pos,
    goal: Pos,
    max_ops: int,
    heuristic_weight: float = 1.0
) -> PathResult:
    """
    A* pathfinding on 4-neighborhood grid under an operation budget.

    Each node expansion costs one operation. Tiles costing BLOCKED or more are
    never entered, except the goal, which is always enterable so a path can end
    next to (or on) a structure.

    Args:
        costs: Cost matrix indexed [y, x]
        start: Start tile (not part of the returned path)
        goal: Goal tile
        max_ops: Maximum node expansions before giving up
        heuristic_weight: Multiplier on the Manhattan heuristic

    Returns:
        PathResult
    """
    height, width = costs.shape
    if start == goal:
        return PathResult(path=[], cost=0.0, ops=0, incomplete=False)

    frontier = [(0.0, 0, 0, start)]
    came_from = {start: None}
    cost_so_far = {start: 0.0}
    ops = 0
    counter = 1  # ties go to the tile nearer the goal, then insertion order

    while frontier:
        _, _, _, current = heapq.heappop(frontier)

        if current == goal:
            path: List[Pos] = []
            while current != start:
                path.append(current)
                current = came_from[current]
            path.reverse()
            return PathResult(path=path, cost=cost_so_far[goal], ops=ops, incomplete=False)

        ops += 1
        if ops > max_ops:
            break

        x, y = current
        for nx, ny, _ in neighbors_4(x, y, width, height):
            tile_cost = int(costs[ny, nx])
            if tile_cost >= BLOCKED:
                if (nx, ny) != goal:
                    continue
                tile_cost = 1
            new_cost = cost_so_far[current] + tile_cost

            if (nx, ny) not in cost_so_far or new_cost < cost_so_far[(nx, ny)]:
                cost_so_far[(nx, ny)] = new_cost
                h = manhattan((nx, ny), goal)
                priority = new_cost + heuristic_weight * h
                heapq.heappush(frontier, (priority, h, counter, (nx, ny)))
                counter += 1
                came_from[(nx, ny)] = current

    return PathResult(path=[], cost=0.0, ops=min(ops, max_ops), incomplete=True)


# ============================================================================
# CLUSTERING
# ============================================================================

def cluster_tiles(tiles: Iterable[Pos]) -> List[List[Pos]]:
    """
    Split a tile set into 4-connected clusters by flood fill.

    Clusters come back ordered by their smallest tile in row-major order
    (y, then x), and each cluster's tiles are sorted the same way, so the
    result is identical for identical input.

    Args:
        tiles: Tiles to cluster

    Returns:
        List of clusters (each a sorted list of tiles)
    """
    remaining: Set[Pos] = set(tiles)
    clusters: List[List[Pos]] = []

    for seed in sorted(remaining, key=row_major):
        if seed not in remaining:
            continue
        remaining.discard(seed)
        cluster = [seed]
        queue = deque([seed])

        while queue:
            x, y = queue.popleft()
            for _, dx, dy in DIRECTIONS_4:
                n = (x + dx, y + dy)
                if n in remaining:
                    remaining.discard(n)
                    cluster.append(n)
                    queue.append(n)

        clusters.append(sorted(cluster, key=row_major))

    return clusters


def row_major(pos: Pos) -> Tuple[int, int]:
    """Sort key ordering tiles by row, then column."""
    return (pos[1], pos[0])


def row_major_index(pos: Pos, width: int) -> int:
    """Stable integer id for a tile (y * width + x)."""
    return pos[1] * width + pos[0]
