"""
Debug rendering of a colony plan.

Draws terrain, built structures and the planned layout onto an off-screen
pygame Surface and saves it as an image. No display is opened, so this works
on headless machines.
"""

from pathlib import Path
from typing import Dict, Tuple

import pygame

from baseplanner.config import TILE_SIZE, get_logger
from baseplanner.planning.keys import FacilityCategory
from baseplanner.planning.store import ColonyPlan
from baseplanner.planning.terrain import plains, rough, wall
from baseplanner.planning.world import ColonySnapshot

logger = get_logger(__name__)

Color = Tuple[int, int, int]

TERRAIN_COLORS: Dict[int, Color] = {
    plains.code: (46, 52, 40),
    rough.code: (40, 62, 48),
    wall.code: (15, 15, 15),
}

CATEGORY_COLORS: Dict[FacilityCategory, Color] = {
    FacilityCategory.EXTRACTION_SITE: (230, 190, 60),
    FacilityCategory.CONTROL_BUFFER_SITE: (230, 150, 60),
    FacilityCategory.MINERAL_SITE: (180, 120, 220),
    FacilityCategory.STORAGE_SITE: (240, 240, 120),
    FacilityCategory.ROAD_SEGMENT: (150, 150, 150),
    FacilityCategory.CONNECTOR_SEGMENT: (110, 170, 220),
    FacilityCategory.CONDUIT_SITE: (90, 220, 220),
    FacilityCategory.TRADE_DEPOT_SITE: (220, 90, 160),
    FacilityCategory.TOWER_SITE: (220, 60, 60),
    FacilityCategory.EXTENSION_SITE: (240, 220, 80),
    FacilityCategory.DEFENSIVE_OVERLAY: (60, 200, 90),
}

NODE_COLOR: Color = (250, 250, 250)
ANCHOR_COLOR: Color = (255, 110, 30)
BUILT_OUTLINE: Color = (255, 255, 255)

# drawn first so facilities and overlays end up on top of roads
DRAW_ORDER = [
    FacilityCategory.ROAD_SEGMENT,
    FacilityCategory.CONNECTOR_SEGMENT,
    FacilityCategory.EXTRACTION_SITE,
    FacilityCategory.CONTROL_BUFFER_SITE,
    FacilityCategory.MINERAL_SITE,
    FacilityCategory.STORAGE_SITE,
    FacilityCategory.CONDUIT_SITE,
    FacilityCategory.TRADE_DEPOT_SITE,
    FacilityCategory.TOWER_SITE,
    FacilityCategory.EXTENSION_SITE,
    FacilityCategory.DEFENSIVE_OVERLAY,
]


def draw_plan(snapshot: ColonySnapshot, plan: ColonyPlan, tile_size: int = TILE_SIZE) -> pygame.Surface:
    """
    Draw a colony and its plan onto a new Surface.

    Args:
        snapshot: World snapshot (terrain, nodes, built structures)
        plan: Colony plan to overlay
        tile_size: Pixel size of one tile

    Returns:
        pygame.Surface of size (width * tile_size, height * tile_size)
    """
    surface = pygame.Surface((snapshot.width * tile_size, snapshot.height * tile_size))

    for y in range(snapshot.height):
        for x in range(snapshot.width):
            color = TERRAIN_COLORS[int(snapshot.terrain[y, x])]
            pygame.draw.rect(surface, color, (x * tile_size, y * tile_size, tile_size, tile_size))

    inset = max(1, tile_size // 6)
    for category in DRAW_ORDER:
        color = CATEGORY_COLORS[category]
        for _, entry in plan.entries_with_prefix(category):
            for x, y in entry.coordinates:
                if category is FacilityCategory.DEFENSIVE_OVERLAY:
                    rect = (x * tile_size, y * tile_size, tile_size, tile_size)
                    pygame.draw.rect(surface, color, rect, width=max(1, inset // 2))
                else:
                    rect = (x * tile_size + inset, y * tile_size + inset,
                            tile_size - 2 * inset, tile_size - 2 * inset)
                    pygame.draw.rect(surface, color, rect)

    for (x, y), occupants in snapshot.structures.items():
        if any(o.is_built for o in occupants):
            pygame.draw.rect(surface, BUILT_OUTLINE, (x * tile_size, y * tile_size, tile_size, tile_size), width=1)

    radius = max(2, tile_size // 2 - 1)
    for x, y in snapshot.node_positions:
        center = (x * tile_size + tile_size // 2, y * tile_size + tile_size // 2)
        pygame.draw.circle(surface, NODE_COLOR, center, radius)
    for x, y in snapshot.anchors.values():
        center = (x * tile_size + tile_size // 2, y * tile_size + tile_size // 2)
        pygame.draw.circle(surface, ANCHOR_COLOR, center, radius)

    return surface


def render_plan(snapshot: ColonySnapshot, plan: ColonyPlan, path, tile_size: int = TILE_SIZE) -> Path:
    """
    Render a colony plan and save it to `path` (format follows the extension).

    Returns:
        Path the image was written to
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    surface = draw_plan(snapshot, plan, tile_size)
    pygame.image.save(surface, str(path))
    logger.info(f"[{snapshot.colony_id}] Rendered plan to {path}")
    return path
