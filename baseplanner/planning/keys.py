"""
Facility keys.

A facility key names one plan entry: a closed category plus an instance
discriminator (node id, anchor id, node-pair id, cluster-pair id or the
coordinate a defensive overlay sits on). Keys are stored as
"<category>:<discriminator>" strings; the category is recovered by enum
lookup, so a discriminator may itself contain colons.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from baseplanner.planning.errors import PlanStoreError
from baseplanner.planning.structures import StructureKind


class FacilityCategory(Enum):
    EXTRACTION_SITE = 'extraction_site'
    CONTROL_BUFFER_SITE = 'control_buffer_site'
    MINERAL_SITE = 'mineral_site'
    STORAGE_SITE = 'storage_site'
    ROAD_SEGMENT = 'road_segment'
    CONNECTOR_SEGMENT = 'connector_segment'
    CONDUIT_SITE = 'conduit_site'
    TRADE_DEPOT_SITE = 'trade_depot_site'
    TOWER_SITE = 'tower_site'
    EXTENSION_SITE = 'extension_site'
    DEFENSIVE_OVERLAY = 'defensive_overlay'

    @property
    def is_road(self) -> bool:
        """Road and connector entries hold paths rather than facility footprints."""
        return self in (FacilityCategory.ROAD_SEGMENT, FacilityCategory.CONNECTOR_SEGMENT)

    @property
    def is_singleton(self) -> bool:
        """Categories whose entries hold at most one coordinate."""
        return self in SINGLETON_CATEGORIES

    @property
    def claims_footprint(self) -> bool:
        """Non-road facilities that must not share a tile with each other."""
        return not self.is_road and self is not FacilityCategory.DEFENSIVE_OVERLAY

    @property
    def structure_kind(self) -> StructureKind:
        return STRUCTURE_FOR_CATEGORY[self]


SINGLETON_CATEGORIES = frozenset([
    FacilityCategory.EXTRACTION_SITE,
    FacilityCategory.CONTROL_BUFFER_SITE,
    FacilityCategory.MINERAL_SITE,
    FacilityCategory.STORAGE_SITE,
    FacilityCategory.CONDUIT_SITE,
    FacilityCategory.TRADE_DEPOT_SITE,
])

STRUCTURE_FOR_CATEGORY = {
    FacilityCategory.EXTRACTION_SITE: StructureKind.CONTAINER,
    FacilityCategory.CONTROL_BUFFER_SITE: StructureKind.CONTAINER,
    FacilityCategory.MINERAL_SITE: StructureKind.CONTAINER,
    FacilityCategory.STORAGE_SITE: StructureKind.STORAGE,
    FacilityCategory.ROAD_SEGMENT: StructureKind.ROAD,
    FacilityCategory.CONNECTOR_SEGMENT: StructureKind.ROAD,
    FacilityCategory.CONDUIT_SITE: StructureKind.CONDUIT,
    FacilityCategory.TRADE_DEPOT_SITE: StructureKind.TRADE_DEPOT,
    FacilityCategory.TOWER_SITE: StructureKind.TOWER,
    FacilityCategory.EXTENSION_SITE: StructureKind.EXTENSION,
    FacilityCategory.DEFENSIVE_OVERLAY: StructureKind.OVERLAY,
}


@dataclass(frozen=True)
class FacilityKey:
    category: FacilityCategory
    discriminator: str

    def __str__(self):
        return f"{self.category.value}:{self.discriminator}"

    # lets keys sort deterministically even though Enum has no ordering
    def __lt__(self, other):
        if not isinstance(other, FacilityKey):
            return NotImplemented
        return str(self) < str(other)

    @property
    def is_road(self) -> bool:
        return self.category.is_road

    @property
    def is_singleton(self) -> bool:
        return self.category.is_singleton

    @classmethod
    def parse(cls, text: str) -> 'FacilityKey':
        """
        Parse a stored "<category>:<discriminator>" key.

        Raises:
            PlanStoreError: If the text has no separator or names an unknown category
        """
        category_name, sep, discriminator = text.partition(':')
        if not sep:
            raise PlanStoreError(f"Malformed facility key: {text!r}")
        try:
            category = FacilityCategory(category_name)
        except ValueError:
            raise PlanStoreError(f"Unknown facility category in key: {text!r}") from None
        return cls(category, discriminator)


# ---------------------------
# KEY CONSTRUCTORS
# ---------------------------

def extraction_key(source_id: str) -> FacilityKey:
    return FacilityKey(FacilityCategory.EXTRACTION_SITE, source_id)


def control_buffer_key() -> FacilityKey:
    return FacilityKey(FacilityCategory.CONTROL_BUFFER_SITE, 'controller')


def mineral_key(mineral_id: str) -> FacilityKey:
    return FacilityKey(FacilityCategory.MINERAL_SITE, mineral_id)


def storage_key(anchor_id: str) -> FacilityKey:
    return FacilityKey(FacilityCategory.STORAGE_SITE, anchor_id)


def road_key(node_a: str, node_b: str) -> FacilityKey:
    """Road between two nodes; the pair is ordered so (a, b) and (b, a) share a key."""
    first, second = sorted((node_a, node_b))
    return FacilityKey(FacilityCategory.ROAD_SEGMENT, f"{first}|{second}")


PERIMETER_ROAD_KEY = FacilityKey(FacilityCategory.ROAD_SEGMENT, 'around')


def connector_key(cluster_a: int, cluster_b: int) -> FacilityKey:
    first, second = sorted((cluster_a, cluster_b))
    return FacilityKey(FacilityCategory.CONNECTOR_SEGMENT, f"{first}|{second}")


def conduit_key(variant: str, node_id: Optional[str] = None) -> FacilityKey:
    """Conduit key: variant is 'source' (per node), 'controller' or 'storage'."""
    if node_id is not None:
        return FacilityKey(FacilityCategory.CONDUIT_SITE, f"{variant}:{node_id}")
    return FacilityKey(FacilityCategory.CONDUIT_SITE, variant)


def trade_depot_key() -> FacilityKey:
    return FacilityKey(FacilityCategory.TRADE_DEPOT_SITE, 'storage')


def tower_key(anchor_id: str) -> FacilityKey:
    return FacilityKey(FacilityCategory.TOWER_SITE, anchor_id)


def extension_key(anchor_id: str) -> FacilityKey:
    return FacilityKey(FacilityCategory.EXTENSION_SITE, anchor_id)


def overlay_key(pos: Tuple[int, int]) -> FacilityKey:
    return FacilityKey(FacilityCategory.DEFENSIVE_OVERLAY, f"{pos[0]},{pos[1]}")
