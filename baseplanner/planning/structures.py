"""
Structure kinds and tile occupants.

An occupant is anything the world reports standing on a tile: a finished
structure or a pending construction marker for one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StructureKind(Enum):
    ANCHOR = 'anchor'
    ROAD = 'road'
    CONTAINER = 'container'
    STORAGE = 'storage'
    TOWER = 'tower'
    EXTENSION = 'extension'
    CONDUIT = 'conduit'
    TRADE_DEPOT = 'trade_depot'
    OVERLAY = 'overlay'
    LAB = 'lab'
    OBSERVER = 'observer'
    FACTORY = 'factory'

    @property
    def blocks_movement(self) -> bool:
        """Roads, containers and overlays can be walked over; everything else blocks."""
        return self not in (StructureKind.ROAD, StructureKind.CONTAINER, StructureKind.OVERLAY)

    @property
    def is_road(self) -> bool:
        return self is StructureKind.ROAD


@dataclass(frozen=True)
class Occupant:
    kind: StructureKind
    is_marker: bool = False  # True for a pending construction marker
    id: Optional[str] = None

    @property
    def is_built(self) -> bool:
        return not self.is_marker

    def to_dict(self) -> dict:
        data = {'kind': self.kind.value, 'marker': self.is_marker}
        if self.id is not None:
            data['id'] = self.id
        return data
