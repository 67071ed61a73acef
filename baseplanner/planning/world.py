"""
World snapshots.

A ColonySnapshot is the planner's read model of one colony for one tick:
terrain, everything standing on each tile, node positions, anchors, tier and
the tick counter. The planner reads it; the driver (or the embedding
simulation) mutates it when orders are applied or maintenance demolishes a road.
"""

import json
from pathlib import Path
from typing import List, Tuple, Dict, Optional, Iterable

import numpy as np

from baseplanner.config import get_logger
from baseplanner.planning.errors import SnapshotError
from baseplanner.planning.structures import StructureKind, Occupant
from baseplanner.planning.terrain import (
    terrain, plains, wall, TERRAIN_BY_SYMBOL, TERRAIN_BY_CODE
)
from baseplanner.planning.utils import Pos, valid_pos, chebyshev

logger = get_logger(__name__)


class ColonySnapshot:
    """
    Read model of one colony at one tick.

    Attributes:
        colony_id: Colony identifier
        tick: Tick counter the snapshot was taken at
        tier: Colony tier (gates facility quotas)
        terrain: uint8 array [y, x] of terrain codes
        anchors: anchor id -> position
        sources: resource node id -> position
        minerals: mineral node id -> position
        controller: control point position, if the colony has one
    """

    def __init__(
        self,
        colony_id: str,
        terrain_codes: np.ndarray,
        tick: int = 0,
        tier: int = 0,
        anchors: Optional[Dict[str, Pos]] = None,
        sources: Optional[Dict[str, Pos]] = None,
        minerals: Optional[Dict[str, Pos]] = None,
        controller: Optional[Pos] = None,
        structures: Optional[Dict[Pos, List[Occupant]]] = None
    ):
        self.colony_id = colony_id
        self.terrain = np.asarray(terrain_codes, dtype=np.uint8)
        self.height, self.width = self.terrain.shape
        self.tick = tick
        self.tier = tier
        self.anchors: Dict[str, Pos] = dict(anchors or {})
        self.sources: Dict[str, Pos] = dict(sources or {})
        self.minerals: Dict[str, Pos] = dict(minerals or {})
        self.controller: Optional[Pos] = controller
        self.structures: Dict[Pos, List[Occupant]] = {
            pos: list(occs) for pos, occs in (structures or {}).items() if occs
        }

        # anchors are structures in their own right
        for anchor_id, pos in self.anchors.items():
            if not self.has_structure(pos, StructureKind.ANCHOR):
                self.structures.setdefault(pos, []).append(
                    Occupant(StructureKind.ANCHOR, is_marker=False, id=anchor_id)
                )

    # -------------------------
    # Terrain queries
    # -------------------------
    def in_bounds(self, pos: Pos) -> bool:
        return valid_pos(pos[0], pos[1], self.width, self.height)

    def terrain_at(self, pos: Pos) -> terrain:
        return TERRAIN_BY_CODE[int(self.terrain[pos[1], pos[0]])]

    def is_walkable(self, pos: Pos) -> bool:
        """True when pos is in bounds and its terrain is not a wall."""
        return self.in_bounds(pos) and self.terrain_at(pos).walkable

    # -------------------------
    # Occupancy queries
    # -------------------------
    def occupants_at(self, pos: Pos) -> List[Occupant]:
        return self.structures.get(pos, [])

    def has_structure(self, pos: Pos, kind: StructureKind, include_markers: bool = False) -> bool:
        return any(
            o.kind is kind and (include_markers or o.is_built)
            for o in self.occupants_at(pos)
        )

    def has_marker(self, pos: Pos, kind: Optional[StructureKind] = None) -> bool:
        return any(
            o.is_marker and (kind is None or o.kind is kind)
            for o in self.occupants_at(pos)
        )

    @property
    def node_positions(self) -> List[Pos]:
        """Resource, mineral and control point tiles; these are never buildable."""
        nodes = list(self.sources.values()) + list(self.minerals.values())
        if self.controller is not None:
            nodes.append(self.controller)
        return nodes

    def is_node(self, pos: Pos) -> bool:
        return pos in self.node_positions

    def is_buildable(self, pos: Pos) -> bool:
        """Walkable, not a node, and nothing built or marked on it."""
        return self.is_walkable(pos) and not self.occupants_at(pos) and not self.is_node(pos)

    def find_structures(self, kind: StructureKind, include_markers: bool = False) -> List[Pos]:
        """Positions holding a structure of this kind, in row-major order."""
        found = [
            pos for pos, occs in self.structures.items()
            if any(o.kind is kind and (include_markers or o.is_built) for o in occs)
        ]
        return sorted(found, key=lambda p: (p[1], p[0]))

    def count_structures(self, kind: StructureKind, include_markers: bool = False) -> int:
        return len(self.find_structures(kind, include_markers))

    def structures_in_range(
        self,
        center: Pos,
        radius: int,
        kind: StructureKind,
        include_markers: bool = True
    ) -> List[Pos]:
        """Positions within Chebyshev `radius` of center holding `kind`."""
        return [
            pos for pos in self.find_structures(kind, include_markers)
            if chebyshev(pos, center) <= radius
        ]

    # -------------------------
    # Mutation (driver side)
    # -------------------------
    def add_marker(self, pos: Pos, kind: StructureKind):
        """Place a construction marker for `kind` at pos."""
        self.structures.setdefault(pos, []).append(Occupant(kind, is_marker=True))

    def add_structure(self, pos: Pos, kind: StructureKind, structure_id: Optional[str] = None):
        self.structures.setdefault(pos, []).append(Occupant(kind, is_marker=False, id=structure_id))

    def complete_markers(self) -> int:
        """Turn every construction marker into a finished structure. Returns the count."""
        completed = 0
        for pos, occs in self.structures.items():
            for i, occ in enumerate(occs):
                if occ.is_marker:
                    occs[i] = Occupant(occ.kind, is_marker=False, id=occ.id)
                    completed += 1
        return completed

    def destroy_structure(self, pos: Pos, kind: StructureKind) -> bool:
        """Remove built structures of `kind` at pos. Returns True if any were removed."""
        occs = self.occupants_at(pos)
        kept = [o for o in occs if not (o.kind is kind and o.is_built)]
        if len(kept) == len(occs):
            return False
        if kept:
            self.structures[pos] = kept
        else:
            del self.structures[pos]
        logger.debug(f"[{self.colony_id}] Destroyed {kind.value} at {pos}")
        return True

    # -------------------------
    # Serialization
    # -------------------------
    @classmethod
    def from_dict(cls, data: Dict) -> 'ColonySnapshot':
        """
        Build a snapshot from its JSON form.

        Expected keys: "colony", "terrain" (list of row strings using the terrain
        symbols), and optionally "tick", "tier", "anchors", "sources",
        "minerals", "controller", "structures" (list of {"kind", "pos", "marker"}).

        Raises:
            SnapshotError: If a required key is missing or a value is malformed
        """
        try:
            colony_id = str(data['colony'])
            rows = data['terrain']
        except KeyError as e:
            raise SnapshotError(f"Snapshot is missing required key {e}") from None

        if not rows or len({len(r) for r in rows}) != 1:
            raise SnapshotError(f"[{colony_id}] Terrain rows must be non-empty and equally long")

        codes = np.zeros((len(rows), len(rows[0])), dtype=np.uint8)
        for y, row in enumerate(rows):
            for x, symbol in enumerate(row):
                t = TERRAIN_BY_SYMBOL.get(symbol)
                if t is None:
                    raise SnapshotError(f"[{colony_id}] Unknown terrain symbol {symbol!r} at ({x}, {y})")
                codes[y, x] = t.code

        structures: Dict[Pos, List[Occupant]] = {}
        try:
            for item in data.get('structures', []):
                pos = _pos(item['pos'])
                occ = Occupant(StructureKind(item['kind']), bool(item.get('marker', False)), item.get('id'))
                structures.setdefault(pos, []).append(occ)
            controller = data.get('controller')
            return cls(
                colony_id=colony_id,
                terrain_codes=codes,
                tick=int(data.get('tick', 0)),
                tier=int(data.get('tier', 0)),
                anchors={k: _pos(v) for k, v in data.get('anchors', {}).items()},
                sources={k: _pos(v) for k, v in data.get('sources', {}).items()},
                minerals={k: _pos(v) for k, v in data.get('minerals', {}).items()},
                controller=_pos(controller) if controller is not None else None,
                structures=structures
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"[{colony_id}] Malformed snapshot: {e}") from e

    def to_dict(self) -> Dict:
        rows = [
            ''.join(TERRAIN_BY_CODE[int(c)].symbol for c in self.terrain[y])
            for y in range(self.height)
        ]
        structures = []
        for pos in sorted(self.structures, key=lambda p: (p[1], p[0])):
            for occ in self.structures[pos]:
                if occ.kind is StructureKind.ANCHOR:
                    continue  # rebuilt from "anchors"
                item = occ.to_dict()
                item['pos'] = list(pos)
                structures.append(item)
        data = {
            'colony': self.colony_id,
            'tick': self.tick,
            'tier': self.tier,
            'terrain': rows,
            'anchors': {k: list(v) for k, v in self.anchors.items()},
            'sources': {k: list(v) for k, v in self.sources.items()},
            'minerals': {k: list(v) for k, v in self.minerals.items()},
            'structures': structures,
        }
        if self.controller is not None:
            data['controller'] = list(self.controller)
        return data


def _pos(value) -> Pos:
    x, y = value
    return int(x), int(y)


def open_terrain(width: int, height: int, walls: Iterable[Pos] = ()) -> np.ndarray:
    """Plains everywhere except the given wall tiles."""
    codes = np.full((height, width), plains.code, dtype=np.uint8)
    for x, y in walls:
        codes[y, x] = wall.code
    return codes


def load_world(path) -> List[ColonySnapshot]:
    """
    Load colony snapshots from a JSON world file.

    The file holds either one snapshot object or {"colonies": [snapshot, ...]}.

    Raises:
        FileNotFoundError: If the file does not exist
        SnapshotError: If the JSON is invalid or a snapshot is malformed
    """
    path = Path(path)
    if not path.exists():
        logger.error(f"World file not found: {path}")
        raise FileNotFoundError(f"World file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in world file {path}: {e}") from e

    items = data['colonies'] if isinstance(data, dict) and 'colonies' in data else [data]
    snapshots = [ColonySnapshot.from_dict(item) for item in items]
    logger.info(f"Loaded {len(snapshots)} colony snapshot(s) from {path}")
    return snapshots


def save_world(path, snapshots: List[ColonySnapshot]):
    path = Path(path)
    payload = {'colonies': [s.to_dict() for s in snapshots]}
    path.write_text(json.dumps(payload, indent=2), encoding='utf-8')
    logger.info(f"Saved {len(snapshots)} colony snapshot(s) to {path}")
