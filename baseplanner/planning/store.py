"""
Plan Store.

ColonyPlan is the persistent record of one colony's layout: facility key ->
PlanEntry (coordinates plus creation tick). A PlanRepository holds the plans of
every colony and is the only state the planner persists. Each ColonyPlan has
exactly one writer, the planning pass for its colony; colonies never share a
plan, so no locking is involved.

Persisted shape (flat, string keyed):

    {
        "<colony id>": {
            "lastPlanTick": 1200,
            "entries": {
                "extraction_site:src1": {"coordinates": ["9,10"], "createdAt": 1150},
                ...
            }
        }
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple, Dict, Optional, Set, Iterator

from baseplanner.config import get_logger
from baseplanner.planning.errors import PlanStoreError
from baseplanner.planning.keys import FacilityKey, FacilityCategory
from baseplanner.planning.utils import Pos

logger = get_logger(__name__)


@dataclass
class PlanEntry:
    coordinates: List[Pos] = field(default_factory=list)
    created_at: int = 0

    def to_dict(self) -> Dict:
        return {
            'coordinates': [f"{x},{y}" for x, y in self.coordinates],
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'PlanEntry':
        coords = [_parse_coordinate(c) for c in data.get('coordinates', [])]
        return cls(coordinates=coords, created_at=int(data.get('createdAt', 0)))


def _parse_coordinate(text: str) -> Pos:
    try:
        x, y = text.split(',')
        return int(x), int(y)
    except (AttributeError, ValueError):
        raise PlanStoreError(f"Malformed coordinate: {text!r}") from None


class ColonyPlan:
    """
    One colony's facility plan.

    All mutation goes through the methods below so the coordinate indexes
    (road tiles, non-road claims) stay current.
    """

    def __init__(self, colony_id: str, entries: Optional[Dict[FacilityKey, PlanEntry]] = None,
                 last_plan_tick: Optional[int] = None):
        self.colony_id = colony_id
        self._entries: Dict[FacilityKey, PlanEntry] = dict(entries or {})
        self.last_plan_tick = last_plan_tick
        self._road_index: Optional[Set[Pos]] = None
        self._claim_index: Optional[Dict[Pos, FacilityKey]] = None

    # -------------------------
    # Entry access
    # -------------------------
    def __len__(self):
        return len(self._entries)

    def __contains__(self, key: FacilityKey):
        return key in self._entries

    def keys(self) -> List[FacilityKey]:
        return sorted(self._entries)

    def items(self) -> Iterator[Tuple[FacilityKey, PlanEntry]]:
        for key in self.keys():
            yield key, self._entries[key]

    def get_entry(self, key: FacilityKey) -> Optional[PlanEntry]:
        return self._entries.get(key)

    def coordinates(self, key: FacilityKey) -> List[Pos]:
        entry = self._entries.get(key)
        return list(entry.coordinates) if entry else []

    def entries_with_prefix(self, category: FacilityCategory) -> List[Tuple[FacilityKey, PlanEntry]]:
        """All entries of one category, sorted by key."""
        return [(k, e) for k, e in self.items() if k.category is category]

    def upsert_entry(self, key: FacilityKey, coordinates: List[Pos], tick: int,
                     refresh: bool = False) -> PlanEntry:
        """
        Create or replace an entry's coordinates.

        A new entry is stamped with `tick`; an existing one keeps its creation
        tick unless `refresh` is set.
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = PlanEntry(coordinates=list(coordinates), created_at=tick)
            self._entries[key] = entry
        else:
            entry.coordinates = list(coordinates)
            if refresh:
                entry.created_at = tick
        self._invalidate()
        return entry

    def add_coordinates(self, key: FacilityKey, coordinates: List[Pos], tick: int) -> PlanEntry:
        """Append coordinates to an entry (creating it), skipping ones it already holds."""
        existing = self.coordinates(key)
        merged = existing + [c for c in coordinates if c not in existing]
        return self.upsert_entry(key, merged, tick)

    def delete_entry(self, key: FacilityKey) -> bool:
        if key in self._entries:
            del self._entries[key]
            self._invalidate()
            return True
        return False

    def newest_created_at(self) -> Optional[int]:
        if not self._entries:
            return None
        return max(e.created_at for e in self._entries.values())

    # -------------------------
    # Coordinate indexes
    # -------------------------
    def _invalidate(self):
        self._road_index = None
        self._claim_index = None

    def _build_indexes(self):
        roads: Set[Pos] = set()
        claims: Dict[Pos, FacilityKey] = {}
        for key, entry in self.items():
            if key.is_road:
                roads.update(entry.coordinates)
            elif key.category.claims_footprint:
                for pos in entry.coordinates:
                    claims.setdefault(pos, key)
        self._road_index = roads
        self._claim_index = claims

    def road_tiles(self) -> Set[Pos]:
        """Every coordinate held by a road or connector entry."""
        if self._road_index is None:
            self._build_indexes()
        return set(self._road_index)

    def road_at(self, pos: Pos) -> bool:
        if self._road_index is None:
            self._build_indexes()
        return pos in self._road_index

    def non_road_at(self, pos: Pos) -> Optional[FacilityKey]:
        """Key of the non-road facility claiming pos, if any (overlays excluded)."""
        if self._claim_index is None:
            self._build_indexes()
        return self._claim_index.get(pos)

    def non_road_claims(self) -> Dict[Pos, FacilityKey]:
        if self._claim_index is None:
            self._build_indexes()
        return dict(self._claim_index)

    # -------------------------
    # Serialization
    # -------------------------
    def to_dict(self) -> Dict:
        return {
            'lastPlanTick': self.last_plan_tick,
            'entries': {str(k): e.to_dict() for k, e in self.items()},
        }

    @classmethod
    def from_dict(cls, colony_id: str, data: Dict) -> 'ColonyPlan':
        entries = {
            FacilityKey.parse(k): PlanEntry.from_dict(v)
            for k, v in data.get('entries', {}).items()
        }
        last = data.get('lastPlanTick')
        return cls(colony_id, entries, int(last) if last is not None else None)


class PlanRepository:
    """
    In-memory store of every colony's plan.

    Subclasses add persistence by overriding load() and save(); the driver
    calls them at cycle boundaries.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self._plans: Dict[str, ColonyPlan] = {}

    def __contains__(self, colony_id: str):
        return colony_id in self._plans

    def colony_ids(self) -> List[str]:
        return sorted(self._plans)

    def get(self, colony_id: str) -> Optional[ColonyPlan]:
        return self._plans.get(colony_id)

    def get_or_create(self, colony_id: str) -> ColonyPlan:
        plan = self._plans.get(colony_id)
        if plan is None:
            plan = ColonyPlan(colony_id)
            self._plans[colony_id] = plan
            self.logger.info(f"[{colony_id}] Created plan store on first observation")
        return plan

    def discard(self, colony_id: str) -> bool:
        return self._plans.pop(colony_id, None) is not None

    def to_dict(self) -> Dict:
        return {cid: self._plans[cid].to_dict() for cid in self.colony_ids()}

    def load_dict(self, data: Dict):
        """
        Replace the repository contents from the persisted shape.

        Raises:
            PlanStoreError: If a key or coordinate is malformed
        """
        plans = {}
        for colony_id, colony_data in data.items():
            plans[colony_id] = ColonyPlan.from_dict(colony_id, colony_data)
        self._plans = plans

    def load(self):
        pass

    def save(self):
        pass


class JsonPlanRepository(PlanRepository):
    """PlanRepository persisted as a single JSON document."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)

    def load(self):
        if not self.path.exists():
            self.logger.info(f"No plan store at {self.path}, starting empty")
            return
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            self.logger.error(f"Plan store {self.path} is not valid JSON: {e}")
            raise PlanStoreError(f"Plan store {self.path} is not valid JSON: {e}") from e
        self.load_dict(data)
        self.logger.info(f"Loaded plan store for {len(self.colony_ids())} colonies from {self.path}")

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True), encoding='utf-8')
        tmp.replace(self.path)
        self.logger.debug(f"Saved plan store for {len(self.colony_ids())} colonies to {self.path}")
