"""
Planner configuration.

Every tunable used by the layout planner lives on PlannerConfig. The defaults
describe a 50x50 colony grid; override any field through the constructor or
PlannerConfig.from_dict (used by the command line driver for JSON overrides).
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Dict, List, Set, Tuple, Optional

from baseplanner.config import GRID_WIDTH, GRID_HEIGHT, get_logger
from baseplanner.planning.structures import StructureKind


def _default_tower_offsets() -> List[Tuple[int, int]]:
    return [(2, 0), (-2, 0), (0, 2), (0, -2)]


def _default_extension_offsets() -> List[Tuple[int, int]]:
    return [
        (4, 4), (-4, 4), (4, -4), (-4, -4),
        (4, 0), (-4, 0), (0, 4), (0, -4),
    ]


def _default_towers_per_tier() -> Dict[int, int]:
    return {3: 1, 4: 1, 5: 2, 6: 2, 7: 3, 8: 6}


def _default_extensions_per_tier() -> Dict[int, int]:
    return {0: 0, 1: 0, 2: 5, 3: 10, 4: 20, 5: 30, 6: 40, 7: 50, 8: 60}


def _default_protect_list() -> List[str]:
    return [
        'container', 'anchor', 'storage', 'extension', 'tower', 'lab',
        'observer', 'trade_depot', 'factory', 'conduit',
    ]


@dataclass
class PlannerConfig:
    # ---------------------------
    # GRID
    # ---------------------------
    width: int = GRID_WIDTH
    height: int = GRID_HEIGHT

    # ---------------------------
    # SCHEDULING (ticks)
    # ---------------------------
    plan_interval: int = 50
    cleanup_interval: int = 1000
    road_prune_interval: int = 5000
    unseen_age: int = 10000
    road_prune_age: int = 5000

    # ---------------------------
    # PATH COSTS
    # ---------------------------
    plain_cost: int = 2
    rough_cost: int = 10
    road_cost: int = 1
    max_ops: int = 4000
    heuristic_weight: Optional[float] = None  # defaults to the cheapest tile cost

    # ---------------------------
    # CONTAINER SITES
    # ---------------------------
    container_offset: int = 1
    upgrade_buffer_offset: int = 2

    # ---------------------------
    # STORAGE / CONDUITS / TRADE DEPOT
    # ---------------------------
    storage_min_tier: int = 4
    conduit_min_tier: int = 6
    conduit_source_radius: int = 2
    conduit_controller_min_range: int = 2
    conduit_controller_max_range: int = 3
    depot_min_tier: int = 6
    depot_max_radius: int = 2
    depot_preferred_distance: int = 2

    # ---------------------------
    # TOWERS
    # ---------------------------
    tower_offsets: List[Tuple[int, int]] = field(default_factory=_default_tower_offsets)
    towers_per_tier: Dict[int, int] = field(default_factory=_default_towers_per_tier)

    # ---------------------------
    # EXTENSIONS
    # ---------------------------
    extension_offsets: List[Tuple[int, int]] = field(default_factory=_default_extension_offsets)
    extensions_per_tier: Dict[int, int] = field(default_factory=_default_extensions_per_tier)
    max_extensions_per_anchor: int = 10
    extension_search_radius: int = 6
    extension_min_distance: int = 4
    extension_use_ring: bool = False
    extension_ring_radius: int = 2
    extension_entrances: int = 2

    # ---------------------------
    # ROADS
    # ---------------------------
    plan_perimeter_roads: bool = True
    max_connector_length: int = 32
    max_connectors_per_tick: int = 3
    max_passes_per_tick: int = 1

    # ---------------------------
    # CONSTRUCTION
    # ---------------------------
    max_orders_per_tick: Optional[int] = 20
    protect_list: List[str] = field(default_factory=_default_protect_list)

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Grid size must be positive, got {self.width}x{self.height}")
        if self.plan_interval <= 0 or self.cleanup_interval <= 0 or self.road_prune_interval <= 0:
            raise ValueError("Scheduling intervals must be positive")
        if self.max_ops <= 0:
            raise ValueError(f"max_ops must be positive, got {self.max_ops}")
        if self.road_prune_interval % self.cleanup_interval != 0:
            # the stale-road prune only runs inside a maintenance sweep
            raise ValueError(
                f"road_prune_interval ({self.road_prune_interval}) must be a multiple of "
                f"cleanup_interval ({self.cleanup_interval})"
            )

        # the heuristic must not overestimate, or searches skip cheaper routes along roads
        if self.heuristic_weight is None:
            self.heuristic_weight = float(min(self.road_cost, self.plain_cost, self.rough_cost))

        # JSON round-trips turn tuples into lists and int keys into strings
        self.tower_offsets = [tuple(o) for o in self.tower_offsets]
        self.extension_offsets = [tuple(o) for o in self.extension_offsets]
        self.towers_per_tier = {int(k): int(v) for k, v in self.towers_per_tier.items()}
        self.extensions_per_tier = {int(k): int(v) for k, v in self.extensions_per_tier.items()}

    # ---------------------------
    # TIER LOOKUPS
    # ---------------------------
    def tower_count(self, tier: int) -> int:
        """Total towers a colony of this tier may have."""
        return self.towers_per_tier.get(tier, 0)

    def extension_allowance(self, tier: int) -> int:
        """Total extensions a colony of this tier may have."""
        return self.extensions_per_tier.get(tier, self.max_extensions_per_anchor)

    def protected_kinds(self) -> Set[StructureKind]:
        """
        Structure kinds named in protect_list.

        Raises:
            ValueError: If protect_list names an unknown structure kind
        """
        kinds = set()
        for name in self.protect_list:
            try:
                kinds.add(StructureKind(name))
            except ValueError:
                raise ValueError(f"Unknown structure kind in protect_list: {name!r}") from None
        return kinds

    # ---------------------------
    # SERIALIZATION
    # ---------------------------
    @classmethod
    def from_dict(cls, data: Dict) -> 'PlannerConfig':
        """
        Build a config from a dictionary of overrides.

        Raises:
            ValueError: If the dictionary names a field that does not exist
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            get_logger(__name__).error(f"Unknown planner config keys: {unknown}")
            raise ValueError(f"Unknown planner config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict:
        return asdict(self)
