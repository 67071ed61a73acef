"""
Construction emitter.

Turns the Plan Store into an ordered stream of construction orders for the
external construction collaborator, and keeps defensive overlays planned on
top of protect-listed structures once they are actually built.
"""

from dataclasses import dataclass
from typing import List, Optional

from baseplanner.config import get_planner_logger
from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.keys import FacilityCategory, FacilityKey, overlay_key
from baseplanner.planning.store import ColonyPlan
from baseplanner.planning.structures import StructureKind
from baseplanner.planning.utils import Pos
from baseplanner.planning.world import ColonySnapshot

# categories in the order their orders are issued
EMIT_ORDER = [
    FacilityCategory.EXTRACTION_SITE,
    FacilityCategory.CONTROL_BUFFER_SITE,
    FacilityCategory.TOWER_SITE,
    FacilityCategory.EXTENSION_SITE,
    FacilityCategory.STORAGE_SITE,
    FacilityCategory.CONDUIT_SITE,
    FacilityCategory.TRADE_DEPOT_SITE,
    FacilityCategory.MINERAL_SITE,
    FacilityCategory.ROAD_SEGMENT,
    FacilityCategory.CONNECTOR_SEGMENT,
    FacilityCategory.DEFENSIVE_OVERLAY,
]


@dataclass(frozen=True)
class ConstructionOrder:
    category: FacilityCategory
    kind: StructureKind
    pos: Pos
    key: Optional[FacilityKey] = None

    def to_dict(self) -> dict:
        return {
            'category': self.category.value,
            'kind': self.kind.value,
            'pos': list(self.pos),
            'key': str(self.key) if self.key else None,
        }


@dataclass(frozen=True)
class DemolitionOrder:
    """A built structure the collaborator should remove (a road under another structure)."""
    kind: StructureKind
    pos: Pos

    def to_dict(self) -> dict:
        return {'kind': self.kind.value, 'pos': list(self.pos)}


class ConstructionEmitter:
    def __init__(self, config: PlannerConfig = None):
        self.config = config or PlannerConfig()
        self.logger = get_planner_logger()
        self.protected = self.config.protected_kinds()

    # -------------------------
    # Defensive overlays
    # -------------------------
    def plan_overlays(self, snapshot: ColonySnapshot, plan: ColonyPlan, tick: int) -> int:
        """
        Plan an overlay on every built protect-listed structure that lacks one.

        Only finished structures qualify; a pending marker does not.

        Returns:
            Number of overlay entries created
        """
        created = 0
        for pos in sorted(snapshot.structures, key=lambda p: (p[1], p[0])):
            occupants = snapshot.occupants_at(pos)
            if not any(o.is_built and o.kind in self.protected for o in occupants):
                continue
            if any(o.kind is StructureKind.OVERLAY for o in occupants):
                continue
            key = overlay_key(pos)
            if plan.get_entry(key) is not None:
                continue
            plan.upsert_entry(key, [pos], tick)
            created += 1
        if created:
            self.logger.debug(f"[{snapshot.colony_id}] Planned {created} defensive overlay(s)")
        return created

    # -------------------------
    # Orders
    # -------------------------
    def demolitions(self, result) -> List[DemolitionOrder]:
        """Demolition orders for the roads a maintenance sweep destroyed."""
        return [DemolitionOrder(StructureKind.ROAD, pos) for pos in result.demolished_roads]

    def needs_order(self, snapshot: ColonySnapshot, kind: StructureKind, pos: Pos) -> bool:
        """True when pos is buildable for `kind` and nothing of that kind is built or marked there."""
        if not snapshot.is_walkable(pos) or snapshot.is_node(pos):
            return False
        occupants = snapshot.occupants_at(pos)
        if any(o.kind is kind for o in occupants):
            return False

        if kind is StructureKind.OVERLAY:
            # an overlay only goes on top of a finished protected structure
            return any(o.is_built and o.kind in self.protected for o in occupants)
        if kind is StructureKind.ROAD:
            return all(o.kind is StructureKind.OVERLAY for o in occupants)
        return all(o.kind in (StructureKind.ROAD, StructureKind.OVERLAY) for o in occupants) \
            and not any(o.kind is StructureKind.ROAD and o.is_marker for o in occupants)

    def emit(self, snapshot: ColonySnapshot, plan: ColonyPlan) -> List[ConstructionOrder]:
        """
        Ordered construction requests for everything planned but not yet built.

        Capped at max_orders_per_tick when that is set.
        """
        orders: List[ConstructionOrder] = []
        seen = set()
        limit = self.config.max_orders_per_tick

        for category in EMIT_ORDER:
            kind = category.structure_kind
            for key, entry in plan.entries_with_prefix(category):
                for pos in entry.coordinates:
                    if limit is not None and len(orders) >= limit:
                        self.logger.debug(f"[{snapshot.colony_id}] Order limit {limit} reached")
                        return orders
                    if (kind, pos) in seen:
                        continue
                    if not self.needs_order(snapshot, kind, pos):
                        continue
                    seen.add((kind, pos))
                    orders.append(ConstructionOrder(category, kind, pos, key))

        if orders:
            self.logger.debug(f"[{snapshot.colony_id}] Emitted {len(orders)} construction order(s)")
        return orders
