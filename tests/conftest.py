import pytest

from baseplanner.planning.config import PlannerConfig
from baseplanner.planning.store import ColonyPlan, PlanRepository
from baseplanner.planning.world import ColonySnapshot, open_terrain


@pytest.fixture
def config():
    return PlannerConfig()


@pytest.fixture
def make_snapshot():
    """Factory for open-terrain snapshots; pass walls=[(x, y), ...] to add walls."""
    def _make(colony_id="W1N1", width=50, height=50, walls=(), **kwargs):
        return ColonySnapshot(colony_id, open_terrain(width, height, walls), **kwargs)
    return _make


@pytest.fixture
def plan():
    return ColonyPlan("W1N1")


@pytest.fixture
def repository():
    return PlanRepository()
