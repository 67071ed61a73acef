import pytest

from baseplanner.planning.errors import PlanStoreError
from baseplanner.planning.keys import (
    FacilityCategory, FacilityKey, conduit_key, road_key, connector_key,
    overlay_key, extraction_key, tower_key
)
from baseplanner.planning.structures import StructureKind


def test_key_string_round_trip():
    for key in [extraction_key("src1"), conduit_key("source", "src1"), road_key("b", "a"),
                connector_key(7, 3), overlay_key((4, 9)), tower_key("Spawn1")]:
        assert FacilityKey.parse(str(key)) == key


def test_discriminator_may_contain_separator():
    key = FacilityKey.parse("road_segment:anchor:Spawn1|source:src1")

    assert key.category is FacilityCategory.ROAD_SEGMENT
    assert key.discriminator == "anchor:Spawn1|source:src1"


def test_pair_keys_are_order_independent():
    assert road_key("x", "y") == road_key("y", "x")
    assert connector_key(1, 9) == connector_key(9, 1)


@pytest.mark.parametrize("text", ["no-separator", "bogus_category:thing"])
def test_parse_rejects_malformed_keys(text):
    with pytest.raises(PlanStoreError):
        FacilityKey.parse(text)


def test_category_dispatch():
    assert FacilityCategory.CONNECTOR_SEGMENT.is_road
    assert not FacilityCategory.TOWER_SITE.is_road
    assert FacilityCategory.TRADE_DEPOT_SITE.is_singleton
    assert FacilityCategory.CONDUIT_SITE.is_singleton
    assert not FacilityCategory.EXTENSION_SITE.is_singleton
    assert not FacilityCategory.DEFENSIVE_OVERLAY.claims_footprint
    assert FacilityCategory.EXTRACTION_SITE.structure_kind is StructureKind.CONTAINER


def test_keys_sort_by_string_form():
    keys = [tower_key("a"), extraction_key("s"), road_key("a", "b")]

    assert [str(k) for k in sorted(keys)] == sorted(str(k) for k in keys)
