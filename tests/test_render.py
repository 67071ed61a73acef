from baseplanner.planning.keys import FacilityCategory, road_key, tower_key
from baseplanner.planning.render import CATEGORY_COLORS, draw_plan, render_plan


def test_draw_plan_size_and_colors(make_snapshot, plan):
    snapshot = make_snapshot(width=10, height=8, anchors={"Spawn1": (1, 1)})
    plan.upsert_entry(tower_key("Spawn1"), [(5, 5)], tick=0)
    plan.upsert_entry(road_key("a", "b"), [(6, 5)], tick=0)

    surface = draw_plan(snapshot, plan, tile_size=6)

    assert surface.get_size() == (60, 48)
    assert tuple(surface.get_at((5 * 6 + 3, 5 * 6 + 3)))[:3] == CATEGORY_COLORS[FacilityCategory.TOWER_SITE]
    assert tuple(surface.get_at((6 * 6 + 3, 5 * 6 + 3)))[:3] == CATEGORY_COLORS[FacilityCategory.ROAD_SEGMENT]


def test_render_plan_writes_image(make_snapshot, plan, tmp_path):
    snapshot = make_snapshot(width=10, height=10)
    plan.upsert_entry(tower_key("Spawn1"), [(5, 5)], tick=0)

    path = render_plan(snapshot, plan, tmp_path / "renders" / "W1N1.bmp", tile_size=4)

    assert path.exists()
    assert path.stat().st_size > 0
