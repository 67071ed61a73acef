import asyncio
import json

import pytest

from baseplanner.main import PlannerRunner, build_parser
from baseplanner.planning.structures import StructureKind
from baseplanner.planning.world import load_world


@pytest.fixture
def world_file(tmp_path):
    path = tmp_path / "world.json"
    path.write_text(json.dumps({
        "colony": "W1N1",
        "tick": 0,
        "tier": 3,
        "terrain": ["." * 20] * 20,
        "anchors": {"Spawn1": [10, 10]},
        "sources": {"src1": [3, 3]},
        "controller": [16, 16],
    }), encoding="utf-8")
    return path


def test_parser_defaults():
    args = build_parser().parse_args(["world.json"])

    assert args.world == "world.json"
    assert args.ticks == 1
    assert args.start_tick is None
    assert args.store == "plan_store.json"
    assert not args.apply and not args.build


def test_parser_options():
    args = build_parser().parse_args([
        "world.json", "--ticks", "5", "--start-tick", "100", "--apply", "--build",
        "--save-every", "2", "--render", "out", "--quiet",
    ])

    assert (args.ticks, args.start_tick, args.save_every) == (5, 100, 2)
    assert args.apply and args.build and args.quiet
    assert args.render == "out"


def test_runner_plans_applies_and_saves(world_file, tmp_path):
    store = tmp_path / "store.json"
    world_out = tmp_path / "world_out.json"
    renders = tmp_path / "renders"
    args = build_parser().parse_args([
        str(world_file), "--ticks", "3", "--store", str(store), "--apply", "--build",
        "--world-out", str(world_out), "--render", str(renders),
    ])

    runner = PlannerRunner(args)
    asyncio.run(runner.main_loop())
    runner.finish()

    saved = json.loads(store.read_text(encoding="utf-8"))
    assert "extraction_site:src1" in saved["W1N1"]["entries"]

    snapshot = load_world(world_out)[0]
    assert snapshot.tick == 2
    assert snapshot.count_structures(StructureKind.CONTAINER) >= 1
    assert (renders / "W1N1.png").exists()


def test_runner_resumes_from_saved_store(world_file, tmp_path):
    store = tmp_path / "store.json"
    args = build_parser().parse_args([str(world_file), "--store", str(store)])
    first = PlannerRunner(args)
    asyncio.run(first.main_loop())
    first.finish()

    second = PlannerRunner(build_parser().parse_args([str(world_file), "--store", str(store), "--start-tick", "10"]))

    plan = second.repository.get("W1N1")
    assert plan is not None
    assert plan.last_plan_tick == 0
    assert not second.planner.is_replan_due(plan, 10)


def test_runner_config_overrides(world_file, tmp_path):
    overrides = tmp_path / "config.json"
    overrides.write_text(json.dumps({"plan_interval": 5}), encoding="utf-8")
    args = build_parser().parse_args([
        str(world_file), "--store", str(tmp_path / "s.json"), "--config", str(overrides)
    ])

    assert PlannerRunner(args).config.plan_interval == 5
