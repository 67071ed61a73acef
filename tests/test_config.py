import logging
import os
import time

import pytest

from baseplanner.config import (
    ROOT_LOGGER_NAME, PerformanceTimer, get_logger, get_planner_logger,
    log_memory_usage, setup_logging, _archive_old_logs
)
from baseplanner.planning.config import PlannerConfig


# ---------------------------
# PlannerConfig
# ---------------------------

def test_defaults():
    config = PlannerConfig()

    assert config.plan_interval == 50
    assert config.max_ops == 4000
    assert config.heuristic_weight == config.road_cost
    assert config.tower_count(8) == 6
    assert config.tower_count(1) == 0
    assert config.extension_allowance(2) == 5
    assert config.extension_allowance(8) == 60


def test_from_dict_normalizes_json_shapes():
    config = PlannerConfig.from_dict({
        "tower_offsets": [[1, 1], [-1, -1]],
        "towers_per_tier": {"3": 2},
        "plan_interval": 10,
    })

    assert config.tower_offsets == [(1, 1), (-1, -1)]
    assert config.tower_count(3) == 2
    assert config.plan_interval == 10


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="plan_intervall"):
        PlannerConfig.from_dict({"plan_intervall": 10})


@pytest.mark.parametrize("overrides", [
    {"width": 0},
    {"plan_interval": 0},
    {"cleanup_interval": -5},
    {"max_ops": 0},
    {"cleanup_interval": 1000, "road_prune_interval": 1500},
])
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValueError):
        PlannerConfig(**overrides)


def test_dict_round_trip():
    config = PlannerConfig(extension_use_ring=True, max_orders_per_tick=None)

    assert PlannerConfig.from_dict(config.to_dict()) == config


# ---------------------------
# Logging helpers
# ---------------------------

def test_loggers_share_the_root_namespace():
    assert get_logger().name == ROOT_LOGGER_NAME
    assert get_logger("baseplanner.x").name == "baseplanner.x"
    assert get_planner_logger().name == f"{ROOT_LOGGER_NAME}.Planning"


def test_setup_logging_creates_log_dirs(tmp_path):
    logger = setup_logging(tmp_path)

    assert logger.name == ROOT_LOGGER_NAME
    assert (tmp_path / "log_dump").is_dir()
    assert (tmp_path / "old_log_dump").is_dir()


def test_old_logs_are_archived(tmp_path):
    log_dir = tmp_path / "log_dump"
    old_dir = tmp_path / "old_log_dump"
    log_dir.mkdir()
    old_dir.mkdir()
    stale = log_dir / "planner_old.log"
    fresh = log_dir / "planner_new.log"
    stale.write_text("old")
    fresh.write_text("new")
    two_days_ago = time.time() - 2 * 24 * 3600
    os.utime(stale, (two_days_ago, two_days_ago))

    moved = _archive_old_logs(log_dir, old_dir)

    assert moved == ["planner_old.log"]
    assert (old_dir / "planner_old.log").exists()
    assert fresh.exists()


def test_performance_timer_records_elapsed(caplog):
    caplog.set_level(logging.DEBUG, logger=ROOT_LOGGER_NAME)
    logger = get_planner_logger()

    with PerformanceTimer(logger, "unit of work") as timer:
        pass

    assert timer.elapsed >= 0
    assert "Completed: unit of work" in caplog.text


def test_log_memory_usage(caplog):
    caplog.set_level(logging.DEBUG, logger=ROOT_LOGGER_NAME)

    log_memory_usage(get_logger(), "Memory check")

    assert "Memory check" in caplog.text
