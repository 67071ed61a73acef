import argparse
import json
import logging
from pathlib import Path


class PlannerRunner:
    def __init__(self, args):
        # ---------------------------
        # LAZY IMPORTS
        # ---------------------------
        from baseplanner.config import get_logger
        from baseplanner.planning.config import PlannerConfig
        from baseplanner.planning.planner import BasePlanner
        from baseplanner.planning.store import JsonPlanRepository
        from baseplanner.planning.world import load_world

        self.logger = get_logger(__name__)
        self.logger.info("=" * 60)
        self.logger.info("Planner initialization started")
        self.args = args

        # ---------------------------
        # CONFIG
        # ---------------------------
        overrides = {}
        if args.config:
            overrides = json.loads(Path(args.config).read_text(encoding='utf-8'))
            self.logger.info(f"Loaded {len(overrides)} config override(s) from {args.config}")
        self.config = PlannerConfig.from_dict(overrides)

        # ---------------------------
        # WORLD + PLAN STORE
        # ---------------------------
        self.snapshots = load_world(args.world)
        self.repository = JsonPlanRepository(args.store)
        self.repository.load()
        self.planner = BasePlanner(self.repository, self.config)

        self.start_tick = args.start_tick if args.start_tick is not None else \
            min((s.tick for s in self.snapshots), default=0)
        self.logger.info(f"Planner ready: {len(self.snapshots)} colonies, starting at tick {self.start_tick}")

    async def main_loop(self):
        import asyncio

        self.logger.info(f"Entering planner loop for {self.args.ticks} tick(s)")
        total_orders = 0

        for tick in range(self.start_tick, self.start_tick + self.args.ticks):
            for snapshot in self.snapshots:
                snapshot.tick = tick

            report = self.planner.run_tick(self.snapshots, tick)

            for snapshot in self.snapshots:
                orders = report.orders.get(snapshot.colony_id, [])
                total_orders += len(orders)
                if self.args.apply:
                    for order in orders:
                        snapshot.add_marker(order.pos, order.kind)
                    if self.args.build:
                        snapshot.complete_markers()

            for result in report.sweep:
                if not result.ok:
                    self.logger.warning(f"[{result.colony_id}] Sweep failed at tick {tick}: {result.error}")

            for colony_id, demolitions in report.demolitions.items():
                self.logger.info(f"[{colony_id}] {len(demolitions)} road(s) demolished at tick {tick}")

            if self.args.save_every and (tick - self.start_tick + 1) % self.args.save_every == 0:
                self.repository.save()

            await asyncio.sleep(0)

        self.logger.info(f"Planner loop finished, {total_orders} order(s) issued")

    def finish(self):
        from baseplanner.planning.render import render_plan
        from baseplanner.planning.world import save_world

        self.repository.save()

        if self.args.world_out:
            save_world(self.args.world_out, self.snapshots)

        if self.args.render:
            out_dir = Path(self.args.render)
            for snapshot in self.snapshots:
                plan = self.repository.get(snapshot.colony_id)
                if plan is not None:
                    render_plan(snapshot, plan, out_dir / f"{snapshot.colony_id}.png")


def build_parser() -> argparse.ArgumentParser:
    from baseplanner.config import DEFAULT_STORE_FILE

    parser = argparse.ArgumentParser(
        prog="baseplanner",
        description="Run the base layout planner over a JSON world snapshot."
    )
    parser.add_argument("world", help="World JSON file (one colony or {\"colonies\": [...]})")
    parser.add_argument("--ticks", type=int, default=1, help="Number of ticks to run (default: 1)")
    parser.add_argument("--start-tick", type=int, default=None,
                        help="First tick (default: the snapshots' tick)")
    parser.add_argument("--store", default=DEFAULT_STORE_FILE,
                        help=f"Plan store JSON file (default: {DEFAULT_STORE_FILE})")
    parser.add_argument("--config", default=None, help="JSON file of PlannerConfig overrides")
    parser.add_argument("--apply", action="store_true",
                        help="Place construction markers for emitted orders")
    parser.add_argument("--build", action="store_true",
                        help="With --apply, finish markers immediately")
    parser.add_argument("--save-every", type=int, default=0,
                        help="Save the plan store every N ticks (default: only at exit)")
    parser.add_argument("--world-out", default=None, help="Write the updated world JSON here")
    parser.add_argument("--render", default=None, help="Directory for per-colony plan images")
    parser.add_argument("--quiet", action="store_true", help="Log at INFO instead of DEBUG")
    return parser


# ------------------------ # ENTRY POINT # ------------------------

def main(argv=None):
    import asyncio
    from baseplanner.config import get_project_root, setup_logging

    args = build_parser().parse_args(argv)

    async def run():
        project_root = get_project_root()
        logger = setup_logging(project_root, logging.INFO if args.quiet else logging.DEBUG)

        logger.info("=" * 60)
        logger.info("Application started")
        logger.info(f"Project root: {project_root}")

        try:
            runner = PlannerRunner(args)
            await runner.main_loop()
            runner.finish()
        except Exception as e:
            logger.critical(f"Critical error in main: {e}", exc_info=True)
            raise
        finally:
            logger.info("Application terminated")
            logger.info("=" * 60)

    asyncio.run(run())


if __name__ == "__main__":
    main()
