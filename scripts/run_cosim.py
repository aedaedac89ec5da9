"""CLI entrypoint: run a SUMO / signal-controller co-simulation."""

from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.cosim import CoSimulation, CoSimulationError, InitResponse, StepExecutionError, StepTimingListener
from src.utils.console import colorize


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True)
    parser.add_argument("--steps", type=int, default=3600)
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--keep-going", action="store_true", help="Continue after a failed step")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    supports_color = sys.stdout.isatty()

    sim = CoSimulation()
    try:
        sim.load(args.config)
    except CoSimulationError as exc:
        print(colorize(f"Cannot load {args.config}: {exc}", "red", supports_color))
        return 2
    timing = StepTimingListener()
    sim.add_step_listener(timing)

    if sim.initialize_before_play() is InitResponse.SIGNAL_SERVER_UNREACHABLE:
        print(colorize("Signal-control server not reachable; start it and retry.", "red", supports_color))
        sim.close()
        return 2

    task = sim.get_task()
    failed = 0
    completed = 0
    try:
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="sumo") as pool:
            for _ in range(args.steps):
                try:
                    pool.submit(task).result()
                    completed += 1
                except StepExecutionError as exc:
                    failed += 1
                    print(colorize(str(exc), "yellow", supports_color))
                    if not args.keep_going:
                        break
                if sim.traffic is not None and getattr(sim.traffic, "finished", lambda: False)():
                    logging.info("SUMO reports no more vehicles, stopping at step %d", sim.current_step)
                    break
    finally:
        sim.close()

    stats = timing.summary()
    sim_step = timing.last_step or 0
    color = "green" if failed == 0 else "yellow"
    print(
        colorize(
            f"Finished at step {sim_step}: {completed} steps ok, "
            f"mean {stats['mean_sec'] * 1000:.1f} ms, p95 {stats['p95_sec'] * 1000:.1f} ms, {failed} failed",
            color,
            supports_color,
        )
    )
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
