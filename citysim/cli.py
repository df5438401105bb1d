from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from citysim.challenges.baseline import prebake_all
from citysim.challenges.evaluator import score_challenge
from citysim.challenges.registry import all_challenges, describe_gameplay, find_challenge, maps_in_catalog
from citysim.clock import Duration, Tick
from citysim.config import SimulationConfig, dump_config, load_config, validate_model
from citysim.driver import RunResult, SaveAt, SaveEvery, run_until_done
from citysim.errors import CitySimError, ConfigError
from citysim.flags import SimFlags, SimOptions
from citysim.io.logging import setup_logging
from citysim.io.metadata import build_run_metadata
from citysim.io.plots import plot_duration_histograms
from citysim.io.savestate import SavestateStore
from citysim.io.timer import Timer
from citysim.metrics.stats import RunStatistics, summarize_run
from citysim.world.map import load_edits


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="citysim", description="Headless city traffic simulation")
    parser.add_argument("--config", default=None, help="Path to config YAML")
    sub = parser.add_subparsers(dest="command", required=True)

    headless = sub.add_parser("headless", help="Run a map, scenario or savestate to completion")
    headless.add_argument("load", help="Map, scenario or savestate to load")
    headless.add_argument("--rng_seed", type=int, default=None, help="Optional RNG seed")
    headless.add_argument("--save_at", default=None, help="Optional time to savestate, like 08:30:00")
    headless.add_argument("--big_sim", action="store_true", help="Spawn the big demand profile on a bare map")
    headless.add_argument(
        "--scenario_name",
        default=None,
        help="Scenario name for savestating (defaults to the loaded savestate's scenario, else headless)",
    )
    headless.add_argument("--savestate_every", default=None, help="Also savestate at every multiple of this time")
    headless.add_argument("--no_map_fixes", action="store_true", help="Skip the map's correctness fixes")
    headless.add_argument("--edits", default=None, help="Map edits YAML to apply")
    headless.add_argument("--out", default=None, help="Output directory for trips, summary and plots")

    prebake = sub.add_parser("prebake", help="Record challenge baselines")
    prebake.add_argument("--rng_seed", type=int, default=None, help="Seed for the baseline runs (required)")
    prebake.add_argument("--map", action="append", dest="maps", default=None, help="Map to prebake (repeatable)")
    prebake.add_argument("--scenario", default=None, help="Scenario to prebake (defaults to the challenge scenario)")
    prebake.add_argument("--out", default=None, help="Directory for prebaked results")

    sub.add_parser("challenges", help="List the challenges")

    evaluate = sub.add_parser("evaluate", help="Score a challenge against its baseline")
    evaluate.add_argument("title", help="Challenge title")
    evaluate.add_argument("--rng_seed", type=int, default=None, help="Seed for the run (required)")
    evaluate.add_argument("--edits", default=None, help="Map edits YAML to apply")
    evaluate.add_argument("--prebaked", default=None, help="Directory with prebaked results")

    return parser.parse_args(argv)


def parse_time_flag(name: str, text: Optional[str]) -> Optional[Tick]:
    if text is None:
        return None
    parsed = Tick.parse(text)
    if parsed is None:
        raise ConfigError(f"Couldn't parse {name} time {text!r}")
    return parsed


def run_headless(args: argparse.Namespace, cfg: SimulationConfig) -> RunResult:
    save_at = parse_time_flag("--save_at", args.save_at)
    opts = validate_model(
        SimOptions,
        {"run_name": args.scenario_name or "headless", "savestate_every": args.savestate_every},
        "--savestate_every",
    )
    flags = validate_model(
        SimFlags,
        {"load": Path(args.load), "use_map_fixes": not args.no_map_fixes, "rng_seed": args.rng_seed, "opts": opts},
        "--rng_seed",
    )
    edits = load_edits(args.edits) if args.edits else None
    loaded = flags.load_run(
        data_dir=cfg.data.data_dir,
        config=cfg.engine,
        edits=edits,
        spawn_profile="big" if args.big_sim else "small",
    )

    conditions = []
    if save_at is not None:
        conditions.append(SaveAt(save_at))
    interval = opts.savestate_interval()
    if interval is not None:
        conditions.append(SaveEvery(interval))

    scenario_name = args.scenario_name
    if scenario_name is None:
        scenario_name = loaded.scenario_name if loaded.from_savestate else opts.run_name

    timer = Timer("headless")
    result = run_until_done(
        loaded.engine,
        conditions,
        step=Duration.seconds(cfg.engine.step_seconds),
        savestates=SavestateStore(cfg.data.savestates_dir, scenario_name),
        timer=timer,
        progress_every=Duration.seconds(cfg.engine.progress_every_seconds),
    )
    stats = summarize_run(result.ledger, loaded.engine)
    for mode, mode_stats in stats.trips.items():
        logging.info("%s: %s", mode.value, mode_stats.describe())

    if args.out:
        out_dir = Path(args.out)
        out_dir.mkdir(parents=True, exist_ok=True)
        dump_config(cfg, out_dir / "config_resolved.yaml")
        with (out_dir / "run_metadata.json").open("w") as f:
            json.dump(build_run_metadata(loaded.rng, opts.run_name), f, indent=2)
        write_outputs(out_dir, result, stats, cfg)
    timer.done()
    return result


def write_outputs(out_dir: Path, result: RunResult, stats: RunStatistics, cfg: SimulationConfig) -> None:
    trips = result.ledger.to_frame()
    if cfg.output.save_trips:
        trips.to_csv(out_dir / "trips.csv", index=False)
    if cfg.output.save_plots:
        plot_duration_histograms(trips, out_dir)

    summary = stats.to_dict()
    summary["final_time"] = str(result.time)
    summary["completed"] = result.completed
    summary["halted_by"] = None if result.halted_by is None else repr(result.halted_by)
    summary["savestates"] = [str(p) for p in result.savestates]
    with (out_dir / "summary.json").open("w") as f:
        json.dump(summary, f, indent=2)


def run_prebake(args: argparse.Namespace, cfg: SimulationConfig) -> None:
    if args.rng_seed is None:
        raise ConfigError("prebake needs --rng_seed; baselines must be reproducible")
    prebake_all(
        args.maps or maps_in_catalog(),
        args.rng_seed,
        config=cfg,
        out_dir=args.out,
        scenario_name=args.scenario,
    )


def list_challenges() -> None:
    for idx, challenge in enumerate(all_challenges(), start=1):
        print(f"{idx}. {challenge.title} [{challenge.map_name}, {describe_gameplay(challenge.gameplay)}]")
        print(f"   {challenge.description}")


def run_evaluate(args: argparse.Namespace, cfg: SimulationConfig) -> bool:
    challenge = find_challenge(args.title)
    edits = load_edits(args.edits) if args.edits else None
    verdict = score_challenge(challenge, args.rng_seed, edits, config=cfg, prebaked_dir=args.prebaked)
    if verdict.passed:
        print(f"PASS: {verdict.summary}")
    else:
        print(f"FAIL: {verdict.reason}")
    return verdict.passed


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = parse_args(argv)
    try:
        cfg = load_config(args.config) if args.config else SimulationConfig()
        setup_logging(cfg.logging.level)
        if args.command == "headless":
            run_headless(args, cfg)
        elif args.command == "prebake":
            run_prebake(args, cfg)
        elif args.command == "challenges":
            list_challenges()
        elif args.command == "evaluate":
            if not run_evaluate(args, cfg):
                return 1
    except CitySimError as exc:
        logging.error("%s", exc)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
