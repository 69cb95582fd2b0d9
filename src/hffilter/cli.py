"""Command-line interface for running the heavy-flavour filter on event inputs."""

from __future__ import annotations

import argparse
import importlib.util
from pathlib import Path
from typing import Any

from .calibration import JsonCalibrationProvider, load_post_calibration
from .config import FilterConfig
from .filter import HeavyFlavourFilter
from .io import load_events_json, load_filter_config_json, write_decisions_table
from .logger import logger
from .models import EventDecision
from .monitoring import Monitor

VERBOSITY_LEVELS = ("debug", "info", "warning", "error")


def build_parser() -> argparse.ArgumentParser:
    """Define and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="hf-filter",
        description="Select heavy-flavour candidates and build per-event trigger bitmaps.",
    )
    parser.add_argument(
        "--events",
        required=True,
        help="Input JSON with key 'events' (tracks, two_prongs, three_prongs, gammas per event).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional JSON filter configuration; defaults are used when omitted.",
    )
    parser.add_argument(
        "--calibration-dir",
        default=None,
        help="Directory with TPC post-calibration map documents (<name>.json).",
    )
    parser.add_argument(
        "--timestamp",
        type=int,
        default=0,
        help="Timestamp used to pick the calibration maps.",
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Output table file for decisions (.parquet, .csv, .pkl).",
    )
    parser.add_argument(
        "--verbosity",
        choices=VERBOSITY_LEVELS,
        default="info",
        help="Logging level.",
    )
    parser.add_argument(
        "--custom-script",
        default=None,
        help="Path to Python file with process(decisions, context) function.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint: load inputs, run the filter, write table, optional custom hook."""
    args = build_parser().parse_args(argv)
    logger.setLevel(args.verbosity.upper())

    config = load_filter_config_json(args.config) if args.config else FilterConfig()
    post_calibration = None
    if config.compute_tpc_post_calib:
        if args.calibration_dir is None:
            raise SystemExit("--calibration-dir is required when compute_tpc_post_calib is enabled.")
        post_calibration = load_post_calibration(JsonCalibrationProvider(args.calibration_dir), args.timestamp)

    monitor = Monitor()
    hf_filter = HeavyFlavourFilter(config, post_calibration=post_calibration, monitor=monitor)
    events = load_events_json(args.events)
    decisions = hf_filter.filter_events(events)
    n_triggered = sum(1 for d in decisions if d.triggers)
    logger.info("Processed %d events, %d with at least one trigger", len(decisions), n_triggered)
    write_decisions_table(args.out, decisions)

    if args.custom_script:
        run_custom_script(
            script_path=args.custom_script,
            decisions=decisions,
            context={
                "events_path": args.events,
                "config": config,
                "monitor": monitor,
                "output_path": args.out,
            },
        )
    return 0


def run_custom_script(
    script_path: str, decisions: list[EventDecision], context: dict[str, Any]
) -> None:
    """Execute user-supplied post-processing callback `process(decisions, context)`."""
    module = _load_module(script_path)
    process = getattr(module, "process", None)
    if process is None or not callable(process):
        raise ValueError(
            f"Custom script {script_path} must define callable process(decisions, context)."
        )
    process(decisions, context)


def _load_module(script_path: str):
    """Import a Python module from an arbitrary file path."""
    path = Path(script_path)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import custom script: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


if __name__ == "__main__":
    raise SystemExit(main())
