"""
Entry point for the HB report CLI.

Usage:
    python main.py                                   # Full run (default config)
    python main.py run --config path/to.yaml         # Full run with custom config
    python main.py run --data choices.csv --seed 42  # Override input CSV + seed
    python main.py estimate                          # Only write RBetas.csv / RLH.csv
    python main.py report                            # Report from existing estimates
    python main.py report --output ./HB_report.xlsx  # Custom report path
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

DEFAULT_CONFIG = Path(__file__).parent / "configs" / "lighthouse.yaml"


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to YAML study config (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help="Choice CSV (overrides input.path in the config)",
    )
    parser.add_argument(
        "--estimations-dir",
        type=Path,
        default=None,
        help="Directory for RBetas.csv / RLH.csv (overrides the config)",
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="HB report — individual utilities, zero-centered diffs and importances",
    )
    subparsers = parser.add_subparsers(dest="command")

    # ── Subcommand: run (default) ───────────────────────────────────
    run_parser = subparsers.add_parser("run", help="Estimate and write the report")
    _add_common_arguments(run_parser)
    run_parser.add_argument("--output", type=Path, default=None, help="Report .xlsx path")
    run_parser.add_argument("--seed", type=int, default=None, help="Random seed for MCMC")

    # ── Subcommand: estimate ────────────────────────────────────────
    est_parser = subparsers.add_parser("estimate", help="Only run HB estimation")
    _add_common_arguments(est_parser)
    est_parser.add_argument("--seed", type=int, default=None, help="Random seed for MCMC")

    # ── Subcommand: report ──────────────────────────────────────────
    rep_parser = subparsers.add_parser(
        "report", help="Write the report from existing estimator output",
    )
    _add_common_arguments(rep_parser)
    rep_parser.add_argument("--output", type=Path, default=None, help="Report .xlsx path")

    argv = sys.argv[1:] or ["run"]
    if argv[0] not in subparsers.choices and argv[0] not in ("-h", "--help"):
        argv = ["run", *argv]
    args = parser.parse_args(argv)

    if not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        return 1

    from pydantic import ValidationError

    from cli.report import run_command
    from hbreport.models import StudyConfig

    try:
        config = StudyConfig.from_yaml(args.config)
    except ValidationError as exc:
        print(f"Error: invalid config {args.config}:\n{exc}", file=sys.stderr)
        return 1

    if args.estimations_dir is not None:
        config.report.estimations_dir = args.estimations_dir
    if getattr(args, "seed", None) is not None:
        config.mcmc.seed = args.seed

    ctx = run_command(
        config,
        args.command,
        data_path=args.data,
        output_path=getattr(args, "output", None),
    )
    return 0 if ctx is not None else 1


if __name__ == "__main__":
    sys.exit(main())
