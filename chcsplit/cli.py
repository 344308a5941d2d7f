#!/usr/bin/env python3
"""
CLI entrypoint for chcsplit.

Usage:
    chcsplit solve problem.smt2 [options]   # split, learn, merge
    chcsplit info problem.smt2              # predicates, clauses, split order

Returns:
    0: sat (or no contradiction found with --check-only)
    1: unsat
    3: error
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import ChcSplitConfig
from .errors import ChcSplitError
from .frontend.smt2 import HornFormatError, load_horn_file
from .learner import SpacerLearner
from .split import NO_MODEL, UnsatVerdict, split_order, work

EXIT_SAT = 0
EXIT_UNSAT = 1
EXIT_ERROR = 3


def _add_solve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("target", type=Path, help="SMT-LIB2 HORN problem")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--config", type=Path, help="Configuration file (default: .chcsplit.yml in cwd)")
    parser.add_argument("--no-split", action="store_true", help="Solve the instance as a whole")
    parser.add_argument(
        "--no-split-sort",
        action="store_true",
        help="Split on negative clauses in insertion order instead of by connectivity",
    )
    parser.add_argument(
        "--check-only",
        action="store_true",
        help="Only run split preprocessing, do not learn a model",
    )
    parser.add_argument("--split-step", action="store_true", help="Report every split step")
    parser.add_argument("--timeout", type=int, help="Learner timeout in milliseconds")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chcsplit",
        description="Split-and-solve driver for Constrained Horn Clause problems",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    solve = sub.add_parser("solve", help="Solve a CHC problem")
    _add_solve_arguments(solve)

    info = sub.add_parser("info", help="Show an instance and its split order")
    info.add_argument("target", type=Path, help="SMT-LIB2 HORN problem")
    info.add_argument("--no-split-sort", action="store_true", help="Show insertion order")
    return parser


def _load_config(args) -> ChcSplitConfig:
    if getattr(args, "config", None):
        config = ChcSplitConfig.from_file(args.config)
    else:
        config = ChcSplitConfig.load(Path.cwd())
    if getattr(args, "no_split", False):
        config.split.enabled = False
    if getattr(args, "no_split_sort", False):
        config.split.sort = False
    if getattr(args, "check_only", False):
        config.split.infer = False
    if getattr(args, "split_step", False):
        config.split.step = True
    return config


def _setup_logging(config: ChcSplitConfig, verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        level = config.logging.numeric_level()
        if config.split.step:
            level = min(level, logging.INFO)
        logging.basicConfig(level=level)


def _solve(args) -> int:
    config = _load_config(args)
    _setup_logging(config, args.verbose)

    instance = load_horn_file(args.target)
    learner = SpacerLearner(timeout_ms=args.timeout) if config.split.infer else None
    result = work(instance, learner, config.split)

    if isinstance(result, UnsatVerdict):
        print("unsat")
        return EXIT_UNSAT
    if result is NO_MODEL:
        print("sat (no model requested)")
        return EXIT_SAT

    print("sat")
    for pred, fragment in result.definitions().items():
        print(f"  {instance.preds[pred].name}: {fragment}")
    return EXIT_SAT


def _info(args) -> int:
    logging.basicConfig(level=logging.WARNING)
    instance = load_horn_file(args.target)
    print(instance.to_string_info())
    order = list(reversed(split_order(instance, not args.no_split_sort)))
    print("split order: " + (", ".join(f"#{c}" for c in order) or "none"))
    return EXIT_SAT


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "solve":
            return _solve(args)
        return _info(args)
    except (ChcSplitError, HornFormatError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
