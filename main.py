#!/usr/bin/env python3
"""
Spanner Delete Matrix - transactional delete verification harness

This module provides the main entry point for the matrix orchestrator.
Features:
- Cartesian matrix of session mode, write method and begin strategy
- Fresh emulator and schema for every scenario point
- Isolated scenario runner process per point, classified from its last line
- Fixed-width report, JSON summary and bug reproduction scripts
"""

import argparse
import os
import signal
import sys
import traceback
from pathlib import Path
from typing import Optional

import yaml

from config import EMULATOR_HOST_ENV, HarnessConfig, create_default_config
from core.engine import MatrixEngine, ScenarioInvoker
from core.errors import SetupError
from core.matrix import VARIANT_REGISTRY, get_variant
from utils.bug_reporter import BugReporter
from utils.log_setup import setup_logging
from utils.report import render_points, render_report, write_summary

# Global variables for signal handling
matrix_engine: Optional[MatrixEngine] = None


def signal_handler(signum: int, frame) -> None:
    """
    Handle shutdown signals by finishing the current point and stopping.

    Args:
        signum: Signal number
        frame: Current stack frame
    """
    signal_name = signal.Signals(signum).name
    print(f"\n🛑 Received signal {signal_name}, stopping after the current scenario point...")

    if matrix_engine:
        matrix_engine.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transactional delete verification matrix for Cloud Spanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the session mode x delete method x begin strategy matrix
  python3 main.py --variant delete-begin

  # Run the insert method matrix against an emulator you manage yourself
  SPANNER_EMULATOR_HOST=localhost:9010 python3 main.py --variant insert-delete --no-container

  # Show the points a variant would run
  python3 main.py --variant delete-begin --list
        """
    )

    parser.add_argument('-c', '--config', help='Configuration file path (optional)')
    parser.add_argument(
        '--variant',
        choices=list(VARIANT_REGISTRY),
        help='Matrix variant to run (default from config: delete-begin)'
    )
    parser.add_argument('--image', help='Emulator container image')
    parser.add_argument(
        '--no-container',
        action='store_true',
        help='Reuse a running emulator and reset the database in place'
    )
    parser.add_argument(
        '--runner-timeout',
        type=float,
        help='Seconds before a scenario runner is killed and classified BUG'
    )
    parser.add_argument('--json', help='Write the results summary to this path')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--list', action='store_true', help='List scenario points and exit')
    parser.add_argument('--validate-only', action='store_true', help='Validate configuration and exit')
    parser.add_argument('--init-config', metavar='PATH', help='Write a default configuration file and exit')
    return parser


def main(argv=None) -> int:
    """
    Main entry point for the matrix harness.

    Returns:
        Exit code (0 when the matrix completed, non-zero on setup or configuration failure)
    """
    global matrix_engine

    args = build_parser().parse_args(argv)

    if args.init_config:
        create_default_config(args.init_config)
        print(f"✅ Default configuration written to {args.init_config}")
        return 0

    print("📋 Loading configuration...")
    try:
        config = HarnessConfig(args.config, args)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Failed to load configuration: {e}")
        return 1
    if not config.validate():
        print("❌ Configuration validation failed")
        return 1

    if args.validate_only:
        print("✅ Configuration validation completed successfully")
        return 0

    settings = config.settings
    variant = get_variant(settings.harness.variant)

    if args.list:
        points = list(variant.points())
        print(f"Variant '{variant.name}': {len(points)} points "
              f"({variant.candidate_count()} candidates)")
        print(render_points(variant, points))
        return 0

    logger = setup_logging(settings.logging, debug=settings.debug)
    logger.info(f"🚀 Matrix harness starting: variant '{variant.name}'")

    # The client library only reaches the emulator through this variable
    os.environ.setdefault(EMULATOR_HOST_ENV, settings.emulator.endpoint)

    bug_reporter = BugReporter(config.config_data) if settings.bug_reporting.enabled else None
    matrix_engine = MatrixEngine(
        settings,
        invoker=ScenarioInvoker(settings, args.config),
        bug_reporter=bug_reporter,
    )

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    setup_failure = None
    try:
        matrix_engine.run(variant)
    except SetupError as e:
        where = e.point.label(variant.axes) if e.point else "before the first point"
        setup_failure = f"{where}: {e}"
        logger.error(f"❌ Setup failure at {setup_failure}")
    except Exception as e:
        logger.error(f"❌ Matrix run failed: {e}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        return 1

    results = matrix_engine.results
    print()
    print(render_report(variant, results))
    if setup_failure:
        print(f"SETUP FAILURE at {setup_failure}")

    summary_path = args.json or str(Path(matrix_engine.run_dir) / "results.json")
    write_summary(variant, results, summary_path)

    stats = matrix_engine.get_statistics()
    logger.info("📊 Final Statistics:")
    logger.info(f"   Points run: {stats['points_run']}")
    logger.info(f"   PASS: {stats['pass']}  BUG: {stats['bug']}")
    logger.info(f"   Total Runtime: {stats['elapsed_seconds']:.2f} seconds")
    if bug_reporter:
        logger.info(f"   Bug reports: {bug_reporter.get_statistics()['total_bugs']}")
    return 1 if setup_failure else 0


if __name__ == "__main__":
    sys.exit(main())
