#!/usr/bin/env python3
"""
Scenario Runner - one insert/delete/verify cycle against the emulator

The last line this process prints is exactly ``PASS`` when the deleted row is
confirmed gone; any other last line is a failure. Session multiplexing is
read by the client library from GOOGLE_CLOUD_SPANNER_MULTIPLEXED_SESSIONS_FOR_RW
in the environment, so the caller sets it per process.

Usage:
  SPANNER_EMULATOR_HOST=localhost:9010 python3 -m scenario_runner \\
      --insert rw --delete stmt-mutation --begin explicit
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import yaml

from config import EMULATOR_HOST_ENV, HarnessConfig, HarnessSettings
from core.errors import SetupError
from core.matrix import BeginStrategy, DeleteMethod, InsertMethod, ScenarioPoint, SessionMode
from core.scenario import OutcomeStatus, ScenarioOutcome, ScenarioRunner
from utils.db_executor import SpannerExecutor
from utils.log_setup import setup_logging

logger = logging.getLogger("scenario_runner")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run one insert/delete/verify cycle and print PASS on success"
    )
    parser.add_argument('-c', '--config', help='Configuration file path (optional)')
    parser.add_argument(
        '--insert', default=InsertMethod.READ_WRITE.value,
        choices=[m.value for m in InsertMethod],
        help='INSERT method (default: rw)'
    )
    parser.add_argument(
        '--delete', default=DeleteMethod.STATEMENT_MUTATION.value,
        choices=[m.value for m in DeleteMethod],
        help='DELETE method (default: stmt-mutation)'
    )
    parser.add_argument(
        '--begin', default=BeginStrategy.DEFAULT.value,
        choices=[m.value for m in BeginStrategy],
        help='BeginTransaction strategy (default: default)'
    )
    parser.add_argument('--skip-setup', action='store_true', help='Skip instance/database creation')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def point_from_args(args: argparse.Namespace) -> ScenarioPoint:
    return ScenarioPoint(
        session_mode=SessionMode.from_env(os.environ),
        insert_method=InsertMethod.parse(args.insert),
        delete_method=DeleteMethod.parse(args.delete),
        begin_strategy=BeginStrategy.parse(args.begin),
    )


def run(args: argparse.Namespace, settings: HarnessSettings,
        executor: Optional[SpannerExecutor] = None) -> ScenarioOutcome:
    """Connect, optionally bootstrap, run the point, always release the client."""
    try:
        point = point_from_args(args)
    except ValueError as e:
        return ScenarioOutcome(OutcomeStatus.SETUP_FAILURE, f"config: {e}")
    executor = executor or SpannerExecutor(settings.database, session_mode=point.session_mode)
    logger.info(f"Scenario: {point.label()}")

    try:
        executor.connect()
        if not args.skip_setup:
            executor.bootstrap()
        return ScenarioRunner(executor).run(point)
    except SetupError as e:
        return ScenarioOutcome(OutcomeStatus.SETUP_FAILURE, str(e))
    finally:
        executor.close()


def emit(outcome: ScenarioOutcome) -> int:
    """Print the verdict as the final line of the merged output stream."""
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stderr.flush()
    print(outcome.verdict_line, flush=True)
    return outcome.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = HarnessConfig(args.config).settings
    except (OSError, ValueError, yaml.YAMLError) as e:
        return emit(ScenarioOutcome(OutcomeStatus.SETUP_FAILURE, f"config: {e}"))

    # Logs go to stderr so the verdict on stdout stays last
    setup_logging(settings.logging, debug=args.debug, stream=sys.stderr, log_file="")

    if not os.environ.get(EMULATOR_HOST_ENV):
        return emit(ScenarioOutcome(OutcomeStatus.SETUP_FAILURE, f"{EMULATOR_HOST_ENV} is not set"))

    return emit(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
