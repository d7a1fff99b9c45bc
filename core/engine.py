#!/usr/bin/env python3
"""
Matrix Engine - Orchestrator for the delete-verification matrix

This module drives one matrix variant end to end:
- Resets the backend before every scenario point
- Runs the scenario runner as an isolated subprocess per point
- Classifies each run from the final line of its output
- Keeps results in enumeration order and files bug reproductions
"""

import logging
import os
import re
import subprocess
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from config import (
    DISABLE_METRICS_ENV,
    EMULATOR_HOST_ENV,
    MULTIPLEXED_RW_ENV,
    HarnessSettings,
)
from utils.bug_reporter import BugReporter
from utils.db_executor import SpannerExecutor
from utils.emulator import EmulatorController
from .errors import SetupError
from .matrix import MatrixVariant, ScenarioPoint
from .results import ScenarioResult, Verdict

REPO_ROOT = Path(__file__).resolve().parents[1]
RUNNER_MODULE = "scenario_runner"


def ts_utc_compact() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")


class BackendReset:
    """Brings the backend to an empty, bootstrapped state before a point runs."""

    def __init__(self, settings: HarnessSettings,
                 emulator: Optional[EmulatorController] = None,
                 executor_factory: Callable[[], SpannerExecutor] = None):
        self.settings = settings
        self.emulator = emulator or EmulatorController(settings.emulator)
        self.executor_factory = executor_factory or (lambda: SpannerExecutor(settings.database))
        self.logger = logging.getLogger(self.__class__.__name__)

    def reset(self, point: Optional[ScenarioPoint] = None) -> None:
        manage = self.settings.emulator.manage_container
        executor = None
        try:
            if manage:
                self.emulator.restart()
            executor = self.executor_factory()
            executor.bootstrap(reset=not manage)
        except SetupError as e:
            e.point = point
            raise
        except Exception as e:
            raise SetupError(f"backend reset failed: {e}", point) from e
        finally:
            if executor is not None:
                executor.close()

    def teardown(self) -> None:
        if not self.settings.emulator.manage_container:
            return
        try:
            self.emulator.stop()
        except SetupError as e:
            self.logger.warning(f"Emulator teardown failed: {e}")


@dataclass
class Invocation:
    command: List[str]
    env_overrides: Dict[str, Optional[str]]
    output: str
    return_code: Optional[int]


class ScenarioInvoker:
    """Runs the scenario runner for one point in its own process."""

    def __init__(self, settings: HarnessSettings, config_path: Optional[str] = None):
        self.settings = settings
        self.config_path = os.path.abspath(config_path) if config_path else None
        self.logger = logging.getLogger(self.__class__.__name__)

    def command(self, point: ScenarioPoint) -> List[str]:
        python = self.settings.harness.python_executable or sys.executable
        cmd = [python, "-m", RUNNER_MODULE] + point.runner_args() + ["--skip-setup"]
        if self.config_path:
            cmd += ["--config", self.config_path]
        return cmd

    def env_overrides(self, point: ScenarioPoint) -> Dict[str, Optional[str]]:
        """Process-wide configuration for the point; None means the variable is removed."""
        overrides: Dict[str, Optional[str]] = {
            EMULATOR_HOST_ENV: os.environ.get(EMULATOR_HOST_ENV) or self.settings.emulator.endpoint,
            MULTIPLEXED_RW_ENV: point.session_mode.env_value,
            "PYTHONUNBUFFERED": "1",
        }
        if self.settings.harness.disable_builtin_metrics:
            overrides[DISABLE_METRICS_ENV] = "true"
        return overrides

    def environment(self, point: ScenarioPoint) -> Dict[str, str]:
        env = dict(os.environ)
        for name, value in self.env_overrides(point).items():
            if value is None:
                env.pop(name, None)
            else:
                env[name] = value
        return env

    def invoke(self, point: ScenarioPoint) -> Invocation:
        cmd = self.command(point)
        overrides = self.env_overrides(point)
        timeout = self.settings.harness.runner_timeout
        self.logger.debug(f"Invoking: {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=self.environment(point),
                cwd=str(REPO_ROOT),
                timeout=timeout,
                check=False,
                # Ctrl-C on the terminal must not kill the point in flight
                start_new_session=True,
            )
        except subprocess.TimeoutExpired as e:
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode(errors="replace")
            output = partial + f"\nTIMEOUT: scenario runner exceeded {timeout}s\n"
            return Invocation(cmd, overrides, output, None)
        except OSError as e:
            return Invocation(cmd, overrides, f"FAIL: could not launch scenario runner: {e}\n", None)
        return Invocation(cmd, overrides, proc.stdout or "", proc.returncode)


class MatrixEngine:
    """Sequentially resets, runs and classifies every point of a variant."""

    def __init__(self, settings: HarnessSettings,
                 backend: Optional[BackendReset] = None,
                 invoker: Optional[ScenarioInvoker] = None,
                 bug_reporter: Optional[BugReporter] = None):
        self.settings = settings
        self.backend = backend or BackendReset(settings)
        self.invoker = invoker or ScenarioInvoker(settings)
        self.bug_reporter = bug_reporter
        self.logger = logging.getLogger(self.__class__.__name__)

        self.results: List[ScenarioResult] = []
        self.run_dir: Optional[Path] = None
        self.shutdown_requested = False
        self.stats = {
            'points_run': 0,
            'pass': 0,
            'bug': 0,
            'elapsed_seconds': 0.0,
        }

    def run(self, variant: MatrixVariant) -> List[ScenarioResult]:
        """
        Run every point of the variant.

        Raises:
            SetupError: the backend could not be reset; results collected so
                far stay available on ``self.results``.
        """
        self.results = []
        self.run_dir = Path(self.settings.harness.run_dir) / f"{variant.name}_{ts_utc_compact()}"
        self.run_dir.mkdir(parents=True, exist_ok=True)
        start = time.time()

        self.logger.info(f"Running variant '{variant.name}' ({variant.description})")
        try:
            for index, point in enumerate(variant.points(), start=1):
                if self.shutdown_requested:
                    self.logger.warning("Shutdown requested; stopping before the next point")
                    break
                self.logger.info(f"[{index}] Resetting backend for {point.label(variant.axes)}")
                self.backend.reset(point)
                result = self._run_point(index, point, variant)
                self.results.append(result)
        finally:
            self.stats['elapsed_seconds'] = time.time() - start
            self.backend.teardown()

        return self.results

    def _run_point(self, index: int, point: ScenarioPoint, variant: MatrixVariant) -> ScenarioResult:
        invocation = self.invoker.invoke(point)
        log_path = self._save_output(index, point, variant, invocation.output)
        result = ScenarioResult.from_output(
            index, point, invocation.output, invocation.return_code, str(log_path)
        )

        self.stats['points_run'] += 1
        if result.verdict is Verdict.PASS:
            self.stats['pass'] += 1
            self.logger.info(f"[{index}] PASS  {point.label(variant.axes)}")
        else:
            self.stats['bug'] += 1
            self.logger.warning(
                f"[{index}] BUG   {point.label(variant.axes)} -> {result.raw_label or '<no output>'}"
            )
            if self.bug_reporter:
                self.bug_reporter.report_bug(result, variant, invocation.command, invocation.env_overrides)
        return result

    def _save_output(self, index: int, point: ScenarioPoint, variant: MatrixVariant, output: str) -> Path:
        slug = re.sub(r"[^A-Za-z0-9=.-]+", "_", point.label(variant.axes))
        path = self.run_dir / f"{index:03d}_{slug}.log"
        path.write_text(output, encoding="utf-8")
        return path

    def shutdown(self) -> None:
        """Stop after the point currently running."""
        self.shutdown_requested = True

    def get_statistics(self) -> Dict[str, float]:
        return dict(self.stats)
