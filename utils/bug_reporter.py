import json
import logging
import os
import shlex
import uuid
from datetime import datetime
from typing import Dict, Any, Optional, Sequence

from core.matrix import MatrixVariant
from core.results import FailureKind, ScenarioResult

"""
Bug Reporter - Executable Reproduction System

This module records every non-PASS scenario point:
- Executable shell reproduction scripts (environment + runner command)
- Structured JSON metadata per bug
"""

SEVERITY_BY_KIND = {
    FailureKind.DATA_LOSS: 'CRITICAL',
    FailureKind.INCONCLUSIVE_READ: 'MEDIUM',
    FailureKind.STEP_FAILURE: 'MEDIUM',
    FailureKind.NO_OUTPUT: 'LOW',
}


class BugReporter:
    """Writes reproduction material for BUG classifications."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize the bug reporter with organized directory structure."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        self._create_directories()

        self.bug_count = 0
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

    def _create_directories(self):
        """Create the base bug reporting directory and its subdirectories."""
        bug_config = self.config.get('bug_reporting', {})
        self.base_reproduction_dir = bug_config.get('reproduction_dir', 'bug_reproductions')

        self.bug_dirs = {
            'scripts': os.path.join(self.base_reproduction_dir, 'scripts'),
            'metadata': os.path.join(self.base_reproduction_dir, 'metadata'),
        }

        for dir_path in self.bug_dirs.values():
            os.makedirs(dir_path, exist_ok=True)

    def _generate_bug_filename(self, variant_name: str, index: int) -> str:
        """Generate a unique bug filename."""
        timestamp_str = datetime.now().strftime('%Y%m%d_%H%M%S')
        unique_id = str(uuid.uuid4())[:8]
        return f"{variant_name}_{index:03d}_{timestamp_str}_{unique_id}"

    def _create_reproduction_script(self, result: ScenarioResult, bug_id: str,
                                     command: Sequence[str], env: Dict[str, Optional[str]]) -> str:
        """
        Create an executable shell script that replays one scenario point.

        Args:
            result: The classified scenario result
            bug_id: Unique bug identifier
            command: Scenario runner command line
            env: Environment overrides; None values are unset

        Returns:
            Script content
        """
        env_lines = []
        for name, value in sorted(env.items()):
            if value is None:
                env_lines.append(f"unset {name}")
            else:
                env_lines.append(f"export {name}={shlex.quote(value)}")

        return "\n".join([
            "#!/usr/bin/env bash",
            "# " + "=" * 70,
            f"# Bug ID: {bug_id}",
            f"# Point: {result.point.label()}",
            f"# Final line: {result.raw_label or '<empty>'}",
            f"# Exit code: {result.return_code}",
            "# Requires a freshly started emulator with the schema bootstrapped;",
            "# drop --skip-setup below to let the runner create it.",
            "# " + "=" * 70,
            "set -euo pipefail",
            "",
            *env_lines,
            "",
            " ".join(shlex.quote(part) for part in command),
            "",
        ])

    def _determine_severity(self, result: ScenarioResult) -> str:
        """Determine bug severity from the failure kind."""
        kind = result.failure_kind
        return SEVERITY_BY_KIND.get(kind, 'MEDIUM')

    def _create_metadata_json(self, result: ScenarioResult, variant: MatrixVariant, bug_id: str) -> Dict[str, Any]:
        kind = result.failure_kind
        return {
            'bug_id': bug_id,
            'session_id': self.session_id,
            'detected_time': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'variant': variant.name,
            'variant_verified': variant.verified,
            'index': result.index,
            'point': result.point.as_dict(),
            'raw_label': result.raw_label,
            'return_code': result.return_code,
            'failure_kind': kind.value if kind else None,
            'severity': self._determine_severity(result),
            'log_path': result.log_path,
        }

    def report_bug(self, result: ScenarioResult, variant: MatrixVariant,
                   command: Sequence[str], env: Dict[str, Optional[str]]) -> str:
        """
        Report a BUG classification with reproduction material.

        Returns:
            Bug ID for tracking, or "error" when the files could not be written
        """
        bug_id = self._generate_bug_filename(variant.name, result.index)
        script_path = os.path.join(self.bug_dirs['scripts'], f"{bug_id}.sh")
        metadata_path = os.path.join(self.bug_dirs['metadata'], f"{bug_id}.json")

        try:
            with open(script_path, 'w', encoding='utf-8') as f:
                f.write(self._create_reproduction_script(result, bug_id, command, env))
            os.chmod(script_path, 0o755)

            with open(metadata_path, 'w', encoding='utf-8') as f:
                json.dump(self._create_metadata_json(result, variant, bug_id), f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to create bug report: {e}")
            return "error"

        self.bug_count += 1
        self.logger.info(f"🐛 Bug report created: {bug_id}")
        self.logger.info(f"   Reproduction: {script_path}")
        self.logger.info(f"   Metadata: {metadata_path}")
        return bug_id

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'total_bugs': self.bug_count,
            'reproduction_directories': self.bug_dirs,
        }

