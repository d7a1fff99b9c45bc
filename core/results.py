"""Classification of scenario runner output into PASS/BUG results."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .matrix import ScenarioPoint

PASS_LINE = "PASS"


class Verdict(Enum):
    PASS = "PASS"
    BUG = "BUG"


class FailureKind(Enum):
    DATA_LOSS = "data_loss"
    INCONCLUSIVE_READ = "inconclusive_read"
    STEP_FAILURE = "step_failure"
    NO_OUTPUT = "no_output"


def last_line(output: str) -> str:
    """Final line of a captured output stream, as ``tail -1`` would print it."""
    lines = output.splitlines()
    return lines[-1] if lines else ""


def classify(line: str) -> Verdict:
    """PASS if and only if the line is exactly ``PASS``."""
    return Verdict.PASS if line == PASS_LINE else Verdict.BUG


def failure_kind(line: str) -> Optional[FailureKind]:
    """Best-effort diagnosis of a non-PASS line; None for PASS."""
    if line == PASS_LINE:
        return None
    if not line.strip():
        return FailureKind.NO_OUTPUT
    message = line[len("FAIL: "):] if line.startswith("FAIL: ") else line
    if message.startswith("BUG:"):
        return FailureKind.DATA_LOSS
    if message.startswith(("read:", "scan:")):
        return FailureKind.INCONCLUSIVE_READ
    return FailureKind.STEP_FAILURE


@dataclass(frozen=True)
class ScenarioResult:
    index: int
    point: ScenarioPoint
    verdict: Verdict
    raw_label: str
    return_code: Optional[int] = None
    log_path: Optional[str] = None

    @classmethod
    def from_output(cls, index: int, point: ScenarioPoint, output: str,
                    return_code: Optional[int] = None, log_path: Optional[str] = None) -> "ScenarioResult":
        line = last_line(output)
        return cls(index, point, classify(line), line, return_code, log_path)

    @property
    def failure_kind(self) -> Optional[FailureKind]:
        if self.verdict is Verdict.PASS:
            return None
        return failure_kind(self.raw_label)
