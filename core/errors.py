"""Exception taxonomy shared by the orchestrator and the scenario runner."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from core.matrix import ScenarioPoint


class HarnessError(Exception):
    """Base class for all harness failures."""


class SetupError(HarnessError):
    """The environment could not be prepared; aborts the whole matrix run."""

    def __init__(self, message: str, point: Optional['ScenarioPoint'] = None):
        super().__init__(message)
        self.point = point


class StepError(HarnessError):
    """A transactional step (insert/delete/read/scan) failed."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class InconclusiveReadError(StepError):
    """The verification read failed with something other than "not found"."""


class DataLossError(HarnessError):
    """A delete reported success but the row is still visible."""

    def __init__(self, table: str, key: int):
        super().__init__(f"BUG: row PK={key} still exists in {table} after DELETE succeeded without error")
        self.table = table
        self.key = key
