#!/usr/bin/env python3
"""
Scenario Runner - one insert/delete/verify cycle for a single scenario point

The cycle:
1. INSERT row (PK=1, Val=1) with the selected insert method
2. DELETE the same row with the selected delete method and begin strategy
3. Verify with a strong point read that the row is gone

Every step blocks until its RPC result is known before the next one starts.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from oracles.base_oracle import BaseOracle
from oracles.deletion_oracle import DeletionDurabilityOracle
from utils.db_executor import SpannerExecutor
from .errors import DataLossError, InconclusiveReadError, SetupError, StepError
from .matrix import BeginStrategy, DeleteMethod, InsertMethod, ScenarioPoint

ROW_KEY = 1
ROW_VALUE = 1


class OutcomeStatus(Enum):
    PASS = "PASS"
    STEP_FAILURE = "STEP_FAILURE"
    DATA_LOSS = "DATA_LOSS"
    INCONCLUSIVE = "INCONCLUSIVE"
    SETUP_FAILURE = "SETUP_FAILURE"


EXIT_CODES: Dict[OutcomeStatus, int] = {
    OutcomeStatus.PASS: 0,
    OutcomeStatus.STEP_FAILURE: 1,
    OutcomeStatus.DATA_LOSS: 2,
    OutcomeStatus.INCONCLUSIVE: 3,
    OutcomeStatus.SETUP_FAILURE: 4,
}


@dataclass(frozen=True)
class ScenarioOutcome:
    status: OutcomeStatus
    message: str = ""

    @property
    def passed(self) -> bool:
        return self.status is OutcomeStatus.PASS

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    @property
    def verdict_line(self) -> str:
        """Final output line of a runner process; exactly ``PASS`` on success."""
        return "PASS" if self.passed else f"FAIL: {self.message}"


class ScenarioRunner:
    """Drives the three steps of a scenario against one executor."""

    def __init__(self, executor: SpannerExecutor, oracle: Optional[BaseOracle] = None):
        self.executor = executor
        self.oracle = oracle or DeletionDurabilityOracle()
        self.oracle.set_db_executor(executor)
        self.logger = logging.getLogger(self.__class__.__name__)

        self._inserts: Dict[InsertMethod, Callable[[BeginStrategy], None]] = {
            InsertMethod.READ_WRITE: self._insert_read_write,
            InsertMethod.STATEMENT: self._insert_statement,
        }
        self._deletes: Dict[DeleteMethod, Callable[[BeginStrategy], None]] = {
            DeleteMethod.STATEMENT_MUTATION: self._delete_statement_mutation,
            DeleteMethod.READ_WRITE_MUTATION: self._delete_read_write_mutation,
            DeleteMethod.APPLY: self._delete_apply,
            DeleteMethod.STATEMENT_DML: self._delete_statement_dml,
            DeleteMethod.STATEMENT_MIXED: self._delete_statement_mixed,
        }

    def run(self, point: ScenarioPoint) -> ScenarioOutcome:
        """Execute the point and fold every failure into a structured outcome."""
        try:
            self.execute(point)
        except DataLossError as e:
            self.logger.error(str(e))
            return ScenarioOutcome(OutcomeStatus.DATA_LOSS, str(e))
        except InconclusiveReadError as e:
            self.logger.error(f"Verification read inconclusive: {e}")
            return ScenarioOutcome(OutcomeStatus.INCONCLUSIVE, str(e))
        except SetupError as e:
            self.logger.error(f"Setup failed: {e}")
            return ScenarioOutcome(OutcomeStatus.SETUP_FAILURE, str(e))
        except StepError as e:
            self.logger.error(f"Step failed: {e}")
            return ScenarioOutcome(OutcomeStatus.STEP_FAILURE, str(e))
        return ScenarioOutcome(OutcomeStatus.PASS)

    def execute(self, point: ScenarioPoint) -> None:
        """Run insert, delete and verify; raises on the first failing step."""
        self.insert(point.insert_method, point.begin_strategy)
        self.delete(point.delete_method, point.begin_strategy)
        self.verify()

    def insert(self, method: InsertMethod, begin: BeginStrategy = BeginStrategy.DEFAULT) -> None:
        self.logger.info(f"INSERT: {method.value} (begin={begin.value})")
        try:
            self._inserts[method](begin)
        except Exception as e:
            raise StepError("insert", e) from e

    def delete(self, method: DeleteMethod, begin: BeginStrategy = BeginStrategy.DEFAULT) -> None:
        if method.accepts_begin_strategy:
            self.logger.info(f"DELETE: {method.value} (begin={begin.value})")
        else:
            self.logger.info(f"DELETE: {method.value} (begin option N/A)")
        try:
            self._deletes[method](begin)
        except Exception as e:
            raise StepError("delete", e) from e

    def verify(self) -> None:
        self.logger.info(f"VERIFY: point read of PK={ROW_KEY} ({self.oracle.get_oracle_name()})")
        bug = self.oracle.check_for_bugs(ROW_KEY)
        if bug is not None:
            raise DataLossError(bug['table'], bug['key'])

    # --- Insert methods ---

    def _insert_sql(self) -> str:
        return f"INSERT INTO {self.executor.table} (PK, Val) VALUES ({ROW_KEY}, {ROW_VALUE})"

    def _insert_read_write(self, begin: BeginStrategy) -> None:
        sql = self._insert_sql()
        self.executor.run_declarative(lambda txn: txn.execute_update(sql), begin)

    def _insert_statement(self, begin: BeginStrategy) -> None:
        with self.executor.statement_transaction(begin) as txn:
            self.executor.execute_statement(txn, self._insert_sql())

    # --- Delete methods ---

    def _delete_statement_mutation(self, begin: BeginStrategy) -> None:
        with self.executor.statement_transaction(begin) as txn:
            self.executor.buffer_delete(txn, ROW_KEY)

    def _delete_read_write_mutation(self, begin: BeginStrategy) -> None:
        self.executor.run_declarative(lambda txn: self.executor.buffer_delete(txn, ROW_KEY), begin)

    def _delete_apply(self, begin: BeginStrategy) -> None:
        self.executor.apply_mutations([ROW_KEY])

    def _delete_statement_dml(self, begin: BeginStrategy) -> None:
        with self.executor.statement_transaction(begin) as txn:
            self.executor.execute_statement(
                txn, f"DELETE FROM {self.executor.table} WHERE PK = {ROW_KEY}"
            )

    def _delete_statement_mixed(self, begin: BeginStrategy) -> None:
        with self.executor.statement_transaction(begin) as txn:
            self.executor.execute_statement(
                txn, f"UPDATE {self.executor.table} SET Val = {ROW_VALUE + 1} WHERE PK = {ROW_KEY}"
            )
            self.executor.buffer_delete(txn, ROW_KEY)
