# This module encapsulates all direct interaction with Cloud Spanner: schema
# bootstrap through the admin API and the handful of transactional primitives
# the scenarios are built from. Every write path the matrix exercises lives
# here so that the scenario runner only decides which path to take.

import concurrent.futures
import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import spanner
from google.cloud.spanner_v1.session import Session

from config import DatabaseConfig, EMULATOR_HOST_ENV, MULTIPLEXED_RW_ENV
from core.errors import SetupError, StepError
from core.matrix import BeginStrategy, SessionMode


class SpannerExecutor:
    """Owns one client connection and the database handle for a single run."""

    def __init__(self, db_config: DatabaseConfig, session_mode: SessionMode = SessionMode.UNSET,
                 database: Any = None, client: Any = None,
                 session_factory: Callable[..., Any] = Session):
        self.db_config = db_config
        self.session_mode = session_mode
        self.session_factory = session_factory
        self.table = db_config.table
        self.logger = logging.getLogger(self.__class__.__name__)
        self.client = client
        self.instance = None
        self.database = database

    @property
    def table_ddl(self) -> str:
        return f"CREATE TABLE {self.table} (PK INT64 NOT NULL, Val INT64) PRIMARY KEY(PK)"

    def connect(self) -> None:
        """Create the client and resolve instance/database handles."""
        if self.database is not None:
            return
        if not os.environ.get(EMULATOR_HOST_ENV):
            raise SetupError(f"{EMULATOR_HOST_ENV} is not set")

        self.client = spanner.Client(project=self.db_config.project_id)
        self.instance = self.client.instance(
            self.db_config.instance_id,
            configuration_name=self.db_config.instance_config_path,
            display_name=self.db_config.instance_id,
            node_count=1,
        )
        self.database = self.instance.database(
            self.db_config.database_id, ddl_statements=[self.table_ddl]
        )
        self.logger.info(
            f"Connected to {self.db_config.database_path} via {os.environ[EMULATOR_HOST_ENV]} "
            f"(multiplexed RW sessions: {os.environ.get(MULTIPLEXED_RW_ENV, 'unset')}, "
            f"statement transactions on {self._session_kind()} sessions)"
        )

    def close(self) -> None:
        """Release the client; sessions checked out by this run go with it."""
        if self.client is not None:
            self.client.close()
            self.logger.debug("Spanner client closed.")
        self.client = None
        self.instance = None
        self.database = None

    # --- Schema bootstrap ---

    def bootstrap(self, reset: bool = False) -> None:
        """
        Create the instance, database and table every scenario runs against.

        Args:
            reset: drop an existing database first; used when the backend is
                reused instead of restarted between points.
        """
        self.connect()
        timeout = self.db_config.operation_timeout
        try:
            if not reset or not self.instance.exists():
                self.logger.info(f"Creating instance {self.db_config.instance_path}")
                self.instance.create().result(timeout)

            if reset and self.database.exists():
                self.logger.info(f"Dropping database {self.db_config.database_path}")
                self.database.drop()

            self.logger.info(f"Creating database {self.db_config.database_path}: {self.table_ddl}")
            self.database.create().result(timeout)
        except (GoogleAPICallError, TimeoutError, concurrent.futures.TimeoutError) as e:
            raise SetupError(f"setup: {e}") from e

    # --- Write paths ---

    def run_declarative(self, work: Callable[[Any], None], begin: BeginStrategy = BeginStrategy.DEFAULT) -> None:
        """Managed read-write transaction: commits on success, rolls back and retries on abort."""
        def unit_of_work(transaction):
            if begin is BeginStrategy.EXPLICIT:
                transaction.begin()
            work(transaction)

        self.database.run_in_transaction(unit_of_work)

    @contextmanager
    def statement_transaction(self, begin: BeginStrategy = BeginStrategy.DEFAULT) -> Iterator[Any]:
        """
        Caller-driven transaction on a dedicated session.

        The body's writes are committed when the block exits cleanly; any
        exception rolls the transaction back before it propagates.
        """
        session = self.new_session()
        session.create()
        try:
            transaction = session.transaction()
            if begin is BeginStrategy.EXPLICIT:
                try:
                    transaction.begin()
                except Exception as e:
                    raise StepError("begin", e) from e
            try:
                yield transaction
            except Exception:
                self._rollback(transaction)
                raise
            try:
                transaction.commit()
            except Exception as e:
                raise StepError("commit", e) from e
        finally:
            self._release(session)

    def new_session(self):
        """
        Session for a caller-driven transaction.

        The client only consults the multiplexing toggle for sessions it
        checks out itself, so the point's session mode is applied here
        explicitly. UNSET defers to ``Database.session()``.
        """
        multiplexed = self.session_mode.multiplexed
        if multiplexed is None:
            return self.database.session()
        return self.session_factory(self.database, is_multiplexed=multiplexed)

    def _session_kind(self) -> str:
        multiplexed = self.session_mode.multiplexed
        if multiplexed is None:
            return "default"
        return "multiplexed" if multiplexed else "regular"

    def _release(self, session) -> None:
        # Multiplexed sessions are long-lived and cannot be deleted
        if getattr(session, "is_multiplexed", False):
            return
        session.delete()

    def _rollback(self, transaction) -> None:
        try:
            transaction.rollback()
        except Exception as e:
            self.logger.warning(f"Rollback failed: {e}")

    def apply_mutations(self, deletes: Sequence[int]) -> None:
        """Single-shot commit of delete-by-key mutations."""
        with self.database.batch() as batch:
            batch.delete(self.table, self.keyset(deletes))

    def execute_statement(self, transaction, sql: str) -> List[Any]:
        """Run SQL through the query path and drain the result stream."""
        self.logger.debug(f"Executing: {sql}")
        try:
            return list(transaction.execute_sql(sql))
        except Exception as e:
            raise StepError("query", e) from e

    def buffer_delete(self, transaction, key: int) -> None:
        try:
            transaction.delete(self.table, self.keyset([key]))
        except Exception as e:
            raise StepError("buffer write", e) from e

    @staticmethod
    def keyset(keys: Sequence[int]):
        return spanner.KeySet(keys=[[key] for key in keys])

    # --- Reads ---

    def read_row(self, key: int, columns: Sequence[str] = ("PK",)) -> Optional[List[Any]]:
        """Strong point read; returns None when the key is not found."""
        with self.database.snapshot() as snapshot:
            rows = list(snapshot.read(self.table, list(columns), self.keyset([key])))
        return rows[0] if rows else None
