"""
In-memory stand-ins for the slice of the Cloud Spanner Database API the
harness touches: run_in_transaction, batch, snapshot and session.

``FakeDatabase(lose_explicit_mutation_deletes=True)`` reproduces the defect
the harness hunts: delete mutations buffered in an explicitly begun
statement-based transaction on a multiplexed session are acknowledged by
commit but never applied.
"""

import re
from contextlib import contextmanager
from typing import Dict, List, Optional

from config import DatabaseConfig
from core.matrix import SessionMode
from utils.db_executor import SpannerExecutor

INSERT_RE = re.compile(r"INSERT INTO (\w+) \(PK, Val\) VALUES \((\d+), (\d+)\)")
DELETE_RE = re.compile(r"DELETE FROM (\w+) WHERE PK = (\d+)")
UPDATE_RE = re.compile(r"UPDATE (\w+) SET Val = (\d+) WHERE PK = (\d+)")


class FakeRPCError(Exception):
    pass


def _keys(keyset) -> List[int]:
    return [key[0] for key in keyset.keys]


class FakeTransaction:
    def __init__(self, db: "FakeDatabase", statement_based: bool, multiplexed: bool = False):
        self._db = db
        self.statement_based = statement_based
        self.multiplexed = multiplexed
        self.begun = False
        self.committed = False
        self.rolled_back = False
        self._staged: Optional[Dict[int, int]] = None
        self._deletes: List[int] = []

    def begin(self):
        if self.begun:
            raise ValueError("Transaction already begun")
        self._db.record("begin")
        self._db.maybe_fail("begin")
        self.begun = True

    def _apply_dml(self, sql: str) -> int:
        if self._staged is None:
            self._staged = dict(self._db.rows)
        m = INSERT_RE.fullmatch(sql)
        if m:
            key = int(m.group(2))
            if key in self._staged:
                raise FakeRPCError(f"ALREADY_EXISTS: row {key}")
            self._staged[key] = int(m.group(3))
            return 1
        m = DELETE_RE.fullmatch(sql)
        if m:
            return 1 if self._staged.pop(int(m.group(2)), None) is not None else 0
        m = UPDATE_RE.fullmatch(sql)
        if m:
            key = int(m.group(3))
            if key in self._staged:
                self._staged[key] = int(m.group(2))
                return 1
            return 0
        raise FakeRPCError(f"INVALID_ARGUMENT: cannot parse {sql!r}")

    def execute_sql(self, sql):
        self._db.record("execute_sql")
        self._db.maybe_fail("execute_sql")
        self._apply_dml(sql)
        return iter([])

    def execute_update(self, sql):
        self._db.record("execute_update")
        self._db.maybe_fail("execute_update")
        return self._apply_dml(sql)

    def delete(self, table, keyset):
        self._db.record("buffer_delete")
        self._deletes.extend(_keys(keyset))

    def commit(self):
        self._db.record("commit")
        self._db.maybe_fail("commit")
        if self._staged is not None:
            self._db.rows = self._staged
        if not self._db.loses_deletes(self):
            for key in self._deletes:
                self._db.rows.pop(key, None)
        self.committed = True

    def rollback(self):
        self._db.record("rollback")
        self.rolled_back = True
        self._staged = None
        self._deletes = []


class FakeSession:
    def __init__(self, db: "FakeDatabase", is_multiplexed: bool = False):
        self._db = db
        self.is_multiplexed = is_multiplexed
        self.created = False
        self.deleted = False

    def create(self):
        self._db.record("session_create")
        self._db.sessions.append(self)
        self.created = True

    def delete(self):
        self._db.record("session_delete")
        self.deleted = True

    def transaction(self):
        return FakeTransaction(self._db, statement_based=True, multiplexed=self.is_multiplexed)


class FakeBatch:
    def __init__(self, db: "FakeDatabase"):
        self._db = db
        self._deletes: List[int] = []

    def delete(self, table, keyset):
        self._deletes.extend(_keys(keyset))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self._db.record("apply")
            self._db.maybe_fail("apply")
            for key in self._deletes:
                self._db.rows.pop(key, None)
        return False


class FakeSnapshot:
    def __init__(self, db: "FakeDatabase"):
        self._db = db

    def read(self, table, columns, keyset):
        self._db.record("read")
        self._db.maybe_fail("read")
        return iter([[key] for key in _keys(keyset) if key in self._db.rows])


class FakeDatabase:
    def __init__(self, lose_explicit_mutation_deletes: bool = False):
        self.rows: Dict[int, int] = {}
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.sessions: List[FakeSession] = []
        self.lose_explicit_mutation_deletes = lose_explicit_mutation_deletes

    def record(self, call: str) -> None:
        self.calls.append(call)

    def maybe_fail(self, call: str) -> None:
        if call in self.failures:
            raise self.failures[call]

    def loses_deletes(self, txn: FakeTransaction) -> bool:
        return (self.lose_explicit_mutation_deletes and txn.multiplexed
                and txn.statement_based and txn.begun)

    def run_in_transaction(self, func, *args, **kwargs):
        txn = FakeTransaction(self, statement_based=False)
        try:
            result = func(txn, *args, **kwargs)
        except Exception:
            txn.rollback()
            raise
        txn.commit()
        return result

    def session(self):
        return FakeSession(self)

    def batch(self):
        return FakeBatch(self)

    @contextmanager
    def snapshot(self):
        yield FakeSnapshot(self)


def fake_executor(db: FakeDatabase, session_mode: SessionMode = SessionMode.UNSET) -> SpannerExecutor:
    return SpannerExecutor(DatabaseConfig(), session_mode=session_mode,
                           database=db, session_factory=FakeSession)
