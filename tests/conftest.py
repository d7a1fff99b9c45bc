import logging

import pytest

from config import MULTIPLEXED_RW_ENV, HarnessSettings
from fakes import FakeDatabase, fake_executor


@pytest.fixture(autouse=True)
def clean_session_env(monkeypatch):
    monkeypatch.delenv(MULTIPLEXED_RW_ENV, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def defective_db():
    return FakeDatabase(lose_explicit_mutation_deletes=True)


@pytest.fixture
def executor(fake_db):
    return fake_executor(fake_db)


@pytest.fixture
def settings(tmp_path):
    settings = HarnessSettings()
    settings.harness.run_dir = str(tmp_path / "runs")
    settings.bug_reporting.reproduction_dir = str(tmp_path / "bugs")
    settings.logging.log_file = ""
    return settings
