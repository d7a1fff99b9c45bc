import json

import main
from config import EMULATOR_HOST_ENV, MULTIPLEXED_RW_ENV
from core.engine import Invocation, MatrixEngine


class NoopBackend:
    def reset(self, point=None):
        pass

    def teardown(self):
        pass


class PassingInvoker:
    def invoke(self, point):
        return Invocation(["runner"], {MULTIPLEXED_RW_ENV: point.session_mode.env_value}, "PASS\n", 0)


def _offline_engine(monkeypatch):
    monkeypatch.setenv(EMULATOR_HOST_ENV, "localhost:9010")
    monkeypatch.setattr(main.signal, "signal", lambda signum, handler: None)
    monkeypatch.setattr(main, "MatrixEngine",
                        lambda settings, invoker, bug_reporter: MatrixEngine(
                            settings, backend=NoopBackend(), invoker=PassingInvoker(),
                            bug_reporter=bug_reporter))


def test_list_prints_points_without_backend(capsys):
    assert main.main(["--variant", "mixed-write", "--list"]) == 0

    out = capsys.readouterr().out
    assert "Variant 'mixed-write': 9 points (9 candidates)" in out
    rows = [line for line in out.splitlines() if line[:1].isdigit()]
    assert len(rows) == 9
    assert rows[0].split() == ["1", "enabled", "default"]


def test_list_delete_begin_counts(capsys):
    assert main.main(["--variant", "delete-begin", "--list"]) == 0
    assert "34 points (36 candidates)" in capsys.readouterr().out


def test_init_config_then_validate(tmp_path, capsys):
    path = tmp_path / "harness.yaml"
    assert main.main(["--init-config", str(path)]) == 0
    assert path.exists()
    assert main.main(["-c", str(path), "--validate-only"]) == 0


def test_invalid_config_is_rejected(tmp_path):
    path = tmp_path / "harness.yaml"
    path.write_text("harness:\n  runner_timeout: -1\n")
    assert main.main(["-c", str(path), "--validate-only"]) == 1


def test_missing_config_is_rejected(tmp_path, capsys):
    assert main.main(["-c", str(tmp_path / "absent.yaml")]) == 1
    assert "Failed to load configuration" in capsys.readouterr().out


def test_json_summary_written_without_bug_reporting(tmp_path, monkeypatch):
    _offline_engine(monkeypatch)
    path = tmp_path / "harness.yaml"
    path.write_text(
        f"harness:\n  run_dir: {tmp_path / 'runs'}\n"
        "bug_reporting:\n  enabled: false\n"
        "logging:\n  log_file: ''\n"
    )
    out = tmp_path / "summary.json"

    assert main.main(["-c", str(path), "--variant", "mixed-write", "--json", str(out)]) == 0

    with open(out, encoding='utf-8') as f:
        summary = json.load(f)
    assert summary['variant'] == 'mixed-write'
    assert summary['totals'] == {'points': 9, 'pass': 9, 'bug': 0}


def test_summary_defaults_to_run_dir(tmp_path, monkeypatch):
    _offline_engine(monkeypatch)
    path = tmp_path / "harness.yaml"
    path.write_text(
        f"harness:\n  run_dir: {tmp_path / 'runs'}\n"
        "bug_reporting:\n  enabled: false\n"
        "logging:\n  log_file: ''\n"
    )

    assert main.main(["-c", str(path), "--variant", "mixed-write"]) == 0

    (run_dir,) = (tmp_path / "runs").iterdir()
    assert (run_dir / "results.json").exists()
