from __future__ import annotations

from pathlib import Path

import pytest

from gitable import cli
from gitable.errors import RemoteFetchError
from gitable.models import RunSummary, TableRow

CREDS = [
    "--no-dotenv",
    "--github-token",
    "tkn",
    "--airtable-apikey",
    "key",
    "--airtable-baseid",
    "appABCDEFGHIJKLMN",
    "--airtable-table",
    "Issues",
]


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NO_COLOR", "1")


class _StubReconciler:
    def __init__(self, summary: RunSummary | Exception) -> None:
        self.summary = summary

    def run(self) -> RunSummary:
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert "gitable version 0.2.0" in capsys.readouterr().out


def test_command_is_required(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


def test_missing_token_is_usage_error(capsys):
    assert cli.main(["sync", "--once", "--no-dotenv"]) == 2
    err = capsys.readouterr().err
    assert "GitHub token cannot be empty." in err
    assert "usage:" in err


def test_bad_interval_is_usage_error(capsys):
    assert cli.main(["sync", *CREDS, "--interval", "soon"]) == 2
    assert "as duration failed" in capsys.readouterr().err


def test_sync_once_prints_summary(monkeypatch: pytest.MonkeyPatch, capsys):
    seen = {}

    def fake_build(cfg):
        seen["cfg"] = cfg
        return _StubReconciler(RunSummary(updated=3, created=1))

    monkeypatch.setattr(cli, "build_reconciler", fake_build)

    assert cli.main(["sync", *CREDS, "--once", "--autofill", "--orgs", "acme", "--orgs", "widgets"]) == 0

    cfg = seen["cfg"]
    assert cfg.autofill is True
    assert cfg.orgs == ["acme", "widgets"]
    out = capsys.readouterr().out
    assert "Sync Summary" in out
    assert "Updated" in out
    assert "sync: completed" in out


def test_sync_once_failure_exit_code(monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setattr(cli, "build_reconciler", lambda cfg: _StubReconciler(RemoteFetchError("boom", status=500)))
    assert cli.main(["sync", *CREDS, "--once"]) == 1
    assert "sync: failed" in capsys.readouterr().out


def test_sync_without_once_runs_daemon(monkeypatch: pytest.MonkeyPatch):
    calls = []
    monkeypatch.setattr(cli, "build_reconciler", lambda cfg: "reconciler")
    monkeypatch.setattr(cli, "run_daemon", lambda cfg, rec: calls.append((cfg.interval, rec)) or 0)

    assert cli.main(["sync", *CREDS, "--interval", "10s", "--keep-going"]) == 0
    assert calls == [("10s", "reconciler")]


def test_debug_flag_sets_debug_level(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    def fake_build(cfg):
        seen["level"] = cfg.logging_level
        return _StubReconciler(RunSummary())

    monkeypatch.setattr(cli, "build_reconciler", fake_build)
    cli.main(["sync", *CREDS, "--once", "-d"])
    assert seen["level"] == "DEBUG"


class _DoctorGitHub:
    def __init__(self, *args, **kwargs) -> None:
        pass

    def get_current_user(self) -> str:
        return "octocat"


class _DoctorStore:
    def __init__(self, *args, **kwargs) -> None:
        pass

    def list_rows(self) -> list[TableRow]:
        return [TableRow("recAAAAAAAAAAAAAA")]


def test_doctor_reports_success(monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setattr(cli, "GitHubRestClient", _DoctorGitHub)
    monkeypatch.setattr(cli, "AirtableClient", _DoctorStore)

    assert cli.main(["doctor", *CREDS]) == 0
    out = capsys.readouterr().out
    assert "authenticates as octocat" in out
    assert "Airtable table Issues readable (1 rows)" in out


def test_doctor_reports_failures(monkeypatch: pytest.MonkeyPatch, capsys):
    class _BadGitHub(_DoctorGitHub):
        def get_current_user(self) -> str:
            raise RemoteFetchError("GitHub API GET /user failed with 401", status=401)

    monkeypatch.setattr(cli, "GitHubRestClient", _BadGitHub)
    monkeypatch.setattr(cli, "AirtableClient", _DoctorStore)

    assert cli.main(["doctor", *CREDS]) == 1
    assert "GitHub token check failed" in capsys.readouterr().err
