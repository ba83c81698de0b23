"""
Integration tests for the wifigate CLI.

The CLI runs on the system clock, so the policies here are 24x7 to keep
decisions independent of the time of day.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from wifigate import __version__
from wifigate.cli import app
from wifigate.schema import Policy
from wifigate.store import AccessDB

runner = CliRunner()

CLI_YAML = """
categories:
  STREAMING: [netflix]
policies:
  - role_id: Student
    bandwidth_down_mbps: 10
    bandwidth_up_mbps: 2
    daily_quota_bytes: 1000
    session_time_limit_minutes: 600
    access_24x7: true
    blocked_categories: [P2P, STREAMING]
  - role_id: Admin
    bandwidth_down_mbps: 100
    bandwidth_up_mbps: 100
principals:
  - user_id: u-1
    role_id: Student
  - user_id: u-admin
    role_id: Admin
"""


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
    """Keep the caller's WIFIGATE_* settings and .env out of the tests."""
    for name in ("WIFIGATE_DB_PATH", "WIFIGATE_CONFIG_PATH", "WIFIGATE_TIMEZONE", "WIFIGATE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(temp_dir)


@pytest.fixture
def config_path(temp_dir: Path) -> Path:
    path = temp_dir / "access.yaml"
    path.write_text(CLI_YAML)
    return path


@pytest.fixture
def db_path(temp_dir: Path, config_path: Path) -> str:
    """A database initialized from the CLI config."""
    path = str(temp_dir / "cli.db")
    result = runner.invoke(app, ["load", str(config_path), "--db", path])
    assert result.exit_code == 0, result.output
    return path


def login(db_path: str, user_id: str = "u-1") -> str:
    result = runner.invoke(app, ["login", user_id, "--ip", "10.0.0.5", "--db", db_path, "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["session_id"]


# =============================================================================
# Setup Commands
# =============================================================================


class TestSetup:
    """Tests for version, init and load."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "evaluate" in result.output

    def test_init_with_config(self, temp_dir: Path, config_path: Path) -> None:
        path = str(temp_dir / "init.db")
        result = runner.invoke(app, ["init", "--db", path, "--config", str(config_path)])
        assert result.exit_code == 0, result.output
        assert "Loaded 2 policies and 2 principals" in result.stdout
        assert Path(path).exists()

    def test_load(self, db_path: str) -> None:
        result = runner.invoke(app, ["policy", "list", "--db", db_path, "--json"])
        assert result.exit_code == 0
        roles = [p["role_id"] for p in json.loads(result.stdout)]
        assert roles == ["Admin", "Student"]

    def test_load_invalid_config(self, temp_dir: Path) -> None:
        bad = temp_dir / "bad.yaml"
        bad.write_text("policies:\n  - role_id: Student\n    allowed_hours_start: '08:00:00'\n")
        result = runner.invoke(app, ["load", str(bad), "--db", str(temp_dir / "x.db")])
        assert result.exit_code == 1
        assert "Error loading access config" in result.stdout

    def test_load_missing_file(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["load", str(temp_dir / "nope.yaml")])
        assert result.exit_code != 0

    def test_load_unknown_category(self, temp_dir: Path) -> None:
        bad = temp_dir / "gaming.yaml"
        bad.write_text("policies:\n  - role_id: Student\n    blocked_categories: [GAMING]\n")
        path = str(temp_dir / "g.db")
        result = runner.invoke(app, ["load", str(bad), "--db", path])
        assert result.exit_code == 1
        assert "unknown category: GAMING" in result.stdout
        result = runner.invoke(app, ["policy", "list", "--db", path, "--json"])
        assert json.loads(result.stdout) == []


# =============================================================================
# Decision Commands
# =============================================================================


class TestEvaluate:
    """Tests for the evaluate command."""

    def test_allowed(self, db_path: str) -> None:
        result = runner.invoke(app, ["evaluate", "u-1", "--db", db_path])
        assert result.exit_code == 0, result.output
        assert "ALLOWED" in result.stdout

    def test_denied_category(self, db_path: str) -> None:
        result = runner.invoke(
            app,
            ["evaluate", "u-1", "--resource", "magnet:?xt=urn:btih:abc", "--db", db_path, "--json"],
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["allowed"] is False
        assert data["violation_type"] == "CATEGORY_BLOCKED"
        assert data["category"] == "P2P"

    def test_stored_category_enforced_without_config(self, db_path: str) -> None:
        result = runner.invoke(
            app,
            ["evaluate", "u-1", "--resource", "https://www.netflix.com/title/1", "--db", db_path, "--json"],
        )
        assert result.exit_code == 1, result.output
        data = json.loads(result.stdout)
        assert data["violation_type"] == "CATEGORY_BLOCKED"
        assert data["category"] == "STREAMING"

    def test_unknown_user(self, db_path: str) -> None:
        result = runner.invoke(app, ["evaluate", "u-nobody", "--db", db_path])
        assert result.exit_code == 1
        assert "User or policy not found" in result.stdout

    def test_invalid_user_json_error(self, db_path: str) -> None:
        result = runner.invoke(app, ["evaluate", "bad id", "--db", db_path, "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] is True
        assert data["error_type"] == "InvalidInputError"

    def test_admin_unrestricted(self, db_path: str) -> None:
        result = runner.invoke(app, ["evaluate", "u-admin", "--db", db_path, "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["rule"] == "unrestricted_role"


class TestSessions:
    """Tests for login, logout and session subcommands."""

    def test_login_and_list(self, db_path: str) -> None:
        session_id = login(db_path)
        result = runner.invoke(app, ["session", "list", "--db", db_path, "--json"])
        assert result.exit_code == 0
        (session,) = json.loads(result.stdout)
        assert session["session_id"] == session_id
        assert session["ip_address"] == "10.0.0.5"

    def test_second_login_fails(self, db_path: str) -> None:
        login(db_path)
        result = runner.invoke(app, ["login", "u-1", "--db", db_path])
        assert result.exit_code == 1
        assert "already has an active session" in result.stdout

    def test_show(self, db_path: str) -> None:
        session_id = login(db_path)
        result = runner.invoke(app, ["session", "show", session_id, "--db", db_path, "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["is_active"] is True
        assert data["elapsed_minutes"] == 0

    def test_logout_idempotent(self, db_path: str) -> None:
        session_id = login(db_path)
        first = runner.invoke(app, ["logout", session_id, "--db", db_path])
        second = runner.invoke(app, ["logout", session_id, "--disconnect", "--db", db_path])
        assert first.exit_code == 0
        assert second.exit_code == 0
        result = runner.invoke(app, ["session", "show", session_id, "--db", db_path, "--json"])
        data = json.loads(result.stdout)
        assert data["is_active"] is False
        assert data["end_reason"] == "logout"

    def test_logout_unknown(self, db_path: str) -> None:
        result = runner.invoke(app, ["logout", "deadbeef", "--db", db_path])
        assert result.exit_code == 1
        assert "Session not found" in result.stdout

    def test_history(self, db_path: str) -> None:
        session_id = login(db_path)
        runner.invoke(app, ["logout", session_id, "--db", db_path])
        result = runner.invoke(app, ["session", "history", "u-1", "--db", db_path, "--json"])
        assert [s["session_id"] for s in json.loads(result.stdout)] == [session_id]

    def test_sweep_nothing_expired(self, db_path: str) -> None:
        login(db_path)
        result = runner.invoke(app, ["sweep", "--db", db_path, "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["checked"] == 1
        assert data["ended"] == []


class TestUsageAndViolations:
    """Tests for usage and violations commands."""

    def test_usage_add_and_show(self, db_path: str) -> None:
        result = runner.invoke(app, ["usage", "add", "u-1", "--bytes", "600", "--minutes", "3", "--db", db_path])
        assert result.exit_code == 0, result.output
        runner.invoke(app, ["usage", "add", "u-1", "--bytes", "100", "--db", db_path])
        result = runner.invoke(app, ["usage", "show", "u-1", "--db", db_path, "--json"])
        (record,) = json.loads(result.stdout)
        assert record["data_used_bytes"] == 700
        assert record["time_used_minutes"] == 3

    def test_quota_denial_recorded(self, db_path: str) -> None:
        runner.invoke(app, ["usage", "add", "u-1", "--bytes", "1000", "--db", db_path])
        result = runner.invoke(app, ["evaluate", "u-1", "--db", db_path])
        assert result.exit_code == 1
        assert "Daily quota exceeded" in result.stdout

        result = runner.invoke(app, ["violations", "--type", "QUOTA_EXCEEDED", "--db", db_path, "--json"])
        assert result.exit_code == 0
        (violation,) = json.loads(result.stdout)
        assert violation["user_id"] == "u-1"

    def test_no_violations(self, db_path: str) -> None:
        result = runner.invoke(app, ["violations", "--db", db_path])
        assert result.exit_code == 0
        assert "No violations found" in result.stdout


class TestPolicyCommands:
    """Tests for policy subcommands."""

    def test_show(self, db_path: str) -> None:
        result = runner.invoke(app, ["policy", "show", "Student", "--db", db_path])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["daily_quota_bytes"] == 1000

    def test_show_missing(self, db_path: str) -> None:
        result = runner.invoke(app, ["policy", "show", "Visitor", "--db", db_path])
        assert result.exit_code == 1

    def test_update(self, db_path: str) -> None:
        result = runner.invoke(
            app,
            ["policy", "update", "Student", "daily_quota_gb=2", "blocked_categories=p2p,streaming", "--db", db_path],
        )
        assert result.exit_code == 0, result.output
        shown = json.loads(runner.invoke(app, ["policy", "show", "Student", "--db", db_path]).stdout)
        assert shown["daily_quota_bytes"] == 2 * 1024**3
        assert shown["blocked_categories"] == ["P2P", "STREAMING"]

    def test_update_rejects_lone_hour_bound(self, db_path: str) -> None:
        result = runner.invoke(app, ["policy", "update", "Student", "allowed_hours_start=08:00:00", "--db", db_path])
        assert result.exit_code == 1
        assert "set together" in result.stdout

    def test_update_bad_assignment(self, db_path: str) -> None:
        result = runner.invoke(app, ["policy", "update", "Student", "daily_quota_gb", "--db", db_path])
        assert result.exit_code == 1


class TestDoctor:
    """Tests for the doctor command."""

    def test_healthy(self, db_path: str) -> None:
        result = runner.invoke(app, ["doctor", "--db", db_path, "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert {c["name"] for c in data["checks"]} >= {"Python version", "Settings", "Database", "Categories"}

    def test_unmapped_role(self, db_path: str, temp_dir: Path) -> None:
        extra = temp_dir / "extra.yaml"
        extra.write_text("principals:\n  - user_id: u-9\n    role_id: Visitor\n")
        runner.invoke(app, ["load", str(extra), "--db", db_path])
        result = runner.invoke(app, ["doctor", "--db", db_path, "--json"])
        assert result.exit_code == 1
        checks = {c["name"]: c for c in json.loads(result.stdout)["checks"]}
        assert not checks["Role policies"]["ok"]
        assert "Visitor" in checks["Role policies"]["message"]

    def test_unknown_category_flagged(self, db_path: str) -> None:
        with AccessDB(db_path) as db:
            db.put_policy(Policy(role_id="Guest", blocked_categories=["GAMING"]))
        result = runner.invoke(app, ["doctor", "--db", db_path, "--json"])
        assert result.exit_code == 1
        checks = {c["name"]: c for c in json.loads(result.stdout)["checks"]}
        assert not checks["Categories"]["ok"]
        assert "Guest blocks unknown GAMING" in checks["Categories"]["message"]
