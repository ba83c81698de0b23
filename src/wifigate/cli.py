"""
CLI entry point for wifigate.

This module provides the Typer-based command-line interface. It is meant for
operators and for scripting the periodic sweep; the authentication flow
and metering path call the library directly.

Commands:
    init        Create the database (and optionally load an access config)
    load        Load policies and principals from an access config
    evaluate    Render an access decision
    login       Evaluate a user and open a session
    logout      End a session
    sweep       End active sessions that policy now denies
    violations  List recorded violations
    doctor      Check settings, database and access config
    session     Session subcommands (list, show, history)
    usage       Usage subcommands (add, show)
    policy      Policy subcommands (list, show, update)

Exit codes:
    0  success / access allowed
    1  access denied or command failed
    2  evaluation error (infrastructure failure, not a denial)
"""

import json
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wifigate import __version__
from wifigate.errors import EvaluationError, WifigateError
from wifigate.log import configure_logging
from wifigate.schema import (
    Decision,
    Session,
    SessionEndReason,
    ViolationType,
    load_access_config,
)
from wifigate.service import AccessService
from wifigate.settings import get_settings

app = typer.Typer(
    name="wifigate",
    help="Role-based network access decisions with usage accounting.",
    add_completion=False,
    no_args_is_help=True,
)

session_app = typer.Typer(name="session", help="Inspect sessions.", no_args_is_help=True)
usage_app = typer.Typer(name="usage", help="Book and inspect usage.", no_args_is_help=True)
policy_app = typer.Typer(name="policy", help="Inspect and update role policies.", no_args_is_help=True)
app.add_typer(session_app, name="session")
app.add_typer(usage_app, name="usage")
app.add_typer(policy_app, name="policy")

console = Console()

EXIT_DENIED = 1
EXIT_EVALUATION_ERROR = 2

DbOption = Annotated[
    Optional[str],
    typer.Option("--db", help="Path to the SQLite database. Defaults to WIFIGATE_DB_PATH or wifigate.db."),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Access config YAML (categories are read from it).",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]wifigate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log at INFO level."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Log at DEBUG level."),
    ] = False,
) -> None:
    """
    wifigate - network access decisions for role-based Wi-Fi.

    Decides whether a user may connect, based on role policy, today's usage
    and session state, and records every denial.
    """
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        try:
            level = get_settings().log_level
        except ValidationError:
            level = "WARNING"
    configure_logging(level)


# =============================================================================
# Helpers
# =============================================================================


def _open(db: str | None, config: Path | None = None) -> AccessService:
    """Build the service from settings plus command-line overrides."""
    try:
        settings = get_settings(db_path=db, config_path=config)
        return AccessService(settings)
    except (ValidationError, WifigateError, OSError) as e:
        console.print(f"[red]Error opening wifigate: {escape(str(e))}[/red]", soft_wrap=True)
        raise typer.Exit(code=1)


def _fail(error: Exception, json_output: bool = False, code: int = 1) -> None:
    """Report an error and exit."""
    if json_output:
        if isinstance(error, WifigateError):
            payload = {"error": True, **error.to_dict()}
        else:
            payload = {"error": True, "error_type": type(error).__name__, "message": str(error)}
        print(json.dumps(payload, indent=2, default=str))
    else:
        console.print(f"[red]{escape(str(error))}[/red]", soft_wrap=True)
    raise typer.Exit(code=code)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _format_bytes(value: int | None) -> str:
    if value is None:
        return "unlimited"
    size = float(value)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.2f} {unit}"
        size /= 1024
    return f"{value} B"


def _display_decision(decision: Decision) -> None:
    if decision.allowed:
        console.print("[green]ALLOWED[/green]" + (f" ({decision.reason})" if decision.reason else ""))
        snapshot = decision.policy
        if snapshot is None:
            return
        console.print(f"  Role: {snapshot.role_id}")
        console.print(
            f"  Bandwidth: {snapshot.bandwidth_down_mbps:g} down / "
            f"{snapshot.bandwidth_up_mbps:g} up Mbps"
        )
        if snapshot.unrestricted:
            console.print("  Limits: [dim]none (unrestricted role)[/dim]")
            return
        quota = snapshot.quota
        if quota.quota_bytes:
            console.print(
                f"  Quota: {_format_bytes(quota.used_bytes)} used of "
                f"{_format_bytes(quota.quota_bytes)} "
                f"({_format_bytes(quota.remaining_bytes)} left)"
            )
        limit = snapshot.session_limit
        if limit.remaining_minutes is not None:
            console.print(
                f"  Session: {limit.elapsed_minutes} of {limit.limit_minutes} min "
                f"({limit.remaining_minutes} left)"
            )
    else:
        console.print(f"[red]DENIED[/red]: {decision.reason}")
        if decision.violation_type:
            console.print(f"  Violation: [yellow]{decision.violation_type.value}[/yellow]")
        for key, value in decision.context.items():
            console.print(f"  {key}: {value}")


def _session_table(sessions: list[Session]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Session ID", style="cyan")
    table.add_column("User")
    table.add_column("Role")
    table.add_column("Started")
    table.add_column("Ended")
    table.add_column("Status", width=8)
    table.add_column("Data", justify="right")

    for s in sessions:
        status = "[green]active[/green]" if s.is_active else f"[dim]{s.end_reason.value if s.end_reason else 'ended'}[/dim]"
        table.add_row(
            s.session_id[:12],
            s.user_id,
            s.role_id,
            s.started_at.isoformat()[:19],
            s.ended_at.isoformat()[:19] if s.ended_at else "-",
            status,
            _format_bytes(s.data_used_bytes),
        )
    return table


# =============================================================================
# Setup Commands
# =============================================================================


@app.command()
def init(
    db: DbOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Create the database, optionally loading an access config.

    Example:
        $ wifigate init --db wifigate.db --config access.yaml
    """
    with _open(db, config) as service:
        version = service.db.schema_version()
        console.print(f"Database ready: {service.db.db_path} (schema v{version})")
        if service.config is not None:
            try:
                policies, principals = service.load_config()
            except WifigateError as e:
                _fail(e)
            console.print(f"Loaded {policies} policies and {principals} principals")


@app.command()
def load(
    config_path: Annotated[
        Path,
        typer.Argument(
            help="Access config YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    db: DbOption = None,
) -> None:
    """
    Load categories, policies and principals from an access config.

    Existing policies for the same roles, existing principals with the same
    user IDs and existing keywords for the same category tags are replaced.

    Example:
        $ wifigate load access.yaml
    """
    try:
        config = load_access_config(config_path)
    except (ValidationError, OSError) as e:
        console.print(f"[red]Error loading access config: {escape(str(e))}[/red]", soft_wrap=True)
        raise typer.Exit(code=1)

    with _open(db) as service:
        try:
            policies, principals = service.load_config(config)
        except WifigateError as e:
            _fail(e)
    console.print(f"Loaded {policies} policies and {principals} principals from {config_path.name}")


# =============================================================================
# Decision Commands
# =============================================================================


@app.command()
def evaluate(
    user_id: Annotated[str, typer.Argument(help="The user to evaluate.")],
    session_id: Annotated[
        Optional[str],
        typer.Option("--session", "-s", help="Session to check against the time limit."),
    ] = None,
    resource: Annotated[
        Optional[str],
        typer.Option("--resource", "-r", help="Resource locator (e.g. URL) for category checks."),
    ] = None,
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Render an access decision for a user.

    Exits 0 when allowed, 1 when denied, 2 when the decision could not be
    rendered.

    Example:
        $ wifigate evaluate u-1001 --session 3f2a... --resource magnet:?xt=urn:btih:abc
    """
    with _open(db, config) as service:
        try:
            decision = service.evaluate(user_id, session_id, resource)
        except EvaluationError as e:
            _fail(e, json_output, code=EXIT_EVALUATION_ERROR)
        except WifigateError as e:
            _fail(e, json_output)

    if json_output:
        _print_json(decision.model_dump(mode="json"))
    else:
        _display_decision(decision)

    raise typer.Exit(code=0 if decision.allowed else EXIT_DENIED)


@app.command()
def login(
    user_id: Annotated[str, typer.Argument(help="The user logging in.")],
    ip_address: Annotated[Optional[str], typer.Option("--ip", help="Client IP address.")] = None,
    mac_address: Annotated[Optional[str], typer.Option("--mac", help="Client MAC address.")] = None,
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Evaluate a user and open a session when access is allowed.

    Example:
        $ wifigate login u-1001 --ip 10.0.0.5
    """
    with _open(db, config) as service:
        try:
            result = service.login(user_id, ip_address=ip_address, mac_address=mac_address)
        except EvaluationError as e:
            _fail(e, json_output, code=EXIT_EVALUATION_ERROR)
        except WifigateError as e:
            _fail(e, json_output)

    if json_output:
        _print_json({
            "allowed": result.allowed,
            "session_id": result.session_id,
            "decision": result.decision.model_dump(mode="json"),
        })
    elif result.allowed:
        console.print(f"[green]Session started[/green]: {result.session_id}")
    else:
        _display_decision(result.decision)

    raise typer.Exit(code=0 if result.allowed else EXIT_DENIED)


@app.command()
def logout(
    session_id: Annotated[str, typer.Argument(help="The session to end.")],
    disconnect: Annotated[
        bool,
        typer.Option("--disconnect", help="Record the end as an administrative disconnect."),
    ] = False,
    db: DbOption = None,
) -> None:
    """
    End a session. Ending an already ended session is not an error.

    Example:
        $ wifigate logout 3f2a... --disconnect
    """
    reason = SessionEndReason.DISCONNECT if disconnect else SessionEndReason.LOGOUT
    with _open(db) as service:
        try:
            session = service.logout(session_id, reason)
        except WifigateError as e:
            _fail(e)

    ended = session.ended_at.isoformat()[:19] if session.ended_at else "-"
    console.print(f"Session {session.session_id} ended at {ended}")


@app.command()
def sweep(
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    End active sessions that policy now denies.

    Intended to run periodically (e.g. from cron every minute).

    Example:
        $ wifigate sweep
    """
    with _open(db, config) as service:
        result = service.sweep_expired_sessions()

    if json_output:
        _print_json({
            "checked": result.checked,
            "ended": result.ended,
            "reasons": result.reasons,
            "errors": result.errors,
        })
    else:
        console.print(f"Checked {result.checked} active sessions, ended {len(result.ended)}")
        for session_id in result.ended:
            console.print(f"  [yellow]{session_id}[/yellow]: {result.reasons.get(session_id, '')}")
        for session_id in result.errors:
            console.print(f"  [red]{session_id}[/red]: evaluation failed")

    raise typer.Exit(code=1 if result.errors else 0)


@app.command()
def violations(
    user_id: Annotated[Optional[str], typer.Option("--user", "-u", help="Only this user.")] = None,
    violation_type: Annotated[
        Optional[ViolationType],
        typer.Option("--type", "-t", help="Only this violation type.", case_sensitive=False),
    ] = None,
    since: Annotated[
        Optional[datetime],
        typer.Option("--since", help="Only violations at or after this time (UTC)."),
    ] = None,
    until: Annotated[
        Optional[datetime],
        typer.Option("--until", help="Only violations at or before this time (UTC)."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum rows to show.")] = 50,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    List recorded violations, most recent first.

    Example:
        $ wifigate violations --type QUOTA_EXCEEDED --since 2024-05-01
    """
    with _open(db) as service:
        rows = service.recorder.list_violations(
            user_id=user_id,
            violation_type=violation_type,
            since=since,
            until=until,
            limit=limit,
        )

    if json_output:
        _print_json([v.model_dump(mode="json") for v in rows])
        return

    if not rows:
        console.print("[dim]No violations found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Time")
    table.add_column("User", style="cyan")
    table.add_column("Type")
    table.add_column("Details")

    for v in rows:
        table.add_row(
            str(v.violation_id),
            v.created_at.isoformat()[:19],
            v.user_id,
            f"[yellow]{v.violation_type.value}[/yellow]",
            v.details if len(v.details) <= 60 else v.details[:57] + "...",
        )
    console.print(table)


@app.command()
def doctor(
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check settings, database and access config.

    Example:
        $ wifigate doctor --config access.yaml
    """
    checks = []

    py_version = sys.version_info
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "value": f"{py_version.major}.{py_version.minor}.{py_version.micro}",
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })

    settings = None
    try:
        settings = get_settings(db_path=db, config_path=config)
        checks.append({
            "name": "Settings",
            "ok": True,
            "value": f"timezone={settings.timezone}, unrestricted_role={settings.unrestricted_role}",
            "message": "OK",
        })
    except ValidationError as e:
        checks.append({"name": "Settings", "ok": False, "value": "", "message": str(e)})

    if settings is not None:
        try:
            with AccessService(settings) as service:
                version = service.db.schema_version()
                policies = service.policies.list_policies()
                principals = service.policies.list_principals()
                unknown = {
                    p.role_id: service.policies.unknown_categories(p, service.categories)
                    for p in policies
                }
            checks.append({
                "name": "Database",
                "ok": True,
                "value": settings.db_path,
                "message": f"schema v{version}, {len(policies)} policies, {len(principals)} principals",
            })
            unmapped = sorted({p.role_id for p in principals} - {p.role_id for p in policies})
            checks.append({
                "name": "Role policies",
                "ok": not unmapped,
                "value": f"{len(unmapped)} unmapped",
                "message": "OK" if not unmapped else f"No policy for: {', '.join(unmapped)}",
            })
            unknown = {role: tags for role, tags in unknown.items() if tags}
            checks.append({
                "name": "Categories",
                "ok": not unknown,
                "value": f"{len(service.categories)} known",
                "message": "OK" if not unknown else "; ".join(
                    f"{role} blocks unknown {', '.join(tags)}" for role, tags in sorted(unknown.items())
                ),
            })
        except (ValidationError, WifigateError, OSError) as e:
            checks.append({"name": "Database", "ok": False, "value": settings.db_path, "message": str(e)})

    all_ok = all(check["ok"] for check in checks)

    if json_output:
        _print_json({"ok": all_ok, "version": __version__, "checks": checks})
    else:
        console.print(f"[bold]wifigate doctor[/bold] v{__version__}")
        console.print()
        for check in checks:
            icon = "[green]✓[/green]" if check["ok"] else "[red]✗[/red]"
            if check["ok"]:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim] - {check['message']}")
            else:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim]")
                console.print(f"    [red]{check['message']}[/red]")

    raise typer.Exit(code=0 if all_ok else 1)


# =============================================================================
# Session Subcommands
# =============================================================================


@session_app.command("list")
def session_list(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List active sessions."""
    with _open(db) as service:
        sessions = service.sessions.list_active()

    if json_output:
        _print_json([s.model_dump(mode="json") for s in sessions])
        return
    if not sessions:
        console.print("[dim]No active sessions.[/dim]")
        return
    console.print(_session_table(sessions))


@session_app.command("show")
def session_show(
    session_id: Annotated[str, typer.Argument(help="The session to show.")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show one session and its elapsed minutes."""
    with _open(db) as service:
        try:
            session = service.sessions.get_session(session_id)
            elapsed = service.sessions.session_elapsed(session)
        except WifigateError as e:
            _fail(e, json_output)

    if json_output:
        _print_json({**session.model_dump(mode="json"), "elapsed_minutes": elapsed})
        return

    status = "[green]active[/green]" if session.is_active else "[dim]ended[/dim]"
    console.print(f"[bold]Session {session.session_id}[/bold]")
    console.print(f"  User: {session.user_id} ({session.role_id})")
    console.print(f"  Status: {status}")
    console.print(f"  Started: {session.started_at.isoformat()[:19]}")
    if session.ended_at:
        console.print(f"  Ended: {session.ended_at.isoformat()[:19]} ({session.end_reason.value if session.end_reason else ''})")
    console.print(f"  Elapsed: {elapsed} min")
    console.print(f"  Data: {_format_bytes(session.data_used_bytes)}")
    if session.ip_address:
        console.print(f"  IP: {session.ip_address}")


@session_app.command("history")
def session_history(
    user_id: Annotated[str, typer.Argument(help="The user whose sessions to list.")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum rows to show.")] = 20,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List a user's sessions, most recent first."""
    with _open(db) as service:
        try:
            sessions = service.sessions.history(user_id, limit=limit)
        except WifigateError as e:
            _fail(e, json_output)

    if json_output:
        _print_json([s.model_dump(mode="json") for s in sessions])
        return
    if not sessions:
        console.print(f"[dim]No sessions for {user_id}.[/dim]")
        return
    console.print(_session_table(sessions))


# =============================================================================
# Usage Subcommands
# =============================================================================


@usage_app.command("add")
def usage_add(
    user_id: Annotated[str, typer.Argument(help="The user to book usage for.")],
    data_bytes: Annotated[int, typer.Option("--bytes", "-b", help="Bytes transferred.", min=0)] = 0,
    minutes: Annotated[int, typer.Option("--minutes", "-m", help="Connection minutes.", min=0)] = 0,
    session_id: Annotated[
        Optional[str],
        typer.Option("--session", "-s", help="Also add the bytes to this session."),
    ] = None,
    day: Annotated[
        Optional[datetime],
        typer.Option("--day", help="Day to book on (default: today).", formats=["%Y-%m-%d"]),
    ] = None,
    db: DbOption = None,
) -> None:
    """
    Book metered usage.

    Example:
        $ wifigate usage add u-1001 --bytes 1048576 --minutes 5
    """
    with _open(db) as service:
        try:
            record = service.add_usage(
                user_id,
                data_bytes=data_bytes,
                minutes=minutes,
                session_id=session_id,
                day=day.date() if day else None,
            )
        except WifigateError as e:
            _fail(e)

    console.print(
        f"{record.user_id} {record.day}: {_format_bytes(record.data_used_bytes)}, "
        f"{record.time_used_minutes} min, {record.session_count} sessions"
    )


@usage_app.command("show")
def usage_show(
    user_id: Annotated[str, typer.Argument(help="The user to show usage for.")],
    days: Annotated[int, typer.Option("--days", "-d", help="Number of days back from today.", min=1)] = 1,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show daily usage for a user."""
    with _open(db) as service:
        try:
            end = service.today()
            start: date = end - timedelta(days=days - 1)
            records = service.ledger.usage_between(user_id, start, end)
        except WifigateError as e:
            _fail(e, json_output)

    if json_output:
        _print_json([r.model_dump(mode="json") for r in records])
        return
    if not records:
        console.print(f"[dim]No usage for {user_id} since {start}.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Day")
    table.add_column("Data", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Sessions", justify="right")
    for r in records:
        table.add_row(
            r.day.isoformat(),
            _format_bytes(r.data_used_bytes),
            str(r.time_used_minutes),
            str(r.session_count),
        )
    console.print(table)


# =============================================================================
# Policy Subcommands
# =============================================================================


@policy_app.command("list")
def policy_list(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List role policies."""
    with _open(db) as service:
        policies = service.policies.list_policies()

    if json_output:
        _print_json([p.model_dump(mode="json") for p in policies])
        return
    if not policies:
        console.print("[dim]No policies loaded.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Role", style="cyan")
    table.add_column("Down/Up Mbps", justify="right")
    table.add_column("Daily quota", justify="right")
    table.add_column("Session limit", justify="right")
    table.add_column("Hours")
    table.add_column("Blocked")
    for p in policies:
        if p.access_24x7:
            hours = "24x7"
        elif p.allowed_hours_start and p.allowed_hours_end:
            hours = f"{p.allowed_hours_start:%H:%M}-{p.allowed_hours_end:%H:%M}"
        else:
            hours = "any"
        table.add_row(
            p.role_id,
            f"{p.bandwidth_down_mbps:g}/{p.bandwidth_up_mbps:g}",
            _format_bytes(p.daily_quota_bytes),
            f"{p.session_time_limit_minutes} min" if p.has_session_limit else "unlimited",
            hours,
            ", ".join(p.blocked_categories) or "-",
        )
    console.print(table)


@policy_app.command("show")
def policy_show(
    role_id: Annotated[str, typer.Argument(help="The role whose policy to show.")],
    db: DbOption = None,
) -> None:
    """Show the policy bound to a role as JSON."""
    with _open(db) as service:
        try:
            policy = service.policies.resolve_policy(role_id)
        except WifigateError as e:
            _fail(e)
    _print_json(policy.model_dump(mode="json"))


@policy_app.command("update")
def policy_update(
    role_id: Annotated[str, typer.Argument(help="The role whose policy to change.")],
    assignments: Annotated[
        list[str],
        typer.Argument(help="field=value pairs, e.g. daily_quota_gb=2 access_24x7=false"),
    ],
    db: DbOption = None,
) -> None:
    """
    Change fields of a role's policy.

    Values are parsed as YAML scalars; use an empty value to clear a field.
    The updated policy is validated as a whole before it is stored.

    Example:
        $ wifigate policy update Student daily_quota_gb=2 allowed_hours_end="23:00:00"
    """
    changes: dict[str, Any] = {}
    for item in assignments:
        name, sep, raw = item.partition("=")
        if not sep or not name:
            console.print(f"[red]Expected field=value, got: {item}[/red]")
            raise typer.Exit(code=1)
        value = yaml.safe_load(raw) if raw else None
        if name == "blocked_categories" and isinstance(value, str):
            value = [tag for tag in value.split(",") if tag]
        changes[name.strip()] = value

    with _open(db) as service:
        try:
            policy = service.policies.update_policy(role_id, **changes)
        except WifigateError as e:
            _fail(e)
    console.print(f"[green]Updated policy for {role_id}[/green]")
    _print_json(policy.model_dump(mode="json"))


if __name__ == "__main__":
    app()
