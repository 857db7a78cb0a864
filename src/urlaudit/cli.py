"""Typer CLI: run audits locally, browse stored ones, manage credits, serve the API."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from urlaudit.audit.entitlement import Caller
from urlaudit.audit.errors import AuditError
from urlaudit.config import load_settings
from urlaudit.schemas.audit import AuditRequest, CompletedAudit
from urlaudit.schemas.config import Settings

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="urlaudit",
    help="URL Accessibility Auditor: scan pages with axe-core and keep scored reports.",
    no_args_is_help=True,
)
credits_app = typer.Typer(help="Inspect and top up user credit balances.", no_args_is_help=True)
app.add_typer(credits_app, name="credits")

console = Console()

T = TypeVar("T")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to urlaudit.yml")
VerboseOption = typer.Option(False, "--verbose", "-v")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _load(config: Path | None) -> Settings:
    try:
        return load_settings(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


async def _with_db(settings: Settings, fn: Callable[[Any], Awaitable[T]]) -> T:
    """Create the schema if needed, run ``fn(session_factory)``, dispose the engine."""
    from urlaudit.db.session import create_engine, init_db, make_session_factory

    engine = create_engine(settings.database_url)
    try:
        await init_db(engine)
        return await fn(make_session_factory(engine))
    finally:
        await engine.dispose()


def _orchestrator(settings: Settings, sessions: Any, *, dry_run: bool = False) -> Any:
    from urlaudit.audit.orchestrator import AuditOrchestrator
    from urlaudit.shared.llm_client import DryRunClient, LLMClient
    from urlaudit.shared.log import get_audit_logger

    llm = DryRunClient(settings) if dry_run else LLMClient(settings)
    return AuditOrchestrator(settings, sessions, llm=llm, logger=get_audit_logger("cli"))


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)
    except AuditError as exc:
        console.print(f"[red]{type(exc).__name__}:[/] {exc.message}")
        raise typer.Exit(code=1)


def _print_summary(audit: CompletedAudit) -> None:
    table = Table(title=f"{audit.title}: {audit.overall_score}/100")
    table.add_column("Severity")
    table.add_column("Count", justify="right")
    table.add_row("[red]Critical[/]", str(audit.critical_count))
    table.add_row("[dark_orange]Serious[/]", str(audit.serious_count))
    table.add_row("[yellow]Moderate[/]", str(audit.moderate_count))
    table.add_row("[green]Minor[/]", str(audit.minor_count))
    table.add_row("[bold]Total[/]", str(audit.total_violations))
    console.print(table)


def _write_reports(audit: CompletedAudit, out_dir: Path) -> None:
    from urlaudit.output.markdown import render_audit_markdown
    from urlaudit.output.report import render_report_html

    out_dir.mkdir(parents=True, exist_ok=True)

    json_path = out_dir / "audit.json"
    json_path.write_text(audit.model_dump_json(indent=2))
    console.print(f"[green]Audit JSON written to:[/] {json_path}")

    md_path = out_dir / "audit-report.md"
    md_path.write_text(render_audit_markdown(audit))
    console.print(f"[green]Markdown report written to:[/] {md_path}")

    html_path = out_dir / "audit-report.html"
    html_path.write_text(render_report_html(audit))
    console.print(f"[green]HTML report written to:[/] {html_path}")


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to urlaudit.yml"),
    verbose: bool = VerboseOption,
) -> None:
    """Validate a configuration file without touching the database or browser."""
    _setup_logging(verbose)
    cfg = _load(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Database:     {cfg.database_url}")
    console.print(f"  AI model:     {cfg.ai_model}")
    console.print(f"  Credit cost:  {cfg.credit_cost}")
    console.print(f"  Trial limit:  {cfg.trial.per_fingerprint} per {cfg.trial.window_hours}h")
    console.print(f"  Headless:     {cfg.browser.headless}")


@app.command()
def audit(
    url: str = typer.Argument(..., help="Page to audit, e.g. https://example.com"),
    user: str = typer.Option(None, "--user", "-u", help="Bill this user's credits and store the report."),
    unlimited: bool = typer.Option(False, "--unlimited", help="Skip billing; the report is not stored."),
    fingerprint: str = typer.Option("127.0.0.1", "--fingerprint", help="Trial identity for anonymous runs."),
    output: Path = typer.Option(None, "--output", "-o", help="Directory for audit.json and the reports."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use a canned AI summary (no LLM calls)."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Scan one URL and print its score."""
    _setup_logging(verbose)
    cfg = _load(config)

    if dry_run:
        console.print("[yellow]DRY-RUN mode, no LLM calls will be made.[/]\n")

    caller = Caller(user_id=user, fingerprint=None if user else fingerprint, user_agent="urlaudit-cli")
    request = AuditRequest(url=url, unlimited_access=unlimited)

    async def _go(sessions: Any) -> Any:
        from urlaudit.shared.progress import AuditProgress

        orch = _orchestrator(cfg, sessions, dry_run=dry_run)
        with AuditProgress(url) as progress:
            result = await orch.run_audit(request, caller, on_progress=progress.stage)
            if result.status == "completed":
                progress.finish(f"{result.overall_score}/100")
            else:
                progress.fail(result.error_message)
        return result

    result = _run(_with_db(cfg, _go))

    if result.status == "failed":
        console.print(f"[red]Audit failed:[/] {result.error_message}")
        raise typer.Exit(code=2)

    _print_summary(result)
    console.print(f"Audit id: {result.audit_id} ({'stored' if result.is_persisted else 'not stored'})")
    if output:
        _write_reports(result, output)


@app.command()
def history(
    user: str = typer.Option(..., "--user", "-u"),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """List a user's most recent audits."""
    _setup_logging(verbose)
    cfg = _load(config)

    async def _go(sessions: Any) -> Any:
        return await _orchestrator(cfg, sessions).get_audit_history(Caller(user_id=user))

    result = _run(_with_db(cfg, _go))
    if not result.audits:
        console.print("No audits yet.")
        return

    table = Table(title=f"Audits for {user}")
    table.add_column("Id")
    table.add_column("URL")
    table.add_column("Score", justify="right")
    table.add_column("Violations", justify="right")
    table.add_column("Created")
    for item in result.audits:
        score = "-" if item.overall_score is None else str(item.overall_score)
        table.add_row(item.id, item.url, score, str(item.total_violations), item.created_at)
    console.print(table)


@app.command()
def show(
    audit_id: str = typer.Argument(...),
    user: str = typer.Option(..., "--user", "-u"),
    output: Path = typer.Option(None, "--output", "-o", help="Re-render reports into this directory."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Print one stored audit, optionally re-rendering its reports."""
    _setup_logging(verbose)
    cfg = _load(config)

    async def _go(sessions: Any) -> Any:
        return await _orchestrator(cfg, sessions).get_audit(Caller(user_id=user), audit_id)

    result = _run(_with_db(cfg, _go))
    if result is None:
        console.print(f"[red]Audit not found:[/] {audit_id}")
        raise typer.Exit(code=1)

    _print_summary(result)
    for v in result.violations:
        console.print(f"  [{v.impact}] {v.violation_id}: {v.selector or '-'}")
    if output:
        _write_reports(result, output)


@app.command()
def delete(
    audit_id: str = typer.Argument(...),
    user: str = typer.Option(..., "--user", "-u"),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Delete one of the user's stored audits."""
    _setup_logging(verbose)
    cfg = _load(config)

    async def _go(sessions: Any) -> Any:
        return await _orchestrator(cfg, sessions).delete_audit(Caller(user_id=user), audit_id)

    _run(_with_db(cfg, _go))
    console.print(f"[green]Deleted[/] {audit_id}")


@credits_app.command("add")
def credits_add(
    user: str = typer.Option(..., "--user", "-u"),
    amount: int = typer.Option(..., "--amount", "-a"),
    reason: str = typer.Option("Manual top-up", "--reason", "-r"),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Create the user if needed and add credits."""
    from urlaudit.billing.credits import add_credits, ensure_user

    _setup_logging(verbose)
    cfg = _load(config)
    if amount <= 0:
        console.print("[red]Amount must be positive.[/]")
        raise typer.Exit(code=1)

    async def _go(sessions: Any) -> int:
        async with sessions() as session:
            async with session.begin():
                await ensure_user(session, user, default_credits=cfg.default_credits)
                entry = await add_credits(session, user, amount, reason)
        return entry.balance_after

    balance = _run(_with_db(cfg, _go))
    console.print(f"[green]Added {amount} credits.[/] Balance: {balance}")


@credits_app.command("show")
def credits_show(
    user: str = typer.Option(..., "--user", "-u"),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Print a user's balance and latest ledger entries."""
    _setup_logging(verbose)
    cfg = _load(config)

    async def _go(sessions: Any) -> dict[str, Any]:
        return await _orchestrator(cfg, sessions).get_credit_summary(Caller(user_id=user))

    summary = _run(_with_db(cfg, _go))
    console.print(f"[bold]{user}[/]: {summary['credits']} credits "
                  f"(earned {summary['total_credits_earned']}, used {summary['total_credits_used']})")

    table = Table()
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Description")
    for t in summary["recent_transactions"]:
        table.add_row(t["type"], f"{t['amount']:+d}", str(t["balance_after"]), t["description"] or "")
    console.print(table)


@app.command("init-db")
def init_db_command(
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Create all tables."""
    _setup_logging(verbose)
    cfg = _load(config)

    async def _noop(sessions: Any) -> None:
        return None

    _run(_with_db(cfg, _noop))
    console.print(f"[green]Database ready:[/] {cfg.database_url}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port", "-p"),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from urlaudit.api.app import create_app

    _setup_logging(verbose)
    cfg = _load(config)
    uvicorn.run(create_app(cfg), host=host, port=port, log_level="debug" if verbose else "info")
