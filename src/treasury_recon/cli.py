"""
Command-line interface for the treasury bank reconciliation engine.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging
import sys

import click
import yaml
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ReconConfig, generate_default_config, load_config
from .database import create_db_engine, init_db, session_factory_from_config
from .models.entities import MovementDirection
from .models.results import MovementFilters, ReconciliationSummary, RunReport
from .schemas import StatementImport
from .services.reconciliation import ReconciliationService
from .services.statements import StatementService
from .utils.exceptions import ReconciliationError
from .utils.logging_config import setup_logging

console = Console()


class CliContext:
    """Objects shared by the commands of one invocation."""

    def __init__(
        self,
        config: ReconConfig,
        database_url: Optional[str],
        company_id: Optional[int],
        verbose: bool,
    ):
        self.config = config
        self.database_url = database_url
        self.company_id = company_id
        self.verbose = verbose
        self._session_factory = None

    @property
    def session_factory(self):
        if self._session_factory is None:
            self._session_factory = session_factory_from_config(
                self.config, self.database_url
            )
        return self._session_factory

    def reconciliation_service(self) -> ReconciliationService:
        return ReconciliationService(
            self.session_factory, self.config, company_id=self.company_id
        )

    def statement_service(self) -> StatementService:
        return StatementService(self.session_factory, self.config, company_id=self.company_id)


pass_cli = click.make_pass_decorator(CliContext)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("--database-url", default=None, help="Override the configured database URL")
@click.option("--company", "company_id", type=int, default=None, help="Tenant scope")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(
    ctx: click.Context,
    config: Optional[Path],
    database_url: Optional[str],
    company_id: Optional[int],
    verbose: bool,
):
    """Treasury Bank Statement Reconciliation Tool."""
    try:
        recon_config = load_config(config)
    except ReconciliationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    log_level = logging.DEBUG if verbose else recon_config.logging.level
    log_file = Path(recon_config.logging.file) if recon_config.logging.file else None
    setup_logging(log_level, log_file, recon_config.logging.format)

    ctx.obj = CliContext(recon_config, database_url, company_id, verbose)


def _fail(cli: CliContext, error: Exception) -> None:
    console.print(f"[red]Error: {error}[/red]")
    if cli.verbose:
        console.print_exception()
    sys.exit(1)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


@main.command("init-db")
@pass_cli
def init_database(cli: CliContext):
    """Create the reconciliation tables."""
    engine = create_db_engine(
        cli.database_url or cli.config.database.url, cli.config.database.echo
    )
    init_db(engine)
    console.print("[green]Database initialized[/green]")


@main.command("import-statement")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.option("--user", "user_id", type=int, default=None, help="Acting user id")
@pass_cli
def import_statement(cli: CliContext, statement_file: Path, user_id: Optional[int]):
    """
    Import an already-structured statement (YAML or JSON).

    STATEMENT_FILE: statement header fields plus an "items" list
    """
    try:
        with open(statement_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        payload = StatementImport(**data)
        statement_id = cli.statement_service().import_statement(payload, user_id=user_id)
    except (yaml.YAMLError, PydanticValidationError, TypeError, ReconciliationError) as e:
        _fail(cli, e)
        return

    console.print(
        f"[green]Imported statement {statement_id} with {len(payload.items)} lines[/green]"
    )


@main.command("auto-match")
@click.argument("statement_id", type=int)
@pass_cli
def auto_match(cli: CliContext, statement_id: int):
    """
    Match every open line of a statement automatically.

    STATEMENT_ID: statement to process
    """
    try:
        report = cli.reconciliation_service().auto_match_statement_items(statement_id)
    except ReconciliationError as e:
        _fail(cli, e)
        return

    _display_run_report(report)


@main.command()
@click.argument("statement_id", type=int)
@pass_cli
def summary(cli: CliContext, statement_id: int):
    """Show the reconciliation state of a statement."""
    try:
        result = cli.reconciliation_service().get_reconciliation_summary(statement_id)
    except ReconciliationError as e:
        _fail(cli, e)
        return

    _display_summary(result)


@main.command()
@click.argument("bank_account_id", type=int)
@click.option("--date-from", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--date-to", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option(
    "--direction",
    type=click.Choice([d.value for d in MovementDirection]),
    default=None,
)
@click.option("--amount-min", type=str, default=None, help="Minimum amount (inclusive)")
@click.option("--amount-max", type=str, default=None, help="Maximum amount (inclusive)")
@pass_cli
def unmatched(
    cli: CliContext,
    bank_account_id: int,
    date_from,
    date_to,
    direction: Optional[str],
    amount_min: Optional[str],
    amount_max: Optional[str],
):
    """
    List unreconciled movements of a bank account.

    BANK_ACCOUNT_ID: bank account to query
    """
    filters = MovementFilters(
        date_from=_as_date(date_from),
        date_to=_as_date(date_to),
        direction=MovementDirection(direction) if direction else None,
        amount_min=_parse_amount(amount_min, "--amount-min"),
        amount_max=_parse_amount(amount_max, "--amount-max"),
    )
    movements = cli.reconciliation_service().get_unmatched_movements(
        bank_account_id, filters
    )

    table = Table(title=f"Unreconciled movements: account {bank_account_id}")
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Direction")
    table.add_column("Amount", justify="right")
    table.add_column("Channel")
    table.add_column("Reference")

    for movement in movements:
        table.add_row(
            str(movement.id),
            str(movement.date),
            movement.direction.value,
            f"{movement.amount:,.2f}",
            movement.channel or "-",
            movement.reference or "-",
        )

    console.print(table)
    console.print(f"\nTotal movements: {len(movements)}")


@main.command("match")
@click.argument("item_id", type=int)
@click.argument("movement_id", type=int)
@click.option("--user", "user_id", type=int, required=True, help="Acting user id")
@click.option("--notes", default=None, help="Note stored with the match")
@pass_cli
def manual_match(
    cli: CliContext, item_id: int, movement_id: int, user_id: int, notes: Optional[str]
):
    """Link a statement line to a treasury movement manually."""
    try:
        result = cli.reconciliation_service().manual_match(
            item_id, movement_id, user_id, notes=notes
        )
    except ReconciliationError as e:
        _fail(cli, e)
        return

    console.print(
        f"[green]Item {result.item_id} linked to movement {result.movement_id} "
        f"({result.match_type.value})[/green]"
    )


@main.command()
@click.argument("item_id", type=int)
@click.option("--user", "user_id", type=int, default=None, help="Acting user id")
@pass_cli
def unmatch(cli: CliContext, item_id: int, user_id: Optional[int]):
    """Undo the link of a reconciled statement line."""
    try:
        cli.reconciliation_service().unmatch(item_id, user_id=user_id)
    except ReconciliationError as e:
        _fail(cli, e)
        return

    console.print(f"[green]Item {item_id} unlinked[/green]")


@main.command("resolve-suspense")
@click.argument("item_id", type=int)
@click.option("--reason", required=True, help="Why the line needs no ledger movement")
@click.option("--user", "user_id", type=int, required=True, help="Acting user id")
@pass_cli
def resolve_suspense(cli: CliContext, item_id: int, reason: str, user_id: int):
    """Close a suspense line without creating a movement."""
    try:
        cli.reconciliation_service().resolve_suspense(item_id, reason, user_id)
    except ReconciliationError as e:
        _fail(cli, e)
        return

    console.print(f"[green]Suspense resolved for item {item_id}[/green]")


@main.command("create-movement")
@click.argument("item_id", type=int)
@click.option("--category", required=True, help="Reference type of the new movement")
@click.option("--description", required=True, help="Description of the new movement")
@click.option("--user", "user_id", type=int, required=True, help="Acting user id")
@pass_cli
def create_movement(
    cli: CliContext, item_id: int, category: str, description: str, user_id: int
):
    """Create a treasury movement from a statement line and link both."""
    try:
        movement_id = cli.reconciliation_service().create_movement_from_suspense(
            item_id, category, description, user_id
        )
    except ReconciliationError as e:
        _fail(cli, e)
        return

    console.print(f"[green]Movement {movement_id} created for item {item_id}[/green]")


@main.command("mark-suspense")
@click.argument("item_id", type=int)
@click.option("--notes", default=None, help="Reviewer note")
@click.option("--user", "user_id", type=int, default=None, help="Acting user id")
@pass_cli
def mark_suspense(
    cli: CliContext, item_id: int, notes: Optional[str], user_id: Optional[int]
):
    """Park a statement line for manual review."""
    try:
        cli.statement_service().mark_as_suspense(item_id, notes=notes, user_id=user_id)
    except ReconciliationError as e:
        _fail(cli, e)
        return

    console.print(f"[yellow]Item {item_id} marked as suspense[/yellow]")


@main.command("set-tolerance")
@click.argument("statement_id", type=int)
@click.option("--amount", type=str, default=None, help="Amount tolerance")
@click.option("--days", type=int, default=None, help="Day tolerance")
@click.option("--user", "user_id", type=int, default=None, help="Acting user id")
@pass_cli
def set_tolerance(
    cli: CliContext,
    statement_id: int,
    amount: Optional[str],
    days: Optional[int],
    user_id: Optional[int],
):
    """Change the tolerance window of a statement."""
    try:
        statement = cli.statement_service().update_tolerances(
            statement_id,
            amount=_parse_amount(amount, "--amount"),
            days=days,
            user_id=user_id,
        )
    except ReconciliationError as e:
        _fail(cli, e)
        return

    console.print(
        f"[green]Statement {statement_id} tolerance: "
        f"{statement.tolerance_amount} / {statement.tolerance_days} day(s)[/green]"
    )


def _as_date(value) -> Optional[date]:
    return value.date() if value is not None else None


def _parse_amount(value: Optional[str], param: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"not a valid amount: {value}", param_hint=param)
    if not amount.is_finite():
        raise click.BadParameter(f"not a finite amount: {value}", param_hint=param)
    return amount


def _display_run_report(report: RunReport) -> None:
    """Display an auto-match run report in console."""
    table = Table(title=f"Auto-match: statement {report.statement_id}")
    table.add_column("Item", justify="right")
    table.add_column("Match Type")
    table.add_column("Movement", justify="right")
    table.add_column("Confidence", justify="right")

    for result in report.results:
        table.add_row(
            str(result.item_id),
            result.match_type.value if result.match_type else "[yellow]SUSPENSE[/yellow]",
            str(result.movement_id) if result.movement_id is not None else "-",
            f"{result.confidence:.2f}" if result.confidence is not None else "-",
        )

    console.print(table)

    totals = Table(title="Run Summary")
    totals.add_column("Metric", style="cyan")
    totals.add_column("Value", justify="right")
    totals.add_row("Lines Processed", str(report.total_items))
    totals.add_row("Matched", str(report.matched))
    totals.add_row("Unmatched", str(report.unmatched))
    totals.add_row("Sent to Suspense", str(report.suspense))
    totals.add_row("Match Rate", f"{report.match_rate:.1f}%")
    totals.add_row("Processing Time", f"{report.processing_time_seconds:.2f}s")
    console.print(totals)


def _display_summary(summary: ReconciliationSummary) -> None:
    """Display a statement reconciliation summary in console."""
    table = Table(title=f"Reconciliation Summary: statement {summary.statement_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Lines", str(summary.total_items))
    table.add_row("Matched", str(summary.matched))
    table.add_row("Pending", str(summary.pending))
    table.add_row("Suspense", str(summary.suspense))
    table.add_row("Suspense Resolved", str(summary.suspense_resolved))
    for match_type, count in summary.match_breakdown.items():
        table.add_row(f"  {match_type.value}", str(count))
    table.add_row("Match Rate", f"{summary.match_rate:.1f}%")

    console.print(table)


if __name__ == "__main__":
    main()
