import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from extrato.db import get_connection, init_db
from extrato.errors import ExtratoError, InvalidDate, NoTransactionsError
from extrato.models import ACCOUNT_TYPES, CHECKING, DateRange, TransactionType
from extrato.normalize import parse_date
from extrato.plugins import load_plugins
from extrato.registry import registry
from extrato.reviewer import format_amount, run_review
from extrato.sessions import ImportService
from extrato.settings import DEFAULTS, get_data_dir, load_settings, save_settings
from extrato.store import SqliteStore

app = typer.Typer(help="Extrato: import Brazilian bank statements into a reviewable ledger.", invoke_without_command=True)

console = Console()
err_console = Console(stderr=True)

load_plugins(registry)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """Extrato: import Brazilian bank statements into a reviewable ledger."""
    setup_logging("DEBUG" if verbose else load_settings()["log_level"])


def get_db_path() -> Path:
    return get_data_dir() / "extrato.db"


@contextmanager
def open_store():
    """SqliteStore on the configured database; pipeline errors become exit code 1."""
    conn = get_connection(get_db_path())
    try:
        yield SqliteStore(conn)
    except ExtratoError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    finally:
        conn.close()


def _budget_id(store: SqliteStore) -> str:
    name = load_settings()["default_budget"]
    budget_id = store.get_budget_id(name)
    if budget_id is None:
        typer.echo(f"Unknown budget: {name}. Run 'extrato init' first.")
        raise typer.Exit(1)
    return budget_id


@app.command()
def init(
    data_dir: str = typer.Option(None, "--data-dir", help="Path for extrato data (default: ~/Documents/extrato)"),
):
    """Set up extrato: choose a data directory and initialize the database."""
    settings = load_settings()

    if data_dir:
        settings["data_dir"] = str(Path(data_dir).expanduser().resolve())
    elif settings == DEFAULTS:
        # First run, ask where data lives
        chosen = typer.prompt("Data directory", default=settings["data_dir"])
        settings["data_dir"] = str(Path(chosen).expanduser().resolve())

    save_settings(settings)

    resolved = Path(settings["data_dir"])
    resolved.mkdir(parents=True, exist_ok=True)
    (resolved / "imports").mkdir(exist_ok=True)

    conn = get_connection(resolved / "extrato.db")
    init_db(conn, settings["default_budget"])
    conn.close()

    typer.echo(f"Initialized extrato at {resolved}")


# --- Accounts ---

accounts_app = typer.Typer(help="Manage accounts.")
app.add_typer(accounts_app, name="accounts")


@accounts_app.command("add")
def accounts_add(
    name: str = typer.Argument(help="Account name, e.g. 'Nubank Conta'"),
    type: str = typer.Option(CHECKING, help="Account type: " + ", ".join(ACCOUNT_TYPES)),
    institution: str = typer.Option(None, help="Bank name"),
    owner: str = typer.Option(None, help="User allowed to import into this account"),
):
    """Add a new account to the default budget."""
    if type not in ACCOUNT_TYPES:
        typer.echo(f"Unknown account type: {type}")
        raise typer.Exit(1)
    with open_store() as store:
        store.create_account(name, _budget_id(store), type, institution, owner)
    typer.echo(f"Added account: {name}")


@accounts_app.command("list")
def accounts_list():
    """List all accounts."""
    with open_store() as store:
        accounts = store.list_accounts()

    table = Table(title="Accounts")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Institution")
    for a in accounts:
        table.add_row(a.id, a.name, a.account_type, a.institution or "")
    console.print(table)


# --- Categories ---

categories_app = typer.Typer(help="Manage categories.")
app.add_typer(categories_app, name="categories")


@categories_app.command("add")
def categories_add(
    name: str = typer.Argument(help="Category name"),
    type: str = typer.Option("expense", help="income or expense"),
):
    """Add a category to the default budget."""
    try:
        category_type = TransactionType(type.upper())
    except ValueError:
        typer.echo(f"Unknown category type: {type}")
        raise typer.Exit(1)
    with open_store() as store:
        store.create_category(name, _budget_id(store), category_type)
    typer.echo(f"Added category: {name}")


@categories_app.command("list")
def categories_list():
    """List active categories of the default budget."""
    with open_store() as store:
        categories = store.list_categories(_budget_id(store))

    table = Table(title="Categories")
    table.add_column("Name")
    table.add_column("Type", style="dim")
    for c in categories:
        table.add_row(c.name, c.category_type.value)
    console.print(table)


# --- Banks ---


@app.command()
def banks():
    """List supported bank formats in detection order."""
    table = Table(title="Supported Banks")
    table.add_column("#", style="dim")
    table.add_column("Key")
    table.add_column("Name")
    table.add_column("Files")
    for i, info in enumerate(registry.list_all(), 1):
        table.add_row(str(i), info.key, info.name, ", ".join(t.value for t in info.file_types))
    console.print(table)


@app.command()
def detect(file: Path = typer.Argument(help="Statement file to inspect", exists=True, dir_okay=False)):
    """Show which bank formats recognize a file and what each one extracts."""
    info = registry.detect(file)
    typer.echo(f"Detected: {info.name if info else 'none (generic parsers)'}")

    table = Table(title=f"Parsers for {file.name}")
    table.add_column("Key")
    table.add_column("Matches")
    table.add_column("Transactions", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Failure")
    for entry in registry.probe(file):
        table.add_row(
            entry["key"], "yes" if entry["matches"] else "",
            str(entry["transactions"]), str(entry["errors"]), entry["error"] or "",
        )
    console.print(table)


# --- Import ---


def _date_option(value: str | None):
    if not value:
        return None
    try:
        return parse_date(value)
    except InvalidDate as exc:
        typer.echo(str(exc))
        raise typer.Exit(1)


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(help="Statement file (CSV, TXT, XLS, XLSX or PDF)", exists=True, dir_okay=False),
    account: str = typer.Option(help="Account name to import into"),
    start: str = typer.Option(None, help="Only rows on or after this date"),
    end: str = typer.Option(None, help="Only rows on or before this date"),
):
    """Parse a statement and stage its transactions for review."""
    date_range = None
    if start or end:
        date_range = DateRange(_date_option(start), _date_option(end))

    # The pipeline consumes its input, so it gets a copy.
    fd, tmp_name = tempfile.mkstemp(suffix=file.suffix)
    with open(fd, "wb") as tmp:
        tmp.write(file.read_bytes())

    with open_store() as store:
        acct = store.find_account_by_name(account)
        if acct is None:
            Path(tmp_name).unlink(missing_ok=True)
            typer.echo(f"Unknown account: {account}")
            raise typer.Exit(1)
        service = ImportService(store)
        try:
            summary = service.upload(Path(tmp_name), acct.id, filename=file.name, date_range=date_range)
        except NoTransactionsError as exc:
            typer.echo(f"No transactions found in {file.name} (session {exc.session_id})")
            for error in exc.errors:
                typer.echo(f"  {error}")
            raise typer.Exit(1)

    bank = summary.bank_name or "generic format"
    typer.echo(f"{summary.total_transactions} staged, {summary.duplicates_found} possible duplicates ({bank})")
    for error in summary.errors:
        typer.echo(f"  {error}")
    typer.echo(f"Session: {summary.session_id}")

    # Archive the import file
    dest = get_data_dir() / "imports" / file.name
    if dest.parent.is_dir() and not dest.exists():
        shutil.copy2(file, dest)


# --- Sessions ---


@app.command()
def sessions(limit: int = typer.Option(50, help="How many sessions to show")):
    """List recent import sessions."""
    with open_store() as store:
        rows = ImportService(store).list_sessions(limit=limit)

    table = Table(title="Import Sessions")
    table.add_column("ID", style="dim")
    table.add_column("File")
    table.add_column("Bank")
    table.add_column("Status")
    table.add_column("Transactions", justify="right")
    table.add_column("Created")
    for s in rows:
        table.add_row(
            s.id, s.filename, s.bank_name or "", s.status.value, str(s.total_transactions),
            s.created_at.strftime("%d/%m/%Y %H:%M") if s.created_at else "",
        )
    console.print(table)


@app.command()
def show(session_id: str = typer.Argument(help="Import session ID")):
    """Show the staged transactions of a session."""
    with open_store() as store:
        details = ImportService(store).get_session_details(session_id)
    session = details["session"]
    names = {c.id: c.name for c in details["available_categories"]}

    table = Table(title=f"{session.filename} ({session.status.value})")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    table.add_column("Duplicate")
    for t in details["transactions"]:
        table.add_row(
            t.id, t.date.strftime("%d/%m/%Y"), t.description, format_amount(t.amount, t.type),
            names.get(t.category_id, ""), t.duplicate_reason or "",
        )
    console.print(table)
    summary = details["summary"]
    console.print(
        f"{summary['total']} total, {summary['classified']} classified, "
        f"{summary['duplicates']} duplicates, {summary['pending']} pending"
    )


@app.command()
def classify(
    temp_id: str = typer.Argument(help="Staged transaction ID"),
    category: str = typer.Option(help="Category name to assign"),
):
    """Assign a category to one staged transaction."""
    with open_store() as store:
        cat = store.find_category_by_name(_budget_id(store), category)
        if cat is None:
            typer.echo(f"Unknown category: {category}")
            raise typer.Exit(1)
        ImportService(store).classify_transaction(temp_id, cat.id)
    typer.echo(f"Classified as {category}")


@app.command()
def review(session_id: str = typer.Argument(help="Import session ID")):
    """Interactively classify the staged transactions of a session."""
    with open_store() as store:
        run_review(ImportService(store), session_id)


@app.command()
def confirm(
    session_id: str = typer.Argument(help="Import session ID"),
    import_duplicates: bool = typer.Option(False, "--import-duplicates", help="Also import rows flagged as duplicates"),
):
    """Import the classified transactions of a session."""
    with open_store() as store:
        result = ImportService(store).confirm_import(session_id, import_duplicates=import_duplicates)
    typer.echo(f"{result['imported_count']} transactions imported")


@app.command()
def cancel(session_id: str = typer.Argument(help="Import session ID")):
    """Cancel a session and discard its staged transactions."""
    with open_store() as store:
        ImportService(store).cancel_session(session_id)
    typer.echo(f"Cancelled session {session_id}")


if __name__ == "__main__":
    app()
