from decimal import Decimal

from rich.console import Console
from rich.prompt import Prompt
from rich.rule import Rule
from rich.table import Table

from extrato.models import TransactionType
from extrato.sessions import ImportService

console = Console()


def format_brl(amount: Decimal) -> str:
    """1234.5 -> "R$ 1.234,50"."""
    text = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {text}"


def format_amount(amount: Decimal, txn_type: TransactionType) -> str:
    color = "green" if txn_type == TransactionType.INCOME else "red"
    sign = "" if txn_type == TransactionType.INCOME else "-"
    return f"[{color}]{sign}{format_brl(amount)}[/{color}]"


def run_review(service: ImportService, session_id: str) -> int:
    """Interactive classification loop over a session's unclassified rows. Returns how many were classified."""
    details = service.get_session_details(session_id)
    todo = [t for t in details["transactions"] if not t.is_classified]
    if not todo:
        console.print("[green]No transactions left to classify.[/green]")
        return 0

    categories = details["available_categories"]
    console.print(f"\n[bold]{len(todo)} transactions to classify[/bold]\n")

    cat_table = Table(title="Categories", show_lines=False)
    cat_table.add_column("#", style="dim")
    cat_table.add_column("Name")
    cat_table.add_column("Type", style="dim")
    for i, cat in enumerate(categories, 1):
        cat_table.add_row(str(i), cat.name, cat.category_type.value)
    console.print(cat_table)
    console.print()

    classified = 0
    for txn in todo:
        console.print(Rule())
        console.print(f"  [bold]Date:[/bold]        {txn.date.strftime('%d/%m/%Y')}")
        console.print(f"  [bold]Description:[/bold] {txn.description}")
        console.print(f"  [bold]Amount:[/bold]      {format_amount(txn.amount, txn.type)}")
        if txn.is_duplicate:
            console.print(f"  [yellow]Possible duplicate: {txn.duplicate_reason}[/yellow]")
        console.print()

        choice = Prompt.ask("Category # (or [bold]s[/bold]kip, [bold]q[/bold]uit)")

        if choice.lower() == "q":
            console.print("[yellow]Review paused.[/yellow]")
            return classified
        if choice.lower() == "s":
            continue

        try:
            idx = int(choice) - 1
            if idx < 0:
                raise IndexError(idx)
            cat = categories[idx]
        except (ValueError, IndexError):
            console.print("[red]Invalid choice, skipping.[/red]")
            continue

        service.classify_transaction(txn.id, cat.id)
        classified += 1
        console.print(f"[green]→ Classified as {cat.name}[/green]\n")

    console.print("[green]Review complete![/green]")
    return classified
