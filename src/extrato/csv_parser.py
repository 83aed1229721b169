import csv
import logging
from dataclasses import dataclass
from pathlib import Path

from extrato.encoding import read_text
from extrato.errors import FileParseError
from extrato.models import ParseOptions, ParseResult
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, card_transaction_type, credit_minus_debit, make_transaction

logger = logging.getLogger(__name__)

DELIMITERS = (",", ";", "\t")
HEADER_SCAN_LINES = 10

DATE_ALIASES = ("data", "date", "dt.")
DESCRIPTION_ALIASES = (
    "descricao", "description", "historico", "title", "titulo", "estabelecimento",
    "lancamento", "transacao", "memo", "detalhe",
)
AMOUNT_ALIASES = ("valor", "amount", "value", "quantia")
CREDIT_ALIASES = ("credito", "entrada", "credit")
DEBIT_ALIASES = ("debito", "saida", "debit")


@dataclass
class ColumnMap:
    date: int
    description: int
    amount: int | None = None
    credit: int | None = None
    debit: int | None = None
    card: bool = False  # date,title,amount layout where positive = purchase


def split_line(line: str, delimiter: str) -> list[str]:
    return next(csv.reader([line], delimiter=delimiter), [])


def sniff_delimiter(line: str) -> str:
    return max(DELIMITERS, key=lambda d: len(split_line(line, d)))


def resolve_columns(headers: list) -> ColumnMap | None:
    """Map header cells to date/description/amount columns, accent- and case-insensitive."""
    folded = [normalize_text(h) for h in headers]
    used: set[int] = set()

    def find(aliases, exclude=("saldo",)):
        for alias in aliases:
            for i, name in enumerate(folded):
                if i in used or alias not in name or any(x in name for x in exclude):
                    continue
                used.add(i)
                return i
        return None

    date_col = find(DATE_ALIASES)
    amount_col = find(AMOUNT_ALIASES)
    credit_col = find(CREDIT_ALIASES)
    debit_col = find(DEBIT_ALIASES)
    desc_col = find(DESCRIPTION_ALIASES)

    if date_col is None or desc_col is None:
        return None
    if amount_col is None and credit_col is None and debit_col is None:
        return None
    card = {"date", "title", "amount"} <= set(folded)
    return ColumnMap(date_col, desc_col, amount_col, credit_col, debit_col, card)


def find_header(lines: list[str], max_lines: int = HEADER_SCAN_LINES) -> tuple[int, str, list[str], ColumnMap]:
    """Locate the real header row among the first lines, trying each delimiter."""
    for index, line in enumerate(lines[:max_lines]):
        for delimiter in DELIMITERS:
            if delimiter not in line:
                continue
            headers = split_line(line, delimiter)
            columns = resolve_columns(headers)
            if columns is not None:
                logger.debug("Header found on line %d with delimiter %r", index + 1, delimiter)
                return index, delimiter, headers, columns
    raise FileParseError(f"No header row found in the first {max_lines} lines")


def _cell(cells: list, index: int | None):
    if index is None or index >= len(cells):
        return None
    return cells[index]


def row_to_transaction(cells: list, headers: list, columns: ColumnMap, source: str):
    """Map one data row through a ColumnMap; returns None for balance lines."""
    description = str(_cell(cells, columns.description) or "").strip()
    if normalize_text(description).startswith("saldo"):
        return None
    txn_date = parse_date(_cell(cells, columns.date))
    if columns.amount is not None:
        amount = parse_amount(_cell(cells, columns.amount))
    else:
        amount = credit_minus_debit(_cell(cells, columns.credit), _cell(cells, columns.debit))
    txn_type = card_transaction_type(description, amount) if columns.card else None
    raw = {str(h): c for h, c in zip(headers, cells)}
    return make_transaction(description, amount, txn_date, txn_type, {"bank": source, "raw": raw})


def _collect(lines, start, delimiter, headers, columns, collector: RowCollector, source: str) -> ParseResult:
    reader = csv.reader(lines[start:], delimiter=delimiter)
    for cells in reader:
        line_no = start + reader.line_num
        if not any(str(c).strip() for c in cells):
            continue
        collector.add(line_no, lambda: row_to_transaction(cells, headers, columns, source))
    return collector.finish()


def parse_advanced_csv(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Parse a CSV whose header may sit below a preamble of notices."""
    lines = read_text(file_path).splitlines()
    index, delimiter, headers, columns = find_header(lines)
    collector = RowCollector(options, parser="advanced_csv")
    return _collect(lines, index + 1, delimiter, headers, columns, collector, "generic")


def parse_basic_csv(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Parse a CSV with its header on the first line; unknown headers map positionally."""
    lines = read_text(file_path).splitlines()
    while lines and not lines[0].strip():
        lines.pop(0)
    if not lines:
        raise FileParseError("Empty file")
    delimiter = sniff_delimiter(lines[0])
    headers = split_line(lines[0], delimiter)
    columns = resolve_columns(headers)
    if columns is None:
        if len(headers) < 3:
            raise FileParseError("Need at least date, description and amount columns")
        logger.debug("Unrecognized header %r, using date/description/amount by position", headers)
        columns = ColumnMap(date=0, description=1, amount=2)
    collector = RowCollector(options, parser="basic_csv")
    return _collect(lines, 1, delimiter, headers, columns, collector, "generic")
