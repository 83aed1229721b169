from pathlib import Path

from extrato.dialects.common import any_line, hint_is_excel, hint_name, tag
from extrato.errors import FileParseError
from extrato.excel_parser import read_sheet, row_text
from extrato.models import INVESTMENT, DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, make_transaction

BANK = "Clear"

HEADER = ("movimentacao", "liquidacao", "lancamento")
FUTURE_SECTION = "lancamentos futuros"
EMPTY_NOTICE = "nao ha lancamentos"


def can_parse(filename_hint: str | None, first_lines: list[str]) -> bool:
    name = hint_name(filename_hint)
    if "clear" in name and "investimento" in name and hint_is_excel(filename_hint):
        return True
    return any_line(first_lines, *HEADER)


def _column(header: list, name: str, default: int) -> int:
    folded = [normalize_text(v) for v in header]
    return next((i for i, h in enumerate(folded) if h.startswith(name)), default)


def parse(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Clear investment account movements; stops before future entries."""
    rows = read_sheet(file_path)
    start = next(
        (i for i, row in enumerate(rows) if all(h in normalize_text(row_text(row)) for h in HEADER)),
        None,
    )
    if start is None:
        raise FileParseError("Clear header (Movimentação, Liquidação, Lançamento) not found")
    header = rows[start]
    headers = [str(v or "") for v in header]
    date_col = _column(header, "movimentacao", 0)
    desc_col = _column(header, "lancamento", 2)
    value_col = _column(header, "valor", 4)
    collector = RowCollector(options, bank_name=BANK, account_type=INVESTMENT, parser="clear")

    def cell(row, i):
        return row[i] if i < len(row) else None

    def build(row):
        return make_transaction(
            cell(row, desc_col),
            parse_amount(cell(row, value_col)),
            parse_date(cell(row, date_col)),
            original_data=tag(BANK, INVESTMENT, dict(zip(headers, row))),
        )

    for line_no, row in enumerate(rows[start + 1:], start=start + 2):
        text = normalize_text(row_text(row))
        if FUTURE_SECTION in text:
            break
        if not text.strip(" ;") or EMPTY_NOTICE in text:
            continue
        collector.add(line_no, lambda: build(row))
    return collector.finish()


DIALECT = DialectInfo(
    key="clear", name="Clear Investimentos",
    file_types=[FileType.EXCEL], can_parse=can_parse, parse=parse,
    account_type=INVESTMENT,
)
