import re
from pathlib import Path

from extrato.dialects.common import hint_is_excel, hint_name, hint_suffix, join_parts, tag
from extrato.excel_parser import read_sheet
from extrato.errors import FileParseError
from extrato.models import CHECKING, DialectInfo, FileType, ParseOptions, ParseResult, TransactionType
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.pdf_parser import extract_lines, reconstruct_records, section_transactions
from extrato.rows import RowCollector, make_transaction

BANK = "BTG Pactual"

PDF_SECTION_START = ("data", "descricao")
PDF_SECTION_STOP = ("totalizadores", "informacoes gerais", "saldo final")
INCOME_WORDS = re.compile(r"recebimento|credito|rendimento|resgate|deposito")

# Positional layout of the Excel export, used when a header cell is missing.
EXCEL_COLUMNS = {"data e hora": 1, "categoria": 2, "transacao": 3, "descricao": 5, "valor": 9}


def can_parse_pdf(filename_hint: str | None, first_lines: list[str]) -> bool:
    return "btg" in hint_name(filename_hint) and hint_suffix(filename_hint) == ".pdf"


def can_parse_excel(filename_hint: str | None, first_lines: list[str]) -> bool:
    return "btg" in hint_name(filename_hint) and hint_is_excel(filename_hint)


def pdf_transaction_type(description: str, amount_text: str) -> TransactionType:
    if INCOME_WORDS.search(normalize_text(description)):
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def parse_pdf(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """BTG PDF statement: records split over a date line and continuation lines."""
    records = reconstruct_records(extract_lines(file_path), PDF_SECTION_START, PDF_SECTION_STOP)
    result = section_transactions(
        records, options, type_rule=pdf_transaction_type, source=BANK, parser="btg_pdf",
    )
    result.bank_name = BANK
    result.account_type = CHECKING
    return result


def _excel_columns(header: list) -> dict[str, int]:
    folded = [normalize_text(v) for v in header]
    columns = {}
    for name, default in EXCEL_COLUMNS.items():
        columns[name] = next((i for i, h in enumerate(folded) if h.startswith(name)), default)
    return columns


def parse_excel(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """BTG Excel export; the header row has "Data e hora" in its second cell."""
    rows = read_sheet(file_path)
    start = next(
        (i for i, row in enumerate(rows) if len(row) > 1 and "data e hora" in normalize_text(row[1])),
        None,
    )
    if start is None:
        raise FileParseError("BTG header (Data e hora) not found")
    columns = _excel_columns(rows[start])
    headers = [str(v or "") for v in rows[start]]
    collector = RowCollector(options, bank_name=BANK, account_type=CHECKING, parser="btg_excel")

    def cell(row, name):
        i = columns[name]
        return row[i] if i < len(row) else None

    def build(row):
        category, kind, detail = cell(row, "categoria"), cell(row, "transacao"), cell(row, "descricao")
        if "saldo diario" in normalize_text(join_parts(category, kind, detail)):
            return None
        return make_transaction(
            join_parts(category, kind, detail),
            parse_amount(cell(row, "valor")),
            parse_date(cell(row, "data e hora")),
            original_data=tag(BANK, CHECKING, dict(zip(headers, row))),
        )

    for line_no, row in enumerate(rows[start + 1:], start=start + 2):
        if not any(v is not None for v in row):
            continue
        collector.add(line_no, lambda: build(row))
    return collector.finish()


PDF = DialectInfo(
    key="btg_pdf", name="BTG Pactual (PDF)",
    file_types=[FileType.PDF], can_parse=can_parse_pdf, parse=parse_pdf,
    account_type=CHECKING,
)
EXCEL = DialectInfo(
    key="btg_excel", name="BTG Pactual (Excel)",
    file_types=[FileType.EXCEL], can_parse=can_parse_excel, parse=parse_excel,
    account_type=CHECKING,
)
