import re
from pathlib import Path

from extrato.dialects.common import detect_account_type, hint_is_excel, hint_name, hint_suffix, tag
from extrato.encoding import read_text
from extrato.errors import FileParseError, RowError
from extrato.excel_parser import read_sheet
from extrato.models import DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, make_transaction

BANK = "Itaú"

TXT_LINE = re.compile(r"^\s*\d{1,2}/\d{1,2}/\d{2,4}\s*;[^;]*;\s*-?[\d.,]+\s*;?\s*$")
SKIPPED = ("saldo anterior", "saldo total disponivel", "saldo do dia", "saldo final")


def can_parse_excel(filename_hint: str | None, first_lines: list[str]) -> bool:
    return "itau" in hint_name(filename_hint) and hint_is_excel(filename_hint)


def can_parse_txt(filename_hint: str | None, first_lines: list[str]) -> bool:
    if "itau" in hint_name(filename_hint) and hint_suffix(filename_hint) == ".txt":
        return True
    sample = [line for line in first_lines if line.strip()]
    return bool(sample) and all(TXT_LINE.match(line) for line in sample)


def _is_header(row: list) -> bool:
    return (
        len(row) > 1
        and normalize_text(row[0]) == "data"
        and "lancamento" in normalize_text(row[1])
    )


def parse_excel(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Itaú Excel: Data | Lançamento | Ag./Origem | Valor (R$) | Saldo (R$)."""
    rows = read_sheet(file_path)
    start = next((i for i, row in enumerate(rows) if _is_header(row)), None)
    if start is None:
        raise FileParseError("Itaú header (data, lançamento) not found")
    headers = [str(v or "") for v in rows[start]]
    account_type = detect_account_type(file_path.name)
    collector = RowCollector(options, bank_name=BANK, account_type=account_type, parser="itau_excel")

    def build(row):
        description = row[1] if len(row) > 1 else None
        if any(s in normalize_text(description) for s in SKIPPED):
            return None
        origin = row[2] if len(row) > 2 else None
        return make_transaction(
            description,
            parse_amount(row[3] if len(row) > 3 else None),
            parse_date(row[0]),
            original_data=tag(BANK, account_type, dict(zip(headers, row)), origin=origin),
        )

    for line_no, row in enumerate(rows[start + 1:], start=start + 2):
        if not row or row[0] is None:
            continue
        collector.add(line_no, lambda: build(row))
    return collector.finish()


def parse_txt(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Itaú TXT export: one date;description;amount per line, no header."""
    account_type = detect_account_type(file_path.name)
    collector = RowCollector(options, bank_name=BANK, account_type=account_type, parser="itau_txt")

    def build(line):
        fields = [f.strip() for f in line.split(";")]
        if fields and fields[-1] == "":
            fields.pop()
        if len(fields) != 3:
            raise RowError("Expected date;description;amount")
        txn_date, description, amount = fields
        return make_transaction(
            description, parse_amount(amount), parse_date(txn_date),
            original_data=tag(BANK, account_type, line),
        )

    for line_no, line in enumerate(read_text(file_path).splitlines(), start=1):
        if not line.strip():
            continue
        collector.add(line_no, lambda: build(line))
    return collector.finish()


EXCEL = DialectInfo(
    key="itau_excel", name="Itaú (Excel)",
    file_types=[FileType.EXCEL], can_parse=can_parse_excel, parse=parse_excel,
)
TXT = DialectInfo(
    key="itau_txt", name="Itaú (TXT)",
    file_types=[FileType.CSV], can_parse=can_parse_txt, parse=parse_txt,
)
