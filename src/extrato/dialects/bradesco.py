import csv
import logging
from pathlib import Path

from extrato.dialects.common import DATE_CELL, any_line, detect_account_type, hint_is_text, hint_name, tag
from extrato.encoding import read_text
from extrato.errors import FileParseError
from extrato.models import DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import clean_description, normalize_text, parse_date
from extrato.rows import RowCollector, credit_minus_debit, make_transaction

logger = logging.getLogger(__name__)

BANK = "Bradesco"

NOTICES = (
    "extrato inexistente",
    "filtro de resultado",
    "movimentacao entre",
    "os dados acima",
    "nao ha lancamentos",
)
SECTION_END = "ultimos lancamentos"


def preamble(first_lines: list[str]) -> list[str]:
    """Lines before the header or the first dated row."""
    lines = []
    for line in first_lines:
        if DATE_CELL.match(line) or normalize_text(line).startswith("data"):
            break
        lines.append(line)
    return lines


def can_parse(filename_hint: str | None, first_lines: list[str]) -> bool:
    if "bradesco" in hint_name(filename_hint) and hint_is_text(filename_hint):
        return True
    if any_line(preamble(first_lines), "bradesco"):
        return True
    return any_line(first_lines, "data", "historico", "credito", "debito")


def _is_header(line: str) -> bool:
    text = normalize_text(line)
    return "data" in text and "historico" in text and ("credito" in text or "debito" in text)


def find_data_start(lines: list[str]) -> int:
    """Index of the header line; transactions follow it."""
    for index, line in enumerate(lines):
        if _is_header(line):
            return index
    raise FileParseError("Bradesco header (Data;Histórico;Crédito;Débito) not found")


def _column(headers: list[str], name: str, default: int) -> int:
    for i, h in enumerate(headers):
        if name in normalize_text(h):
            return i
    return default


def parse(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Bradesco ';' statement: preamble, header, rows until "Últimos Lançamentos"."""
    lines = read_text(file_path).splitlines()
    start = find_data_start(lines)
    logger.debug("Bradesco header on line %d", start + 1)
    headers = next(csv.reader([lines[start]], delimiter=";"))
    date_col = _column(headers, "data", 0)
    hist_col = _column(headers, "historico", 1)
    credit_col = _column(headers, "credito", 3)
    debit_col = _column(headers, "debito", 4)
    account_type = detect_account_type(file_path.name)
    collector = RowCollector(options, bank_name=BANK, account_type=account_type, parser="bradesco")

    def cell(cells, i):
        return cells[i] if i < len(cells) else ""

    def build(cells):
        description = cell(cells, hist_col)
        if normalize_text(description).startswith("saldo"):
            return None
        return make_transaction(
            description,
            credit_minus_debit(cell(cells, credit_col), cell(cells, debit_col)),
            parse_date(cell(cells, date_col)),
            original_data=tag(BANK, account_type, dict(zip(headers, cells))),
        )

    started = False
    previous = None
    for line_no, line in enumerate(lines[start + 1:], start=start + 2):
        text = normalize_text(line)
        if SECTION_END in text:
            break
        if not text.strip(" ;") or any(n in text for n in NOTICES):
            continue
        cells = next(csv.reader([line], delimiter=";"))
        if not DATE_CELL.match(cell(cells, date_col)):
            # A blank date with a description continues the previous row's history,
            # dropped when that row was filtered out or rejected.
            extra = cell(cells, hist_col).strip()
            if not cell(cells, date_col).strip() and extra:
                if previous is not None:
                    previous.description = clean_description(f"{previous.description} {extra}")
                continue
            if started:
                break
            continue
        started = True
        before = len(collector.result.transactions)
        collector.add(line_no, lambda: build(cells))
        previous = collector.result.transactions[-1] if len(collector.result.transactions) > before else None
    return collector.finish()


DIALECT = DialectInfo(
    key="bradesco", name="Bradesco",
    file_types=[FileType.CSV], can_parse=can_parse, parse=parse,
)
