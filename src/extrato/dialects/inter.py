from pathlib import Path

from extrato.dialects.common import any_line, detect_account_type, dict_rows, find_line, hint_name, join_parts, pick, tag
from extrato.encoding import read_text
from extrato.errors import FileParseError
from extrato.models import DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, make_transaction

BANK = "Banco Inter"


def can_parse(filename_hint: str | None, first_lines: list[str]) -> bool:
    if hint_name(filename_hint).startswith(("inter_", "inter-")):
        return True
    return any_line(first_lines, "extrato conta corrente") and any_line(
        first_lines, "data lancamento", "historico", "descricao"
    )


def parse(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Inter statement: preamble then Data Lançamento;Histórico;Descrição;Valor;Saldo."""
    lines = read_text(file_path).splitlines()
    start = find_line(lines, "data lancamento", "historico")
    if start is None:
        raise FileParseError("Inter header (Data Lançamento;Histórico) not found")
    account_type = detect_account_type(file_path.name)
    collector = RowCollector(options, bank_name=BANK, account_type=account_type, parser="inter")

    def build(row, raw):
        history = pick(row, "historico")
        if normalize_text(history).startswith("saldo"):
            return None
        return make_transaction(
            join_parts(history, pick(row, "descricao")),
            parse_amount(pick(row, "valor")),
            parse_date(pick(row, "data lancamento", "data")),
            original_data=tag(BANK, account_type, raw, balance=row.get("saldo") or None),
        )

    for line_no, row, raw in dict_rows(lines, ";", start):
        collector.add(line_no, lambda: build(row, raw))
    return collector.finish()


DIALECT = DialectInfo(
    key="inter", name="Banco Inter",
    file_types=[FileType.CSV], can_parse=can_parse, parse=parse,
)
