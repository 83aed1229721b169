from pathlib import Path

from extrato.dialects.common import any_line, detect_account_type, dict_rows, find_line, hint_name, join_parts, pick, tag
from extrato.encoding import read_text
from extrato.errors import FileParseError
from extrato.models import DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import parse_date
from extrato.rows import RowCollector, credit_minus_debit, make_transaction

BANK = "C6 Bank"


def can_parse(filename_hint: str | None, first_lines: list[str]) -> bool:
    name = hint_name(filename_hint)
    if name.startswith(("c6-", "c6_")):
        return True
    if any_line(first_lines, "c6 bank") or any_line(first_lines, "extrato de conta corrente c6"):
        return True
    return any_line(first_lines, "data lancamento", "entrada(r$)", "saida(r$)")


def parse(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """C6 statement with a preamble; Entrada(R$) and Saída(R$) columns."""
    lines = read_text(file_path).splitlines()
    start = find_line(lines, "data lancamento", "entrada")
    if start is None:
        raise FileParseError("C6 header (Data Lançamento, Entrada, Saída) not found")
    account_type = detect_account_type(file_path.name)
    collector = RowCollector(options, bank_name=BANK, account_type=account_type, parser="c6")

    def build(row, raw):
        return make_transaction(
            join_parts(pick(row, "titulo"), pick(row, "descricao")),
            credit_minus_debit(pick(row, "entrada"), pick(row, "saida")),
            parse_date(pick(row, "data lancamento", "data contabil")),
            original_data=tag(BANK, account_type, raw),
        )

    for line_no, row, raw in dict_rows(lines, ",", start):
        collector.add(line_no, lambda: build(row, raw))
    return collector.finish()


DIALECT = DialectInfo(
    key="c6", name="C6 Bank",
    file_types=[FileType.CSV], can_parse=can_parse, parse=parse,
)
