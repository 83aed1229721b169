from pathlib import Path

from extrato.dialects.common import dict_rows, hint_is_text, hint_name, pick, tag
from extrato.encoding import read_text
from extrato.models import CHECKING, CREDIT_CARD, DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, card_transaction_type, make_transaction

BANK = "Nubank"


def _header(first_lines: list[str]) -> set[str]:
    if not first_lines:
        return set()
    return {normalize_text(c) for c in first_lines[0].split(",")}


def can_parse_card(filename_hint: str | None, first_lines: list[str]) -> bool:
    return {"date", "title", "amount"} <= _header(first_lines)


def can_parse_account(filename_hint: str | None, first_lines: list[str]) -> bool:
    header = _header(first_lines)
    if {"data", "valor", "identificador", "descricao"} <= header:
        return True
    if {"date", "description", "amount"} <= header:
        return True
    return "nubank" in hint_name(filename_hint) and hint_is_text(filename_hint)


def parse_card(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Nubank credit card CSV: date,category,title,amount with purchases positive."""
    lines = read_text(file_path).splitlines()
    collector = RowCollector(options, bank_name=BANK, account_type=CREDIT_CARD, parser="nubank_card")

    def build(row, raw):
        description = pick(row, "title", "description")
        amount = parse_amount(pick(row, "amount"))
        return make_transaction(
            description, amount, parse_date(pick(row, "date")),
            card_transaction_type(description, amount),
            tag(BANK, CREDIT_CARD, raw, category=row.get("category") or None),
        )

    for line_no, row, raw in dict_rows(lines, ","):
        collector.add(line_no, lambda: build(row, raw))
    return collector.finish()


def parse_account(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Nubank account CSV: Data,Valor,Identificador,Descrição with signed values."""
    lines = read_text(file_path).splitlines()
    collector = RowCollector(options, bank_name=BANK, account_type=CHECKING, parser="nubank_account")

    def build(row, raw):
        return make_transaction(
            pick(row, "descricao", "description", "title"),
            parse_amount(pick(row, "valor", "amount")),
            parse_date(pick(row, "data", "date")),
            original_data=tag(BANK, CHECKING, raw, identifier=row.get("identificador") or None),
        )

    for line_no, row, raw in dict_rows(lines, ","):
        collector.add(line_no, lambda: build(row, raw))
    return collector.finish()


CARD = DialectInfo(
    key="nubank_card", name="Nubank Cartão de Crédito",
    file_types=[FileType.CSV], can_parse=can_parse_card, parse=parse_card,
    account_type=CREDIT_CARD,
)
ACCOUNT = DialectInfo(
    key="nubank_account", name="Nubank Conta",
    file_types=[FileType.CSV], can_parse=can_parse_account, parse=parse_account,
    account_type=CHECKING,
)
