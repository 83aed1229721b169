import re
from pathlib import Path

from extrato.dialects.common import any_line, dict_rows, find_line, hint_is_text, hint_name, pick, tag
from extrato.encoding import read_text
from extrato.errors import FileParseError
from extrato.models import CHECKING, CREDIT_CARD, DialectInfo, FileType, ParseOptions, ParseResult
from extrato.normalize import normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, card_transaction_type, make_transaction

BANK = "XP"

CARD_HINT = re.compile(r"cartao|fatura|credito")
ACCOUNT_HINT = re.compile(r"^xp[_-]")


def can_parse_card(filename_hint: str | None, first_lines: list[str]) -> bool:
    return any_line(first_lines, "estabelecimento", "portador", "parcela")


def can_parse_account(filename_hint: str | None, first_lines: list[str]) -> bool:
    name = hint_name(filename_hint)
    if CARD_HINT.search(name):
        return False
    if ACCOUNT_HINT.match(name) and hint_is_text(filename_hint):
        return True
    if not first_lines:
        return False
    header = normalize_text(first_lines[0])
    # Inter shares these columns but labels them Histórico / Data Lançamento.
    if "historico" in header or "lancamento" in header:
        return False
    return all(k in header for k in ("data", "descricao", "valor", "saldo"))


def parse_card(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """XP card invoice: Data;Estabelecimento;Portador;Valor;Parcela."""
    lines = read_text(file_path).splitlines()
    start = find_line(lines, "estabelecimento", "portador", limit=10)
    if start is None:
        raise FileParseError("XP card header not found")
    collector = RowCollector(options, bank_name=BANK, account_type=CREDIT_CARD, parser="xp_card")

    def build(row, raw):
        merchant = pick(row, "estabelecimento")
        holder = pick(row, "portador")
        installment = pick(row, "parcela")
        description = merchant
        if merchant and holder:
            description = f"{merchant} ({holder})"
        if merchant and installment and installment != "-":
            description = f"{description} [{installment}]"
        amount = parse_amount(pick(row, "valor"))
        return make_transaction(
            description, amount, parse_date(pick(row, "data")),
            card_transaction_type(merchant, amount),
            tag(BANK, CREDIT_CARD, raw, holder=holder or None, installment=installment or None),
        )

    for line_no, row, raw in dict_rows(lines, ";", start):
        collector.add(line_no, lambda: build(row, raw))
    return collector.finish()


def parse_account(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """XP account statement: Data;Descricao;Valor;Saldo, dates like "05/01/25 às 10:00:00"."""
    lines = read_text(file_path).splitlines()
    start = find_line(lines, "data", "descricao", "valor", limit=10)
    if start is None:
        raise FileParseError("XP account header not found")
    collector = RowCollector(options, bank_name=BANK, account_type=CHECKING, parser="xp_account")

    def build(row, raw):
        return make_transaction(
            pick(row, "descricao", "description"),
            parse_amount(pick(row, "valor")),
            parse_date(pick(row, "data")),
            original_data=tag(BANK, CHECKING, raw, balance=row.get("saldo") or None),
        )

    for line_no, row, raw in dict_rows(lines, ";", start):
        collector.add(line_no, lambda: build(row, raw))
    return collector.finish()


CARD = DialectInfo(
    key="xp_card", name="XP Cartão de Crédito",
    file_types=[FileType.CSV], can_parse=can_parse_card, parse=parse_card,
    account_type=CREDIT_CARD,
)
ACCOUNT = DialectInfo(
    key="xp_account", name="XP Conta",
    file_types=[FileType.CSV], can_parse=can_parse_account, parse=parse_account,
    account_type=CHECKING,
)
