import logging
import re
from datetime import date
from decimal import Decimal

from extrato.errors import InvalidAmount, RowError
from extrato.models import ParseOptions, ParseResult, ParsedTransaction, TransactionType
from extrato.normalize import clean_description, in_range, is_future, normalize_text, parse_amount

logger = logging.getLogger(__name__)

# Credit-card lines that move money back to the holder.
REFUND_PATTERN = re.compile(
    r"pagamento recebido|transferencia recebida|pix recebido|estorno|reembolso"
)


def card_transaction_type(description: str, amount: Decimal) -> TransactionType:
    """Card exports list purchases as positive values."""
    if amount < 0 or REFUND_PATTERN.search(normalize_text(description)):
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def optional_amount(value) -> Decimal:
    if value is None or not str(value).strip():
        return Decimal("0.00")
    return parse_amount(value)


def credit_minus_debit(credit, debit) -> Decimal:
    """Signed amount from separate credit and debit columns; debits may be pre-signed."""
    return abs(optional_amount(credit)) - abs(optional_amount(debit))


def make_transaction(
    description,
    amount: Decimal,
    txn_date: date,
    txn_type: TransactionType | None = None,
    original_data: dict | None = None,
) -> ParsedTransaction:
    """Build a ParsedTransaction from a signed amount, or a magnitude plus an explicit type."""
    description = clean_description(description)
    if not description:
        raise RowError("Empty description")
    if amount == 0:
        raise InvalidAmount("Zero amount")
    if txn_type is None:
        txn_type = TransactionType.INCOME if amount > 0 else TransactionType.EXPENSE
    return ParsedTransaction(
        description=description,
        amount=abs(amount),
        type=txn_type,
        date=txn_date,
        original_data=original_data or {},
    )


class RowCollector:
    """Accumulates one parser's output and applies the rules every parser shares.

    Future-dated rows are always reported as errors. Rows outside the date
    filter are dropped without an error. Both still count as processed.
    """

    def __init__(
        self,
        options: ParseOptions | None = None,
        bank_name: str | None = None,
        account_type: str | None = None,
        parser: str | None = None,
    ):
        self.options = options or ParseOptions()
        self.today = self.options.today or date.today()
        self.result = ParseResult(bank_name=bank_name, account_type=account_type, parser=parser)

    def processed(self) -> None:
        self.result.total_processed += 1

    def error(self, line_no: int, exc: Exception | str) -> None:
        self.result.errors.append(f"Line {line_no}: {exc}")

    def accept(self, line_no: int, txn: ParsedTransaction) -> bool:
        if is_future(txn.date, self.today):
            self.error(line_no, f"Future date {txn.date.strftime('%d/%m/%Y')}")
            return False
        if not in_range(txn.date, self.options.date_range):
            return False
        self.result.transactions.append(txn)
        return True

    def add(self, line_no: int, build) -> bool:
        """Count a row, build it and accept it, recording any RowError."""
        self.processed()
        try:
            txn = build()
        except RowError as exc:
            self.error(line_no, exc)
            return False
        if txn is None:
            return False
        return self.accept(line_no, txn)

    def finish(self) -> ParseResult:
        logger.debug(
            "%s: %d transactions, %d errors, %d rows",
            self.result.parser, len(self.result.transactions), len(self.result.errors),
            self.result.total_processed,
        )
        return self.result
