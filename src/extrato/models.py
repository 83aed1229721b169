from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Callable


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class FileType(str, Enum):
    CSV = "CSV"
    EXCEL = "EXCEL"
    PDF = "PDF"


class SessionStatus(str, Enum):
    PROCESSING = "PROCESSING"
    PENDING = "PENDING"
    ERROR = "ERROR"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({SessionStatus.ERROR, SessionStatus.COMPLETED, SessionStatus.CANCELLED})

# Account types as stored on accounts and reported by dialects.
CHECKING = "conta_corrente"
SAVINGS = "conta_poupanca"
INVESTMENT = "conta_investimento"
CREDIT_CARD = "cartao_credito"
ACCOUNT_TYPES = (CHECKING, SAVINGS, INVESTMENT, CREDIT_CARD)


@dataclass
class DateRange:
    """Inclusive date filter; either bound may be open."""
    start: date | None = None
    end: date | None = None


@dataclass
class ParseOptions:
    date_range: DateRange | None = None
    today: date | None = None  # injectable "now" for the future-date rule


@dataclass
class ParsedTransaction:
    """Canonical output of every parser before staging."""
    description: str
    amount: Decimal  # magnitude, always > 0
    type: TransactionType
    date: date
    original_data: dict = field(default_factory=dict)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.INCOME else -self.amount


@dataclass
class ParseResult:
    transactions: list[ParsedTransaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_processed: int = 0
    bank_name: str | None = None
    account_type: str | None = None
    parser: str | None = None


@dataclass
class DuplicateResult:
    is_duplicate: bool
    reason: str | None = None
    existing_transaction_id: str | None = None
    similarity: float = 0.0


@dataclass
class ExistingTransaction:
    """Read model used by the duplicate detector."""
    id: str
    description: str
    amount: Decimal
    date: date
    type: TransactionType


@dataclass
class Budget:
    id: str
    name: str


@dataclass
class Account:
    id: str
    name: str
    budget_id: str
    account_type: str = CHECKING
    institution: str | None = None
    owner: str | None = None


@dataclass
class Category:
    id: str
    name: str
    budget_id: str
    category_type: TransactionType
    is_active: bool = True


@dataclass
class ImportSession:
    id: str
    filename: str
    file_type: FileType
    account_id: str
    budget_id: str
    status: SessionStatus = SessionStatus.PROCESSING
    total_transactions: int = 0
    bank_name: str | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None
    user_id: str | None = None


@dataclass
class TempTransaction:
    """A staged transaction awaiting classification and confirmation."""
    id: str
    session_id: str
    description: str
    amount: Decimal
    type: TransactionType
    date: date
    original_data: dict = field(default_factory=dict)
    is_duplicate: bool = False
    duplicate_reason: str | None = None
    is_classified: bool = False
    category_id: str | None = None


@dataclass
class Transaction:
    id: str
    account_id: str
    budget_id: str
    category_id: str
    description: str
    amount: Decimal
    type: TransactionType
    date: date
    import_session_id: str | None = None


@dataclass
class DialectInfo:
    """Metadata plus recognizer and parse function for one bank export layout."""
    key: str
    name: str
    file_types: list[FileType]
    can_parse: Callable  # (filename_hint, first_lines) -> bool
    parse: Callable  # (path, options) -> ParseResult
    account_type: str | None = None
    version: str = "1.0"
