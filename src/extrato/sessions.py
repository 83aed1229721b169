import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

from extrato.db import new_id
from extrato.duplicates import DuplicateDetector
from extrato.errors import (
    AccountNotFoundError, AccountNotWritableError, InvalidCategoryError, InvalidSessionStateError,
    NoTransactionsError, NothingToImportError, SessionNotFoundError, TempTransactionNotFoundError,
)
from extrato.models import DateRange, ImportSession, ParseOptions, SessionStatus, TempTransaction
from extrato.pipeline import parse_statement
from extrato.registry import DialectRegistry, file_type_for, registry as default_registry
from extrato.settings import duplicate_settings
from extrato.store import ImportStore

logger = logging.getLogger(__name__)

TRANSITIONS = {
    SessionStatus.PROCESSING: {SessionStatus.PENDING, SessionStatus.ERROR, SessionStatus.CANCELLED},
    SessionStatus.PENDING: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
}


def can_transition(current: SessionStatus, new: SessionStatus) -> bool:
    return new in TRANSITIONS.get(current, set())


@dataclass
class UploadSummary:
    session_id: str
    total_transactions: int
    duplicates_found: int
    errors: list[str] = field(default_factory=list)
    bank_name: str | None = None
    parser: str | None = None


class ImportService:
    """Drives a statement through upload, classification and confirmation."""

    def __init__(
        self,
        store: ImportStore,
        registry: DialectRegistry | None = None,
        detector: DuplicateDetector | None = None,
        settings: dict | None = None,
    ):
        self.store = store
        self.registry = registry or default_registry
        self.detector = detector or DuplicateDetector(store, **duplicate_settings(settings))

    def _get_session(self, session_id: str) -> ImportSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _transition(self, session: ImportSession, new: SessionStatus, action: str, **fields) -> None:
        if not can_transition(session.status, new):
            raise InvalidSessionStateError(session.id, session.status, action)
        if not self.store.update_session_status(session.id, session.status, new, **fields):
            current = self._get_session(session.id).status
            raise InvalidSessionStateError(session.id, current, action)
        logger.info("Session %s: %s -> %s", session.id, session.status.value, new.value)
        session.status = new

    # --- Upload ---

    def upload(
        self,
        file_path: Path,
        account_id: str,
        filename: str | None = None,
        date_range: DateRange | None = None,
        user_id: str | None = None,
        today: date | None = None,
        remove_file: bool = True,
    ) -> UploadSummary:
        """Parse an uploaded statement and stage its transactions for review.

        The uploaded file is removed on every exit path unless ``remove_file``
        is False.
        """
        file_path = Path(file_path)
        filename = filename or file_path.name
        try:
            account = self.store.get_account(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            if user_id is not None and not self.store.account_writable_by_user(account_id, user_id):
                raise AccountNotWritableError(account_id, user_id)
            session = self.store.create_session(ImportSession(
                id=new_id(),
                filename=filename,
                file_type=file_type_for(filename, file_path),
                account_id=account_id,
                budget_id=account.budget_id,
                user_id=user_id,
            ))
            return self._stage(session, file_path, ParseOptions(date_range=date_range, today=today))
        finally:
            if remove_file:
                file_path.unlink(missing_ok=True)

    def _stage(self, session: ImportSession, file_path: Path, options: ParseOptions) -> UploadSummary:
        try:
            result = parse_statement(file_path, session.filename, options, self.registry)
            if not result.transactions:
                raise NoTransactionsError(session.id, result.errors)
            checked = self.detector.process_batch(result.transactions, session.account_id, session.budget_id)
            with self.store.atomic():
                self.store.create_temp_transactions_batch(session.id, checked)
                self._transition(
                    session, SessionStatus.PENDING, "stage",
                    total_transactions=len(checked), bank_name=result.bank_name, processed_at=datetime.now(),
                )
        except Exception:
            if self.store.update_session_status(session.id, SessionStatus.PROCESSING, SessionStatus.ERROR):
                logger.warning("Session %s: PROCESSING -> ERROR", session.id)
            raise
        return UploadSummary(
            session_id=session.id,
            total_transactions=len(checked),
            duplicates_found=sum(1 for _, dup in checked if dup.is_duplicate),
            errors=result.errors,
            bank_name=result.bank_name,
            parser=result.parser,
        )

    # --- Review ---

    def get_session_details(self, session_id: str) -> dict:
        session = self._get_session(session_id)
        temps = self.store.find_temp_transactions_by_session(session_id)
        classified = sum(1 for t in temps if t.is_classified)
        duplicates = sum(1 for t in temps if t.is_duplicate)
        pending = sum(1 for t in temps if not t.is_classified and not t.is_duplicate)
        return {
            "session": session,
            "transactions": temps,
            "available_categories": self.store.list_categories(session.budget_id),
            "summary": {"total": len(temps), "classified": classified, "duplicates": duplicates, "pending": pending},
        }

    def classify_transaction(self, temp_id: str, category_id: str) -> TempTransaction:
        temp = self.store.get_temp_transaction(temp_id)
        if temp is None:
            raise TempTransactionNotFoundError(temp_id)
        session = self._get_session(temp.session_id)
        if session.status != SessionStatus.PENDING:
            raise InvalidSessionStateError(session.id, session.status, "classify transactions of")
        if not self.store.category_belongs_to_budget(category_id, session.budget_id):
            raise InvalidCategoryError(category_id, session.budget_id)
        return self.store.update_temp_transaction_classification(temp_id, category_id)

    # --- Finish ---

    def confirm_import(self, session_id: str, import_duplicates: bool = False) -> dict:
        """Turn classified staged rows into real transactions and complete the session."""
        session = self._get_session(session_id)
        if session.status != SessionStatus.PENDING:
            raise InvalidSessionStateError(session.id, session.status, "confirm")
        eligible = [
            t for t in self.store.find_temp_transactions_by_session(session_id)
            if t.is_classified and (import_duplicates or not t.is_duplicate)
        ]
        if not eligible:
            raise NothingToImportError(session_id)
        with self.store.atomic():
            ids = self.store.create_real_transactions_batch(
                session.account_id, session.budget_id, session.id, eligible,
            )
            self.store.delete_temp_transactions(session.id)
            self._transition(session, SessionStatus.COMPLETED, "confirm")
        return {"imported_count": len(ids), "transaction_ids": ids}

    def cancel_session(self, session_id: str) -> dict:
        session = self._get_session(session_id)
        with self.store.atomic():
            self._transition(session, SessionStatus.CANCELLED, "cancel")
            self.store.delete_temp_transactions(session.id)
        return {"session_id": session.id, "status": SessionStatus.CANCELLED, "message": "Import cancelled"}

    def list_sessions(self, budget_id: str | None = None, limit: int = 50) -> list[ImportSession]:
        return self.store.list_sessions(budget_id=budget_id, limit=limit)
