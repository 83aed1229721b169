import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Iterator, Protocol

from extrato.db import new_id
from extrato.models import (
    Account, Category, DuplicateResult, ExistingTransaction, FileType, ImportSession,
    ParsedTransaction, SessionStatus, TempTransaction, TransactionType,
)


class ImportStore(Protocol):
    """Persistence port consumed by the import pipeline."""

    def atomic(self): ...

    def create_session(self, session: ImportSession) -> ImportSession: ...

    def get_session(self, session_id: str) -> ImportSession | None: ...

    def list_sessions(self, budget_id: str | None = None, limit: int = 50) -> list[ImportSession]: ...

    def update_session_status(
        self, session_id: str, expected: SessionStatus | Iterable[SessionStatus],
        status: SessionStatus, **fields,
    ) -> bool: ...

    def create_temp_transactions_batch(
        self, session_id: str, items: list[tuple[ParsedTransaction, DuplicateResult]],
    ) -> list[TempTransaction]: ...

    def find_temp_transactions_by_session(self, session_id: str) -> list[TempTransaction]: ...

    def get_temp_transaction(self, temp_id: str) -> TempTransaction | None: ...

    def update_temp_transaction_classification(self, temp_id: str, category_id: str) -> TempTransaction: ...

    def delete_temp_transactions(self, session_id: str) -> int: ...

    def create_real_transactions_batch(
        self, account_id: str, budget_id: str, session_id: str, temps: list[TempTransaction],
    ) -> list[str]: ...

    def find_existing_transactions(
        self, account_id: str, budget_id: str, start: date, end: date,
    ) -> list[ExistingTransaction]: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def category_belongs_to_budget(self, category_id: str, budget_id: str) -> bool: ...

    def account_writable_by_user(self, account_id: str, user_id: str) -> bool: ...

    def list_categories(self, budget_id: str) -> list[Category]: ...


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _session_from_row(row: sqlite3.Row) -> ImportSession:
    return ImportSession(
        id=row["id"],
        filename=row["filename"],
        file_type=FileType(row["file_type"]),
        account_id=row["account_id"],
        budget_id=row["budget_id"],
        status=SessionStatus(row["status"]),
        total_transactions=row["total_transactions"] or 0,
        bank_name=row["bank_name"],
        processed_at=_parse_ts(row["processed_at"]),
        created_at=_parse_ts(row["created_at"]),
        user_id=row["user_id"],
    )


def _temp_from_row(row: sqlite3.Row) -> TempTransaction:
    return TempTransaction(
        id=row["id"],
        session_id=row["session_id"],
        description=row["description"],
        amount=Decimal(row["amount"]),
        type=TransactionType(row["type"]),
        date=date.fromisoformat(row["date"]),
        original_data=json.loads(row["original_data"]) if row["original_data"] else {},
        is_duplicate=bool(row["is_duplicate"]),
        duplicate_reason=row["duplicate_reason"],
        is_classified=bool(row["is_classified"]),
        category_id=row["category_id"],
    )


def _account_from_row(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"], name=row["name"], budget_id=row["budget_id"],
        account_type=row["account_type"], institution=row["institution"], owner=row["owner"],
    )


def _category_from_row(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"], name=row["name"], budget_id=row["budget_id"],
        category_type=TransactionType(row["category_type"]), is_active=bool(row["is_active"]),
    )


class SqliteStore:
    """ImportStore backed by the SQLite schema in extrato.db.

    Every write commits on its own unless it runs inside ``atomic()``, in which
    case the outermost block commits or rolls back.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._depth = 0

    @contextmanager
    def atomic(self) -> Iterator["SqliteStore"]:
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.conn.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self.conn.commit()

    def _commit(self) -> None:
        if self._depth == 0:
            self.conn.commit()

    # --- Sessions ---

    def create_session(self, session: ImportSession) -> ImportSession:
        self.conn.execute(
            "INSERT INTO import_sessions (id, filename, file_type, account_id, budget_id, user_id, status) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (session.id, session.filename, session.file_type.value, session.account_id,
             session.budget_id, session.user_id, session.status.value),
        )
        self._commit()
        return self.get_session(session.id)

    def get_session(self, session_id: str) -> ImportSession | None:
        row = self.conn.execute("SELECT * FROM import_sessions WHERE id = ?", (session_id,)).fetchone()
        return _session_from_row(row) if row else None

    def list_sessions(self, budget_id: str | None = None, limit: int = 50) -> list[ImportSession]:
        sql = "SELECT * FROM import_sessions"
        params: list = []
        if budget_id:
            sql += " WHERE budget_id = ?"
            params.append(budget_id)
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)
        return [_session_from_row(r) for r in self.conn.execute(sql, params).fetchall()]

    def update_session_status(
        self,
        session_id: str,
        expected: SessionStatus | Iterable[SessionStatus],
        status: SessionStatus,
        **fields,
    ) -> bool:
        """Compare-and-set the session status. Returns False if the current status did not match."""
        if isinstance(expected, SessionStatus):
            expected = [expected]
        expected = [s.value for s in expected]
        assignments = ["status = ?"]
        params: list = [status.value]
        for column in ("total_transactions", "bank_name", "processed_at"):
            if column in fields:
                value = fields[column]
                assignments.append(f"{column} = ?")
                params.append(value.isoformat(sep=" ") if isinstance(value, datetime) else value)
        placeholders = ", ".join("?" for _ in expected)
        cursor = self.conn.execute(
            f"UPDATE import_sessions SET {', '.join(assignments)} "
            f"WHERE id = ? AND status IN ({placeholders})",
            (*params, session_id, *expected),
        )
        self._commit()
        return cursor.rowcount == 1

    # --- Staged transactions ---

    def create_temp_transactions_batch(
        self, session_id: str, items: list[tuple[ParsedTransaction, DuplicateResult]],
    ) -> list[TempTransaction]:
        temps = [
            TempTransaction(
                id=new_id(),
                session_id=session_id,
                description=txn.description,
                amount=txn.amount,
                type=txn.type,
                date=txn.date,
                original_data=txn.original_data,
                is_duplicate=dup.is_duplicate,
                duplicate_reason=dup.reason,
            )
            for txn, dup in items
        ]
        self.conn.executemany(
            "INSERT INTO temp_transactions (id, session_id, description, amount, type, date, "
            "original_data, is_duplicate, duplicate_reason, position) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (t.id, t.session_id, t.description, str(t.amount), t.type.value, t.date.isoformat(),
                 json.dumps(t.original_data, default=str, ensure_ascii=False),
                 int(t.is_duplicate), t.duplicate_reason, position)
                for position, t in enumerate(temps)
            ],
        )
        self._commit()
        return temps

    def find_temp_transactions_by_session(self, session_id: str) -> list[TempTransaction]:
        rows = self.conn.execute(
            "SELECT * FROM temp_transactions WHERE session_id = ? ORDER BY position", (session_id,)
        ).fetchall()
        return [_temp_from_row(r) for r in rows]

    def get_temp_transaction(self, temp_id: str) -> TempTransaction | None:
        row = self.conn.execute("SELECT * FROM temp_transactions WHERE id = ?", (temp_id,)).fetchone()
        return _temp_from_row(row) if row else None

    def update_temp_transaction_classification(self, temp_id: str, category_id: str) -> TempTransaction:
        self.conn.execute(
            "UPDATE temp_transactions SET category_id = ?, is_classified = 1 WHERE id = ?",
            (category_id, temp_id),
        )
        self._commit()
        return self.get_temp_transaction(temp_id)

    def delete_temp_transactions(self, session_id: str) -> int:
        cursor = self.conn.execute("DELETE FROM temp_transactions WHERE session_id = ?", (session_id,))
        self._commit()
        return cursor.rowcount

    # --- Real transactions ---

    def create_real_transactions_batch(
        self, account_id: str, budget_id: str, session_id: str, temps: list[TempTransaction],
    ) -> list[str]:
        ids = [new_id() for _ in temps]
        self.conn.executemany(
            "INSERT INTO transactions (id, account_id, budget_id, category_id, description, amount, type, date, "
            "import_session_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (txn_id, account_id, budget_id, t.category_id, t.description, str(t.amount),
                 t.type.value, t.date.isoformat(), session_id)
                for txn_id, t in zip(ids, temps)
            ],
        )
        self._commit()
        return ids

    def find_existing_transactions(
        self, account_id: str, budget_id: str, start: date, end: date,
    ) -> list[ExistingTransaction]:
        rows = self.conn.execute(
            "SELECT id, description, amount, date, type FROM transactions "
            "WHERE account_id = ? AND budget_id = ? AND date BETWEEN ? AND ? ORDER BY date",
            (account_id, budget_id, start.isoformat(), end.isoformat()),
        ).fetchall()
        return [
            ExistingTransaction(
                id=r["id"], description=r["description"], amount=Decimal(r["amount"]),
                date=date.fromisoformat(r["date"]), type=TransactionType(r["type"]),
            )
            for r in rows
        ]

    # --- Accounts, budgets and categories ---

    def get_budget_id(self, name: str) -> str | None:
        row = self.conn.execute("SELECT id FROM budgets WHERE name = ?", (name,)).fetchone()
        return row["id"] if row else None

    def create_account(
        self, name: str, budget_id: str, account_type: str,
        institution: str | None = None, owner: str | None = None,
    ) -> Account:
        account_id = new_id()
        self.conn.execute(
            "INSERT INTO accounts (id, budget_id, name, account_type, institution, owner) VALUES (?, ?, ?, ?, ?, ?)",
            (account_id, budget_id, name, account_type, institution, owner),
        )
        self._commit()
        return self.get_account(account_id)

    def get_account(self, account_id: str) -> Account | None:
        row = self.conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        return _account_from_row(row) if row else None

    def find_account_by_name(self, name: str) -> Account | None:
        row = self.conn.execute("SELECT * FROM accounts WHERE name = ?", (name,)).fetchone()
        return _account_from_row(row) if row else None

    def list_accounts(self) -> list[Account]:
        return [_account_from_row(r) for r in self.conn.execute("SELECT * FROM accounts ORDER BY name").fetchall()]

    def account_writable_by_user(self, account_id: str, user_id: str) -> bool:
        row = self.conn.execute("SELECT owner FROM accounts WHERE id = ?", (account_id,)).fetchone()
        return row is not None and (row["owner"] is None or row["owner"] == user_id)

    def create_category(self, name: str, budget_id: str, category_type: TransactionType) -> Category:
        category_id = new_id()
        self.conn.execute(
            "INSERT INTO categories (id, budget_id, name, category_type) VALUES (?, ?, ?, ?)",
            (category_id, budget_id, name, category_type.value),
        )
        self._commit()
        return self.get_category(category_id)

    def get_category(self, category_id: str) -> Category | None:
        row = self.conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        return _category_from_row(row) if row else None

    def find_category_by_name(self, budget_id: str, name: str) -> Category | None:
        row = self.conn.execute(
            "SELECT * FROM categories WHERE budget_id = ? AND name = ?", (budget_id, name)
        ).fetchone()
        return _category_from_row(row) if row else None

    def category_belongs_to_budget(self, category_id: str, budget_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM categories WHERE id = ? AND budget_id = ? AND is_active = 1",
            (category_id, budget_id),
        ).fetchone()
        return row is not None

    def list_categories(self, budget_id: str) -> list[Category]:
        rows = self.conn.execute(
            "SELECT * FROM categories WHERE budget_id = ? AND is_active = 1 ORDER BY category_type, name",
            (budget_id,),
        ).fetchall()
        return [_category_from_row(r) for r in rows]
