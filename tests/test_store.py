from datetime import date, datetime
from decimal import Decimal

import pytest

from extrato.db import new_id
from extrato.models import (
    CHECKING, DuplicateResult, FileType, ImportSession, ParsedTransaction, SessionStatus, TransactionType,
)


def _session(account, **kwargs):
    return ImportSession(
        id=new_id(), filename="extrato.csv", file_type=FileType.CSV,
        account_id=account.id, budget_id=account.budget_id, **kwargs,
    )


def _parsed(description="Padaria", amount="12.30", day=date(2025, 1, 2), **original):
    return ParsedTransaction(description, Decimal(amount), TransactionType.EXPENSE, day, original)


def test_create_and_get_session(store, account):
    session = store.create_session(_session(account, user_id="ana"))
    assert session.status == SessionStatus.PROCESSING
    assert session.user_id == "ana"
    assert isinstance(session.created_at, datetime)
    assert store.get_session("missing") is None


def test_update_session_status_is_compare_and_set(store, account):
    session = store.create_session(_session(account))
    assert store.update_session_status(
        session.id, SessionStatus.PROCESSING, SessionStatus.PENDING,
        total_transactions=3, bank_name="Nubank", processed_at=datetime(2025, 1, 2, 10, 0),
    )
    assert not store.update_session_status(session.id, SessionStatus.PROCESSING, SessionStatus.ERROR)
    saved = store.get_session(session.id)
    assert saved.status == SessionStatus.PENDING
    assert saved.total_transactions == 3
    assert saved.bank_name == "Nubank"
    assert saved.processed_at == datetime(2025, 1, 2, 10, 0)


def test_update_session_status_accepts_several_expected(store, account):
    session = store.create_session(_session(account))
    assert store.update_session_status(
        session.id, [SessionStatus.PROCESSING, SessionStatus.PENDING], SessionStatus.CANCELLED,
    )


def test_temp_transactions_keep_order_and_flags(store, account):
    session = store.create_session(_session(account))
    items = [
        (_parsed("Padaria", raw={"Valor": "-12,30"}), DuplicateResult(False)),
        (_parsed("Mercado", "99.90"), DuplicateResult(True, "identical transaction found (same amount and date)", "t1", 1.0)),
    ]
    store.create_temp_transactions_batch(session.id, items)
    temps = store.find_temp_transactions_by_session(session.id)
    assert [t.description for t in temps] == ["Padaria", "Mercado"]
    assert temps[0].amount == Decimal("12.30")
    assert temps[0].original_data == {"raw": {"Valor": "-12,30"}}
    assert temps[1].is_duplicate
    assert temps[1].duplicate_reason.startswith("identical")
    assert not temps[0].is_classified


def test_atomic_rolls_back(store, account):
    session = store.create_session(_session(account))
    with pytest.raises(RuntimeError):
        with store.atomic():
            store.create_temp_transactions_batch(session.id, [(_parsed(), DuplicateResult(False))])
            store.update_session_status(session.id, SessionStatus.PROCESSING, SessionStatus.PENDING)
            raise RuntimeError("boom")
    assert store.find_temp_transactions_by_session(session.id) == []
    assert store.get_session(session.id).status == SessionStatus.PROCESSING


def test_real_transactions_and_window_query(store, account, budget_id):
    session = store.create_session(_session(account))
    store.create_temp_transactions_batch(session.id, [(_parsed(), DuplicateResult(False))])
    temp = store.find_temp_transactions_by_session(session.id)[0]
    category = store.find_category_by_name(budget_id, "Alimentação")
    temp = store.update_temp_transaction_classification(temp.id, category.id)
    [txn_id] = store.create_real_transactions_batch(account.id, budget_id, session.id, [temp])
    found = store.find_existing_transactions(account.id, budget_id, date(2025, 1, 1), date(2025, 1, 31))
    assert [e.id for e in found] == [txn_id]
    assert found[0].amount == Decimal("12.30")
    assert store.find_existing_transactions(account.id, budget_id, date(2025, 2, 1), date(2025, 2, 28)) == []
    assert store.delete_temp_transactions(session.id) == 1


def test_accounts(store, budget_id):
    mine = store.create_account("Nubank", budget_id, CHECKING, owner="ana")
    shared = store.create_account("Conjunta", budget_id, CHECKING)
    assert store.find_account_by_name("Nubank").id == mine.id
    assert [a.name for a in store.list_accounts()] == ["Conjunta", "Nubank"]
    assert store.account_writable_by_user(mine.id, "ana")
    assert not store.account_writable_by_user(mine.id, "bia")
    assert store.account_writable_by_user(shared.id, "bia")
    assert not store.account_writable_by_user("missing", "ana")


def test_categories(store, budget_id):
    created = store.create_category("Pets", budget_id, TransactionType.EXPENSE)
    assert created.category_type == TransactionType.EXPENSE
    assert store.category_belongs_to_budget(created.id, budget_id)
    assert not store.category_belongs_to_budget(created.id, "other")
    store.conn.execute("UPDATE categories SET is_active = 0 WHERE id = ?", (created.id,))
    assert not store.category_belongs_to_budget(created.id, budget_id)
    assert "Pets" not in [c.name for c in store.list_categories(budget_id)]
