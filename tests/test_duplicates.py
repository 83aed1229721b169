from datetime import date, timedelta
from decimal import Decimal

import pytest

from extrato.duplicates import DuplicateDetector, similarity
from extrato.models import CHECKING, ExistingTransaction, ParsedTransaction, TransactionType


class FakeStore:
    def __init__(self, existing):
        self.existing = existing
        self.calls = []

    def find_existing_transactions(self, account_id, budget_id, start, end):
        self.calls.append((account_id, budget_id, start, end))
        return [e for e in self.existing if start <= e.date <= end]


def _candidate(description="Padaria Central", amount="32.10", day=date(2025, 1, 7)):
    return ParsedTransaction(description, Decimal(amount), TransactionType.EXPENSE, day)


def _existing(description="Padaria Central", amount="32.10", day=date(2025, 1, 7), id="t1"):
    return ExistingTransaction(id, description, Decimal(amount), day, TransactionType.EXPENSE)


def test_similarity_of_identical_strings_is_one():
    assert similarity("Padaria", "Padaria") == 1.0
    assert similarity("  PADARIA ", "padaria") == 1.0


def test_similarity_is_symmetric():
    assert similarity("Uber *Trip", "Uber Trip SP") == similarity("Uber Trip SP", "Uber *Trip")


def test_similarity_normalized_levenshtein():
    # one substitution over ten characters
    assert similarity("abcdefghij", "abcdefghiX") == pytest.approx(0.9)
    assert similarity("abc", "xyz") == 0.0


def test_exact_match_same_amount_and_date():
    detector = DuplicateDetector(FakeStore([]))
    result = detector.compare(_candidate(description="Algo totalmente diferente"), [_existing()])
    assert result.is_duplicate
    assert result.reason == "identical transaction found (same amount and date)"
    assert result.existing_transaction_id == "t1"
    assert result.similarity == 1.0


def test_fuzzy_match_within_three_days():
    detector = DuplicateDetector(FakeStore([]))
    existing = [_existing(description="Padaria Central SP", day=date(2025, 1, 5))]
    result = detector.compare(_candidate(), existing)
    assert result.is_duplicate
    assert result.reason.startswith("similar transaction found (")
    assert result.reason.endswith("% similarity)")
    assert result.similarity > 0.8


def test_fuzzy_match_needs_similar_description():
    detector = DuplicateDetector(FakeStore([]))
    existing = [_existing(description="Posto Shell", day=date(2025, 1, 6))]
    assert not detector.compare(_candidate(), existing).is_duplicate


def test_fuzzy_match_outside_three_days_is_not_duplicate():
    detector = DuplicateDetector(FakeStore([]))
    existing = [_existing(day=date(2025, 1, 2))]
    assert not detector.compare(_candidate(), existing).is_duplicate


def test_different_amount_is_never_duplicate():
    detector = DuplicateDetector(FakeStore([]))
    assert not detector.compare(_candidate(amount="32.11"), [_existing()]).is_duplicate


def test_best_fuzzy_match_is_reported():
    detector = DuplicateDetector(FakeStore([]))
    existing = [
        _existing(description="Padaria Centra", day=date(2025, 1, 6), id="close"),
        _existing(description="Padaria Central.", day=date(2025, 1, 8), id="closer"),
    ]
    assert detector.compare(_candidate(), existing).existing_transaction_id == "closer"


def test_threshold_is_configurable():
    existing = [_existing(description="Padaria Centro", day=date(2025, 1, 6))]
    assert not DuplicateDetector(FakeStore([]), threshold=0.95).compare(_candidate(), existing).is_duplicate
    assert DuplicateDetector(FakeStore([]), threshold=0.5).compare(_candidate(), existing).is_duplicate


def test_check_duplicate_queries_window():
    store = FakeStore([_existing()])
    detector = DuplicateDetector(store)
    assert detector.check_duplicate(_candidate(), "acc", "bud").is_duplicate
    _, _, start, end = store.calls[0]
    assert start == date(2025, 1, 7) - timedelta(days=15)
    assert end == date(2025, 1, 7) + timedelta(days=15)


def test_process_batch_one_query_per_batch():
    store = FakeStore([_existing()])
    detector = DuplicateDetector(store)
    candidates = [
        _candidate(),
        _candidate(description="Salario", amount="4500.00", day=date(2025, 1, 30)),
    ]
    results = detector.process_batch(candidates, "acc", "bud")
    assert len(store.calls) == 1
    assert store.calls[0][2] == date(2025, 1, 7) - timedelta(days=15)
    assert store.calls[0][3] == date(2025, 1, 30) + timedelta(days=15)
    assert [r.is_duplicate for _, r in results] == [True, False]
    assert results[0][0] is candidates[0]


def test_process_batch_does_not_compare_within_batch():
    detector = DuplicateDetector(FakeStore([]))
    results = detector.process_batch([_candidate(), _candidate()], "acc", "bud")
    assert [r.is_duplicate for _, r in results] == [False, False]


def test_process_batch_empty():
    store = FakeStore([])
    assert DuplicateDetector(store).process_batch([], "acc", "bud") == []
    assert store.calls == []


def test_against_sqlite_store(store, budget_id):
    account = store.create_account("Cartão", budget_id, CHECKING)
    other = store.create_account("Outra", budget_id, CHECKING)
    category = store.find_category_by_name(budget_id, "Alimentação")
    store.conn.execute(
        "INSERT INTO transactions (id, account_id, budget_id, category_id, description, amount, type, date) "
        "VALUES ('x1', ?, ?, ?, 'Padaria Central', '32.10', 'EXPENSE', '2025-01-07')",
        (account.id, budget_id, category.id),
    )
    store.conn.commit()
    detector = DuplicateDetector(store)
    assert detector.check_duplicate(_candidate(), account.id, budget_id).existing_transaction_id == "x1"
    assert not detector.check_duplicate(_candidate(), other.id, budget_id).is_duplicate
