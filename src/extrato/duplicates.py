import logging
from datetime import timedelta

from rapidfuzz.distance import Levenshtein

from extrato.models import DuplicateResult, ExistingTransaction, ParsedTransaction

logger = logging.getLogger(__name__)

WINDOW_DAYS = 15
FUZZY_DAYS = 3
SIMILARITY_THRESHOLD = 0.8


def similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)) over trimmed, lower-cased text."""
    a = (a or "").strip().lower()
    b = (b or "").strip().lower()
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


class DuplicateDetector:
    """Flags staged transactions that look like ones already recorded on the account."""

    def __init__(
        self,
        store,
        window_days: int = WINDOW_DAYS,
        fuzzy_days: int = FUZZY_DAYS,
        threshold: float = SIMILARITY_THRESHOLD,
    ):
        self.store = store
        self.window_days = window_days
        self.fuzzy_days = fuzzy_days
        self.threshold = threshold

    def compare(self, candidate: ParsedTransaction, existing: list[ExistingTransaction]) -> DuplicateResult:
        same_amount = [
            e for e in existing
            if e.amount == candidate.amount and abs((e.date - candidate.date).days) <= self.window_days
        ]
        for e in same_amount:
            if e.date == candidate.date:
                return DuplicateResult(
                    is_duplicate=True,
                    reason="identical transaction found (same amount and date)",
                    existing_transaction_id=e.id,
                    similarity=1.0,
                )

        best: tuple[float, ExistingTransaction] | None = None
        for e in same_amount:
            if abs((e.date - candidate.date).days) > self.fuzzy_days:
                continue
            score = similarity(candidate.description, e.description)
            if score > self.threshold and (best is None or score > best[0]):
                best = (score, e)
        if best is not None:
            score, e = best
            return DuplicateResult(
                is_duplicate=True,
                reason=f"similar transaction found ({score:.0%} similarity)",
                existing_transaction_id=e.id,
                similarity=score,
            )
        return DuplicateResult(is_duplicate=False)

    def check_duplicate(self, candidate: ParsedTransaction, account_id: str, budget_id: str) -> DuplicateResult:
        window = timedelta(days=self.window_days)
        existing = self.store.find_existing_transactions(
            account_id, budget_id, candidate.date - window, candidate.date + window,
        )
        return self.compare(candidate, existing)

    def process_batch(
        self, candidates: list[ParsedTransaction], account_id: str, budget_id: str,
    ) -> list[tuple[ParsedTransaction, DuplicateResult]]:
        """Check each candidate on its own; one query covers the whole batch's window."""
        if not candidates:
            return []
        window = timedelta(days=self.window_days)
        start = min(c.date for c in candidates) - window
        end = max(c.date for c in candidates) + window
        existing = self.store.find_existing_transactions(account_id, budget_id, start, end)
        results = [(c, self.compare(c, existing)) for c in candidates]
        logger.info(
            "%d of %d candidates flagged as duplicates",
            sum(1 for _, r in results if r.is_duplicate), len(results),
        )
        return results
