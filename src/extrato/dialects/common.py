import csv
import re
from pathlib import PurePath
from typing import Iterator

from extrato.models import CHECKING, CREDIT_CARD, INVESTMENT, SAVINGS
from extrato.normalize import normalize_text

TEXT_EXTENSIONS = ("", ".csv", ".txt")
EXCEL_EXTENSIONS = (".xls", ".xlsx")
DATE_CELL = re.compile(r"^\s*\d{1,2}/\d{1,2}/\d{2,4}")


def hint_name(filename_hint: str | None) -> str:
    return normalize_text(PurePath(filename_hint).name) if filename_hint else ""


def hint_suffix(filename_hint: str | None) -> str:
    return PurePath(filename_hint).suffix.lower() if filename_hint else ""


def hint_is_text(filename_hint: str | None) -> bool:
    return hint_suffix(filename_hint) in TEXT_EXTENSIONS


def hint_is_excel(filename_hint: str | None) -> bool:
    return hint_suffix(filename_hint) in EXCEL_EXTENSIONS


def any_line(first_lines: list[str], *needles: str) -> bool:
    """True when some preview line contains every needle."""
    folded = [normalize_text(n) for n in needles]
    return any(all(n in normalize_text(line) for n in folded) for line in first_lines)


def detect_account_type(filename_hint: str | None, default: str = CHECKING) -> str:
    name = hint_name(filename_hint)
    if any(k in name for k in ("cartao", "credito", "fatura", "card")):
        return CREDIT_CARD
    if "poupanca" in name:
        return SAVINGS
    if "investimento" in name:
        return INVESTMENT
    return default


def find_line(lines: list[str], *needles: str, limit: int | None = None) -> int | None:
    folded = [normalize_text(n) for n in needles]
    for index, line in enumerate(lines[:limit]):
        text = normalize_text(line)
        if all(n in text for n in folded):
            return index
    return None


def dict_rows(lines: list[str], delimiter: str, header_index: int = 0) -> Iterator[tuple[int, dict, dict]]:
    """Yield (line number, row keyed by folded header, row keyed by original header)."""
    reader = csv.reader(lines[header_index:], delimiter=delimiter)
    headers = next(reader, None)
    if headers is None:
        return
    keys = [normalize_text(h) for h in headers]
    for cells in reader:
        if not any(c.strip() for c in cells):
            continue
        yield header_index + reader.line_num, dict(zip(keys, cells)), dict(zip(headers, cells))


def pick(row: dict, *names: str, default: str = "") -> str:
    """First non-empty value among folded column names, allowing prefix matches like "valor (r$)"."""
    for name in names:
        if row.get(name, "").strip():
            return row[name].strip()
    for name in names:
        for key, value in row.items():
            if key.startswith(name) and value and value.strip():
                return value.strip()
    return default


def join_parts(*parts, separator: str = " - ") -> str:
    return separator.join(str(p).strip() for p in parts if p is not None and str(p).strip())


def tag(bank: str, account_type: str, raw, **extra) -> dict:
    return {"bank": bank, "account_type": account_type, **extra, "raw": raw}
