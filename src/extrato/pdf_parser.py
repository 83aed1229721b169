import logging
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

import pdfplumber

from extrato.errors import FileParseError, RowError
from extrato.models import ParseOptions, ParseResult, TransactionType
from extrato.normalize import clean_description, infer_year, normalize_text, parse_amount, parse_date
from extrato.rows import RowCollector, card_transaction_type, make_transaction

logger = logging.getLogger(__name__)


@dataclass
class LinePattern:
    name: str
    regex: re.Pattern
    card: bool = False  # invoice layout: unsigned values are purchases, "-" marks a refund


# Tried in order; the first match wins.
LINE_PATTERNS = [
    LinePattern("nubank", re.compile(r"^(\d{1,2}/\d{1,2})\s+(.+?)\s+(-?\s?R\$\s*[\d.,]*\d)$"), card=True),
    LinePattern("itau", re.compile(r"^(\d{1,2}/\d{1,2}/\d{4})\s+(.+?)\s+(-?[\d.,]*\d-?)$")),
    LinePattern("banco_do_brasil", re.compile(r"^(\d{1,2}/\d{1,2})\s+(.+?)\s+([\d.,]*\d\s?[+-]?)$")),
    LinePattern("generic", re.compile(r"(\d{1,2}/\d{1,2}(?:/\d{2,4})?)\s+(.{3,}?)\s+(-?R?\$?\s*[\d.,]*\d[+-]?)$")),
]

NOISE_PATTERNS = [
    re.compile(r"^(data|date|periodo|extrato|fatura|pagina|page)\b"),
    re.compile(r"^(saldo|balance|total|subtotal)\b"),
    re.compile(r"^(credito|debito|credit|debit)$"),
    re.compile(r"^[*\-=_.\s]+$"),
    re.compile(r"^\d+$"),
    re.compile(r"^\d+\s*(de|of|/)\s*\d+$"),
]

SECTION_DATE = re.compile(r"^(\d{1,2}/\d{1,2}(?:/\d{2,4})?)(?:\s+(.*))?$")
SECTION_VALUE = re.compile(r"-?(?:R\$\s?)?\d{1,3}(?:\.\d{3})*,\d{2}[+-]?")


def extract_lines(file_path: Path) -> list[str]:
    """Text lines of every page, using the first extractable text layer."""
    lines: list[str] = []
    with pdfplumber.open(file_path) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""
            lines.extend(text.splitlines())
    if not any(line.strip() for line in lines):
        raise FileParseError("PDF has no extractable text")
    return lines


def is_noise_line(line: str) -> bool:
    folded = normalize_text(line)
    return not folded or any(p.search(folded) for p in NOISE_PATTERNS)


def is_valid_description(description: str) -> bool:
    folded = normalize_text(description)
    if len(folded) < 3 or not re.search(r"[a-z]", folded):
        return False
    return not any(p.search(folded) for p in NOISE_PATTERNS)


def pdf_date(text: str, today: date) -> date:
    parts = text.split("/")
    if len(parts) == 2:
        try:
            return infer_year(int(parts[0]), int(parts[1]), today)
        except ValueError as exc:
            raise RowError(str(exc))
    return parse_date(text)


def dedupe_key(txn) -> tuple:
    return (txn.date, txn.amount, " ".join(normalize_text(txn.description).split()[:3]))


def _statement_type(amount_text: str) -> TransactionType:
    return TransactionType.INCOME if "+" in amount_text else TransactionType.EXPENSE


def extract_transactions(lines: list[str], options: ParseOptions | None = None, source: str = "pdf") -> ParseResult:
    """Match single-line records (date, description, amount) against LINE_PATTERNS."""
    collector = RowCollector(options, parser="generic_pdf")
    seen: set[tuple] = set()

    for line_no, raw in enumerate(lines, start=1):
        line = " ".join(raw.split())
        if is_noise_line(line):
            continue
        for pattern in LINE_PATTERNS:
            match = pattern.regex.search(line)
            if match:
                break
        else:
            continue
        date_text, description, amount_text = match.groups()
        if not is_valid_description(description):
            continue

        def build(pattern=pattern, date_text=date_text, description=description, amount_text=amount_text):
            amount = parse_amount(amount_text)
            if pattern.card:
                txn_type = card_transaction_type(description, amount)
            else:
                txn_type = _statement_type(amount_text)
            txn = make_transaction(
                description, amount, pdf_date(date_text, collector.today), txn_type,
                {"bank": source, "pattern": pattern.name, "raw": raw},
            )
            return None if dedupe_key(txn) in seen else txn

        if collector.add(line_no, build):
            seen.add(dedupe_key(collector.result.transactions[-1]))
    return collector.finish()


@dataclass
class SectionRecord:
    line_no: int
    date_text: str
    parts: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(p for p in self.parts if p)


def reconstruct_records(
    lines: list[str],
    start_markers: tuple[str, ...] = (),
    stop_markers: tuple[str, ...] = (),
) -> list[SectionRecord]:
    """Rebuild records split over a date line and its continuation lines.

    With ``start_markers`` reading begins after the first line containing all
    of them; any of ``stop_markers`` ends the section.
    """
    records: list[SectionRecord] = []
    started = not start_markers
    current: SectionRecord | None = None
    stops = [normalize_text(m) for m in stop_markers]

    for line_no, raw in enumerate(lines, start=1):
        line = " ".join(raw.split())
        folded = normalize_text(line)
        if not started:
            started = all(normalize_text(m) in folded for m in start_markers)
            continue
        if any(stop in folded for stop in stops):
            break
        if not line:
            continue
        match = SECTION_DATE.match(line)
        if match:
            current = SectionRecord(line_no, match.group(1), [match.group(2) or ""])
            records.append(current)
        elif current is not None and not is_noise_line(line):
            current.parts.append(line)
    return records


def section_transactions(
    records: list[SectionRecord],
    options: ParseOptions | None = None,
    type_rule: Callable[[str, str], TransactionType] | None = None,
    source: str = "pdf",
    parser: str = "generic_pdf_sections",
) -> ParseResult:
    """Turn reconstructed records into transactions; the first value in a record is its amount."""
    collector = RowCollector(options, parser=parser)
    type_rule = type_rule or (lambda description, amount_text: _statement_type(amount_text))
    seen: set[tuple] = set()

    for record in records:
        text = record.text
        if normalize_text(text).startswith("saldo"):
            continue

        def build(record=record, text=text):
            values = SECTION_VALUE.findall(text)
            if not values:
                raise RowError("No amount found")
            amount_text = values[0]
            description = clean_description(SECTION_VALUE.sub(" ", text))
            amount = parse_amount(amount_text)
            txn = make_transaction(
                description, amount, pdf_date(record.date_text, collector.today),
                type_rule(description, amount_text),
                {"bank": source, "raw": f"{record.date_text} {text}"},
            )
            return None if dedupe_key(txn) in seen else txn

        if collector.add(record.line_no, build):
            seen.add(dedupe_key(collector.result.transactions[-1]))
    return collector.finish()


def parse_pdf(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Single-line matching first, then section reconstruction."""
    lines = extract_lines(file_path)
    result = extract_transactions(lines, options)
    if result.transactions:
        return result
    sections = section_transactions(reconstruct_records(lines), options)
    if sections.transactions:
        logger.debug("No single-line records, using %d reconstructed records", len(sections.transactions))
        return sections
    return result
