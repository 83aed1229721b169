import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from unidecode import unidecode

from extrato.errors import InvalidAmount, InvalidDate
from extrato.models import DateRange

CENTS = Decimal("0.01")
EXCEL_EPOCH = date(1899, 12, 30)  # accounts for the 1900 leap year bug

_DMY = re.compile(
    r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})"
    r"(?:\s*(?:às|as|,)?\s*\d{1,2}:\d{2}(?::\d{2})?)?$",
    re.IGNORECASE,
)
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T\s]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$")
_NUMBER = re.compile(r"^[\d.,]*\d[\d.,]*$")


def parse_amount(value) -> Decimal:
    """Parse a Brazilian or plain numeric amount into a signed Decimal.

    Accepts "1.234,56", "-1.234,56", "(1.234,56)", "R$ 1.234,56", "1234.56",
    "1.234,56-" and numeric cell values. The sign is only what the text says.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise InvalidAmount(f"Invalid amount: {value!r}")

    raw = str(value)
    s = re.sub(r"\s+", "", raw.replace("\xa0", " "))
    s = re.sub(r"R\$", "", s, flags=re.IGNORECASE)
    negative = False
    while s:
        if s.startswith("(") and s.endswith(")"):
            negative = not negative
            s = s[1:-1]
        elif s[0] in "+-":
            negative = negative or s[0] == "-"
            s = s[1:]
        elif s[-1] in "+-":
            negative = negative or s[-1] == "-"
            s = s[:-1]
        elif s.startswith("$"):
            s = s[1:]
        else:
            break

    if not _NUMBER.match(s):
        raise InvalidAmount(f"Invalid amount: {raw!r}")

    comma, dot = s.rfind(","), s.rfind(".")
    if comma >= 0 and dot >= 0:
        decimal_sep = "," if comma > dot else "."
        thousands_sep = "." if decimal_sep == "," else ","
        s = s.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif comma >= 0:
        if s.count(",") == 1 and len(s) - comma - 1 in (1, 2):
            s = s.replace(",", ".")
        else:
            s = s.replace(",", "")
    elif dot >= 0:
        if s.count(".") > 1 or len(s) - dot - 1 == 3:
            s = s.replace(".", "")

    try:
        amount = Decimal(s).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"Invalid amount: {raw!r}")
    return -amount if negative else amount


def excel_serial_to_date(serial: int | float) -> date:
    """Convert an Excel serial date number to a date."""
    return EXCEL_EPOCH + timedelta(days=int(serial))


def _make_date(year: int, month: int, day: int, raw) -> date:
    try:
        return date(year, month, day)
    except ValueError:
        raise InvalidDate(f"Invalid date: {raw!r}")


def parse_date(value) -> date:
    """Parse a statement date; any time of day is discarded."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value <= 0:
            raise InvalidDate(f"Invalid date: {value!r}")
        return excel_serial_to_date(value)
    if value is None:
        raise InvalidDate("Invalid date: empty")

    s = " ".join(str(value).split())
    m = _DMY.match(s)
    if m:
        day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if len(m.group(3)) == 2:
            year += 2000
        return _make_date(year, month, day, value)
    m = _ISO.match(s)
    if m:
        return _make_date(int(m.group(1)), int(m.group(2)), int(m.group(3)), value)
    raise InvalidDate(f"Invalid date: {value!r}")


def infer_year(day: int, month: int, today: date) -> date:
    """Resolve a DD/MM date to the most recent occurrence not after today."""
    candidate = None
    for year in (today.year, today.year - 1):
        try:
            candidate = date(year, month, day)
        except ValueError:
            continue
        if candidate <= today:
            return candidate
    if candidate is None:
        raise InvalidDate(f"Invalid date: {day:02d}/{month:02d}")
    return candidate


def is_future(d: date, today: date) -> bool:
    return d > today


def in_range(d: date, date_range: DateRange | None) -> bool:
    if date_range is None:
        return True
    if date_range.start and d < date_range.start:
        return False
    if date_range.end and d > date_range.end:
        return False
    return True


def normalize_text(value) -> str:
    """Lower-case, accent-free, single-spaced text for header and content matching."""
    if value is None:
        return ""
    return " ".join(unidecode(str(value)).lower().split())


def contains_all(text: str, *needles: str) -> bool:
    folded = normalize_text(text)
    return all(normalize_text(n) in folded for n in needles)


def contains_any(text: str, *needles: str) -> bool:
    folded = normalize_text(text)
    return any(normalize_text(n) in folded for n in needles)


def clean_description(value, max_length: int = 255) -> str:
    return " ".join(str(value or "").split())[:max_length]
