import logging
from pathlib import Path

from extrato.csv_parser import resolve_columns, row_to_transaction
from extrato.errors import FileParseError
from extrato.models import ParseOptions, ParseResult
from extrato.rows import RowCollector

logger = logging.getLogger(__name__)

OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_MAGIC = b"PK\x03\x04"
HEADER_SCAN_ROWS = 20


def is_legacy_xls(file_path: Path) -> bool:
    with open(file_path, "rb") as f:
        head = f.read(len(OLE_MAGIC))
    if head.startswith(OLE_MAGIC):
        return True
    if head.startswith(ZIP_MAGIC):
        return False
    return Path(file_path).suffix.lower() == ".xls"


def _trim(row: list) -> list:
    while row and (row[-1] is None or row[-1] == ""):
        row.pop()
    return row


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _read_xlsx(file_path: Path) -> list[list]:
    from openpyxl import load_workbook

    # data_only returns cached formula results; read-only mode flattens rich text.
    wb = load_workbook(file_path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [_trim([_clean(v) for v in row]) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_xls(file_path: Path) -> list[list]:
    import xlrd

    book = xlrd.open_workbook(str(file_path))
    try:
        sheet = book.sheet_by_index(0)
        rows = []
        for r in range(sheet.nrows):
            row = []
            for cell in sheet.row(r):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
                    row.append(None)
                elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                    row.append(bool(cell.value))
                else:
                    row.append(_clean(cell.value))
            rows.append(_trim(row))
        return rows
    finally:
        book.release_resources()


def read_sheet(file_path: Path) -> list[list]:
    """Read the first worksheet of an .xls or .xlsx file as a grid of plain values."""
    if is_legacy_xls(file_path):
        return _read_xls(file_path)
    return _read_xlsx(file_path)


def row_text(row: list) -> str:
    return ";".join("" if v is None else str(v) for v in row)


def preview_lines(file_path: Path, count: int = 10) -> list[str]:
    return [row_text(row) for row in read_sheet(file_path)[:count]]


def parse_excel(file_path: Path, options: ParseOptions | None = None) -> ParseResult:
    """Parse the first worksheet, hunting the header row among the first rows."""
    rows = read_sheet(file_path)
    for index, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        headers = ["" if v is None else str(v) for v in row]
        columns = resolve_columns(headers)
        if columns is not None:
            break
    else:
        raise FileParseError(f"No header row found in the first {HEADER_SCAN_ROWS} rows")
    logger.debug("Excel header on row %d: %r", index + 1, headers)

    collector = RowCollector(options, parser="generic_excel")
    for offset, row in enumerate(rows[index + 1:], start=index + 2):
        if not any(v is not None for v in row):
            continue
        collector.add(offset, lambda: row_to_transaction(row, headers, columns, "generic"))
    return collector.finish()
