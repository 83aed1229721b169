from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from openpyxl import Workbook

from extrato.errors import FileParseError
from extrato.excel_parser import OLE_MAGIC, is_legacy_xls, parse_excel, preview_lines, read_sheet
from extrato.models import ParseOptions, TransactionType

FIXTURES = Path(__file__).parent / "fixtures"
TODAY = date(2025, 6, 30)


def _write_xlsx(path, rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


@pytest.fixture
def statement(tmp_path):
    return _write_xlsx(tmp_path / "extrato.xlsx", [
        ["Banco Exemplo S.A."],
        ["Extrato de conta corrente"],
        [],
        ["Data", "Descrição", "Valor", "Saldo"],
        ["01/01/2025", "Saldo anterior", None, 1000],
        [datetime(2025, 1, 2), "Supermercado", -45.9, 954.1],
        ["03/01/2025", "Salário", "4.500,00", 5454.1],
        [datetime(2025, 1, 4, 13, 30), "Farmácia   Popular", -12, 5442.1],
    ])


def test_read_sheet_trims_trailing_cells(statement):
    rows = read_sheet(statement)
    assert rows[0] == ["Banco Exemplo S.A."]
    assert rows[3] == ["Data", "Descrição", "Valor", "Saldo"]


def test_preview_lines_join_cells(statement):
    lines = preview_lines(statement, count=4)
    assert len(lines) == 4
    assert lines[3] == "Data;Descrição;Valor;Saldo"


def test_parse_excel_finds_header_below_preamble(statement):
    result = parse_excel(statement, ParseOptions(today=TODAY))
    assert result.parser == "generic_excel"
    assert result.errors == []
    assert [t.description for t in result.transactions] == ["Supermercado", "Salário", "Farmácia Popular"]
    assert result.total_processed == 4


def test_parse_excel_native_cell_types(statement):
    result = parse_excel(statement, ParseOptions(today=TODAY))
    market, salary, pharmacy = result.transactions
    assert market.date == date(2025, 1, 2)
    assert market.amount == Decimal("45.90")
    assert market.type == TransactionType.EXPENSE
    assert salary.amount == Decimal("4500.00")
    assert salary.type == TransactionType.INCOME
    assert pharmacy.date == date(2025, 1, 4)


def test_parse_excel_reports_row_errors_with_sheet_row_numbers(tmp_path):
    path = _write_xlsx(tmp_path / "extrato.xlsx", [
        ["Data", "Histórico", "Valor"],
        ["02/01/2025", "Tarifa", -9.9],
        ["31/02/2025", "Data impossível", -1],
        ["05/07/2025", "Agendado", -100],
    ])
    result = parse_excel(path, ParseOptions(today=TODAY))
    assert len(result.transactions) == 1
    assert result.errors[0].startswith("Line 3:")
    assert result.errors[1] == "Line 4: Future date 05/07/2025"


def test_parse_excel_without_header(tmp_path):
    path = _write_xlsx(tmp_path / "planilha.xlsx", [["a", "b"], [1, 2]])
    with pytest.raises(FileParseError):
        parse_excel(path)


def test_is_legacy_xls_uses_magic_bytes(tmp_path, statement):
    legacy = tmp_path / "renamed.xlsx"
    legacy.write_bytes(OLE_MAGIC + b"\x00" * 64)
    assert is_legacy_xls(legacy)
    assert not is_legacy_xls(statement)


def test_read_sheet_legacy_xls():
    rows = read_sheet(FIXTURES / "extrato.xls")
    assert rows[0] == ["Banco Exemplo"]
    assert rows[1] == ["Data", "Descrição", "Valor"]
    assert rows[2] == [datetime(2025, 1, 2), "Supermercado", -45.9]
    assert rows[3] == [datetime(2025, 1, 3), "Salário", 4500]
    assert rows[4] == ["06/01/2025", "Farmácia", -12.5]


def test_parse_excel_legacy_xls():
    result = parse_excel(FIXTURES / "extrato.xls", ParseOptions(today=TODAY))
    assert result.errors == []
    assert [t.description for t in result.transactions] == ["Supermercado", "Salário", "Farmácia"]
    market, salary, pharmacy = result.transactions
    assert market.date == date(2025, 1, 2)
    assert market.amount == Decimal("45.90")
    assert salary.type == TransactionType.INCOME
    assert pharmacy.date == date(2025, 1, 6)
    assert pharmacy.amount == Decimal("12.50")
