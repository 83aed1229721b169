from datetime import date
from pathlib import Path
from decimal import Decimal

import pytest

from extrato.csv_parser import find_header, parse_advanced_csv, parse_basic_csv, resolve_columns, sniff_delimiter
from extrato.errors import FileParseError
from extrato.models import DateRange, ParseOptions, TransactionType

FIXTURES = Path(__file__).parent / "fixtures"
TODAY = date(2025, 6, 30)


def test_ten_valid_rows_and_two_bad_dates():
    result = parse_advanced_csv(FIXTURES / "generic_bad_dates.csv")
    assert len(result.transactions) == 10
    assert len(result.errors) == 2
    assert result.total_processed == 12
    assert result.errors[0].startswith("Line 8:")
    assert result.errors[1].startswith("Line 11:")


def test_basic_parser_reports_the_same_counts():
    result = parse_basic_csv(FIXTURES / "generic_bad_dates.csv")
    assert (len(result.transactions), len(result.errors), result.total_processed) == (10, 2, 12)


def test_amounts_are_magnitudes_with_type():
    result = parse_advanced_csv(FIXTURES / "generic_bad_dates.csv")
    first = result.transactions[0]
    assert first.description == "Cafe"
    assert first.amount == Decimal("12.50")
    assert first.type == TransactionType.EXPENSE
    salary = next(t for t in result.transactions if t.description == "Salario")
    assert salary.type == TransactionType.INCOME
    assert all(t.amount > 0 for t in result.transactions)


def test_header_hunt_skips_preamble():
    result = parse_advanced_csv(FIXTURES / "generic_preamble.csv")
    assert len(result.transactions) == 3
    assert result.transactions[0].date == date(2025, 1, 2)
    assert result.transactions[0].amount == Decimal("210.40")
    assert result.transactions[1].type == TransactionType.INCOME


def test_find_header_returns_position_and_delimiter():
    lines = (FIXTURES / "generic_preamble.csv").read_text(encoding="utf-8").splitlines()
    index, delimiter, headers, columns = find_header(lines)
    assert index == 3
    assert delimiter == ";"
    assert headers == ["Data", "Descrição", "Valor"]
    assert (columns.date, columns.description, columns.amount) == (0, 1, 2)


def test_find_header_gives_up_after_ten_lines():
    lines = ["aviso legal"] * 10 + ["Data;Descrição;Valor"]
    with pytest.raises(FileParseError):
        find_header(lines)


def test_resolve_credit_debit_columns():
    columns = resolve_columns(["Data", "Histórico", "Docto.", "Crédito (R$)", "Débito (R$)", "Saldo (R$)"])
    assert columns.date == 0
    assert columns.description == 1
    assert columns.amount is None
    assert (columns.credit, columns.debit) == (3, 4)


def test_sniff_delimiter():
    assert sniff_delimiter("a;b;c") == ";"
    assert sniff_delimiter("a\tb\tc") == "\t"
    assert sniff_delimiter("a,b,c") == ","


def test_future_rows_always_rejected(tmp_path):
    path = tmp_path / "extrato.csv"
    path.write_text("Data;Descrição;Valor\n29/06/2025;Hoje;-10,00\n01/07/2025;Amanhã;-20,00\n", encoding="utf-8")
    options = ParseOptions(date_range=DateRange(date(2025, 1, 1), date(2025, 12, 31)), today=TODAY)
    result = parse_advanced_csv(path, options)
    assert [t.description for t in result.transactions] == ["Hoje"]
    assert len(result.errors) == 1
    assert "Future date" in result.errors[0]
    assert result.total_processed == 2


def test_date_filter_drops_rows_without_errors():
    options = ParseOptions(date_range=DateRange(date(2025, 1, 3), date(2025, 1, 6)), today=TODAY)
    result = parse_advanced_csv(FIXTURES / "generic_bad_dates.csv", options)
    assert [t.date.day for t in result.transactions] == [3, 4, 5, 6]
    assert len(result.errors) == 2
    assert result.total_processed == 12


def test_blank_description_and_zero_amount_are_row_errors(tmp_path):
    path = tmp_path / "extrato.csv"
    path.write_text("Data;Descrição;Valor\n02/01/2025;;-10,00\n03/01/2025;Tarifa;0,00\n04/01/2025;Ok;5,00\n", encoding="utf-8")
    result = parse_advanced_csv(path, ParseOptions(today=TODAY))
    assert len(result.transactions) == 1
    assert len(result.errors) == 2


def test_card_layout_inverts_sign(tmp_path):
    path = tmp_path / "fatura.csv"
    path.write_text("date,title,amount\n2025-01-05,Padaria,12.00\n2025-01-06,Pagamento recebido,300.00\n", encoding="utf-8")
    result = parse_advanced_csv(path, ParseOptions(today=TODAY))
    assert [t.type for t in result.transactions] == [TransactionType.EXPENSE, TransactionType.INCOME]


def test_basic_parser_maps_unknown_header_by_position(tmp_path):
    path = tmp_path / "extrato.csv"
    path.write_text("quando;o que;quanto\n02/01/2025;Padaria;-8,50\n", encoding="utf-8")
    result = parse_basic_csv(path, ParseOptions(today=TODAY))
    assert len(result.transactions) == 1
    assert result.transactions[0].amount == Decimal("8.50")
