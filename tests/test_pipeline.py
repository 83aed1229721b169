from datetime import date
from pathlib import Path

import pytest

from extrato.errors import FileParseError
from extrato.models import DialectInfo, FileType, ParseOptions, ParseResult, ParsedTransaction, TransactionType
from extrato.pipeline import build_chain, parse_statement, run_chain
from extrato.registry import DialectRegistry

FIXTURES = Path(__file__).parent / "fixtures"
OPTIONS = ParseOptions(today=date(2025, 6, 30))


def _result_with(n, errors=()):
    txns = [ParsedTransaction("x", 1, TransactionType.EXPENSE, date(2025, 1, 1)) for _ in range(n)]
    return ParseResult(transactions=txns, errors=list(errors))


def _raises(path, options=None):
    raise FileParseError("layout not understood")


def test_build_chain_puts_dialect_first():
    info = DialectInfo(key="bank", name="Bank", file_types=[FileType.CSV],
                       can_parse=lambda h, l: True, parse=_raises)
    assert [name for name, _ in build_chain(FileType.CSV, info)] == ["bank", "advanced_csv", "basic_csv"]
    assert [name for name, _ in build_chain(FileType.EXCEL)] == ["generic_excel"]
    assert [name for name, _ in build_chain(FileType.PDF)] == ["generic_pdf"]


def test_first_result_with_transactions_wins(tmp_path):
    chain = [
        ("empty", lambda p, o=None: _result_with(0)),
        ("two", lambda p, o=None: _result_with(2)),
        ("three", lambda p, o=None: _result_with(3)),
    ]
    result = run_chain(chain, tmp_path / "x.csv")
    assert len(result.transactions) == 2
    assert result.parser == "two"


def test_raising_strategy_hands_over(tmp_path):
    chain = [("broken", _raises), ("ok", lambda p, o=None: _result_with(1))]
    result = run_chain(chain, tmp_path / "x.csv")
    assert result.parser == "ok"


def test_first_empty_result_is_returned_with_its_errors(tmp_path):
    chain = [
        ("broken", _raises),
        ("empty", lambda p, o=None: _result_with(0, ["Line 2: Invalid date: 'x'"])),
        ("also_empty", lambda p, o=None: _result_with(0)),
    ]
    result = run_chain(chain, tmp_path / "x.csv")
    assert result.parser == "empty"
    assert result.errors == ["Line 2: Invalid date: 'x'"]


def test_all_raising_is_fatal(tmp_path):
    with pytest.raises(FileParseError, match="layout not understood"):
        run_chain([("a", _raises), ("b", _raises)], tmp_path / "x.csv")


def test_parse_statement_uses_detected_dialect():
    result = parse_statement(FIXTURES / "bradesco.csv", options=OPTIONS)
    assert result.parser == "bradesco"
    assert result.bank_name == "Bradesco"
    assert len(result.transactions) == 3


def test_parse_statement_generic_fallback():
    result = parse_statement(FIXTURES / "generic_preamble.csv", options=OPTIONS)
    assert result.parser == "advanced_csv"
    assert result.bank_name is None
    assert len(result.transactions) == 3


def test_broken_dialect_falls_back_to_generic():
    info = DialectInfo(key="greedy", name="Greedy", file_types=[FileType.CSV],
                       can_parse=lambda h, l: True, parse=_raises)
    result = parse_statement(FIXTURES / "generic_bad_dates.csv", options=OPTIONS,
                             registry=DialectRegistry([info]))
    assert result.parser == "advanced_csv"
    assert len(result.transactions) == 10


def test_filename_hint_selects_dialect(tmp_path):
    path = tmp_path / "tmp8f2k1"
    path.write_bytes((FIXTURES / "itau.txt").read_bytes())
    result = parse_statement(path, filename="itau.txt", options=OPTIONS)
    assert result.parser == "itau_txt"
