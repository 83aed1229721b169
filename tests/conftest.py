from datetime import date
from pathlib import Path

import pytest

from extrato.db import get_connection, init_db
from extrato.models import CHECKING
from extrato.store import SqliteStore

FIXTURES = Path(__file__).parent / "fixtures"
TODAY = date(2025, 6, 30)


@pytest.fixture
def db(tmp_path):
    """Provide an initialized temp DB connection."""
    db_path = tmp_path / "test.db"
    conn = get_connection(db_path)
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(db):
    return SqliteStore(db)


@pytest.fixture
def budget_id(store):
    return store.get_budget_id("Pessoal")


@pytest.fixture
def account(store, budget_id):
    return store.create_account("Conta Corrente", budget_id, CHECKING, institution="Nubank")


@pytest.fixture
def staged_file(tmp_path):
    """Copy a fixture into tmp_path so the pipeline may delete it."""
    def _copy(name: str, as_name: str | None = None) -> Path:
        dest = tmp_path / (as_name or name)
        dest.write_bytes((FIXTURES / name).read_bytes())
        return dest
    return _copy
