import sqlite3
import uuid
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS budgets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    budget_id TEXT NOT NULL,
    name TEXT NOT NULL,
    account_type TEXT NOT NULL,
    institution TEXT,
    owner TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (budget_id) REFERENCES budgets(id)
);

CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    budget_id TEXT NOT NULL,
    name TEXT NOT NULL,
    category_type TEXT NOT NULL,
    is_active INTEGER DEFAULT 1,
    FOREIGN KEY (budget_id) REFERENCES budgets(id)
);

CREATE TABLE IF NOT EXISTS import_sessions (
    id TEXT PRIMARY KEY,
    filename TEXT NOT NULL,
    file_type TEXT NOT NULL,
    account_id TEXT NOT NULL,
    budget_id TEXT NOT NULL,
    user_id TEXT,
    status TEXT NOT NULL DEFAULT 'PROCESSING',
    total_transactions INTEGER DEFAULT 0,
    bank_name TEXT,
    processed_at TEXT,
    created_at TEXT DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
    FOREIGN KEY (account_id) REFERENCES accounts(id),
    FOREIGN KEY (budget_id) REFERENCES budgets(id)
);

CREATE TABLE IF NOT EXISTS temp_transactions (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    description TEXT NOT NULL,
    amount TEXT NOT NULL,
    type TEXT NOT NULL,
    date TEXT NOT NULL,
    original_data TEXT,
    is_duplicate INTEGER DEFAULT 0,
    duplicate_reason TEXT,
    is_classified INTEGER DEFAULT 0,
    category_id TEXT,
    position INTEGER DEFAULT 0,
    FOREIGN KEY (session_id) REFERENCES import_sessions(id),
    FOREIGN KEY (category_id) REFERENCES categories(id)
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    budget_id TEXT NOT NULL,
    category_id TEXT NOT NULL,
    description TEXT NOT NULL,
    amount TEXT NOT NULL,
    type TEXT NOT NULL,
    date TEXT NOT NULL,
    import_session_id TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (account_id) REFERENCES accounts(id),
    FOREIGN KEY (budget_id) REFERENCES budgets(id),
    FOREIGN KEY (category_id) REFERENCES categories(id),
    FOREIGN KEY (import_session_id) REFERENCES import_sessions(id)
);

CREATE INDEX IF NOT EXISTS idx_transactions_account_date ON transactions (account_id, date);
CREATE INDEX IF NOT EXISTS idx_temp_transactions_session ON temp_transactions (session_id);
"""

DEFAULT_CATEGORIES = [
    # (name, category_type)
    ("Salário", "INCOME"),
    ("Rendimentos", "INCOME"),
    ("Reembolsos", "INCOME"),
    ("Outras Receitas", "INCOME"),
    ("Alimentação", "EXPENSE"),
    ("Mercado", "EXPENSE"),
    ("Moradia", "EXPENSE"),
    ("Contas de Consumo", "EXPENSE"),
    ("Transporte", "EXPENSE"),
    ("Saúde", "EXPENSE"),
    ("Educação", "EXPENSE"),
    ("Lazer", "EXPENSE"),
    ("Vestuário", "EXPENSE"),
    ("Assinaturas", "EXPENSE"),
    ("Impostos e Taxas", "EXPENSE"),
    ("Tarifas Bancárias", "EXPENSE"),
    ("Investimentos", "EXPENSE"),
    ("Transferências", "EXPENSE"),
    ("Outras Despesas", "EXPENSE"),
]


def new_id() -> str:
    return uuid.uuid4().hex


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and foreign keys enabled."""
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def seed_categories(conn: sqlite3.Connection, budget_id: str) -> None:
    conn.executemany(
        "INSERT INTO categories (id, budget_id, name, category_type) VALUES (?, ?, ?, ?)",
        [(new_id(), budget_id, name, category_type) for name, category_type in DEFAULT_CATEGORIES],
    )


def ensure_budget(conn: sqlite3.Connection, name: str) -> str:
    """Return the id of the named budget, creating and seeding it if needed."""
    row = conn.execute("SELECT id FROM budgets WHERE name = ?", (name,)).fetchone()
    if row is not None:
        return row["id"]
    budget_id = new_id()
    conn.execute("INSERT INTO budgets (id, name) VALUES (?, ?)", (budget_id, name))
    seed_categories(conn, budget_id)
    conn.commit()
    return budget_id


def init_db(conn: sqlite3.Connection, default_budget: str = "Pessoal") -> str:
    """Create tables and the default budget with its categories. Idempotent."""
    conn.executescript(SCHEMA)
    return ensure_budget(conn, default_budget)
