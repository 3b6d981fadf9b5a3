"""
Module: ndis_kernel.db.triggers
Responsibility: Loading, installing, and verifying database immutability
    triggers (Layer 2 of 2).  This is the database-level complement to the
    ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced (per dialect, under db/sql/<dialect>/):
    - budget_transactions rows: no UPDATE, no DELETE.
    - audit_events rows: no UPDATE, no DELETE.
    - budgets: tenant_id, client_id and *_funded never change; no DELETE.

Failure modes:
    - The database raises on any trigger violation (surfaced by SQLAlchemy
      as IntegrityError).
    - FileNotFoundError if SQL files are missing.
    - ValueError for a dialect without trigger files.

Each SQL file is split on "-- statement-breakpoint" lines so that drivers
which execute one statement at a time (pysqlite) can run them.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

# =============================================================================
# SQL File Loading
# =============================================================================

SQL_DIR = Path(__file__).parent / "sql"

STATEMENT_BREAKPOINT = "-- statement-breakpoint"

TRIGGER_FILES = [
    "01_budget_transactions.sql",
    "02_audit_events.sql",
    "03_budgets.sql",
]

DROP_FILE = "99_drop_all.sql"

SUPPORTED_DIALECTS = ("postgresql", "sqlite")

ALL_TRIGGER_NAMES = [
    "trg_budget_transactions_immutable_update",
    "trg_budget_transactions_immutable_delete",
    "trg_audit_events_immutable_update",
    "trg_audit_events_immutable_delete",
    "trg_budgets_structural_update",
    "trg_budgets_no_delete",
]


def _dialect_dir(dialect: str) -> Path:
    if dialect not in SUPPORTED_DIALECTS:
        raise ValueError(f"No immutability triggers for dialect '{dialect}'")
    return SQL_DIR / dialect


def _load_sql_file(dialect: str, filename: str) -> str:
    """
    Load SQL content from a file in the dialect's sql/ directory.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    return (_dialect_dir(dialect) / filename).read_text(encoding="utf-8")


def split_statements(sql_content: str) -> list[str]:
    """Split a trigger file into executable statements."""
    statements = []
    for chunk in sql_content.split(STATEMENT_BREAKPOINT):
        code_lines = [
            line for line in chunk.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        if code_lines:
            statements.append(chunk.strip())
    return statements


def _execute_file(engine: Engine, filename: str) -> None:
    dialect = engine.dialect.name
    statements = split_statements(_load_sql_file(dialect, filename))
    with engine.begin() as conn:
        for statement in statements:
            conn.exec_driver_sql(statement)


# =============================================================================
# Public API
# =============================================================================


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers for the engine's dialect.

    Preconditions: Tables must exist (call after create_all()).
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed.
        Installation is idempotent.
    """
    for filename in TRIGGER_FILES:
        _execute_file(engine, filename)


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only use this for migrations and test teardown.  Re-install
    triggers immediately afterwards.
    """
    _execute_file(engine, DROP_FILE)


def get_installed_triggers(engine: Engine) -> list[str]:
    """Get list of installed immutability triggers, sorted by name."""
    if engine.dialect.name == "postgresql":
        check_sql = text(
            "SELECT tgname FROM pg_trigger WHERE NOT tgisinternal ORDER BY tgname"
        )
    else:
        check_sql = text(
            "SELECT name FROM sqlite_master WHERE type = 'trigger' ORDER BY name"
        )

    with engine.connect() as conn:
        names = [row[0] for row in conn.execute(check_sql)]
    return [name for name in names if name in ALL_TRIGGER_NAMES]


def get_missing_triggers(engine: Engine) -> list[str]:
    """Get list of immutability triggers that should be installed but aren't."""
    installed = set(get_installed_triggers(engine))
    return sorted(set(ALL_TRIGGER_NAMES) - installed)


def triggers_installed(engine: Engine) -> bool:
    """Check if all immutability triggers are installed."""
    return not get_missing_triggers(engine)
