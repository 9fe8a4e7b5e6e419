import logging
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from docflow.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    # Let SQLAlchemy emit BEGIN itself (see _begin).
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin(conn):
    # SQLite has no SELECT ... FOR UPDATE. Write units ask for IMMEDIATE so the
    # database write lock is taken before their first read.
    mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
    conn.exec_driver_sql(f"BEGIN {mode}")


def get_engine(url: str | None = None) -> Engine:
    url = url or settings.db_url
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": settings.db_timeout_seconds},
        )
        event.listen(engine, "connect", _set_sqlite_pragmas)
        event.listen(engine, "begin", _begin)
        return engine
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=settings.db_timeout_seconds,
    )


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """Commit when the block succeeds, roll back and re-raise on any error.

    When the session has not started a transaction yet, the one opened here
    takes the write lock up front on SQLite (BEGIN IMMEDIATE).
    """
    if not db.in_transaction():
        db.connection(execution_options={"sqlite_begin": "IMMEDIATE"})
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


# Columns added after the first schema release. Older databases may lack them.
OPTIONAL_COLUMNS = {
    "goods_receipts": ("inspector_note", "approval_note", "rejection_reason"),
    "work_receipts": ("approval_note", "rejection_reason"),
}

MIGRATIONS = [
    # v0.2: inspector note on goods-receipt review
    "ALTER TABLE goods_receipts ADD COLUMN inspector_note TEXT",
    # v0.3: approval / rejection notes
    "ALTER TABLE goods_receipts ADD COLUMN approval_note TEXT",
    "ALTER TABLE goods_receipts ADD COLUMN rejection_reason TEXT",
    "ALTER TABLE work_receipts ADD COLUMN approval_note TEXT",
    "ALTER TABLE work_receipts ADD COLUMN rejection_reason TEXT",
]


def run_migrations(bind: Engine):
    for migration in MIGRATIONS:
        try:
            with bind.begin() as conn:
                conn.execute(text(migration))
            logger.info("Applied migration: %s", migration)
        except (OperationalError, ProgrammingError):
            pass  # column already exists


def init_db(bind: Engine | None = None):
    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    import docflow.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind)
    run_migrations(bind)


@dataclass(frozen=True)
class SchemaCapabilities:
    """Which optional columns the connected schema actually has."""

    columns: dict[str, frozenset[str]] = field(default_factory=dict)

    def has(self, table: str, column: str) -> bool:
        return column in self.columns.get(table, frozenset())

    @classmethod
    def detect(cls, bind: Engine) -> "SchemaCapabilities":
        inspector = inspect(bind)
        found: dict[str, frozenset[str]] = {}
        for table, optional in OPTIONAL_COLUMNS.items():
            if not inspector.has_table(table):
                found[table] = frozenset()
                continue
            present = {col["name"] for col in inspector.get_columns(table)}
            found[table] = frozenset(c for c in optional if c in present)
            for column in optional:
                if column not in present:
                    logger.warning(
                        "Schema compatibility: %s.%s is missing; transitions will skip it.",
                        table, column,
                    )
        return cls(columns=found)


# Weak keys: a disposed, unreferenced engine drops its entry.
_capabilities: "weakref.WeakKeyDictionary[Engine, SchemaCapabilities]" = weakref.WeakKeyDictionary()


def get_capabilities(bind) -> SchemaCapabilities:
    """Capabilities for ``bind``, detected on first use and cached per engine."""
    bind = bind.engine
    if bind not in _capabilities:
        _capabilities[bind] = SchemaCapabilities.detect(bind)
    return _capabilities[bind]
