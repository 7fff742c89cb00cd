"""
Schema migrations for the vault tables.

SQL files in ``tokenvault/migrations/`` are applied in version order, each in
its own transaction, and recorded in ``schema_migrations`` together with a
SHA-256 of the file so that later edits to an applied file show up as drift.

After migrating, ``check_schema`` confirms that every secret table carries a
unique key on exactly (tenant_id, secret_class, identifier). The vault's
single-statement upsert (``ON CONFLICT ... DO UPDATE``) fails without it.

Usage:
    tokenvault migrate [--dry-run]
    tokenvault migrate --status
    python -m tokenvault.db.migrate [status | apply [VERSION] [--dry-run] | check]
"""

from __future__ import annotations

import hashlib
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path

from tokenvault.db.connection import get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

SECRET_TABLES = ("secure_tokens", "credential_secrets")
KEY_COLUMNS = ("tenant_id", "secret_class", "identifier")

# 001_secure_tokens.sql, 002b_hotfix.sql
_FILENAME_RE = re.compile(r"^(?P<number>\d+)(?P<suffix>[a-z]?)_.+\.sql$")

_HISTORY_DDL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version     TEXT PRIMARY KEY,
        filename    TEXT NOT NULL,
        checksum    TEXT NOT NULL,
        applied_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

_KEY_CONSTRAINTS_SQL = """
    SELECT tc.table_name,
           array_agg(kcu.column_name::text ORDER BY kcu.ordinal_position)
      FROM information_schema.table_constraints tc
      JOIN information_schema.key_column_usage kcu
        ON kcu.constraint_name = tc.constraint_name
       AND kcu.table_schema = tc.table_schema
       AND kcu.table_name = tc.table_name
     WHERE tc.constraint_type IN ('UNIQUE', 'PRIMARY KEY')
       AND tc.table_schema = current_schema()
       AND tc.table_name = ANY(%s)
     GROUP BY tc.table_name, tc.constraint_name
"""


class MigrationError(RuntimeError):
    """A migration file failed to apply; its transaction was rolled back."""


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()

    @property
    def sort_key(self) -> tuple[int, str]:
        m = _FILENAME_RE.match(self.filename)
        return int(m["number"]), m["suffix"]


def discover(migrations_dir: Path | None = None) -> list[Migration]:
    """Numbered .sql files in version order. Unnumbered files are ignored."""
    directory = migrations_dir or MIGRATIONS_DIR
    found = [
        Migration(m["number"] + m["suffix"], path)
        for path in directory.glob("*.sql")
        if (m := _FILENAME_RE.match(path.name))
    ]
    return sorted(found, key=lambda mig: mig.sort_key)


def _history(conn) -> dict[str, str]:
    """{version: checksum} of applied migrations, creating the table on first use."""
    with conn.cursor() as cur:
        cur.execute(_HISTORY_DDL)
        cur.execute("SELECT version, checksum FROM schema_migrations")
        return {version: checksum for version, checksum in cur.fetchall()}


def status(migrations_dir: Path | None = None) -> list[dict]:
    """One row per migration file: version, filename and state (pending/applied/drift)."""
    migrations = discover(migrations_dir)
    with get_connection() as conn:
        history = _history(conn)

    rows = []
    for mig in migrations:
        if mig.version not in history:
            state = "pending"
        elif history[mig.version] != mig.checksum:
            state = "drift"
        else:
            state = "applied"
        rows.append({"version": mig.version, "filename": mig.filename, "state": state})
    return rows


def apply(
    version: str | None = None,
    dry_run: bool = False,
    migrations_dir: Path | None = None,
) -> list[str]:
    """Apply pending migrations (or only ``version``). Returns the versions applied.

    With ``dry_run`` nothing is executed; the versions that would run are returned.
    """
    migrations = discover(migrations_dir)
    with get_connection() as conn:
        history = _history(conn)
        conn.commit()

        todo = [
            mig
            for mig in migrations
            if mig.version not in history and version in (None, mig.version)
        ]
        if dry_run:
            return [mig.version for mig in todo]

        done: list[str] = []
        for mig in todo:
            try:
                with conn.cursor() as cur:
                    cur.execute(mig.path.read_text())
                    cur.execute(
                        "INSERT INTO schema_migrations (version, filename, checksum) "
                        "VALUES (%s, %s, %s)",
                        (mig.version, mig.filename, mig.checksum),
                    )
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error("Migration %s failed: %s", mig.filename, e)
                raise MigrationError(f"{mig.filename}: {e}") from e
            logger.info("Applied migration %s", mig.filename)
            done.append(mig.version)
        return done


def missing_key_constraints(conn) -> list[str]:
    """Secret tables lacking a unique key on exactly KEY_COLUMNS."""
    with conn.cursor() as cur:
        cur.execute(_KEY_CONSTRAINTS_SQL, (list(SECRET_TABLES),))
        keyed = {table for table, columns in cur.fetchall() if tuple(columns) == KEY_COLUMNS}
    return [table for table in SECRET_TABLES if table not in keyed]


def check_schema() -> list[str]:
    """Run missing_key_constraints against the configured database."""
    with get_connection() as conn:
        return missing_key_constraints(conn)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "status"

    if command == "status":
        for row in status():
            print(f"{row['version']:<6} {row['state']:<8} {row['filename']}")
        return 0

    if command == "apply":
        dry_run = "--dry-run" in args
        version = next((a for a in args[1:] if a != "--dry-run"), None)
        verb = "Would apply" if dry_run else "Applied"
        for v in apply(version=version, dry_run=dry_run):
            print(f"{verb} {v}")
        return 0

    if command == "check":
        missing = check_schema()
        for table in missing:
            print(f"{table}: missing UNIQUE ({', '.join(KEY_COLUMNS)})")
        return 1 if missing else 0

    print("Usage: python -m tokenvault.db.migrate [status | apply [VERSION] [--dry-run] | check]")
    return 2


if __name__ == "__main__":
    sys.exit(main())
