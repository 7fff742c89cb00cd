"""Tests for tokenvault.db.migrate — discovery, apply and key checks with a mocked connection."""

from unittest.mock import MagicMock, patch

import pytest

from tokenvault.db import migrate


@pytest.fixture
def migrations_dir(tmp_path):
    (tmp_path / "001_first.sql").write_text("CREATE TABLE a (id INT);")
    (tmp_path / "002_second.sql").write_text("CREATE TABLE b (id INT);")
    (tmp_path / "002b_patch.sql").write_text("ALTER TABLE b ADD COLUMN c INT;")
    (tmp_path / "010_later.sql").write_text("CREATE TABLE c (id INT);")
    (tmp_path / "README.txt").write_text("not a migration")
    (tmp_path / "notes.sql").write_text("-- unnumbered")
    return tmp_path


@pytest.fixture
def mock_db():
    conn = MagicMock()
    cursor = MagicMock()
    cursor.fetchall.return_value = []
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = False

    cm = MagicMock()
    cm.__enter__.return_value = conn
    cm.__exit__.return_value = False
    with patch("tokenvault.db.migrate.get_connection", return_value=cm):
        yield conn, cursor


def _executed(cursor):
    return [c[0][0] for c in cursor.execute.call_args_list]


def _checksum(migrations_dir, name):
    return migrate.Migration(name.split("_")[0], migrations_dir / name).checksum


class TestDiscover:
    def test_bundled_migrations(self):
        versions = [m.version for m in migrate.discover()]
        assert versions[:3] == ["001", "002", "003"]

    def test_numeric_order_and_filter(self, migrations_dir):
        found = migrate.discover(migrations_dir)
        assert [m.version for m in found] == ["001", "002", "002b", "010"]
        assert found[0].filename == "001_first.sql"

    def test_checksum_tracks_content(self, migrations_dir):
        before = _checksum(migrations_dir, "001_first.sql")
        (migrations_dir / "001_first.sql").write_text("CREATE TABLE a (id BIGINT);")
        assert _checksum(migrations_dir, "001_first.sql") != before


class TestStatus:
    def test_pending_applied_and_drift(self, mock_db, migrations_dir):
        _, cursor = mock_db
        cursor.fetchall.return_value = [
            ("001", _checksum(migrations_dir, "001_first.sql")),
            ("002", "stale"),
        ]
        rows = migrate.status(migrations_dir)
        assert [(r["version"], r["state"]) for r in rows] == [
            ("001", "applied"),
            ("002", "drift"),
            ("002b", "pending"),
            ("010", "pending"),
        ]

    def test_creates_history_table(self, mock_db, migrations_dir):
        _, cursor = mock_db
        migrate.status(migrations_dir)
        assert "CREATE TABLE IF NOT EXISTS schema_migrations" in _executed(cursor)[0]


class TestApply:
    def test_dry_run_executes_nothing(self, mock_db, migrations_dir):
        _, cursor = mock_db
        assert migrate.apply(dry_run=True, migrations_dir=migrations_dir) == [
            "001",
            "002",
            "002b",
            "010",
        ]
        executed = _executed(cursor)
        assert "CREATE TABLE a (id INT);" not in executed
        assert not any("INSERT INTO schema_migrations" in sql for sql in executed)

    def test_apply_single_version_records_checksum(self, mock_db, migrations_dir):
        conn, cursor = mock_db
        assert migrate.apply(version="002", migrations_dir=migrations_dir) == ["002"]
        assert "CREATE TABLE b (id INT);" in _executed(cursor)
        params = cursor.execute.call_args[0][1]
        assert params == ("002", "002_second.sql", _checksum(migrations_dir, "002_second.sql"))
        assert conn.commit.call_count == 2

    def test_skips_applied(self, mock_db, migrations_dir):
        _, cursor = mock_db
        cursor.fetchall.return_value = [(v, "x") for v in ("001", "002", "002b")]
        assert migrate.apply(migrations_dir=migrations_dir) == ["010"]

    def test_nothing_to_apply(self, mock_db, migrations_dir):
        _, cursor = mock_db
        cursor.fetchall.return_value = [(v, "x") for v in ("001", "002", "002b", "010")]
        assert migrate.apply(migrations_dir=migrations_dir) == []

    def test_failure_rolls_back_and_stops(self, mock_db, migrations_dir):
        conn, cursor = mock_db

        def execute(sql, params=None):
            if sql == "CREATE TABLE b (id INT);":
                raise RuntimeError("syntax error")

        cursor.execute.side_effect = execute
        with pytest.raises(migrate.MigrationError, match="002_second.sql"):
            migrate.apply(migrations_dir=migrations_dir)
        conn.rollback.assert_called_once()
        assert "ALTER TABLE b ADD COLUMN c INT;" not in _executed(cursor)


class TestKeyConstraints:
    def test_all_keyed(self):
        conn = MagicMock()
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.fetchall.return_value = [
            ("secure_tokens", ["id"]),
            ("secure_tokens", ["tenant_id", "secret_class", "identifier"]),
            ("credential_secrets", ["tenant_id", "secret_class", "identifier"]),
        ]
        assert migrate.missing_key_constraints(conn) == []
        assert cursor.execute.call_args[0][1] == (["secure_tokens", "credential_secrets"],)

    def test_wrong_columns_or_order_is_missing(self):
        conn = MagicMock()
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.fetchall.return_value = [
            ("secure_tokens", ["tenant_id", "secret_class", "identifier"]),
            ("credential_secrets", ["tenant_id", "identifier", "secret_class"]),
        ]
        assert migrate.missing_key_constraints(conn) == ["credential_secrets"]

    def test_no_tables(self):
        conn = MagicMock()
        conn.cursor.return_value.__enter__.return_value.fetchall.return_value = []
        assert migrate.missing_key_constraints(conn) == list(migrate.SECRET_TABLES)


class TestMain:
    def test_unknown_command(self, capsys):
        assert migrate.main(["frobnicate"]) == 2
        assert "Usage" in capsys.readouterr().out

    def test_check_reports_missing(self, capsys):
        with patch("tokenvault.db.migrate.check_schema", return_value=["credential_secrets"]):
            assert migrate.main(["check"]) == 1
        assert "credential_secrets: missing UNIQUE" in capsys.readouterr().out

    def test_check_ok(self, capsys):
        with patch("tokenvault.db.migrate.check_schema", return_value=[]):
            assert migrate.main(["check"]) == 0

    def test_apply_dry_run(self, capsys):
        with patch("tokenvault.db.migrate.apply", return_value=["003"]) as apply:
            assert migrate.main(["apply", "003", "--dry-run"]) == 0
        apply.assert_called_once_with(version="003", dry_run=True)
        assert "Would apply 003" in capsys.readouterr().out
