"""Tests for the PostgreSQL helpers, against a mocked psycopg2 connection."""

from unittest.mock import patch

import psycopg2
import pytest

import pg_db


def _executed_sql(cursor):
    return [" ".join(c.args[0].split()) for c in cursor.execute.call_args_list]


def test_create_tables(mock_pg_connection):
    connection, cursor = mock_pg_connection

    pg_db.create_tables()

    sql = " ".join(_executed_sql(cursor))
    for table in ("bot_settings", "api_logs", "event_logs", "admin_users"):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in sql
    assert "password" not in sql
    connection.commit.assert_called_once()


def test_create_tables_reraises():
    with patch("pg_db.psycopg2.connect", side_effect=psycopg2.OperationalError("no server")):
        with pytest.raises(psycopg2.OperationalError):
            pg_db.create_tables()


def test_get_settings_returns_dicts(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.fetchall.return_value = [{"setting_id": 1, "name": "Default"}]

    assert pg_db.get_settings() == [{"setting_id": 1, "name": "Default"}]


def test_get_active_settings_filters_active(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.fetchall.return_value = []

    assert pg_db.get_active_settings() == []
    assert "WHERE is_active = TRUE" in _executed_sql(cursor)[0]


def test_add_active_settings_deactivates_others(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.fetchone.return_value = (7,)

    setting_id = pg_db.add_settings("Bot", "rewrite", "answer {context}", "tvs", is_active=True)

    sql = _executed_sql(cursor)
    assert setting_id == 7
    assert sql[0].startswith("UPDATE bot_settings SET is_active = FALSE")
    assert sql[1].startswith("INSERT INTO bot_settings")


def test_add_inactive_settings_touches_nothing_else(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.fetchone.return_value = (3,)

    pg_db.add_settings("Bot", "rewrite", "answer", "tvs")

    assert len(_executed_sql(cursor)) == 1


def test_upsert_settings_updates_existing_row(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.rowcount = 1

    assert pg_db.upsert_settings(4, "Bot", "rewrite", "answer", "tvs", is_active=True) == 4

    deactivate, update = cursor.execute.call_args_list
    assert "setting_id <> %s" in deactivate.args[0]
    assert deactivate.args[1] == (4,)
    assert " ".join(update.args[0].split()).startswith("UPDATE bot_settings SET name = %s")
    assert "COALESCE(%s, context_file)" in update.args[0]
    assert update.args[1][-1] == 4
    cursor.fetchone.assert_not_called()


def test_upsert_settings_inserts_missing_row_with_sequence_id(mock_pg_connection):
    connection, cursor = mock_pg_connection
    cursor.rowcount = 0
    cursor.fetchone.return_value = (12,)

    assert pg_db.upsert_settings(99, "Bot", "rewrite", "answer", "tvs") == 12

    update, insert = _executed_sql(cursor)
    assert update.startswith("UPDATE bot_settings SET name")
    assert insert.startswith("INSERT INTO bot_settings (name,")
    assert "setting_id" not in insert.split("VALUES")[0]
    assert insert.endswith("RETURNING setting_id")
    assert 99 not in cursor.execute.call_args.args[1]
    connection.commit.assert_called_once()


def test_api_logs_never_return_ip(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.fetchall.return_value = [{"method": "POST", "endpoint": "/api/chat", "status": 200, "timestamp": "t"}]

    logs = pg_db.get_api_logs()

    assert logs[0]["endpoint"] == "/api/chat"
    assert "ip" not in _executed_sql(cursor)[0].split("FROM")[0]


def test_add_api_log_defaults_timestamp(mock_pg_connection):
    _, cursor = mock_pg_connection

    assert pg_db.add_api_log("GET", "/", 200) is True

    params = cursor.execute.call_args.args[1]
    assert params[:3] == ("GET", "/", 200)
    assert params[3]
    assert params[4] is None


def test_add_event_log_returns_uuid(mock_pg_connection):
    _, cursor = mock_pg_connection

    event_id = pg_db.add_event_log("ERROR", "boom", "client")

    assert event_id is not None
    assert cursor.execute.call_args.args[1][0] == event_id


def test_get_users(mock_pg_connection):
    _, cursor = mock_pg_connection
    cursor.fetchall.return_value = [{"email": "a@b.c", "fname": "A"}]

    assert pg_db.get_users() == [{"email": "a@b.c", "fname": "A"}]
    assert "password" not in _executed_sql(cursor)[0]


@pytest.mark.parametrize(
    ("call", "neutral"),
    [
        (lambda: pg_db.get_settings(), []),
        (lambda: pg_db.get_active_settings(), []),
        (lambda: pg_db.add_settings("n", "r", "s", "c"), -1),
        (lambda: pg_db.upsert_settings(1, "n", "r", "s", "c"), -1),
        (lambda: pg_db.add_api_log("GET", "/", 200), False),
        (lambda: pg_db.get_api_logs(), []),
        (lambda: pg_db.add_event_log("INFO", "x", "y"), None),
        (lambda: pg_db.get_users(), []),
    ],
)
def test_database_errors_return_neutral_values(call, neutral):
    with patch("pg_db.psycopg2.connect", side_effect=psycopg2.OperationalError("no server")):
        assert call() == neutral
