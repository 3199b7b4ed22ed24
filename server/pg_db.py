"""
Module for managing PostgreSQL database operations.
- This module stores the chatbot settings, the API / event logs and the admin users.
- It includes creating tables, reading and writing settings and logs, and listing users.
- At most one `bot_settings` row is active at a time, the server builds its chatbot from it.
"""

import os
import uuid
import psycopg2
from psycopg2.extras import RealDictCursor
from typing import List, Optional
from logger import get_logger

import pytz
from datetime import datetime

log = get_logger(name="pg_db")
CST = pytz.timezone('America/Chicago')

# PostgreSQL connection parameters
DB_CONFIG = {
    'host': os.getenv('POSTGRES_HOST', 'localhost'),
    'port': int(os.getenv('POSTGRES_PORT', 5432)),
    'database': os.getenv('POSTGRES_DB', 'ragbot'),
    'user': os.getenv('POSTGRES_USER', 'postgres'),
    'password': os.getenv('POSTGRES_PASSWORD', 'postgres'),
}

SETTINGS_COLUMNS = (
    "setting_id, name, retriever_prompt, system_prompt, collection_name, "
    "context_file, is_active, date_created, last_updated"
)


def _now() -> str:
    return datetime.now(CST).strftime("%Y-%m-%d %H:%M:%S")


# ------------------------------------------------------------------------------
# Database Management Functions:
# ------------------------------------------------------------------------------

def get_connection():
    """Creates and returns a PostgreSQL database connection.
    - The connection is set to use the database configured via environment variables.
    """

    try:
        conn = psycopg2.connect(**DB_CONFIG)
        return conn
    except psycopg2.Error as e:
        log.error(f"Failed to connect to PostgreSQL: {e}")
        raise


def create_tables():
    """Creates the necessary tables in the PostgreSQL database.
    - The `bot_settings` table holds the prompts and collection of each chatbot configuration.
    - The `api_logs` and `event_logs` tables hold what the clients report.
    - The `admin_users` table lists who can manage the chatbot.
    """

    try:
        with get_connection() as conn:
            cur = conn.cursor()

            # BOT_SETTINGS(setting_id*, name, retriever_prompt, system_prompt, collection_name, ...)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS bot_settings (
                    setting_id SERIAL PRIMARY KEY,
                    name TEXT NOT NULL,
                    retriever_prompt TEXT NOT NULL,
                    system_prompt TEXT NOT NULL,
                    collection_name TEXT NOT NULL,
                    context_file TEXT,
                    is_active BOOLEAN DEFAULT FALSE,
                    date_created TEXT NOT NULL,
                    last_updated TEXT NOT NULL
                )
            """)

            # API_LOGS(id*, method, endpoint, status, timestamp, ip)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS api_logs (
                    id SERIAL PRIMARY KEY,
                    method TEXT NOT NULL,
                    endpoint TEXT NOT NULL,
                    status INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    ip TEXT
                )
            """)

            # EVENT_LOGS(event_id*, timestamp, severity, text_payload, source)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS event_logs (
                    event_id UUID PRIMARY KEY,
                    timestamp TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    text_payload TEXT,
                    source TEXT
                )
            """)

            # ADMIN_USERS(email*, fname, lname, date_added, access)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS admin_users (
                    email TEXT PRIMARY KEY UNIQUE NOT NULL,
                    fname TEXT NOT NULL,
                    lname TEXT,
                    date_added TEXT NOT NULL,
                    access TEXT[] DEFAULT '{}'
                )
            """)

            conn.commit()
            log.info("Database tables created successfully.")
    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while creating tables: {e}")
        raise


# ------------------------------------------------------------------------------
# Chatbot Settings Functions:
# ------------------------------------------------------------------------------

def get_settings() -> List[dict]:
    """Retrieves all chatbot settings rows, newest first.

    Returns:
        List[dict]: One dict per row, keyed by column name.
    """

    try:
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(f"SELECT {SETTINGS_COLUMNS} FROM bot_settings ORDER BY setting_id DESC")
            rows = [dict(row) for row in cur.fetchall()]

            log.info(f"Retrieved {len(rows)} chatbot settings rows")
            return rows

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while retrieving chatbot settings: {e}")
        return []


def get_active_settings() -> List[dict]:
    """Retrieves the active chatbot settings rows (normally one).

    Returns:
        List[dict]: One dict per active row, keyed by column name.
    """

    try:
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(f"""
                SELECT {SETTINGS_COLUMNS} FROM bot_settings
                WHERE is_active = TRUE
                ORDER BY last_updated DESC
            """)
            rows = [dict(row) for row in cur.fetchall()]

            log.info(f"Retrieved {len(rows)} active chatbot settings rows")
            return rows

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while retrieving active chatbot settings: {e}")
        return []


def add_settings(name: str, retriever_prompt: str, system_prompt: str, collection_name: str,
                 context_file: Optional[str] = None, is_active: bool = False) -> int:
    """Adds a chatbot settings row.
    - If the new row is active, every other row is deactivated in the same transaction.

    Args:
        name (str): Display name of the configuration.
        retriever_prompt (str): Instructions for rewriting follow-up questions.
        system_prompt (str): Instructions for answering from the retrieved context.
        collection_name (str): The Qdrant collection holding the chatbot's context.
        context_file (Optional[str]): Name of the uploaded context file, if any.
        is_active (bool): Whether the server should use this configuration.

    Returns:
        int: The ID (=setting_id) of the newly created row, or -1 if an error occurred.
    """

    try:
        with get_connection() as conn:
            cur = conn.cursor()
            cst_time = _now()

            if is_active:
                cur.execute("UPDATE bot_settings SET is_active = FALSE WHERE is_active = TRUE")

            cur.execute("""
                INSERT INTO bot_settings (name, retriever_prompt, system_prompt, collection_name,
                                          context_file, is_active, date_created, last_updated)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING setting_id
            """, (name, retriever_prompt, system_prompt, collection_name,
                  context_file, is_active, cst_time, cst_time))
            setting_id = cur.fetchone()[0]
            conn.commit()

            if setting_id is None:
                log.error(f"Failed to insert chatbot settings '{name}', no ID was returned")
                return -1

            log.info(f"Chatbot settings '{name}' added with ID {setting_id} (active={is_active})")
            return setting_id

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while adding chatbot settings '{name}': {e}")
        return -1


def upsert_settings(setting_id: int, name: str, retriever_prompt: str, system_prompt: str,
                    collection_name: str, context_file: Optional[str] = None,
                    is_active: bool = False) -> int:
    """Updates the chatbot settings row with the given ID, or inserts a new row if it is missing.
    - A `None` context file keeps the one already stored.
    - A missing row gets its ID from the `setting_id` sequence, not from the caller.
    - If the row is active, every other row is deactivated in the same transaction.

    Returns:
        int: The ID of the written row (a new one when inserted), or -1 if an error occurred.
    """

    try:
        with get_connection() as conn:
            cur = conn.cursor()
            cst_time = _now()

            if is_active:
                cur.execute("""
                    UPDATE bot_settings SET is_active = FALSE
                    WHERE is_active = TRUE AND setting_id <> %s
                """, (setting_id,))

            cur.execute("""
                UPDATE bot_settings SET
                    name = %s,
                    retriever_prompt = %s,
                    system_prompt = %s,
                    collection_name = %s,
                    context_file = COALESCE(%s, context_file),
                    is_active = %s,
                    last_updated = %s
                WHERE setting_id = %s
            """, (name, retriever_prompt, system_prompt, collection_name,
                  context_file, is_active, cst_time, setting_id))

            if cur.rowcount == 0:
                # Missing row: let the SERIAL sequence pick the ID
                cur.execute("""
                    INSERT INTO bot_settings (name, retriever_prompt, system_prompt, collection_name,
                                              context_file, is_active, date_created, last_updated)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING setting_id
                """, (name, retriever_prompt, system_prompt, collection_name,
                      context_file, is_active, cst_time, cst_time))
                new_id = cur.fetchone()[0]
                log.warning(f"Chatbot settings ID {setting_id} not found, inserted as ID {new_id}")
                setting_id = new_id

            conn.commit()
            log.info(f"Chatbot settings ID {setting_id} saved (active={is_active})")
            return setting_id

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while upserting chatbot settings ID {setting_id}: {e}")
        return -1


# ------------------------------------------------------------------------------
# Logging Functions:
# ------------------------------------------------------------------------------

def add_api_log(method: str, endpoint: str, status: int,
                timestamp: Optional[str] = None, ip: Optional[str] = None) -> bool:
    """Adds an API call record reported by a client.

    Args:
        method (str): HTTP method of the call.
        endpoint (str): The endpoint that was called.
        status (int): HTTP status the client received.
        timestamp (Optional[str]): When the call happened, defaults to now.
        ip (Optional[str]): Caller address. Stored but never returned by `get_api_logs`.

    Returns:
        bool: True if the record was added, False otherwise.
    """

    try:
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute("""
                INSERT INTO api_logs (method, endpoint, status, timestamp, ip)
                VALUES (%s, %s, %s, %s, %s)
            """, (method, endpoint, status, timestamp or _now(), ip or None))
            conn.commit()
            return True

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while adding API log for {method} {endpoint}: {e}")
        return False


def get_api_logs() -> List[dict]:
    """Retrieves all API call records, newest first, without the caller address."""

    try:
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute("SELECT method, endpoint, status, timestamp FROM api_logs ORDER BY id DESC")
            rows = [dict(row) for row in cur.fetchall()]

            log.info(f"Retrieved {len(rows)} API logs")
            return rows

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while retrieving API logs: {e}")
        return []


def add_event_log(severity: str, text_payload: str, source: str,
                  timestamp: Optional[str] = None) -> Optional[str]:
    """Adds an application event record.

    Returns:
        Optional[str]: The generated event ID, or None if an error occurred.
    """

    event_id = str(uuid.uuid4())
    try:
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute("""
                INSERT INTO event_logs (event_id, timestamp, severity, text_payload, source)
                VALUES (%s, %s, %s, %s, %s)
            """, (event_id, timestamp or _now(), severity, text_payload, source))
            conn.commit()

            log.info(f"Event log {event_id} added [{severity}] from '{source}'")
            return event_id

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while adding event log from '{source}': {e}")
        return None


# ------------------------------------------------------------------------------
# User Functions:
# ------------------------------------------------------------------------------

def get_users() -> List[dict]:
    """Retrieves all admin users. There are no credentials stored to leak."""

    try:
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute("SELECT email, fname, lname, date_added, access FROM admin_users ORDER BY date_added")
            rows = [dict(row) for row in cur.fetchall()]

            log.info(f"Retrieved {len(rows)} admin users")
            return rows

    except psycopg2.Error as e:
        log.error(f"PostgreSQL error while retrieving admin users: {e}")
        return []


if __name__ == "__main__":
    print("PostgreSQL Database Module Test:")
    print("\nCreating tables...")
    create_tables()
    print("\t - Database and tables created successfully.")
    print("\nPostgreSQL module ready for use.")
