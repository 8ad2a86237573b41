"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through
VideoRepository which handles the translation between domain models and
database rows.
"""

import base64
import logging
import re
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from ...core.errors import DependencyError
from .repositories.videos import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(DependencyError):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(config: SnowflakeConfig) -> bytes:
    """
    Load the private key for key-pair authentication.

    Snowflake wants DER-encoded PKCS8 bytes, not a PEM file path. The key
    comes either from a file or from a base64-encoded PEM in the
    environment (for deployments without a mounted secret).
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    try:
        if config.private_key_path:
            with open(config.private_key_path, 'rb') as key_file:
                pem = key_file.read()
        else:
            pem = base64.b64decode(config.private_key_base64)

        private_key = serialization.load_pem_private_key(
            pem,
            password=None,
            backend=default_backend()
        )
    except Exception as e:
        logger.error(
            "Failed to load Snowflake private key",
            extra={"key_path": config.private_key_path, "error": str(e)}
        )
        raise SnowflakeConnectionError(f"Private key could not be loaded: {e}")

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        'client_session_keep_alive': True,
    }

    if config.private_key_path or config.private_key_base64:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(config)
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or a private key must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

def _normalize(query: str) -> str:
    return re.sub(r"\s+", " ", query).strip().upper()


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    VideoRepository operations without a real database. Queries are
    recognised by pattern, rows are stored as tuples in column order.
    """

    def __init__(self, storage: dict, lock: threading.Lock) -> None:
        self._storage = storage
        self._lock = lock
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = _normalize(query)
        params = params or ()
        videos = self._storage['videos']

        with self._lock:
            if query_upper.startswith('INSERT INTO VIDEOS'):
                video_id = str(params[0])
                if video_id in videos:
                    raise ValueError(f"Duplicate key: {video_id}")
                videos[video_id] = tuple(params)
                self._rowcount = 1

            elif query_upper.startswith('SELECT') and 'WHERE VIDEO_ID' in query_upper:
                row = videos.get(str(params[0]))
                self._results = [row] if row else []

            elif query_upper.startswith('SELECT') and 'WHERE USER_ID' in query_upper:
                rows = [row for row in videos.values() if row[1] == params[0]]
                if 'ORDER BY CREATED_AT DESC' in query_upper:
                    rows.sort(key=lambda row: row[7], reverse=True)
                self._results = rows

            elif query_upper.startswith('DELETE FROM VIDEOS'):
                removed = videos.pop(str(params[0]), None)
                self._rowcount = 1 if removed else 0

            else:
                self._results = []

        return self

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return list(self._results)

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores data in memory using a simple dictionary structure.
    This enables testing the full API without a real database.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        # In-memory storage: {table_name: {id: row_tuple}}
        self._storage: dict[str, dict[str, tuple]] = {
            'videos': {},
        }
        self._lock = threading.Lock()

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage, self._lock)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _video_rows(self) -> list[tuple]:
        """All stored video rows (for test assertions)."""
        return list(self._storage['videos'].values())

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        for table in self._storage.values():
            table.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Factory function that returns either a real or mock connection
    depending on mock_mode flag.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        conn = MockSnowflakeConnection()
        try:
            yield conn
        finally:
            conn.close()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
