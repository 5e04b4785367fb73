"""
Shared SQL client for executing workflow queries.

This module provides a reusable async ODBC client. Azure SQL databases can
be reached with an Azure AD access token instead of a password.
"""

import asyncio
import logging
import re
import struct
import time
from typing import Any

from azure.identity import DefaultAzureCredential

from entities.shared.protocols import SqlExecutionOptions

logger = logging.getLogger(__name__)

# SQL_COPT_SS_ACCESS_TOKEN
_SQL_COPT_SS_ACCESS_TOKEN = 1256

_QUERY_KEYWORDS = frozenset({"SELECT", "WITH", "SHOW", "EXPLAIN"})


def get_azure_sql_token(client_id: str | None = None) -> bytes:
    """
    Get an Azure AD token for SQL Database authentication.

    Args:
        client_id: Client ID of a user-assigned managed identity, or None.

    Returns:
        Token bytes formatted for pyodbc
    """
    logger.info("Getting SQL token, AZURE_CLIENT_ID=%s", client_id)

    if client_id:
        credential = DefaultAzureCredential(managed_identity_client_id=client_id)
    else:
        credential = DefaultAzureCredential()

    token = credential.get_token("https://database.windows.net/.default")
    logger.info("Token acquired, expires_on=%s", token.expires_on)

    # Format token for SQL Server ODBC driver
    token_bytes = token.token.encode("utf-16-le")
    return struct.pack(f"<I{len(token_bytes)}s", len(token_bytes), token_bytes)


def strip_leading_comments(sql: str) -> str:
    """Drop leading ``--`` and ``/* */`` comments and whitespace."""
    text = sql.lstrip()
    while True:
        if text.startswith("--"):
            newline = text.find("\n")
            text = text[newline + 1 :].lstrip() if newline >= 0 else ""
            continue
        if text.startswith("/*"):
            end = text.find("*/")
            text = text[end + 2 :].lstrip() if end >= 0 else ""
            continue
        return text


def is_query_statement(sql: str) -> bool:
    """Return True when the statement produces rows rather than a row count."""
    tokens = strip_leading_comments(sql).split(maxsplit=1)
    return bool(tokens) and tokens[0].upper() in _QUERY_KEYWORDS


def _json_safe(value: Any) -> Any:  # noqa: ANN401
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


class AsyncSqlClient:
    """
    Async context manager for SQL operations over ODBC.

    Usage:
        async with AsyncSqlClient(connection_string) as client:
            result = await client.execute_query("SELECT 1 AS id", SqlExecutionOptions())
    """

    # Keywords that are not allowed in read-only mode
    DANGEROUS_KEYWORDS = [
        "INSERT",
        "UPDATE",
        "DELETE",
        "DROP",
        "ALTER",
        "CREATE",
        "TRUNCATE",
        "EXEC",
        "EXECUTE",
    ]

    def __init__(
        self,
        connection_string: str,
        use_azure_ad: bool = False,
        client_id: str | None = None,
        autocommit: bool = True,
    ):
        """
        Initialize the SQL client.

        Args:
            connection_string: ODBC connection string.
            use_azure_ad: Authenticate with an Azure AD access token.
            client_id: Managed-identity client ID used for the token.
            autocommit: Commit every statement immediately. Transactional
                execution requires a connection opened with ``False``.
        """
        self.connection_string = connection_string
        self.use_azure_ad = use_azure_ad
        self.client_id = client_id
        self.autocommit = autocommit
        self._connection: Any = None

    async def __aenter__(self):
        """Establish the database connection."""
        if not self.connection_string:
            raise ValueError("SQL_CONNECTION_STRING environment variable is required")

        # pyodbc loads the ODBC driver manager at import time
        import aioodbc  # noqa: PLC0415

        attrs_before = None
        if self.use_azure_ad:
            attrs_before = {_SQL_COPT_SS_ACCESS_TOKEN: get_azure_sql_token(self.client_id)}

        self._connection = await aioodbc.connect(
            dsn=self.connection_string,
            attrs_before=attrs_before,
            autocommit=self.autocommit,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()

    def validate_query(self, query: str, read_only: bool) -> tuple[bool, str | None]:
        """
        Validate that a query is safe to execute.

        Args:
            query: The SQL query to validate
            read_only: Whether data-modifying statements are forbidden

        Returns:
            Tuple of (is_valid, error_message). error_message is None if valid.
        """
        if not query.strip():
            return False, "No SQL statement to execute."

        if read_only:
            for keyword in self.DANGEROUS_KEYWORDS:
                if re.search(rf"\b{keyword}\b", query, re.IGNORECASE):
                    return (
                        False,
                        f"Query contains forbidden keyword: {keyword}. "
                        "Data-modifying statements are not allowed in read-only mode.",
                    )

        return True, None

    async def execute_query(self, query: str, options: SqlExecutionOptions) -> dict[str, Any]:
        """
        Execute a SQL statement and return results.

        Args:
            query: The SQL statement to execute
            options: Read-only flag, row cap, timeout and transaction mode

        Returns:
            A dictionary containing:
            - success: Whether the statement executed successfully
            - rows: List of dictionaries, one per row (queries only)
            - affectedRows: Number of rows changed (non-queries only)
            - error: Error message if the statement failed
            - duration: Elapsed time such as ``"12ms"``
        """
        started = time.perf_counter()
        sql = query.strip()
        logger.info("Executing SQL query: %s", sql[:200])

        is_valid, error = self.validate_query(sql, options.read_only)
        if not is_valid:
            return _failure(error, started)

        if not self._connection:
            return _failure(
                "Database connection not established. Use 'async with' context manager.",
                started,
            )

        try:
            transactional = options.use_transaction and not self.autocommit
            try:
                result = await asyncio.wait_for(
                    self._run(sql, options.max_rows),
                    timeout=options.timeout_seconds or None,
                )
                if transactional:
                    await self._connection.commit()
            except Exception:
                if transactional:
                    await self._connection.rollback()
                raise
        except TimeoutError:
            logger.error("SQL execution timed out after %ss", options.timeout_seconds)
            return _failure(f"Query timed out after {options.timeout_seconds} seconds", started)
        except Exception as e:
            logger.error("SQL execution error: %s", e)
            return _failure(str(e), started)

        result["duration"] = _elapsed(started)
        return result

    async def _run(self, sql: str, max_rows: int) -> dict[str, Any]:
        async with self._connection.cursor() as cursor:
            await cursor.execute(sql)

            if not is_query_statement(sql):
                affected = cursor.rowcount
                logger.info("Statement executed successfully. %d rows affected.", affected)
                return {"success": True, "affectedRows": affected, "error": None}

            columns = [column[0] for column in cursor.description] if cursor.description else []
            raw_rows = await cursor.fetchmany(max_rows) if max_rows > 0 else await cursor.fetchall()

            rows = [
                {col: _json_safe(row[i]) for i, col in enumerate(columns)}
                for row in raw_rows
            ]

            logger.info("Query executed successfully. Returned %d rows.", len(rows))
            return {"success": True, "rows": rows, "error": None}


def _elapsed(started: float) -> str:
    return f"{int((time.perf_counter() - started) * 1000)}ms"


def _failure(error: str | None, started: float) -> dict[str, Any]:
    return {"success": False, "error": error, "duration": _elapsed(started)}


class SqlExecutorAdapter:
    """``SqlExecutor`` backed by ``AsyncSqlClient``.

    Each ``execute()`` call opens and closes a fresh database connection.

    Args:
        connection_string: ODBC connection string.
        use_azure_ad: Authenticate with an Azure AD access token.
        client_id: Managed-identity client ID used for the token.
    """

    def __init__(
        self,
        connection_string: str,
        use_azure_ad: bool = False,
        client_id: str | None = None,
    ) -> None:
        self._connection_string = connection_string
        self._use_azure_ad = use_azure_ad
        self._client_id = client_id

    async def execute(self, sql: str, options: SqlExecutionOptions) -> dict[str, Any]:
        """Execute a statement on a fresh connection.

        Args:
            sql: SQL text to run.
            options: Execution options.

        Returns:
            Result dict with ``success``, ``rows`` or ``affectedRows``,
            ``error`` and ``duration`` keys.
        """
        started = time.perf_counter()
        try:
            async with AsyncSqlClient(
                self._connection_string,
                use_azure_ad=self._use_azure_ad,
                client_id=self._client_id,
                autocommit=not options.use_transaction,
            ) as client:
                return await client.execute_query(sql, options)
        except Exception as exc:
            logger.exception("SQL execution error")
            return _failure(str(exc), started)
