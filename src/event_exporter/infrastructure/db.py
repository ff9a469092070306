"""Single-statement query execution against the destination Postgres database.

Each call opens its own connection, runs exactly one parameterised statement and
closes the connection again. No pooling: a connection never outlives a statement.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional, Sequence
import psycopg2
from prometheus_client import Counter, Histogram
from event_exporter.config import Settings

logger = logging.getLogger(__name__)

QUERY_EXECUTIONS = Counter('exporter_db_queries_total', 'Statements executed against the destination', ['result'])
QUERY_DURATION = Histogram('exporter_db_query_seconds', 'Connect + execute + close time per statement',
                           buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30))


def connection_params(settings: Settings) -> Dict[str, Any]:
    """Build psycopg2 connect kwargs, preferring the full connection URL when present."""
    if settings.database_url:
        params: Dict[str, Any] = {"dsn": settings.database_url}
    else:
        params = {
            "host": settings.host,
            "port": int(settings.port) if settings.port else None,
            "dbname": settings.db_name,
            "user": settings.db_username,
            "password": settings.db_password,
        }
    # TLS is always on; certificate verification is skipped only for self-signed servers
    if settings.has_self_signed_cert == "Yes":
        params["sslmode"] = "require"
    else:
        params["sslmode"] = "verify-full"
        params["sslrootcert"] = settings.db_ssl_root_cert
    params["connect_timeout"] = settings.db_connect_timeout
    return params


def execute_query(query: str, values: Sequence[Any], settings: Settings) -> Optional[Exception]:
    """Run one statement and return the captured error, or None on success.

    Never raises: connection and query failures alike come back as the returned value.
    """
    start = time.time()
    conn = None
    try:
        conn = psycopg2.connect(**connection_params(settings))
        with conn:  # commits on success, rolls back on error
            with conn.cursor() as cur:
                cur.execute(query, list(values))
    except Exception as err:
        logger.debug(f"Query failed: {err}")
        _observe('error', start)
        return err
    finally:
        if conn is not None:
            try:
                conn.close()
            except Exception as close_err:  # noqa
                logger.warning(f"Failed to close destination connection: {close_err}")
    _observe('success', start)
    return None


def _observe(result: str, start: float) -> None:
    try:
        QUERY_EXECUTIONS.labels(result=result).inc()
        QUERY_DURATION.observe(time.time() - start)
    except Exception:
        pass
