"""
DuckDB utilities for the in-memory matching joins.
"""

import os
from typing import Optional

import duckdb

from helpers_hof.logging_utils import get_logger


def create_simple_duckdb_connection(logger, tmp_dir: Optional[str] = None, threads: int = 1):
    """Create an in-memory DuckDB connection for a single pipeline run."""
    try:
        conn = duckdb.connect(database=':memory:')

        if tmp_dir:
            os.makedirs(tmp_dir, exist_ok=True)
            conn.execute(f"SET temp_directory = '{tmp_dir}'")

        # Single-threaded batch run; results must not depend on scheduling
        conn.execute(f"SET threads = {int(threads)}")

        logger.info(f"✅ DuckDB connection created - {threads} thread(s)")
        return conn

    except Exception as e:
        logger.error(f"❌ Failed to create DuckDB connection: {e}")
        raise


def get_duckdb_connection(tmp_dir: Optional[str] = None, logger=None):
    """Get a DuckDB connection, falling back to the module logger."""
    if logger is None:
        logger = get_logger(__name__)

    return create_simple_duckdb_connection(logger, tmp_dir)


def register_frame(conn, name: str, df, logger=None):
    """Expose a pandas DataFrame to SQL as a table (copied, so later edits to df don't leak)."""
    conn.register(f"{name}_df", df)
    conn.execute(f"CREATE OR REPLACE TABLE {name} AS SELECT * FROM {name}_df")
    conn.unregister(f"{name}_df")
    if logger:
        count = conn.sql(f"SELECT COUNT(*) FROM {name}").fetchone()[0]
        logger.debug(f"Registered table {name}: {count:,} rows")


def close_duckdb_connection(conn, logger):
    """Close a DuckDB connection, logging rather than raising on failure."""
    try:
        if conn:
            conn.close()
            logger.info("✅ DuckDB connection closed")
    except Exception as e:
        logger.warning(f"⚠️ Could not close DuckDB connection: {e}")
