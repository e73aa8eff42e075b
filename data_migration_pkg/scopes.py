import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from data_migration_pkg.base import BatchedScope

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
# Result columns come back unqualified, so the primary key must be a bare name.
COLUMN_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_identifier(identifier: str, label: str, pattern=IDENTIFIER_RE) -> str:
    if not pattern.fullmatch(identifier):
        raise ValueError(f"Invalid {label} {identifier!r}")
    return identifier


class TableScope(BatchedScope):
    """Rows of one table (optionally filtered), read in primary-key order.

    Batches are fetched with keyset pagination (``WHERE pk > last ORDER BY pk``)
    rather than OFFSET, so rows updated by the migration itself are neither
    skipped nor visited twice. Works with any DB-API connection using the
    ``%s`` paramstyle (psycopg2, PyMySQL).
    """

    def __init__(self, connection, table_name: str, where: Optional[str] = None,
                 params: Sequence[Any] = (), primary_key: str = "id", batch_size: int = 1000):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.connection = connection
        self.table_name = _validate_identifier(table_name, "table name")
        self.primary_key = _validate_identifier(primary_key, "primary key", COLUMN_RE)
        self.where = where
        self.params = tuple(params)
        self.batch_size = batch_size

    def _conditions(self, after_key: bool):
        clauses = []
        if self.where:
            clauses.append(f"({self.where})")
        if after_key:
            clauses.append(f"{self.primary_key} > %s")
        return f" WHERE {' AND '.join(clauses)}" if clauses else ""

    def count(self) -> int:
        """Get the number of rows in the scope."""
        query = f"SELECT COUNT(*) FROM {self.table_name}{self._conditions(False)};"
        cursor = self.connection.cursor()
        try:
            cursor.execute(query, self.params or None)
            result = cursor.fetchone()
        finally:
            cursor.close()
        if result is None:
            return 0
        return int(result[0])

    def _fetch_batch(self, last_key):
        query = (
            f"SELECT * FROM {self.table_name}{self._conditions(last_key is not None)} "
            f"ORDER BY {self.primary_key} LIMIT {self.batch_size};"
        )
        params = self.params + ((last_key,) if last_key is not None else ())
        cursor = self.connection.cursor()
        try:
            cursor.execute(query, params or None)
            rows = list(cursor.fetchall())
            columns = [col[0] for col in cursor.description] if cursor.description else []
        finally:
            cursor.close()
        return rows, columns

    def _batches(self) -> Iterator[Tuple[List[Any], List[str]]]:
        """Yield (rows, columns) pages as returned by the driver."""
        last_key = None
        while True:
            rows, columns = self._fetch_batch(last_key)
            if not rows:
                return
            if self.primary_key not in columns:
                raise KeyError(f"Primary key {self.primary_key!r} not in result columns of {self.table_name}")
            # Next page starts after the last key as the driver returned it.
            last_row = rows[-1]
            last_key = last_row[self.primary_key] if isinstance(last_row, dict) else last_row[columns.index(self.primary_key)]
            logger.debug(f"Fetched {len(rows)} rows from {self.table_name}")
            yield rows, columns
            if len(rows) < self.batch_size:
                return

    def find_in_batches(self) -> Iterator[pd.DataFrame]:
        """Yield the scope as DataFrames of at most batch_size rows."""
        for rows, columns in self._batches():
            yield pd.DataFrame(rows, columns=columns)

    def find_each(self) -> Iterator[Dict[str, Any]]:
        """Yield every row of the scope as a dict, values exactly as the driver returned them."""
        for rows, columns in self._batches():
            for row in rows:
                yield dict(row) if isinstance(row, dict) else dict(zip(columns, row))
