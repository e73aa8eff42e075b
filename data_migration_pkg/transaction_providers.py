import logging
from typing import Any, Callable, Optional

import psycopg2
import psycopg2.extensions
import pymysql
from pymysql.connections import Connection as MySQLConnection
from pymysql.constants import SERVER_STATUS
from psycopg2.extensions import connection as PostgresConnection

from data_migration_pkg.base import TransactionProvider
from data_migration_pkg.config import mysql_config, postgres_config
from data_migration_pkg.side_effects import ObservedCursor, ObservedMySQLCursor

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (
    psycopg2.extensions.TRANSACTION_STATUS_INTRANS,
    psycopg2.extensions.TRANSACTION_STATUS_INERROR,
)


class PostgresTransactionProvider(TransactionProvider):
    """Transactions on a single psycopg2 connection."""

    def __init__(self, connection: Optional[PostgresConnection] = None, config: Optional[dict] = None):
        self.conn = connection
        self.config = config
        self._owns_connection = connection is None

    def connect(self):
        """Create and return a PostgreSQL connection."""
        if self.conn is None:
            self.conn = psycopg2.connect(**(self.config or postgres_config()), cursor_factory=ObservedCursor)
            self.conn.autocommit = False
            self._owns_connection = True
        return self.conn

    def close(self):
        if self.conn and self._owns_connection:
            self.conn.close()
            self.conn = None

    @property
    def connection(self) -> PostgresConnection:
        return self.connect()

    def within_transaction(self, routine: Callable[[], Any]) -> Any:
        conn = self.connect()
        if conn.autocommit:
            raise RuntimeError("PostgreSQL connection is in autocommit mode; cannot run a transaction")
        # The connection context commits on success and rolls back on error; it does not close.
        with conn:
            return routine()

    def current_transaction_open(self) -> bool:
        if self.conn is None:
            return False
        return self.conn.info.transaction_status in _OPEN_STATUSES


class MySQLTransactionProvider(TransactionProvider):
    """Transactions on a single PyMySQL connection."""

    def __init__(self, connection: Optional[MySQLConnection] = None, config: Optional[dict] = None):
        self.conn = connection
        self.config = config
        self._owns_connection = connection is None

    def connect(self):
        """Create and return a MySQL connection."""
        if self.conn is None:
            self.conn = pymysql.connect(
                **(self.config or mysql_config()),
                cursorclass=ObservedMySQLCursor,
                autocommit=False,
            )
            self._owns_connection = True
        return self.conn

    def close(self):
        if self.conn and self._owns_connection:
            self.conn.close()
            self.conn = None

    @property
    def connection(self) -> MySQLConnection:
        return self.connect()

    def within_transaction(self, routine: Callable[[], Any]) -> Any:
        conn = self.connect()
        conn.begin()
        try:
            result = routine()
        except BaseException:
            conn.rollback()
            logger.debug("MySQL transaction rolled back")
            raise
        conn.commit()
        return result

    def current_transaction_open(self) -> bool:
        if self.conn is None:
            return False
        return bool(self.conn.server_status & SERVER_STATUS.SERVER_STATUS_IN_TRANS)


class MultiTransactionProvider(TransactionProvider):
    """Coordinate transactions across several stores.

    Transactions are nested in the given order, the first provider being the
    outermost. This is not two-phase commit: if an outer commit fails after an
    inner one succeeded, the inner store keeps its changes.
    """

    def __init__(self, *providers: TransactionProvider):
        if not providers:
            raise ValueError("MultiTransactionProvider needs at least one provider")
        self.providers = providers

    def connect(self):
        return [provider.connect() for provider in self.providers]

    def close(self):
        for provider in reversed(self.providers):
            provider.close()

    def within_transaction(self, routine: Callable[[], Any]) -> Any:
        def nest(remaining):
            if not remaining:
                return routine()
            head, rest = remaining[0], remaining[1:]
            return head.within_transaction(lambda: nest(rest))

        return nest(self.providers)

    def current_transaction_open(self) -> bool:
        return any(provider.current_transaction_open() for provider in self.providers)
