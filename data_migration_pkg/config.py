"""Load migration configuration from environment variables with sane defaults."""
import os
from typing import Optional


def _clean(config):
    """Remove None values to keep connection calls happy."""
    return {k: v for k, v in config.items() if v is not None and v != ""}


def _port(name):
    value = os.getenv(name)
    return int(value) if value else None


def postgres_config():
    """psycopg2 connection keys."""
    return _clean({
        "host": os.getenv("POSTGRES_HOST", "localhost"),
        "port": _port("POSTGRES_PORT"),
        "user": os.getenv("POSTGRES_USER", "postgres"),
        "password": os.getenv("POSTGRES_PASSWORD", ""),
        "dbname": os.getenv("POSTGRES_DB", os.getenv("POSTGRES_DATABASE", "")),
    })


def mysql_config():
    """pymysql connection keys."""
    return _clean({
        "host": os.getenv("MYSQL_HOST", "localhost"),
        "port": _port("MYSQL_PORT"),
        "user": os.getenv("MYSQL_USER", "root"),
        "password": os.getenv("MYSQL_PASSWORD", ""),
        "db": os.getenv("MYSQL_DATABASE", os.getenv("MYSQL_DB", "")),
    })


class Configuration:
    """Process-wide settings for data migrations.

    Resolved once (see ``get_configuration``) and handed to each operator
    explicitly, so a run never reads settings that change underneath it.
    """

    def __init__(self, maintenance_script_directory: Optional[str] = None,
                 log_directory: Optional[str] = None, transaction_provider=None):
        self.maintenance_script_directory = (
            maintenance_script_directory or os.getenv("DATA_MIGRATION_SCRIPT_DIR", "scripts")
        )
        self.log_directory = log_directory or os.getenv("DATA_MIGRATION_LOG_DIR", "log")
        self._transaction_provider = transaction_provider

    @property
    def transaction_provider(self):
        # Connecting is deferred to the first transaction, so building the default is free.
        if self._transaction_provider is None:
            from data_migration_pkg.transaction_providers import PostgresTransactionProvider
            self._transaction_provider = PostgresTransactionProvider()
        return self._transaction_provider

    @transaction_provider.setter
    def transaction_provider(self, provider):
        self._transaction_provider = provider

    def describe(self):
        provider = self._transaction_provider
        return {
            "maintenance_script_directory": self.maintenance_script_directory,
            "log_directory": self.log_directory,
            "transaction_provider": type(provider).__name__ if provider else "PostgresTransactionProvider (default)",
            "postgres": {k: v for k, v in postgres_config().items() if k != "password"},
        }


_configuration: Optional[Configuration] = None


def get_configuration() -> Configuration:
    """Return the process-wide configuration, creating it on first use."""
    global _configuration
    if _configuration is None:
        _configuration = Configuration()
    return _configuration


def configure(**overrides) -> Configuration:
    """Update the process-wide configuration.

    Example:
        configure(maintenance_script_directory="maintenance",
                  transaction_provider=MySQLTransactionProvider())
    """
    configuration = get_configuration()
    for key, value in overrides.items():
        if key not in ("maintenance_script_directory", "log_directory", "transaction_provider"):
            raise TypeError(f"Unknown configuration option: {key}")
        setattr(configuration, key, value)
    return configuration


def reset_configuration():
    global _configuration
    _configuration = None
