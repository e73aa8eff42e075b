"""Supervised one-off data migrations.

Runs a migration routine inside a transaction, shows progress and the side
effects it caused, and commits only after confirmation.
"""

from data_migration_pkg.base import BatchedScope, TransactionProvider
from data_migration_pkg.config import (
    Configuration,
    configure,
    get_configuration,
    mysql_config,
    postgres_config,
    reset_configuration,
)
from data_migration_pkg.data_migration_operator import (
    DataMigrationError,
    DataMigrationOperator,
    MigrationCanceled,
    NestedTransactionError,
    Operator,
    OperatorContext,
    RunOutcome,
)
from data_migration_pkg.generator import generate_maintenance_script
from data_migration_pkg.migration import Migration
from data_migration_pkg.progress import ProgressReporter
from data_migration_pkg.scopes import TableScope
from data_migration_pkg.side_effects import (
    SideEffectKind,
    SideEffectRecorder,
    job_enqueued,
    notification_delivered,
    statement_executed,
    subscribed,
)
from data_migration_pkg.transaction_providers import (
    MultiTransactionProvider,
    MySQLTransactionProvider,
    PostgresTransactionProvider,
)

__all__ = [
    # Base classes
    "TransactionProvider",
    "BatchedScope",
    # Config
    "Configuration",
    "configure",
    "get_configuration",
    "reset_configuration",
    "postgres_config",
    "mysql_config",
    # Operator
    "Operator",
    "OperatorContext",
    "RunOutcome",
    "DataMigrationError",
    "NestedTransactionError",
    "MigrationCanceled",
    "Migration",
    # Collaborators
    "PostgresTransactionProvider",
    "MySQLTransactionProvider",
    "MultiTransactionProvider",
    "ProgressReporter",
    "TableScope",
    # Side effects
    "SideEffectKind",
    "SideEffectRecorder",
    "subscribed",
    "statement_executed",
    "job_enqueued",
    "notification_delivered",
    # Scripts
    "generate_maintenance_script",
    # Deprecated
    "DataMigrationOperator",
]

__version__ = "0.1.0"
