"""Pytest configuration for data_migration_pkg tests."""
import io

import pytest

from data_migration_pkg.base import TransactionProvider
from data_migration_pkg.config import Configuration, reset_configuration
from data_migration_pkg.data_migration_operator import Operator


class RecordingTransactionProvider(TransactionProvider):
    """In-memory provider that counts commits and rollbacks."""

    def __init__(self, open_transaction=False):
        self.open_transaction = open_transaction
        self.commits = 0
        self.rollbacks = 0

    def within_transaction(self, routine):
        self.open_transaction = True
        try:
            result = routine()
        except BaseException:
            self.rollbacks += 1
            raise
        finally:
            self.open_transaction = False
        self.commits += 1
        return result

    def current_transaction_open(self):
        return self.open_transaction


class ListScope:
    """Batched scope stand-in over a plain list."""

    def __init__(self, records):
        self.records = list(records)

    def find_each(self):
        return (record for record in self.records)

    def count(self):
        return len(self.records)


@pytest.fixture(autouse=True)
def isolated_configuration(tmp_path, monkeypatch):
    """Keep the process-wide configuration and log files out of the working tree."""
    monkeypatch.setenv("DATA_MIGRATION_LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setenv("DATA_MIGRATION_SCRIPT_DIR", str(tmp_path / "scripts"))
    reset_configuration()
    yield
    reset_configuration()


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def provider():
    return RecordingTransactionProvider()


@pytest.fixture
def make_operator(output, provider, tmp_path):
    def make(answers="", title="dummy", **options):
        options.setdefault("logger", None)
        options.setdefault("transaction_provider", provider)
        return Operator(
            title,
            output=output,
            input=io.StringIO(answers),
            configuration=Configuration(log_directory=str(tmp_path / "log"), transaction_provider=provider),
            **options,
        )

    return make
