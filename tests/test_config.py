import pytest

from data_migration_pkg.config import (
    Configuration,
    configure,
    get_configuration,
    mysql_config,
    postgres_config,
)
from data_migration_pkg.transaction_providers import PostgresTransactionProvider


class TestConnectionConfig:
    def test_postgres_from_environment(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("POSTGRES_PORT", "6543")
        monkeypatch.setenv("POSTGRES_DB", "app")
        monkeypatch.delenv("POSTGRES_PASSWORD", raising=False)

        config = postgres_config()

        assert config["host"] == "db.internal"
        assert config["port"] == 6543
        assert config["dbname"] == "app"
        assert "password" not in config

    def test_mysql_defaults(self, monkeypatch):
        for name in ("MYSQL_HOST", "MYSQL_PORT", "MYSQL_USER", "MYSQL_PASSWORD", "MYSQL_DATABASE", "MYSQL_DB"):
            monkeypatch.delenv(name, raising=False)

        assert mysql_config() == {"host": "localhost", "user": "root"}


class TestConfiguration:
    def test_defaults_from_environment(self, tmp_path):
        configuration = get_configuration()

        assert configuration.maintenance_script_directory == str(tmp_path / "scripts")
        assert configuration.log_directory == str(tmp_path / "log")

    def test_resolved_once(self):
        assert get_configuration() is get_configuration()

    def test_default_provider_is_not_connected(self):
        provider = Configuration().transaction_provider

        assert isinstance(provider, PostgresTransactionProvider)
        assert provider.conn is None

    def test_configure(self):
        provider = PostgresTransactionProvider()

        configuration = configure(maintenance_script_directory="maintenance", transaction_provider=provider)

        assert configuration is get_configuration()
        assert configuration.maintenance_script_directory == "maintenance"
        assert configuration.transaction_provider is provider

    def test_configure_rejects_unknown_option(self):
        with pytest.raises(TypeError):
            configure(scripts="elsewhere")
