import io
from unittest import mock

import pytest

from data_migration_pkg.data_migration_operator import MigrationCanceled, Operator
from data_migration_pkg.migration import Migration, humanize

from conftest import ListScope


class Record:
    def __init__(self, id):
        self.id = id


class BackfillNamesMigration(Migration):
    def __init__(self):
        super().__init__()
        self.targets = [Record(i) for i in range(1, 4)]
        self.migrated_records = []

    def migration_targets(self):
        return ListScope(self.targets)

    def migrate_record(self, record):
        self.migrated_records.append(record)


class RecordingMigration(BackfillNamesMigration):
    instances = []

    def __init__(self):
        super().__init__()
        RecordingMigration.instances.append(self)


@pytest.fixture
def migration():
    return BackfillNamesMigration()


class TestRun:
    def test_executes_migrate_under_operator(self):
        with mock.patch.object(Operator, "run") as run:
            BackfillNamesMigration.run()

        run.assert_called_once_with("Backfill names migration", mock.ANY)

    def test_passes_options(self):
        with mock.patch.object(Operator, "run") as run:
            BackfillNamesMigration.run(warning_side_effects=False)

        run.assert_called_once_with("Backfill names migration", mock.ANY, warning_side_effects=False)

    def test_full_run(self, provider, output):
        RecordingMigration.instances.clear()

        result = RecordingMigration.run(
            output=output, input=io.StringIO("yes\nyes\n"), logger=None, transaction_provider=provider
        )

        assert result is True
        [instance] = RecordingMigration.instances
        assert [record.id for record in instance.migrated_records] == [1, 2, 3]
        assert provider.commits == 1
        out = output.getvalue()
        assert "Target count: 3" in out
        assert "Are you sure? (yes/no) > " in out
        assert "Migration completed" in out
        assert "Finished successfully: Recording migration" in out

    def test_declined_before_processing(self, provider, output):
        RecordingMigration.instances.clear()

        with pytest.raises(MigrationCanceled):
            RecordingMigration.run(output=output, input=io.StringIO("no\n"), logger=None,
                                   transaction_provider=provider)

        [instance] = RecordingMigration.instances
        assert instance.migrated_records == []
        assert provider.rollbacks == 1
        assert "Are you sure to commit?" not in output.getvalue()


class TestTitle:
    def test_humanized_class_name(self, migration):
        assert migration.title == "Backfill names migration"

    @pytest.mark.parametrize("name,expected", [
        ("TestMigration", "Test migration"),
        ("FixHTTPHeaders", "Fix http headers"),
        ("Backfill2024Data", "Backfill2024 data"),
    ])
    def test_humanize(self, name, expected):
        assert humanize(name) == expected


class TestMigrate:
    def test_processes_every_target(self, migration, capsys):
        migration.migrate()

        assert len(migration.migrated_records) == 3
        out = capsys.readouterr().out
        assert "Target count: 3" in out
        assert "Confirmation skipped in test mode" in out
        assert "Migration completed" in out

    def test_migration_targets_not_implemented(self):
        with pytest.raises(NotImplementedError):
            Migration().migration_targets()

    def test_migrate_record_not_implemented(self):
        with pytest.raises(NotImplementedError):
            Migration().migrate_record(Record(1))


class TestDefaultsWithoutOperator:
    def test_log_prints(self, migration, capsys):
        migration.log("test message")
        assert capsys.readouterr().out == "test message\n"

    def test_find_each_with_progress_iterates_plainly(self, migration):
        results = []
        migration.find_each_with_progress(migration.migration_targets(), results.append)
        assert len(results) == 3

    def test_each_with_progress_iterates_plainly(self, migration):
        results = []
        migration.each_with_progress([1, 2, 3], results.append)
        assert results == [1, 2, 3]
