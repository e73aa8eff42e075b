import re
from typing import Any, Callable, Optional

from data_migration_pkg.data_migration_operator import Operator, OperatorContext


def humanize(class_name: str) -> str:
    """CamelCase class name to a sentence: BackfillUserNames -> Backfill user names."""
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", class_name).lower()
    words = words.replace("_", " ").strip()
    return words[:1].upper() + words[1:]


class Migration:
    """Base class for data migrations with separately testable steps.

    Subclasses implement ``migration_targets`` and ``migrate_record``; ``run``
    executes ``migrate`` under an Operator. Outside of ``run`` (e.g. in unit
    tests) the helpers fall back to printing and plain iteration.
    """

    def __init__(self):
        self._context: Optional[OperatorContext] = None

    @classmethod
    def run(cls, **options) -> bool:
        migration = cls()

        def routine(context: OperatorContext):
            migration._context = context
            try:
                return migration.migrate()
            finally:
                migration._context = None

        return Operator.run(migration.title, routine, **options)

    @property
    def title(self) -> str:
        return humanize(type(self).__name__)

    def migrate(self):
        targets = self.migration_targets()

        self.log(f"Target count: {self._count(targets)}")
        self.confirm()

        self.find_each_with_progress(targets, self.migrate_record)

        self.log("Migration completed")

    def migration_targets(self):
        raise NotImplementedError(f"{type(self).__name__}.migration_targets must be implemented")

    def migrate_record(self, record):
        raise NotImplementedError(f"{type(self).__name__}.migrate_record must be implemented")

    @staticmethod
    def _count(targets) -> Any:
        if hasattr(targets, "__len__"):
            return len(targets)
        return targets.count()

    def confirm(self, message: str = "Are you sure?") -> bool:
        if self._context is not None:
            return self._context.confirm(message)
        # Default behavior during test (no confirmation)
        print("Confirmation skipped in test mode")
        return True

    def log(self, message) -> None:
        if self._context is not None:
            self._context.log(message)
        else:
            print(message)

    def find_each_with_progress(self, scope, fn: Callable[[Any], Any], **options):
        if self._context is not None:
            return self._context.find_each_with_progress(scope, fn, **options)
        # Default behavior during test (no progress bar)
        for record in scope.find_each():
            fn(record)

    def each_with_progress(self, items, fn: Callable[[Any], Any], **options):
        if self._context is not None:
            return self._context.each_with_progress(items, fn, **options)
        for item in items:
            fn(item)
