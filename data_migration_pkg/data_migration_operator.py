"""Run a one-off data migration under a transaction, asking before commit.

The operator runs the migration routine inside a transaction it owns, shows
what happened (log lines, progress, side-effect summary) and only commits
after the person running it types ``yes``. ``no`` rolls everything back.
"""
import enum
import logging
import os
import sys
import time
import warnings
from datetime import datetime
from operator import length_hint
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

import pandas as pd

from data_migration_pkg.config import Configuration, get_configuration
from data_migration_pkg.progress import ProgressReporter
from data_migration_pkg.side_effects import SideEffectRecorder

logger = logging.getLogger(__name__)

COMMIT_PROMPT = "\nAre you sure to commit?"

_UNSET = object()


class DataMigrationError(Exception):
    """Base class for errors raised by the migration operator."""


class NestedTransactionError(DataMigrationError):
    """Raised when a transaction is already open before the operator starts."""

    def __init__(self, message="A transaction is already open; the operator must own the transaction it commits"):
        super().__init__(message)


class MigrationCanceled(DataMigrationError):
    """Raised when commit is declined. Unwinding through the transaction rolls it back."""


class RunOutcome(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMMITTED = "committed"
    CANCELED = "canceled"
    FAILED = "failed"


def squish(message) -> str:
    return " ".join(str(message).split())


def build_run_logger(log_directory, now: Optional[datetime] = None) -> logging.Logger:
    """File-backed logger named after the current minute, e.g. log/data_migration_202610191504.log."""
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M")
    path = Path(log_directory) / f"data_migration_{stamp}.log"
    run_logger = logging.getLogger(f"{__name__}.runs.{stamp}")
    for handler in list(run_logger.handlers):
        if getattr(handler, "baseFilename", None) != os.path.abspath(path):
            run_logger.removeHandler(handler)
            handler.close()
    if not run_logger.handlers:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        run_logger.addHandler(handler)
        run_logger.setLevel(logging.INFO)
        run_logger.propagate = False
    return run_logger


def close_run_logger(run_logger: logging.Logger) -> None:
    """Detach and close the handlers added by build_run_logger."""
    for handler in list(run_logger.handlers):
        run_logger.removeHandler(handler)
        handler.close()


def _resolve_total(items) -> Optional[int]:
    """Size of items when it can be known without consuming them, else None."""
    try:
        if hasattr(items, "__len__"):
            size = len(items)
        else:
            size = length_hint(items, -1)
    except Exception as e:
        logger.debug(f"Could not determine total, showing unknown progress: {e}")
        return None
    return size if size >= 0 else None


def _scope_count(scope) -> Optional[int]:
    if hasattr(scope, "__len__"):
        return _resolve_total(scope)
    count = getattr(scope, "count", None)
    if not callable(count):
        return None
    try:
        return int(count())
    except Exception as e:
        logger.debug(f"Could not count scope, showing unknown progress: {e}")
        return None


class OperatorContext:
    """What a migration routine can do while the operator runs it."""

    def __init__(self, operator: "Operator"):
        self._operator = operator

    @property
    def title(self) -> str:
        return self._operator.title

    def log(self, message) -> None:
        self._operator.log(message)

    def confirm(self, message: str = "Are you sure?") -> bool:
        return self._operator.confirm(message)

    def each_with_progress(self, items, fn: Callable[[Any], Any], **options) -> int:
        return self._operator.each_with_progress(items, fn, **options)

    def find_each_with_progress(self, scope, fn: Callable[[Any], Any], **options) -> int:
        return self._operator.find_each_with_progress(scope, fn, **options)


class Operator:
    """Own one migration run: transaction, confirmation, timing and logs.

    Options:
        warning_side_effects: summarize writes, enqueued jobs and notifications
            seen while the routine ran (default True).
        without_transaction: run the routine directly, without transaction or
            confirmation (default False).
        logger: structured log sink; defaults to a timestamped file under the
            configured log directory. ``None`` disables it.
        output: stream for human-readable output (default stdout).
        input: stream the confirmation answer is read from (default stdin).
        transaction_provider: overrides the configured provider.
        configuration: explicit ``Configuration``; defaults to the process-wide one.

    An operator executes once. ``execute`` returns True on success and
    re-raises the captured error (``MigrationCanceled`` when declined) after
    logging the total time.
    """

    def __init__(self, title: str, *, warning_side_effects: bool = True, without_transaction: bool = False,
                 logger=_UNSET, output: Optional[TextIO] = None, input: Optional[TextIO] = None,
                 transaction_provider=None, configuration: Optional[Configuration] = None):
        self._title = title
        self.configuration = configuration or get_configuration()
        self.warning_side_effects = warning_side_effects
        self.without_transaction = without_transaction
        self.stream = output if output is not None else sys.stdout
        self.input = input
        self._owns_logger = logger is _UNSET
        self.logger = build_run_logger(self.configuration.log_directory) if self._owns_logger else logger
        self.transaction_provider = transaction_provider or self.configuration.transaction_provider

        self.result: Optional[bool] = None
        self.error: Optional[BaseException] = None
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None
        self._started_clock: Optional[float] = None
        self._ended_clock: Optional[float] = None
        self.side_effects = SideEffectRecorder()
        self.context = OperatorContext(self)
        self._progress: Optional[ProgressReporter] = None

    @classmethod
    def run(cls, title: str, routine: Callable[[OperatorContext], Any], **options) -> bool:
        """Build an operator and execute routine with it."""
        return cls(title, **options).execute(routine)

    @property
    def title(self) -> str:
        return self._title

    @property
    def canceled(self) -> bool:
        return isinstance(self.error, MigrationCanceled)

    @property
    def outcome(self) -> RunOutcome:
        if self.started_at is None:
            return RunOutcome.NOT_STARTED
        if self.result is None:
            return RunOutcome.RUNNING
        if self.result:
            return RunOutcome.COMMITTED
        return RunOutcome.CANCELED if self.canceled else RunOutcome.FAILED

    @property
    def duration(self) -> float:
        """Seconds since start; the final run time once execution ended."""
        if self._started_clock is None:
            return 0.0
        end = self._ended_clock if self._ended_clock is not None else time.monotonic()
        return end - self._started_clock

    def execute(self, routine: Callable[[OperatorContext], Any]) -> bool:
        if self.started_at is not None:
            raise DataMigrationError(f"Operator for {self.title!r} has already been executed")

        self.started_at = datetime.now().astimezone()
        self._started_clock = time.monotonic()
        self.log(f"Start: {self.title} at {self.started_at.isoformat(sep=' ', timespec='seconds')}\n\n")
        try:
            if self.without_transaction:
                self._run(routine)
                self.result = True
            else:
                if self.transaction_provider.current_transaction_open():
                    raise NestedTransactionError()
                self.result = self.transaction_provider.within_transaction(
                    lambda: self._run_and_confirm(routine)
                )
            if self.result is True:
                self.log(f"Finished successfully: {self.title}")
        except Exception as e:
            self.error = e
            self.result = False
        finally:
            if self.result is None:
                self.result = False
            self.ended_at = datetime.now().astimezone()
            self._ended_clock = time.monotonic()
            self.log(f"Total time: {self.duration:.2f} sec")
            if self._owns_logger:
                close_run_logger(self.logger)

        if self.error is not None:
            raise self.error
        return self.result

    def _run_and_confirm(self, routine) -> bool:
        self._run(routine)
        self.log(f"Finished execution: {self.title}")
        return self.confirm(COMMIT_PROMPT)

    def _run(self, routine):
        if not self.warning_side_effects:
            return routine(self.context)
        try:
            with self.side_effects.recording():
                return routine(self.context)
        finally:
            self._log_side_effects()

    def _log_side_effects(self):
        for header, lines in self.side_effects.summary():
            self._newline()
            self.log(header)
            for line in lines:
                self.log(line)

    def log(self, message) -> None:
        """Write message to the output stream and the structured logger.

        While a progress bar is on screen the message is printed above it.
        """
        message = str(message)
        if self._progress is not None and not self._progress.finished:
            self._progress.log(message)
        else:
            print(message, file=self.stream)

        if self.logger is not None:
            self.logger.info(squish(message))

    def confirm(self, message: str = "Are you sure?") -> bool:
        """Block until the answer is yes (returns True) or no (cancels the run)."""
        while True:
            self.stream.write(f"{message} (yes/no) > ")
            self.stream.flush()
            line = self._read_line()
            # End of input can never become a yes.
            if line == "":
                self._newline()
                self.cancel()
            answer = line.strip()
            if answer == "yes":
                self._newline()
                return True
            if answer == "no":
                self._newline()
                self.cancel()

    def cancel(self):
        self.log(f"Canceled: {self.title}")
        raise MigrationCanceled(f"Canceled: {self.title}")

    def _read_line(self) -> str:
        source = self.input if self.input is not None else sys.stdin
        return source.readline()

    def _newline(self):
        print("", file=self.stream)

    def each_with_progress(self, items, fn: Callable[[Any], Any], *, title: Optional[str] = None,
                           total: Optional[int] = None, **options) -> int:
        """Call fn for every item while rendering a progress bar.

        total defaults to len(items) when it is cheap to know; otherwise the
        bar runs in unknown-total mode. DataFrames are iterated by row.
        Returns the number of items processed.
        """
        if total is None:
            total = _resolve_total(items)
        if isinstance(items, pd.DataFrame):
            items = items.itertuples(index=False)

        progress = ProgressReporter(title=title, total=total, output=self.stream, **options)
        outer, self._progress = self._progress, progress
        try:
            for item in items:
                fn(item)
                progress.increment()
        finally:
            progress.finish()
            self._progress = outer
        return progress.count

    def find_each_with_progress(self, scope, fn: Callable[[Any], Any], *, title: Optional[str] = None,
                                total: Optional[int] = None, **options) -> int:
        """each_with_progress over scope.find_each(), the scope's lazy record stream."""
        find_each = getattr(scope, "find_each", None)
        if not callable(find_each):
            raise TypeError(f"{type(scope).__name__} has no find_each(); use each_with_progress instead")
        records = find_each()
        if total is None:
            total = _resolve_total(records)
        if total is None:
            total = _scope_count(scope)
        return self.each_with_progress(records, fn, title=title, total=total, **options)


class DataMigrationOperator(Operator):
    """Deprecated alias of Operator, kept for older maintenance scripts."""

    def __init__(self, *args, **kwargs):
        warnings.warn(
            "DataMigrationOperator is deprecated. Use Operator instead.",
            DeprecationWarning,
            stacklevel=2,
        )
        super().__init__(*args, **kwargs)
