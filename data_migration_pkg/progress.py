"""Textual progress display for long iterations, built on tqdm."""
from typing import Optional, TextIO

from tqdm import tqdm

KNOWN_TOTAL_FORMAT = "{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]"
UNKNOWN_TOTAL_FORMAT = "{desc}: ??%| {n_fmt} [{elapsed}, {rate_fmt}]"


class ProgressReporter:
    """Render count, percentage and elapsed time for an iteration.

    ``total=None`` switches to the unknown-total display, which shows the
    running count and rate but no percentage.
    """

    def __init__(self, title: Optional[str] = None, total: Optional[int] = None,
                 output: Optional[TextIO] = None, **options):
        self.title = title or "Progress"
        self.total = total
        self.output = output
        options.setdefault("bar_format", KNOWN_TOTAL_FORMAT if total is not None else UNKNOWN_TOTAL_FORMAT)
        options.setdefault("ncols", 80)
        self._bar = tqdm(total=total, desc=self.title, file=output, leave=True, **options)
        self._finished = False

    def increment(self, count: int = 1) -> None:
        self._bar.update(count)

    @property
    def count(self) -> int:
        return self._bar.n

    def log(self, message: str) -> None:
        """Print message above the bar without corrupting it."""
        self._bar.write(str(message), file=self.output)

    @property
    def finished(self) -> bool:
        return self._finished

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._bar.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
        return False
