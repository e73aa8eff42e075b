"""Observation of side effects (writes, enqueued jobs, notifications) during a run.

Anything that writes to a store, queues background work or sends a
notification reports it through ``statement_executed``, ``job_enqueued`` or
``notification_delivered``. Reports go nowhere unless a subscriber is installed
with ``subscribed``, which the operator does for the duration of a migration
routine.
"""
import enum
import logging
import re
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Dict, List, Tuple

import psycopg2.extensions
from psycopg2 import sql
import pymysql.cursors

logger = logging.getLogger(__name__)

WRITE_STATEMENT_RE = re.compile(r"\A\s*(insert|update|delete)\b", re.IGNORECASE)
SUMMARY_LIMIT = 20


class SideEffectKind(enum.Enum):
    WRITE_QUERY = "write_queries"
    ENQUEUED_JOB = "enqueued_jobs"
    DELIVERED_NOTIFICATION = "delivered_notifications"

    @property
    def title(self) -> str:
        return self.value.replace("_", " ").title()


Subscriber = Callable[[SideEffectKind, str], None]

_subscribers: List[Subscriber] = []


def publish(kind: SideEffectKind, key: str) -> None:
    """Fan an event out to every installed subscriber."""
    logger.debug(f"Side effect {kind.value}: {key}")
    for subscriber in list(_subscribers):
        subscriber(kind, key)


@contextmanager
def subscribed(callback: Subscriber):
    """Install callback for the duration of the with-block.

    The subscription is removed even when the block raises.
    """
    _subscribers.append(callback)
    try:
        yield callback
    finally:
        _subscribers.remove(callback)


def normalize_statement(statement: str) -> str:
    return " ".join(statement.split())


def statement_executed(statement) -> None:
    """Report an executed statement; only INSERT/UPDATE/DELETE count as side effects."""
    if isinstance(statement, bytes):
        statement = statement.decode("utf-8", errors="replace")
    if not isinstance(statement, str) or not WRITE_STATEMENT_RE.match(statement):
        return
    publish(SideEffectKind.WRITE_QUERY, normalize_statement(statement))


def job_enqueued(job) -> None:
    """Report a background job being queued. Keyed by the job's class name."""
    key = job if isinstance(job, str) else type(job).__name__
    publish(SideEffectKind.ENQUEUED_JOB, key)


def notification_delivered(notification) -> None:
    """Report an outbound notification (mail, chat message, webhook, ...)."""
    if isinstance(notification, str):
        key = notification
    elif isinstance(notification, type):
        key = notification.__name__
    else:
        key = type(notification).__name__
    publish(SideEffectKind.DELIVERED_NOTIFICATION, key)


class SideEffectRecorder:
    """Tally side-effect events by kind and key."""

    def __init__(self):
        self.counts: Dict[SideEffectKind, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def __call__(self, kind: SideEffectKind, key: str) -> None:
        self.counts[kind][key] += 1

    def recording(self):
        return subscribed(self)

    def top(self, kind: SideEffectKind, limit: int = SUMMARY_LIMIT) -> List[Tuple[str, int]]:
        items = self.counts.get(kind, {})
        return sorted(items.items(), key=lambda item: item[1], reverse=True)[:limit]

    def summary(self) -> List[Tuple[str, List[str]]]:
        """Header and lines for every kind that saw at least one event."""
        sections = []
        for kind in SideEffectKind:
            if not self.counts.get(kind):
                continue
            lines = [f"{count} call: {key}" for key, count in self.top(kind)]
            sections.append((f"{kind.title}!!", lines))
        return sections


def _query_text(query, context):
    if isinstance(query, sql.Composable):
        return query.as_string(context)
    return query


class StatementReportingMixin:
    """Report statements run through execute/executemany of the cursor class it precedes."""

    def execute(self, query, vars=None):
        result = super().execute(query, vars)
        statement_executed(_query_text(query, self))
        return result

    def executemany(self, query, vars_list):
        # One report per parameter set, as PyMySQL does through execute.
        vars_list = list(vars_list)
        result = super().executemany(query, vars_list)
        statement = _query_text(query, self)
        for _ in vars_list:
            statement_executed(statement)
        return result


class ObservedCursor(StatementReportingMixin, psycopg2.extensions.cursor):
    """psycopg2 cursor reporting every executed statement."""


class ObservedMySQLCursor(pymysql.cursors.Cursor):
    """PyMySQL cursor reporting every executed statement.

    ``executemany`` funnels into ``execute``, so it needs no override.
    """

    def execute(self, query, args=None):
        result = super().execute(query, args)
        statement_executed(query)
        return result
