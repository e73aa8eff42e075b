from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable


class TransactionProvider(ABC):
    """Abstract base for transactional data stores (PostgreSQL, MySQL, several at once, ...)."""

    def connect(self) -> Any:
        """Establish the underlying connection(s). Providers may also connect lazily."""
        return None

    def close(self) -> None:
        """Close the underlying connection(s)."""

    def __enter__(self):
        """Enter context manager - establish connection."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager - close connection."""
        self.close()
        return False

    @abstractmethod
    def within_transaction(self, routine: Callable[[], Any]) -> Any:
        """Run routine in a transaction.

        Commits when the routine returns normally and rolls back (re-raising)
        when it raises. Returns whatever the routine returned.
        """
        ...

    @abstractmethod
    def current_transaction_open(self) -> bool:
        """Report whether a transaction is already active on the connection."""
        ...


class BatchedScope(ABC):
    """Abstract base for record sources that are read lazily in batches."""

    @abstractmethod
    def find_each(self) -> Iterable[Any]:
        """Return a lazy iterable over every record in the scope."""
        ...

    @abstractmethod
    def count(self) -> int:
        """Get total number of records in the scope."""
        ...

    def __len__(self):
        return self.count()

    def __iter__(self):
        return iter(self.find_each())
