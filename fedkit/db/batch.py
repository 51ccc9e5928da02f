"""Accumulation of database operations with transactional rollback."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Element:
    """A database key-value pair."""

    key: Any
    value: Any


class BatchOp(enum.Enum):
    """Kind of database operation held by a :class:`BatchItem`."""

    INSERT_NEW = "insert_new"
    """Insert an element that is expected not to exist yet."""
    INSERT = "insert"
    """Insert an element, replacing any existing one."""
    DELETE = "delete"
    """Delete an element that is expected to exist."""
    MAYBE_DELETE = "maybe_delete"
    """Delete an element if it exists."""


@dataclass(frozen=True)
class BatchItem:
    """One database operation: an operation kind, a key and, for inserts, a value."""

    op: BatchOp
    key: Any
    value: Any = None

    @property
    def element(self) -> Element:
        """The key-value pair of an insert operation."""
        if self.op not in (BatchOp.INSERT_NEW, BatchOp.INSERT):
            raise ValueError(f"{self.op.value} operations carry no value")
        return Element(self.key, self.value)

    @classmethod
    def insert_new(cls, key: Any, value: Any) -> "BatchItem":
        """Operation inserting a new element."""
        return cls(BatchOp.INSERT_NEW, key, value)

    @classmethod
    def insert(cls, key: Any, value: Any) -> "BatchItem":
        """Operation inserting a possibly already existing element."""
        return cls(BatchOp.INSERT, key, value)

    @classmethod
    def delete(cls, key: Any) -> "BatchItem":
        """Operation deleting an existing element."""
        return cls(BatchOp.DELETE, key)

    @classmethod
    def maybe_delete(cls, key: Any) -> "BatchItem":
        """Operation deleting a possibly absent element."""
        return cls(BatchOp.MAYBE_DELETE, key)


class Accumulator(Generic[T]):
    """Collects items over its lifetime and supports transactions that roll back.

    Items are appended through an :class:`AccumulatorTx`. A transaction used as a
    context manager is aborted on exit unless :meth:`AccumulatorTx.commit` was
    called, resetting the accumulator to its state at the transaction start.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._buffer: list[T] = list(items)

    def transaction(self) -> "AccumulatorTx[T]":
        """Start a transaction at the current end of the accumulator."""
        return AccumulatorTx(self, len(self._buffer))

    def autocommit(self, fn: Callable[["AccumulatorTx[T]"], Any]) -> None:
        """Run ``fn`` in a transaction and commit it; roll back if ``fn`` raises."""
        with self.transaction() as tx:
            fn(tx)
            tx.commit()

    def to_list(self) -> list[T]:
        """The accumulated items in order."""
        return list(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._buffer))

    def __repr__(self) -> str:
        return f"Accumulator({self._buffer!r})"


DbBatch = Accumulator


class AccumulatorTx(Generic[T]):
    """A transaction on an :class:`Accumulator` that aborts unless committed."""

    def __init__(self, accumulator: Accumulator[T], checkpoint: int) -> None:
        self._accumulator = accumulator
        self._checkpoint = checkpoint
        self._open = True

    def __enter__(self) -> "AccumulatorTx[T]":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self._open:
            self.abort()

    @property
    def is_open(self) -> bool:
        """Whether the transaction is neither committed nor aborted."""
        return self._open

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("transaction is already finished")

    def commit(self) -> None:
        """Keep the items appended in this transaction."""
        self._ensure_open()
        self._open = False

    def abort(self) -> None:
        """Reset the accumulator to its state at the start of this transaction."""
        self._ensure_open()
        del self._accumulator._buffer[self._checkpoint:]
        self._open = False

    def append(self, item: T) -> None:
        """Append one item to the pending transaction."""
        self._ensure_open()
        self._accumulator._buffer.append(item)

    def extend(self, items: Iterable[T]) -> None:
        """Append several items to the pending transaction."""
        self._ensure_open()
        self._accumulator._buffer.extend(items)

    def subtransaction(self) -> "AccumulatorTx[T]":
        """Start a nested transaction.

        Aborting it only resets to the point where it started; committing it makes
        its items part of this transaction, which may itself still be aborted.
        """
        self._ensure_open()
        return AccumulatorTx(self._accumulator, len(self._accumulator._buffer))

    def extend_from_accumulators(self, accumulators: Iterable[Accumulator[T]]) -> None:
        """Append the items of every accumulator in turn."""
        self.extend(item for accumulator in accumulators for item in accumulator.to_list())

    def append_insert_new(self, key: Any, value: Any) -> None:
        """Append an operation inserting a new element."""
        self.append(BatchItem.insert_new(key, value))  # type: ignore[arg-type]

    def append_insert(self, key: Any, value: Any) -> None:
        """Append an operation inserting a possibly existing element."""
        self.append(BatchItem.insert(key, value))  # type: ignore[arg-type]

    def append_delete(self, key: Any) -> None:
        """Append an operation deleting an existing element."""
        self.append(BatchItem.delete(key))  # type: ignore[arg-type]

    def append_maybe_delete(self, key: Any) -> None:
        """Append an operation deleting a possibly absent element."""
        self.append(BatchItem.maybe_delete(key))  # type: ignore[arg-type]