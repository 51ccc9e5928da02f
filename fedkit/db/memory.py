"""An in-memory database backed by a dictionary."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Any, Iterable, Iterator, Optional, TextIO

from fedkit.db.base import Database, key_to_bytes, value_to_bytes
from fedkit.db.batch import Accumulator, BatchOp

logger = logging.getLogger(__name__)


class MemDatabase(Database):
    """A thread-safe in-memory key-value store."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def dump_db(self, stream: Optional[TextIO] = None) -> None:
        """Write every entry as ``key: value`` in hex, in key order."""
        out = sys.stderr if stream is None else stream
        with self._lock:
            entries = sorted(self._data.items())
        for key, value in entries:
            out.write(f"{key.hex()}: {value.hex()}\n")

    def raw_insert_entry(self, key: bytes, value: bytes) -> Optional[bytes]:
        with self._lock:
            old = self._data.get(bytes(key))
            self._data[bytes(key)] = bytes(value)
            return old

    def raw_get_value(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(bytes(key))

    def raw_remove_entry(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.pop(bytes(key), None)

    def raw_find_by_prefix(self, key_prefix: bytes) -> Iterator[tuple[bytes, bytes]]:
        prefix = bytes(key_prefix)
        with self._lock:
            matches = sorted(
                (key, value) for key, value in self._data.items() if key.startswith(prefix)
            )
        return iter(matches)

    def raw_apply_batch(self, batch: Iterable[Any]) -> None:
        items = batch.to_list() if isinstance(batch, Accumulator) else list(batch)
        for item in items:
            if item.op is BatchOp.INSERT_NEW:
                old = self.raw_insert_entry(key_to_bytes(item.key), value_to_bytes(item.value))
                if old is not None:
                    logger.error("Database replaced element! %r", item.key)
            elif item.op is BatchOp.INSERT:
                self.raw_insert_entry(key_to_bytes(item.key), value_to_bytes(item.value))
            elif item.op is BatchOp.DELETE:
                if self.raw_remove_entry(key_to_bytes(item.key)) is None:
                    logger.error("Database deleted absent element! %r", item.key)
            elif item.op is BatchOp.MAYBE_DELETE:
                self.raw_remove_entry(key_to_bytes(item.key))
            else:
                raise ValueError(f"unknown batch operation {item.op!r}")