"""A history kept in memory and optionally synchronised with a plain text file."""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from itertools import islice
from pathlib import Path
from typing import IO, Callable, Iterator, List, Optional, Union

from .history_base import (
    History,
    HistoryFeatureUnsupported,
    OtherHistoryError,
    SearchDirection,
    SearchQuery,
)
from .history_item import HistoryItem, HistoryItemId, HistorySessionId

try:
    import fcntl
except ImportError:  # pragma: no cover - platforms without fcntl
    fcntl = None  # type: ignore[assignment]

HISTORY_SIZE = 1000
"""Default capacity of a :class:`FileBackedHistory`."""

NEWLINE_ESCAPE = "<\\n>"

_NAME = "FileBackedHistory"


def _encode_entry(entry: str) -> str:
    return entry.replace("\n", NEWLINE_ESCAPE)


def _decode_entry(line: str) -> str:
    return line.replace(NEWLINE_ESCAPE, "\n")


def _split_lines(text: str) -> List[str]:
    """Split file contents into lines, dropping a trailing ``\\r`` per line."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


@contextmanager
def _exclusive_lock(handle: IO[bytes]) -> Iterator[None]:
    if fcntl is None:
        yield
        return
    fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
    try:
        yield
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def _construct_entry(item_id: Optional[HistoryItemId], command_line: str) -> HistoryItem:
    # This history keeps nothing but the command line.
    return HistoryItem(command_line=command_line, id=item_id)


class FileBackedHistory(History):
    """History holding at most ``capacity`` command lines.

    Consecutive duplicates and empty lines are not stored. When attached to a
    file (see :meth:`with_file`), entries not yet on disk are appended to it
    on :meth:`sync`, :meth:`close` or when the object goes away; the file is
    truncated to the most recent ``capacity`` entries when needed.
    """

    def __init__(self, capacity: int = HISTORY_SIZE) -> None:
        if capacity < 0:
            raise ValueError("History capacity must not be negative")
        if capacity >= sys.maxsize:
            raise OtherHistoryError(
                "History capacity too large to be addressed safely"
            )
        self._capacity = capacity
        self._entries: List[str] = []
        self._file: Optional[Path] = None
        self._len_on_disk = 0
        self._session: Optional[HistorySessionId] = None

    @classmethod
    def with_file(
        cls, capacity: int, file: Union[str, "os.PathLike[str]"]
    ) -> "FileBackedHistory":
        """Create a history bound to ``file``, reading it if it exists.

        Creates the missing parent directories of the file.
        """
        history = cls(capacity)
        path = Path(file)
        path.parent.mkdir(parents=True, exist_ok=True)
        history._file = path
        history.sync()
        return history

    @property
    def capacity(self) -> int:
        return self._capacity

    def save(self, item: HistoryItem) -> HistoryItem:
        """Append the command line unless it is empty or repeats the last one."""
        entry = item.command_line
        item_id: Optional[HistoryItemId] = None
        is_new = not self._entries or self._entries[-1] != entry
        if is_new and entry and self._capacity > 0:
            if len(self._entries) == self._capacity:
                del self._entries[0]
                self._len_on_disk = max(0, self._len_on_disk - 1)
            self._entries.append(entry)
            item_id = HistoryItemId(len(self._entries) - 1)
        return _construct_entry(item_id, entry)

    def load(self, item_id: HistoryItemId) -> HistoryItem:
        index = item_id.value
        if not 0 <= index < len(self._entries):
            raise OtherHistoryError("Item does not exist")
        return _construct_entry(item_id, self._entries[index])

    def count(self, query: SearchQuery) -> int:
        return len(self.search(query))

    def search(self, query: SearchQuery) -> List[HistoryItem]:
        if query.start_time is not None or query.end_time is not None:
            raise HistoryFeatureUnsupported(_NAME, "filtering by time")
        flt = query.filter
        if (
            flt.hostname is not None
            or flt.cwd_exact is not None
            or flt.cwd_prefix is not None
            or flt.exit_successful is not None
        ):
            raise HistoryFeatureUnsupported(_NAME, "filtering by extra info")

        start = query.start_id.value if query.start_id is not None else None
        end = query.end_id.value if query.end_id is not None else None
        backward = query.direction is SearchDirection.BACKWARD
        low, high = (end, start) if backward else (start, end)

        count = len(self._entries)
        # Bounds are exclusive; turn them into an inclusive window.
        min_id = low + 1 if low is not None else 0
        max_id = high - 1 if high is not None else count - 1
        if max_id < 0 or min_id > count - 1:
            return []
        min_id = max(min_id, 0)
        intrinsic_limit = max(0, max_id - min_id + 1)
        limit = intrinsic_limit
        if query.limit is not None:
            limit = max(0, min(intrinsic_limit, query.limit))

        window = range(min_id, min(count, min_id + intrinsic_limit))
        indices = reversed(window) if backward else window

        def accepted(command_line: str) -> bool:
            if flt.command_line is not None and not flt.command_line.matches(
                command_line
            ):
                return False
            return flt.not_command_line is None or command_line != flt.not_command_line

        matches = (
            _construct_entry(HistoryItemId(index), self._entries[index])
            for index in indices
            if accepted(self._entries[index])
        )
        return list(islice(matches, limit))

    def update(
        self, item_id: HistoryItemId, updater: Callable[[HistoryItem], HistoryItem]
    ) -> None:
        raise HistoryFeatureUnsupported(_NAME, "updating entries")

    def clear(self) -> None:
        """Forget all entries and remove the backing file, if any."""
        self._entries.clear()
        self._len_on_disk = 0
        if self._file is not None:
            os.remove(self._file)

    def delete(self, item_id: HistoryItemId) -> None:
        raise HistoryFeatureUnsupported(_NAME, "removing entries")

    def sync(self) -> None:
        """Write unwritten entries to the file and pick up those of other writers.

        If the file would exceed the capacity, its oldest entries are dropped.
        """
        if self._file is None:
            return
        own_entries = self._entries[self._len_on_disk:]
        self._file.parent.mkdir(parents=True, exist_ok=True)

        fd = os.open(self._file, os.O_RDWR | os.O_CREAT, 0o666)
        with os.fdopen(fd, "r+b") as handle, _exclusive_lock(handle):
            from_file = [
                _decode_entry(line)
                for line in _split_lines(handle.read().decode("utf-8"))
            ]
            truncate = len(from_file) + len(own_entries) > self._capacity
            if truncate:
                keep = max(0, self._capacity - len(own_entries))
                foreign_entries = from_file[len(from_file) - keep:]
                handle.seek(0)
                to_write = foreign_entries + own_entries
            else:
                foreign_entries = from_file
                handle.seek(0, os.SEEK_END)
                to_write = own_entries
            handle.write(
                "".join(_encode_entry(line) + "\n" for line in to_write).encode("utf-8")
            )
            handle.flush()
            if truncate:
                handle.truncate()

        self._entries = foreign_entries + own_entries
        self._len_on_disk = len(self._entries)

    def session(self) -> Optional[HistorySessionId]:
        return self._session

    def close(self) -> None:
        """Flush pending entries to the backing file."""
        self.sync()

    def __enter__(self) -> "FileBackedHistory":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            self.sync()
        except Exception:
            pass