"""A history stored in an SQLite database, keeping context for each command."""

from __future__ import annotations

import dataclasses
import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from .history_base import (
    CommandLineSearchKind,
    History,
    HistoryDatabaseError,
    SearchDirection,
    SearchQuery,
)
from .history_item import HistoryItem, HistoryItemId, HistorySessionId

SQLITE_APPLICATION_ID = 1151497937

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)

# STRICT tables need SQLite 3.37; older libraries get an ordinary table.
_STRICT = " strict" if sqlite3.sqlite_version_info >= (3, 37, 0) else ""

_SCHEMA = f"""
create table if not exists history (
    id integer primary key autoincrement,
    command_line text not null,
    start_timestamp integer,
    session_id integer,
    hostname text,
    cwd text,
    duration_ms integer,
    exit_status integer,
    more_info text
){_STRICT};
create index if not exists idx_history_time on history(start_timestamp);
create index if not exists idx_history_cwd on history(cwd);
create index if not exists idx_history_exit_status on history(exit_status);
create index if not exists idx_history_cmd on history(command_line);
create index if not exists idx_history_cmd on history(session_id);
"""

_UPSERT = """
insert into history
       (id,  start_timestamp,  command_line,  session_id,  hostname,  cwd,  duration_ms,  exit_status,  more_info)
values (:id, :start_timestamp, :command_line, :session_id, :hostname, :cwd, :duration_ms, :exit_status, :more_info)
on conflict (id) do update set
    start_timestamp = excluded.start_timestamp,
    command_line = excluded.command_line,
    session_id = excluded.session_id,
    hostname = excluded.hostname,
    cwd = excluded.cwd,
    duration_ms = excluded.duration_ms,
    exit_status = excluded.exit_status,
    more_info = excluded.more_info
"""


@contextmanager
def _database_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as err:
        raise HistoryDatabaseError(repr(err)) from err


def _to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // _MILLISECOND


def _from_millis(millis: int) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except (OverflowError, ValueError):
        return datetime.now(timezone.utc)


def _deserialize_history_item(row: sqlite3.Row) -> HistoryItem:
    more_info_text = row["more_info"]
    more_info: Any = None
    if more_info_text is not None:
        try:
            more_info = json.loads(more_info_text)
        except ValueError as err:
            raise HistoryDatabaseError(
                f"could not deserialize more_info: {err}"
            ) from err
    start = row["start_timestamp"]
    session = row["session_id"]
    duration = row["duration_ms"]
    return HistoryItem(
        id=HistoryItemId(row["id"]),
        start_timestamp=_from_millis(start) if start is not None else None,
        command_line=row["command_line"],
        session_id=HistorySessionId(session) if session is not None else None,
        hostname=row["hostname"],
        cwd=row["cwd"],
        duration=timedelta(milliseconds=duration) if duration is not None else None,
        exit_status=row["exit_status"],
        more_info=more_info,
    )


class SqliteBackedHistory(History):
    """History stored in an SQLite database.

    Besides the command line it keeps the start time, session, host, working
    directory, duration, exit status and arbitrary JSON-serialisable extra
    information of each command.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        session: Optional[HistorySessionId] = None,
        session_timestamp: Optional[datetime] = None,
    ) -> None:
        connection.row_factory = sqlite3.Row
        with _database_errors():
            connection.execute("pragma journal_mode = wal")
            connection.execute("pragma synchronous = normal")
            connection.execute("pragma mmap_size = 1000000000")
            connection.execute("pragma foreign_keys = on")
            connection.execute(f"pragma application_id = {SQLITE_APPLICATION_ID}")
            (db_version,) = connection.execute(
                "SELECT user_version FROM pragma_user_version"
            ).fetchone()
        if db_version != 0:
            connection.close()
            raise HistoryDatabaseError(f"Unknown database version {db_version}")
        with _database_errors():
            connection.executescript(_SCHEMA)
        self._db = connection
        self._session = session
        self._session_timestamp = session_timestamp

    @classmethod
    def with_file(
        cls,
        file: Union[str, "os.PathLike[str]"],
        session: Optional[HistorySessionId] = None,
        session_timestamp: Optional[datetime] = None,
    ) -> "SqliteBackedHistory":
        """Open or create the database at ``file``, creating parent directories."""
        path = Path(file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise HistoryDatabaseError(str(err)) from err
        with _database_errors():
            connection = sqlite3.connect(str(path), isolation_level=None)
        return cls(connection, session, session_timestamp)

    @classmethod
    def in_memory(cls) -> "SqliteBackedHistory":
        """Create a history held in memory only."""
        with _database_errors():
            connection = sqlite3.connect(":memory:", isolation_level=None)
        return cls(connection)

    def save(self, item: HistoryItem) -> HistoryItem:
        """Insert ``item``, or update the stored item with the same id."""
        params = {
            "id": item.id.value if item.id is not None else None,
            "start_timestamp": (
                _to_millis(item.start_timestamp)
                if item.start_timestamp is not None
                else None
            ),
            "command_line": item.command_line,
            "session_id": item.session_id.value if item.session_id is not None else None,
            "hostname": item.hostname,
            "cwd": item.cwd,
            "duration_ms": (
                item.duration // _MILLISECOND if item.duration is not None else None
            ),
            "exit_status": item.exit_status,
            "more_info": (
                json.dumps(item.more_info) if item.more_info is not None else None
            ),
        }
        with _database_errors():
            cursor = self._db.execute(_UPSERT, params)
        new_id = item.id.value if item.id is not None else cursor.lastrowid
        return dataclasses.replace(item, id=HistoryItemId(new_id))

    def load(self, item_id: HistoryItemId) -> HistoryItem:
        with _database_errors():
            row = self._db.execute(
                "select * from history where id = :id", {"id": item_id.value}
            ).fetchone()
        if row is None:
            raise HistoryDatabaseError("QueryReturnedNoRows")
        return _deserialize_history_item(row)

    def count(self, query: SearchQuery) -> int:
        sql, params = self._construct_query(query, "coalesce(count(*), 0)")
        with _database_errors():
            (result,) = self._db.execute(sql, params).fetchone()
        return int(result)

    def search(self, query: SearchQuery) -> List[HistoryItem]:
        sql, params = self._construct_query(query, "*")
        with _database_errors():
            rows = self._db.execute(sql, params).fetchall()
        return [_deserialize_history_item(row) for row in rows]

    def update(
        self, item_id: HistoryItemId, updater: Callable[[HistoryItem], HistoryItem]
    ) -> None:
        self.save(updater(self.load(item_id)))

    def clear(self) -> None:
        """Delete all items and vacuum so that the data is really erased."""
        with _database_errors():
            self._db.execute("delete from history")
            self._db.execute("VACUUM")

    def delete(self, item_id: HistoryItemId) -> None:
        with _database_errors():
            cursor = self._db.execute(
                "delete from history where id = ?", (item_id.value,)
            )
        if cursor.rowcount == 0:
            raise HistoryDatabaseError("Could not find item")

    def sync(self) -> None:
        """Nothing to do: every change is written immediately."""

    def session(self) -> Optional[HistorySessionId]:
        return self._session

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    def __enter__(self) -> "SqliteBackedHistory":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _construct_query(
        self, query: SearchQuery, select_expression: str
    ) -> Tuple[str, Dict[str, Any]]:
        forward = query.direction is SearchDirection.FORWARD
        order = "asc" if forward else "desc"
        wheres: List[str] = []
        params: Dict[str, Any] = {}

        if query.start_time is not None:
            wheres.append(
                "start_timestamp > :start_time"
                if forward
                else "start_timestamp < :start_time"
            )
            params["start_time"] = _to_millis(query.start_time)
        if query.end_time is not None:
            wheres.append(
                ":end_time >= start_timestamp"
                if forward
                else ":end_time <= start_timestamp"
            )
            params["end_time"] = _to_millis(query.end_time)
        if query.start_id is not None:
            wheres.append("id > :start_id" if forward else "id < :start_id")
            params["start_id"] = query.start_id.value
        if query.end_id is not None:
            wheres.append(":end_id >= id" if forward else ":end_id <= id")
            params["end_id"] = query.end_id.value

        limit = ""
        if query.limit is not None:
            limit = "limit :limit"
            params["limit"] = query.limit

        flt = query.filter
        if flt.command_line is not None:
            kind = flt.command_line.kind
            if kind is CommandLineSearchKind.EXACT:
                wheres.append("command_line == :command_line")
            elif kind is CommandLineSearchKind.PREFIX:
                wheres.append("instr(command_line, :command_line) == 1")
            else:
                wheres.append("instr(command_line, :command_line) >= 1")
            params["command_line"] = flt.command_line.text
        if flt.not_command_line is not None:
            wheres.append("command_line != :not_cmd")
            params["not_cmd"] = flt.not_command_line
        if flt.hostname is not None:
            wheres.append("hostname = :hostname")
            params["hostname"] = flt.hostname
        if flt.cwd_exact is not None:
            wheres.append("cwd = :cwd")
            params["cwd"] = flt.cwd_exact
        if flt.cwd_prefix is not None:
            wheres.append("cwd like :cwd_like")
            params["cwd_like"] = f"{flt.cwd_prefix}%"
        if flt.exit_successful is not None:
            wheres.append("exit_status = 0" if flt.exit_successful else "exit_status != 0")
        if flt.session is not None and self._session_timestamp is not None:
            # Rows of this session, or rows executed before this session started.
            wheres.append(
                "(session_id = :session_id OR start_timestamp < :session_timestamp)"
            )
            params["session_id"] = flt.session.value
            params["session_timestamp"] = _to_millis(self._session_timestamp)

        where_clause = " and ".join(wheres) or "true"
        sql = (
            f"SELECT {select_expression} FROM history "
            f"WHERE ({where_clause}) ORDER BY id {order} {limit}"
        )
        return sql, params