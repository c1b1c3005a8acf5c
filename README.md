# reedline

History storage, history navigation and fish-style hints for interactive
line editors. The package uses only the standard library.

## What it provides

- `reedline.history_item`: `HistoryItem` holds one command line and
  optional context: id, start time, session, host, working directory,
  duration, exit status and extra data. `HistoryItemId` and
  `HistorySessionId` wrap integer ids.
- `reedline.history_base`: the abstract `History` interface, plus the
  classes that describe a search:
  - `SearchQuery` sets the direction (`SearchDirection.FORWARD` or
    `BACKWARD`), exclusive start and end ids or times, and a limit.
  - `SearchFilter` filters on a `CommandLineSearch` (prefix, substring
    or exact match, all case sensitive), cwd, host, exit status and
    session.
  - `HistoryNavigationQuery` selects normal, prefix or substring browsing.

  The module also defines the error classes.
- `reedline.file_backed`: `FileBackedHistory` keeps at most `capacity`
  command lines (the default is `HISTORY_SIZE`, which is 1000). It does not
  store empty lines or a line that repeats the previous one.
- `reedline.sqlite_backed`: `SqliteBackedHistory` stores complete items in
  an SQLite database. The database can be a file or held in memory.
- `reedline.cursor`: `HistoryCursor` steps back and forward through a
  history the way the arrow keys do. It skips an entry whose text equals
  the one at the cursor.
- `reedline.hinter`: `DefaultHinter` and `CwdAwareHinter` suggest the rest
  of the line being typed.

## Installation

```
pip install .
```

## Usage

```python
from reedline.file_backed import FileBackedHistory
from reedline.history_item import HistoryItem
from reedline.history_base import (
    HistoryNavigationQuery,
    SearchDirection,
    SearchQuery,
)
from reedline.cursor import HistoryCursor
from reedline.hinter import DefaultHinter

with FileBackedHistory.with_file(1000, "history.txt") as history:
    history.save(HistoryItem.from_command_line("ls -alh"))
    history.save(HistoryItem.from_command_line("cd /tmp"))

    everything = history.search(SearchQuery.everything(SearchDirection.FORWARD, None))
    print([item.command_line for item in everything])

    cursor = HistoryCursor(HistoryNavigationQuery.prefix_search("ls"), None)
    cursor.back(history)
    print(cursor.string_at_cursor())  # "ls -alh"

    hinter = DefaultHinter()
    hinter.handle("cd", 2, history, use_ansi_coloring=False)
    print(hinter.complete_hint())  # " /tmp"
```

### The history file

`FileBackedHistory.with_file(capacity, file)` creates any missing parent
directories and reads the file if it already exists. The file holds one
entry per line. A newline inside an entry is written as `<\n>`.

New entries are written when `sync()` or `close()` is called, when a
`with` block ends, or when the object is garbage collected. `sync()` also
reads entries that other processes have added to the file in the meantime.
If the combined entries exceed the capacity, the oldest ones are dropped
from the file. Where `fcntl` is available, the file is locked
exclusively during the sync. `clear()` empties the history and deletes the
file.

The file-backed history raises `HistoryFeatureUnsupported` for:

- searches that filter by time, host, cwd or exit status;
- `update()`;
- `delete()`.

### SQLite history

```python
from reedline.history_item import HistoryItem
from reedline.sqlite_backed import SqliteBackedHistory

with SqliteBackedHistory.in_memory() as history:
    saved = history.save(HistoryItem.from_command_line("make test"))
    print(history.load(saved.id).command_line)
```

- `SqliteBackedHistory.with_file(file, session=None, session_timestamp=None)`
  opens or creates a database file.
- `save()` inserts a new item, or replaces the stored item that has the
  same id.
- `more_info` must be JSON-serialisable.
- A session filter takes effect only when a `session_timestamp` was given.
  It then matches rows of that session and rows that started before the
  timestamp.
- `clear()` deletes all rows and vacuums the database.

### Hints

- `handle(line, pos, history, use_ansi_coloring)` returns the remainder of
  the most recent history entry that starts with `line`. Nothing is looked
  up until the line has at least `min_chars` characters (default 1).
- With colouring on, the hint is wrapped in an ANSI SGR sequence. The
  default style is `"37"`; change it with `with_style()`.
- `complete_hint()` returns the plain hint.
- `next_hint_token()` returns the leading whitespace of the hint followed
  by its first word.
- `CwdAwareHinter` first looks for entries run in the current directory.
  If the history cannot filter by directory, or nothing matches there, it
  falls back to any entry.

### Errors

All errors derive from `HistoryError`:

- `HistoryFeatureUnsupported`
- `OtherHistoryError`: for example, `load()` of a missing id in a
  file-backed history.
- `HistoryDatabaseError`

## What this package does not do

The package has no interactive line editor. It does not read keys, draw a
prompt, bind keys, complete words or render to the terminal. It only
stores, searches and navigates history and computes hint text. A program
that reads lines from the user must supply that part itself.

## Running the tests

```
pip install ".[test]"
pytest
```