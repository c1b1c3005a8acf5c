"""Queries, filters and the abstract interface shared by history stores."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

from .history_item import HistoryItem, HistoryItemId, HistorySessionId


class HistoryError(Exception):
    """Base class for errors raised by history stores."""


class HistoryFeatureUnsupported(HistoryError):
    """The history store does not support the requested feature."""

    def __init__(self, history: str, feature: str) -> None:
        super().__init__(f"{history} does not support {feature}")
        self.history = history
        self.feature = feature


class OtherHistoryError(HistoryError):
    """A history error that fits no other category."""


class HistoryDatabaseError(HistoryError):
    """An error reported by a database-backed history."""


class NavigationKind(Enum):
    """The browsing modes of a history navigation."""

    NORMAL = "normal"
    PREFIX_SEARCH = "prefix_search"
    SUBSTRING_SEARCH = "substring_search"


@dataclass(frozen=True)
class HistoryNavigationQuery:
    """How to browse through the history.

    For ``NORMAL`` browsing, ``value`` holds the state of the line being
    entered before browsing began; otherwise it is the search string.
    """

    kind: NavigationKind
    value: Any = None

    @classmethod
    def normal(cls, buffer: Any) -> "HistoryNavigationQuery":
        return cls(NavigationKind.NORMAL, buffer)

    @classmethod
    def prefix_search(cls, prefix: str) -> "HistoryNavigationQuery":
        return cls(NavigationKind.PREFIX_SEARCH, prefix)

    @classmethod
    def substring_search(cls, substring: str) -> "HistoryNavigationQuery":
        return cls(NavigationKind.SUBSTRING_SEARCH, substring)


class CommandLineSearchKind(Enum):
    """Ways a command line can be matched."""

    PREFIX = "prefix"
    SUBSTRING = "substring"
    EXACT = "exact"


@dataclass(frozen=True)
class CommandLineSearch:
    """A search for a particular command line."""

    kind: CommandLineSearchKind
    text: str

    @classmethod
    def prefix(cls, text: str) -> "CommandLineSearch":
        return cls(CommandLineSearchKind.PREFIX, text)

    @classmethod
    def substring(cls, text: str) -> "CommandLineSearch":
        return cls(CommandLineSearchKind.SUBSTRING, text)

    @classmethod
    def exact(cls, text: str) -> "CommandLineSearch":
        return cls(CommandLineSearchKind.EXACT, text)

    def matches(self, command_line: str) -> bool:
        """Return whether ``command_line`` satisfies this search (case sensitive)."""
        if self.kind is CommandLineSearchKind.PREFIX:
            return command_line.startswith(self.text)
        if self.kind is CommandLineSearchKind.SUBSTRING:
            return self.text in command_line
        return command_line == self.text


class SearchDirection(Enum):
    """Order in which a query traverses the history."""

    BACKWARD = "backward"
    FORWARD = "forward"


@dataclass
class SearchFilter:
    """Additional conditions for a history query."""

    command_line: Optional[CommandLineSearch] = None
    not_command_line: Optional[str] = None
    hostname: Optional[str] = None
    cwd_exact: Optional[str] = None
    cwd_prefix: Optional[str] = None
    exit_successful: Optional[bool] = None
    session: Optional[HistorySessionId] = None

    @classmethod
    def from_text_search(
        cls, cmd: CommandLineSearch, session: Optional[HistorySessionId]
    ) -> "SearchFilter":
        return cls(command_line=cmd, session=session)

    @classmethod
    def from_text_search_cwd(
        cls, cwd: str, cmd: CommandLineSearch, session: Optional[HistorySessionId]
    ) -> "SearchFilter":
        return cls(command_line=cmd, cwd_exact=cwd, session=session)

    @classmethod
    def anything(cls, session: Optional[HistorySessionId]) -> "SearchFilter":
        return cls(session=session)


@dataclass
class SearchQuery:
    """A query against a history store.

    The start and end bounds are exclusive of the start and interpreted
    relative to ``direction``.
    """

    direction: SearchDirection
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_id: Optional[HistoryItemId] = None
    end_id: Optional[HistoryItemId] = None
    limit: Optional[int] = None
    filter: SearchFilter = field(default_factory=SearchFilter)

    @classmethod
    def all_that_contain_rev(cls, contains: str) -> "SearchQuery":
        """All entries containing ``contains``, most recent first."""
        return cls(
            direction=SearchDirection.BACKWARD,
            filter=SearchFilter.from_text_search(
                CommandLineSearch.substring(contains), None
            ),
        )

    @classmethod
    def last_with_search(cls, filter: SearchFilter) -> "SearchQuery":
        """The most recent entry matching ``filter``."""
        return cls(direction=SearchDirection.BACKWARD, limit=1, filter=filter)

    @classmethod
    def last_with_prefix(
        cls, prefix: str, session: Optional[HistorySessionId]
    ) -> "SearchQuery":
        """The most recent entry starting with ``prefix``."""
        return cls.last_with_search(
            SearchFilter.from_text_search(CommandLineSearch.prefix(prefix), session)
        )

    @classmethod
    def last_with_prefix_and_cwd(
        cls, prefix: str, session: Optional[HistorySessionId]
    ) -> "SearchQuery":
        """The most recent entry starting with ``prefix`` run in the current directory."""
        try:
            cwd = os.getcwd()
        except OSError:
            return cls.last_with_prefix(prefix, session)
        return cls.last_with_search(
            SearchFilter.from_text_search_cwd(
                cwd, CommandLineSearch.prefix(prefix), session
            )
        )

    @classmethod
    def everything(
        cls, direction: SearchDirection, session: Optional[HistorySessionId]
    ) -> "SearchQuery":
        """All entries in the given direction."""
        return cls(direction=direction, filter=SearchFilter.anything(session))


class History(ABC):
    """A store of executed command lines."""

    @abstractmethod
    def save(self, item: HistoryItem) -> HistoryItem:
        """Store ``item``; a new id is assigned when it has none."""

    @abstractmethod
    def load(self, item_id: HistoryItemId) -> HistoryItem:
        """Return the item with the given id."""

    @abstractmethod
    def count(self, query: SearchQuery) -> int:
        """Return the number of items matching ``query``."""

    def count_all(self) -> int:
        """Return the total number of items."""
        return self.count(SearchQuery.everything(SearchDirection.FORWARD, None))

    @abstractmethod
    def search(self, query: SearchQuery) -> List[HistoryItem]:
        """Return the items matching ``query``."""

    @abstractmethod
    def update(
        self, item_id: HistoryItemId, updater: Callable[[HistoryItem], HistoryItem]
    ) -> None:
        """Replace an item by the result of ``updater`` applied to it."""

    @abstractmethod
    def clear(self) -> None:
        """Delete all items."""

    @abstractmethod
    def delete(self, item_id: HistoryItemId) -> None:
        """Remove one item."""

    @abstractmethod
    def sync(self) -> None:
        """Make sure the history is written to its storage."""

    @abstractmethod
    def session(self) -> Optional[HistorySessionId]:
        """Return the session id of this history."""