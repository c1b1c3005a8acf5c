"""Stateful browsing through a history, as done with the up and down arrows."""

from __future__ import annotations

import dataclasses
from typing import Optional

from .history_base import (
    CommandLineSearch,
    History,
    HistoryNavigationQuery,
    NavigationKind,
    SearchDirection,
    SearchFilter,
    SearchQuery,
)
from .history_item import HistoryItem, HistorySessionId


class HistoryCursor:
    """A position in a history that moves according to a navigation query.

    Consecutive entries with the same command line are skipped while moving.
    """

    def __init__(
        self,
        query: HistoryNavigationQuery,
        session: Optional[HistorySessionId] = None,
    ) -> None:
        self._query = query
        self._current: Optional[HistoryItem] = None
        self._skip_dupes = True
        self._session = session

    def back(self, history: History) -> None:
        """Move to the previous matching entry; stays put at the oldest one."""
        self._navigate(history, SearchDirection.BACKWARD)

    def forward(self, history: History) -> None:
        """Move to the next matching entry; past the newest the cursor is empty."""
        self._navigate(history, SearchDirection.FORWARD)

    def string_at_cursor(self) -> Optional[str]:
        """Return the command line at the cursor, if any."""
        return self._current.command_line if self._current is not None else None

    def get_navigation(self) -> HistoryNavigationQuery:
        """Return the navigation query in use."""
        return self._query

    def _search_filter(self) -> SearchFilter:
        kind = self._query.kind
        if kind is NavigationKind.PREFIX_SEARCH:
            flt = SearchFilter.from_text_search(
                CommandLineSearch.prefix(self._query.value), self._session
            )
        elif kind is NavigationKind.SUBSTRING_SEARCH:
            flt = SearchFilter.from_text_search(
                CommandLineSearch.substring(self._query.value), self._session
            )
        else:
            flt = SearchFilter.anything(self._session)
        if self._skip_dupes and self._current is not None:
            flt = dataclasses.replace(
                flt, not_command_line=self._current.command_line
            )
        return flt

    def _navigate(self, history: History, direction: SearchDirection) -> None:
        if direction is SearchDirection.FORWARD and self._current is None:
            # Going forward without a starting point: already at the end.
            return
        start_id = self._current.id if self._current is not None else None
        found = history.search(
            SearchQuery(
                direction=direction,
                start_id=start_id,
                limit=1,
                filter=self._search_filter(),
            )
        )
        if len(found) == 1:
            self._current = found[0]
        elif direction is SearchDirection.FORWARD:
            self._current = None