"""Inline hints taken from the history, shown after the text being typed."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import List, Optional

from .history_base import (
    History,
    HistoryError,
    HistoryFeatureUnsupported,
    SearchQuery,
)
from .history_item import HistoryItem

DEFAULT_HINT_STYLE = "37"
"""SGR parameters used for hints by default (light gray foreground)."""

_RESET = "\x1b[0m"

# Approximation of Unicode word boundaries: letters, digits and underscores
# stay together, as do letters joined by mid-word punctuation ("don't",
# "a.b") and digits joined by numeric separators ("3.14", "1,000").
_SEGMENT = re.compile(
    r"""
    \r\n
    | [ ]+
    | \w+(?:(?:(?<=[^\W\d])[.'\u2019:\u00b7](?=[^\W\d])
             |(?<=\d)[.,;'\u2019](?=\d))\w+)*
    | .
    """,
    re.VERBOSE | re.DOTALL,
)


def is_whitespace_str(s: str) -> bool:
    """Return whether every character of ``s`` is whitespace (true for "")."""
    return all(char.isspace() for char in s)


def _segments(string: str) -> List[str]:
    return _SEGMENT.findall(string)


def get_first_token(string: str) -> str:
    """Return the leading whitespace of ``string`` and its first word segment."""
    taken: List[str] = []
    for segment in _segments(string):
        taken.append(segment)
        if not is_whitespace_str(segment):
            break
    return "".join(taken)


def _paint(style: str, text: str) -> str:
    if not style:
        return text
    return f"\x1b[{style}m{text}{_RESET}"


def _remainder(item: Optional[HistoryItem], line: str) -> str:
    if item is None:
        return ""
    return item.command_line[len(line):]


class Hinter(ABC):
    """Produces the hint for the current line and cursor position."""

    @abstractmethod
    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        """Compute the hint for ``line`` and return it formatted for display."""

    @abstractmethod
    def complete_hint(self) -> str:
        """Return the current hint without formatting."""

    @abstractmethod
    def next_hint_token(self) -> str:
        """Return the first token of the current hint."""


class _HistoryHinter(Hinter):
    def __init__(
        self, style: str = DEFAULT_HINT_STYLE, min_chars: int = 1
    ) -> None:
        self.style = style
        self.min_chars = min_chars
        self._current_hint = ""

    def with_style(self, style: str) -> "_HistoryHinter":
        """Set the SGR parameters applied to the hint and return ``self``."""
        self.style = style
        return self

    def with_min_chars(self, min_chars: int) -> "_HistoryHinter":
        """Set how many characters are needed before hints appear; return ``self``."""
        self.min_chars = min_chars
        return self

    def _find_hint(self, line: str, history: History) -> str:
        raise NotImplementedError

    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        if len(line) >= self.min_chars:
            self._current_hint = self._find_hint(line, history)
        else:
            self._current_hint = ""
        if use_ansi_coloring and self._current_hint:
            return _paint(self.style, self._current_hint)
        return self._current_hint

    def complete_hint(self) -> str:
        return self._current_hint

    def next_hint_token(self) -> str:
        return get_first_token(self._current_hint)


class DefaultHinter(_HistoryHinter):
    """Hints the rest of the most recent history entry starting with the line."""

    def __init__(
        self, style: str = DEFAULT_HINT_STYLE, min_chars: int = 1
    ) -> None:
        super().__init__(style, min_chars)

    def with_style(self, style: str) -> "DefaultHinter":
        super().with_style(style)
        return self

    def with_min_chars(self, min_chars: int) -> "DefaultHinter":
        super().with_min_chars(min_chars)
        return self

    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        return super().handle(line, pos, history, use_ansi_coloring)

    def complete_hint(self) -> str:
        return super().complete_hint()

    def next_hint_token(self) -> str:
        return super().next_hint_token()

    def _find_hint(self, line: str, history: History) -> str:
        found = history.search(SearchQuery.last_with_prefix(line, history.session()))
        return _remainder(found[0] if found else None, line)


class CwdAwareHinter(_HistoryHinter):
    """Like :class:`DefaultHinter`, preferring entries run in the current directory."""

    def __init__(
        self, style: str = DEFAULT_HINT_STYLE, min_chars: int = 1
    ) -> None:
        super().__init__(style, min_chars)

    def with_style(self, style: str) -> "CwdAwareHinter":
        super().with_style(style)
        return self

    def with_min_chars(self, min_chars: int) -> "CwdAwareHinter":
        super().with_min_chars(min_chars)
        return self

    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        return super().handle(line, pos, history, use_ansi_coloring)

    def complete_hint(self) -> str:
        return super().complete_hint()

    def next_hint_token(self) -> str:
        return super().next_hint_token()

    @staticmethod
    def _last_with_prefix(line: str, history: History) -> List[HistoryItem]:
        try:
            return history.search(
                SearchQuery.last_with_prefix(line, history.session())
            )
        except HistoryError:
            return []

    def _find_hint(self, line: str, history: History) -> str:
        try:
            with_cwd = history.search(
                SearchQuery.last_with_prefix_and_cwd(line, history.session())
            )
        except HistoryFeatureUnsupported:
            with_cwd = self._last_with_prefix(line, history)
        except HistoryError:
            with_cwd = []
        if with_cwd:
            return _remainder(with_cwd[0], line)
        found = self._last_with_prefix(line, history)
        return _remainder(found[0] if found else None, line)