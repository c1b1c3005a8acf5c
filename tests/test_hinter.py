import os

import pytest

from reedline.file_backed import FileBackedHistory
from reedline.hinter import (
    CwdAwareHinter,
    DefaultHinter,
    get_first_token,
    is_whitespace_str,
)
from reedline.history_item import HistoryItem
from reedline.sqlite_backed import SqliteBackedHistory


def _file_history(*commands):
    history = FileBackedHistory(100)
    for command in commands:
        history.save(HistoryItem.from_command_line(command))
    return history


@pytest.mark.parametrize(
    "text, expected",
    [("", True), ("   ", True), ("\t\n ", True), (" a ", False), ("x", False)],
)
def test_is_whitespace_str(text, expected):
    assert is_whitespace_str(text) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", ""),
        ("   ", "   "),
        ("foo", "foo"),
        ("  foo bar", "  foo"),
        (" commit -m", " commit"),
        ("foo_bar baz", "foo_bar"),
        ("-m x", "-"),
    ],
)
def test_get_first_token(text, expected):
    assert get_first_token(text) == expected


def test_first_token_is_prefix_of_text():
    text = "  hello world again"
    token = get_first_token(text)
    assert text.startswith(token)
    assert token.strip() == "hello"


@pytest.mark.parametrize("hinter_cls", [DefaultHinter, CwdAwareHinter])
def test_hint_is_rest_of_latest_prefix_match(hinter_cls):
    history = _file_history("cd foo", "git commit -m", "cd bar")
    hinter = hinter_cls()
    assert hinter.handle("cd", 2, history, False) == " bar"
    assert hinter.complete_hint() == " bar"
    assert hinter.next_hint_token() == " bar"


@pytest.mark.parametrize("hinter_cls", [DefaultHinter, CwdAwareHinter])
def test_next_hint_token_takes_first_word(hinter_cls):
    history = _file_history("git commit -m")
    hinter = hinter_cls()
    assert hinter.handle("git", 3, history, False) == " commit -m"
    assert hinter.next_hint_token() == " commit"


@pytest.mark.parametrize("hinter_cls", [DefaultHinter, CwdAwareHinter])
def test_no_match_gives_empty_hint(hinter_cls):
    history = _file_history("cd foo")
    hinter = hinter_cls()
    assert hinter.handle("ls", 2, history, True) == ""
    assert hinter.complete_hint() == ""
    assert hinter.next_hint_token() == ""


@pytest.mark.parametrize("hinter_cls", [DefaultHinter, CwdAwareHinter])
def test_min_chars_suppresses_hint(hinter_cls):
    history = _file_history("cd foo")
    hinter = hinter_cls().with_min_chars(3)
    assert hinter.handle("cd", 2, history, False) == ""
    assert hinter.handle("cd ", 3, history, False) == "foo"


@pytest.mark.parametrize("hinter_cls", [DefaultHinter, CwdAwareHinter])
def test_builders_return_same_object(hinter_cls):
    hinter = hinter_cls()
    assert hinter.with_style("1") is hinter
    assert hinter.with_min_chars(2) is hinter
    assert hinter.min_chars == 2
    assert hinter.style == "1"


def test_default_style_paints_light_gray():
    history = _file_history("cd bar")
    hinter = DefaultHinter()
    assert hinter.handle("cd", 2, history, True) == "\x1b[37m bar\x1b[0m"
    assert hinter.complete_hint() == " bar"


def test_custom_style_wraps_hint():
    history = _file_history("cd bar")
    hinter = DefaultHinter().with_style("3;37")
    painted = hinter.handle("cd", 2, history, True)
    assert painted.startswith("\x1b[3;37m")
    assert painted.endswith("\x1b[0m")
    assert " bar" in painted
    assert hinter.complete_hint() == " bar"


def test_empty_style_gives_plain_text():
    history = _file_history("cd bar")
    hinter = DefaultHinter(style="")
    assert hinter.handle("cd", 2, history, True) == " bar"


def test_cwd_aware_prefers_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    here = os.getcwd()
    history = SqliteBackedHistory.in_memory()
    history.save(HistoryItem(command_line="ls -a", cwd=here))
    history.save(HistoryItem(command_line="ls -l", cwd="/somewhere/else"))
    try:
        assert CwdAwareHinter().handle("ls", 2, history, False) == " -a"
        assert DefaultHinter().handle("ls", 2, history, False) == " -l"
    finally:
        history.close()


def test_cwd_aware_falls_back_to_any_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    history = SqliteBackedHistory.in_memory()
    history.save(HistoryItem(command_line="ls -l", cwd="/somewhere/else"))
    try:
        hinter = CwdAwareHinter()
        assert hinter.handle("ls", 2, history, False) == " -l"
        assert hinter.next_hint_token() == " -"
    finally:
        history.close()


def test_hint_updates_between_calls():
    history = _file_history("cd foo", "echo hi")
    hinter = DefaultHinter()
    assert hinter.handle("cd", 2, history, False) == " foo"
    assert hinter.handle("echo", 4, history, False) == " hi"
    assert hinter.complete_hint() == " hi"