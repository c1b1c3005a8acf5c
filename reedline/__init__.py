"""Command-line history storage, navigation and history-based hints for line editors."""

__version__ = "0.1.0"

__all__ = ["cursor", "file_backed", "hinter", "history_base", "history_item", "sqlite_backed"]