"""Application service helpers."""

from .read_state import unread_count, unread_counts

__all__ = [
    "unread_count",
    "unread_counts",
]
