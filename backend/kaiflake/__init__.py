"""Kaif Lake messenger backend application."""

from kaiflake.main import app

__all__ = ["app"]
