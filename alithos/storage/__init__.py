"""
SQLite persistence for the terminal's user-owned resources.

Each module exposes plain functions over `db.get_connection()`; rows come
back as dicts with JSON columns decoded.
"""

from .db import init_db, reset_db

__all__ = ["init_db", "reset_db"]
