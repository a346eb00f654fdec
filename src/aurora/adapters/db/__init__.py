"""Database adapters."""

from aurora.adapters.db.app_db import AppDatabase

__all__ = ["AppDatabase"]
