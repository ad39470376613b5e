"""Database configuration and utilities."""

from .session import AsyncSessionLocal, Base, create_tables, drop_tables

__all__ = ["AsyncSessionLocal", "Base", "create_tables", "drop_tables"]
