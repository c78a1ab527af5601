"""Channel index database layer."""

from chanindex.db.connection import Database
from chanindex.db.migrations import MIGRATIONS, run_migrations
from chanindex.db.repository import Repository
from chanindex.db.schema import initialize

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
