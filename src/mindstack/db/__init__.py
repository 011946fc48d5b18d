"""MindStack database layer."""

from mindstack.db.connection import Database
from mindstack.db.migrations import MIGRATIONS, run_migrations
from mindstack.db.repository import Repository
from mindstack.db.schema import initialize
from mindstack.db.vectors import check_dimensions, normalize

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "check_dimensions",
    "normalize",
]
