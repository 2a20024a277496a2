"""
Persistence Errors

"Not found" is not an error: lookups return None when no row matches.
Store-level exceptions (sqlite3.Error, psycopg2.Error) propagate unchanged.
"""

from typing import Optional


class PersistenceError(Exception):
    """Base class for all persistence layer errors."""


class UnknownEntityTypeError(PersistenceError, TypeError):
    """Raised when a value outside the known entity variants is passed in."""

    def __init__(self, obj: object):
        self.entity_type = obj.__name__ if isinstance(obj, type) else type(obj).__name__
        super().__init__(f"Unknown entity type: {self.entity_type}")


class DatabaseConnectionError(PersistenceError, ConnectionError):
    """Store unreachable, connection string invalid, or driver not initialized."""


class MigrationError(PersistenceError):
    """A migration script failed or could not be located."""

    def __init__(self, message: str, component: str, migration_id: Optional[str] = None):
        self.component = component
        self.migration_id = migration_id
        super().__init__(message)


class MissingIdentifierError(PersistenceError, ValueError):
    """Entity requires an identifier that was never assigned."""
