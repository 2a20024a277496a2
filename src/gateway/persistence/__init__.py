"""
Persistence Layer for the Gateway

Supports SQLite (dev) and PostgreSQL (production).
"""

from .driver import PersistenceDriver
from .entities import (
    AllowedFi,
    AllowedUser,
    AuthorizedTransaction,
    Entity,
    IdentityPolicy,
    ReceivedPayment,
    SentTransaction,
)
from .errors import (
    DatabaseConnectionError,
    MigrationError,
    MissingIdentifierError,
    PersistenceError,
    UnknownEntityTypeError,
)
from .manager import EntityManager
from .migrations import Migration, MigrationRunner, MigrationSource
from .repository import Repository

__all__ = [
    "PersistenceDriver",
    "EntityManager",
    "Repository",
    "Entity",
    "IdentityPolicy",
    "AllowedFi",
    "AllowedUser",
    "AuthorizedTransaction",
    "SentTransaction",
    "ReceivedPayment",
    "Migration",
    "MigrationRunner",
    "MigrationSource",
    "PersistenceError",
    "UnknownEntityTypeError",
    "DatabaseConnectionError",
    "MigrationError",
    "MissingIdentifierError",
]
