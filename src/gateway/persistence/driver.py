"""
Persistence Driver

Maps entity records to table rows through the field-mapping registry and
executes single statements against the store. No operation spans more than
one statement and nothing is retried; store errors propagate unchanged.
"""

from typing import Any, Optional
import structlog

from .database import Database, redact_url
from .entities import Entity, IdentityPolicy, ReceivedPayment
from .errors import DatabaseConnectionError, MissingIdentifierError
from .mapping import ID_COLUMN, resolve, resolve_type
from .migrations import MigrationRunner, MigrationSource

logger = structlog.get_logger()


class PersistenceDriver:
    """
    Generic CRUD driver for the gateway's entity records.

    Usage:
        driver = PersistenceDriver()
        driver.init("sqlite:///gateway.db")
        driver.migrate_up("compliance")
        fi = AllowedFi(name="Bank A", domain="banka.com", public_key="GABC...")
        driver.insert(fi)
        found = driver.get_one(AllowedFi(...), "domain = ?", "banka.com")
    """

    def __init__(self):
        self._db: Optional[Database] = None

    @property
    def database(self) -> Database:
        if self._db is None:
            raise DatabaseConnectionError("Driver is not initialized; call init() first")
        return self._db

    def init(self, database_url: str) -> None:
        """Connect to the store. Must be called exactly once."""
        if self._db is not None:
            raise DatabaseConnectionError("Driver is already initialized")

        db = Database(database_url)
        db.connect()
        self._db = db
        logger.info("driver_initialized", url=redact_url(database_url))

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None

    def migrate_up(self, component: str, source: Optional[MigrationSource] = None) -> int:
        """Apply the component's pending migrations; returns how many ran."""
        db = self.database
        if source is None:
            source = MigrationSource.from_package(component, dialect=db.dialect)
        applied = MigrationRunner(db).up(source)
        logger.info("migrations_up", component=component, applied=applied)
        return applied

    def insert(self, entity: Entity) -> int:
        """Write a new row for the entity; sets its id and exists flag."""
        mapping = resolve(entity)
        db = self.database

        has_id = entity.id is not None and entity.id > 0
        if mapping.identity is IdentityPolicy.CALLER_ASSIGNED and not has_id:
            raise MissingIdentifierError(
                f"{mapping.table} identifiers are caller-assigned; got {entity.id!r}, expected a positive integer"
            )

        # Auto tables treat a non-positive id as unset.
        generate_id = not has_id
        pairs = mapping.values(entity)
        if generate_id:
            pairs = [(col, value) for col, value in pairs if col != ID_COLUMN]

        columns = ", ".join(col for col, _ in pairs)
        placeholders = ", ".join("?" for _ in pairs)
        query = f"INSERT INTO {mapping.table} ({columns}) VALUES ({placeholders})"

        new_id = db.insert(
            query,
            [value for _, value in pairs],
            returning=ID_COLUMN if generate_id else None,
        )

        if generate_id:
            if not new_id:
                raise MissingIdentifierError(f"Store did not generate an id for {mapping.table}")
        else:
            new_id = entity.id
            if mapping.identity is IdentityPolicy.AUTO_ASSIGNED:
                db.advance_sequence(mapping.table, ID_COLUMN)

        entity.mark_persisted(new_id)
        logger.debug("entity_inserted", table=mapping.table, id=new_id)
        return new_id

    def update(self, entity: Entity) -> int:
        """Rewrite every mapped column of the row keyed by the entity's id."""
        mapping = resolve(entity)
        if entity.id is None:
            raise MissingIdentifierError(f"Cannot update {mapping.table} without an id")

        pairs = [(col, value) for col, value in mapping.values(entity) if col != ID_COLUMN]
        assignments = ", ".join(f"{col} = ?" for col, _ in pairs)
        query = f"UPDATE {mapping.table} SET {assignments} WHERE {ID_COLUMN} = ?"

        affected = self.database.execute_write(query, [value for _, value in pairs] + [entity.id])
        logger.debug("entity_updated", table=mapping.table, id=entity.id, affected=affected)
        return affected

    def delete(self, entity: Entity) -> int:
        """Delete the row keyed by the entity's id. Zero matching rows is not an error."""
        mapping = resolve(entity)
        if entity.id is None:
            raise MissingIdentifierError(f"Cannot delete {mapping.table} without an id")

        affected = self.database.execute_write(
            f"DELETE FROM {mapping.table} WHERE {ID_COLUMN} = ?",
            (entity.id,)
        )
        logger.debug("entity_deleted", table=mapping.table, id=entity.id, affected=affected)
        return affected

    def get_one(self, entity: Entity, where: str, *params: Any) -> Optional[Entity]:
        """
        Load the first row of the entity's table matching `where` into `entity`.

        `where` is a SQL predicate with `?` placeholders bound to `params` in
        order. Returns the populated entity, or None when nothing matches.
        """
        mapping = resolve(entity)
        rows = self.database.execute(
            f"SELECT * FROM {mapping.table} WHERE {where} LIMIT 1",
            params
        )
        if not rows:
            return None

        mapping.hydrate(entity, rows[0])
        entity.exists = True
        return entity

    def get_last_received_payment(self) -> Optional[ReceivedPayment]:
        """Most recently inserted payment, by descending id."""
        mapping = resolve_type(ReceivedPayment)
        rows = self.database.execute(
            f"SELECT * FROM {mapping.table} ORDER BY {ID_COLUMN} DESC LIMIT 1"
        )
        if not rows:
            return None

        payment = ReceivedPayment(operation_id="", paging_token="")
        mapping.hydrate(payment, rows[0])
        payment.exists = True
        return payment
