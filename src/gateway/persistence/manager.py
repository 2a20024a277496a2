"""
Entity Manager

Thin facade over the driver used by request handlers: persist() decides
between insert and update from the entity's exists flag.
"""

import structlog

from .driver import PersistenceDriver
from .entities import Entity

logger = structlog.get_logger()


class EntityManager:
    """Insert-or-update front end for the persistence driver."""

    def __init__(self, driver: PersistenceDriver):
        self.driver = driver

    def persist(self, entity: Entity) -> None:
        """Insert new entities, update ones already in the store."""
        if entity.exists:
            self.driver.update(entity)
        else:
            self.driver.insert(entity)

    def delete(self, entity: Entity) -> None:
        """Remove a stored entity; entities never written are left alone."""
        if not entity.exists:
            logger.debug("delete_skipped_not_persisted", entity_type=type(entity).__name__)
            return
        self.driver.delete(entity)
        entity.exists = False
