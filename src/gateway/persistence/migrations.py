"""
Schema Migrations

Each logical component (e.g. "compliance", "gateway") owns an ordered set of
SQL scripts under `schema/<component>/<dialect>/`. Applied scripts are recorded in
the `schema_migrations` table of the same store, keyed by component and
script id, so components sharing a connection migrate independently.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from importlib import resources
from typing import List, Sequence, Set, Tuple
import structlog

from .database import Database
from .errors import MigrationError

logger = structlog.get_logger()

MIGRATIONS_PACKAGE = "gateway.persistence"
MIGRATIONS_DIR = "schema"

BOOKKEEPING_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    component TEXT NOT NULL,
    id TEXT NOT NULL,
    applied_at TEXT NOT NULL,
    PRIMARY KEY (component, id)
)
"""


@dataclass(frozen=True)
class Migration:
    """A single named schema script."""
    id: str
    sql: str


@dataclass(frozen=True)
class MigrationSource:
    """Ordered migration scripts belonging to one component."""
    component: str
    migrations: Tuple[Migration, ...] = field(default_factory=tuple)

    @classmethod
    def from_scripts(cls, component: str, scripts: Sequence[Tuple[str, str]]) -> "MigrationSource":
        """Build a source from (id, sql) pairs, ordered by id."""
        ordered = sorted(scripts, key=lambda s: s[0])
        return cls(component=component, migrations=tuple(Migration(id=i, sql=s) for i, s in ordered))

    @classmethod
    def from_package(cls, component: str, dialect: str = "sqlite") -> "MigrationSource":
        """Load the `.sql` scripts shipped with this package for a component and SQL dialect."""
        root = resources.files(MIGRATIONS_PACKAGE).joinpath(MIGRATIONS_DIR).joinpath(component).joinpath(dialect)
        if not root.is_dir():
            raise MigrationError(f"No {dialect} migrations for component '{component}'", component=component)

        scripts = [
            (entry.name, entry.read_text(encoding="utf-8"))
            for entry in root.iterdir()
            if entry.name.endswith(".sql")
        ]
        return cls.from_scripts(component, scripts)


def available_components() -> List[str]:
    """Components with a migration directory in this package."""
    root = resources.files(MIGRATIONS_PACKAGE).joinpath(MIGRATIONS_DIR)
    return sorted(entry.name for entry in root.iterdir() if entry.is_dir() and not entry.name.startswith("_"))


class MigrationRunner:
    """
    Applies pending migrations of a source against a database.

    Every script runs in its own transaction together with its bookkeeping
    row. A failing script leaves nothing behind and stops the run; scripts
    applied before it stay applied. There is no cross-process lock.
    """

    def __init__(self, db: Database):
        self.db = db

    def _ensure_bookkeeping(self) -> None:
        self.db.execute_write(BOOKKEEPING_SQL)

    def applied(self, component: str) -> Set[str]:
        """Ids of scripts already applied for a component."""
        self._ensure_bookkeeping()
        rows = self.db.execute(
            "SELECT id FROM schema_migrations WHERE component = ?",
            (component,)
        )
        return {row["id"] for row in rows}

    def pending(self, source: MigrationSource) -> List[Migration]:
        done = self.applied(source.component)
        return [m for m in source.migrations if m.id not in done]

    def up(self, source: MigrationSource) -> int:
        """Apply every pending script in order; returns how many were applied."""
        count = 0
        for migration in self.pending(source):
            now = datetime.now(timezone.utc).isoformat()
            try:
                self.db.apply_script(
                    migration.sql,
                    "INSERT INTO schema_migrations (component, id, applied_at) VALUES (?, ?, ?)",
                    (source.component, migration.id, now),
                )
            except Exception as e:
                logger.error(
                    "migration_failed",
                    component=source.component,
                    migration=migration.id,
                    applied_before_failure=count,
                    error=str(e),
                )
                raise MigrationError(
                    f"Migration {source.component}/{migration.id} failed: {e}",
                    component=source.component,
                    migration_id=migration.id,
                ) from e

            count += 1
            logger.info("migration_applied", component=source.component, migration=migration.id)

        return count
