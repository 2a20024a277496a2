"""
Field-Mapping Metadata

Resolves an entity to its table and its ordered (column, value) pairs. The
registry is built once at import time from the dataclass declarations in
`entities`; lookups afterwards are plain dict access keyed by exact type.
"""

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union, get_args, get_origin, get_type_hints

from .entities import COLUMN_KEY, ENTITY_TYPES, Entity, IdentityPolicy
from .errors import UnknownEntityTypeError

ID_COLUMN = "id"


def _is_datetime(annotation: Any) -> bool:
    if annotation is datetime:
        return True
    if get_origin(annotation) is Union:
        return datetime in get_args(annotation)
    return False


def _to_datetime(value: Any) -> Any:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ColumnSpec:
    """One persisted field and the column it is stored under."""
    column: str
    attribute: str
    is_datetime: bool = False

    def to_storage(self, value: Any) -> Any:
        if self.is_datetime and isinstance(value, datetime):
            if value.tzinfo is None or value.utcoffset() is None:
                raise ValueError(f"{self.column} needs a timezone-aware datetime, got naive {value.isoformat()}")
            return value.isoformat()
        return value

    def from_storage(self, value: Any) -> Any:
        if value is None:
            return None
        if self.is_datetime:
            return _to_datetime(value)
        return value


@dataclass(frozen=True)
class EntityMapping:
    """Table name, ordered columns and identity policy of one entity kind."""
    entity_type: Type[Entity]
    table: str
    columns: Tuple[ColumnSpec, ...]
    identity: IdentityPolicy

    @property
    def column_names(self) -> List[str]:
        return [c.column for c in self.columns]

    def values(self, entity: Entity) -> List[Tuple[str, Any]]:
        """Ordered (column, storage value) pairs for every persisted field."""
        return [(c.column, c.to_storage(getattr(entity, c.attribute))) for c in self.columns]

    def hydrate(self, entity: Entity, row: Mapping[str, Any]) -> Entity:
        """Copy a store row onto the entity in place."""
        for spec in self.columns:
            if spec.column in row:
                setattr(entity, spec.attribute, spec.from_storage(row[spec.column]))
        return entity


def build_mapping(entity_type: Type[Entity]) -> EntityMapping:
    """Derive the mapping of an entity class from its field declarations."""
    hints = get_type_hints(entity_type)
    columns = []
    for f in fields(entity_type):
        name = f.metadata.get(COLUMN_KEY)
        if not name:
            continue
        columns.append(ColumnSpec(
            column=name,
            attribute=f.name,
            is_datetime=_is_datetime(hints.get(f.name)),
        ))

    if ID_COLUMN not in [c.column for c in columns]:
        raise ValueError(f"{entity_type.__name__} has no '{ID_COLUMN}' column")

    return EntityMapping(
        entity_type=entity_type,
        table=entity_type.__name__,
        columns=tuple(columns),
        identity=entity_type.identity,
    )


MAPPINGS: Dict[Type[Entity], EntityMapping] = {t: build_mapping(t) for t in ENTITY_TYPES}


def resolve(entity: object) -> EntityMapping:
    """Return the mapping for an entity value; unknown types are rejected."""
    mapping: Optional[EntityMapping] = MAPPINGS.get(type(entity))
    if mapping is None:
        raise UnknownEntityTypeError(entity)
    return mapping


def resolve_type(entity_type: type) -> EntityMapping:
    mapping = MAPPINGS.get(entity_type)
    if mapping is None:
        raise UnknownEntityTypeError(entity_type)
    return mapping
