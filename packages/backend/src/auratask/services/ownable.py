"""Ownable-entity registry — which tables carry per-owner data.

Guest migration walks this registry instead of naming tables itself.
Each entry names a model and its owner column. Child rows that hang off
an owned row by foreign key (subtasks, task_tags) are not listed: they
follow their parent, since migration re-keys owners in place and never
copies rows.

one_per_owner marks tables limited to a single row per owner. When the
target already has its own row there, the guest's row is dropped rather
than re-owned, and the target's row stays as it is.
"""

from dataclasses import dataclass
from typing import Iterator

from auratask.db.models import Tag, Task, TaskGroup, UserSettings


@dataclass(frozen=True)
class OwnableEntity:
    name: str
    model: type
    owner_column: str = "user_id"
    one_per_owner: bool = False

    @property
    def owner(self):
        """The mapped owner column, for use in queries."""
        return getattr(self.model, self.owner_column)


class OwnableRegistry:
    """Ordered collection of ownable entities."""

    def __init__(self, entities: tuple[OwnableEntity, ...] = ()):
        self._entities: dict[str, OwnableEntity] = {}
        for entity in entities:
            self.register(entity)

    def register(self, entity: OwnableEntity) -> None:
        if entity.name in self._entities:
            raise ValueError(f"Ownable entity '{entity.name}' already registered")
        self._entities[entity.name] = entity

    def names(self) -> list[str]:
        return list(self._entities)

    def __iter__(self) -> Iterator[OwnableEntity]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)


DEFAULT_OWNABLE_ENTITIES = (
    OwnableEntity("task_groups", TaskGroup),
    OwnableEntity("tags", Tag),
    OwnableEntity("tasks", Task),
    OwnableEntity("settings", UserSettings, one_per_owner=True),
)


def default_registry() -> OwnableRegistry:
    return OwnableRegistry(DEFAULT_OWNABLE_ENTITIES)
