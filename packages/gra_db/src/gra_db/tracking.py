from __future__ import annotations

from enum import Enum
from typing import Any, Iterator


class EntityState(Enum):
    """Lifecycle state of a tracked entity."""

    UNCHANGED = "Unchanged"
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"

    def __str__(self) -> str:
        return self.value


class ChangeTracker:
    """
    Identity-keyed table of entity states.

    Entities are keyed by ``id()``, never by value or primary key, so two
    loaded copies of the same row are tracked independently. A strong
    reference is kept while an entity is tracked, which keeps its ``id()``
    stable. Iteration follows first-tracking order.

    Not thread-safe: one tracker belongs to one unit of work.

    Example:
        >>> tracker = ChangeTracker()
        >>> tracker.set_state(user, EntityState.ADDED)
        >>> tracker.get_state(user)
        <EntityState.ADDED: 'Added'>
    """

    def __init__(self) -> None:
        self._entries: dict[int, tuple[Any, EntityState]] = {}

    def get_state(self, entity: Any) -> EntityState:
        """Return the entity's state; untracked entities are UNCHANGED."""
        entry = self._entries.get(id(entity))
        if entry is None:
            return EntityState.UNCHANGED
        return entry[1]

    def set_state(self, entity: Any, state: EntityState) -> None:
        """Overwrite the entity's state. The last write wins."""
        self._entries[id(entity)] = (entity, state)

    def track(self, entity: Any, state: EntityState = EntityState.UNCHANGED) -> None:
        """Register an entity, typically one freshly loaded by a query."""
        self.set_state(entity, state)

    def untrack(self, entity: Any) -> None:
        self._entries.pop(id(entity), None)

    def entries(self) -> list[tuple[Any, EntityState]]:
        """Snapshot of (entity, state) pairs in tracking order."""
        return list(self._entries.values())

    def has_changes(self) -> bool:
        return any(
            state is not EntityState.UNCHANGED for _, state in self._entries.values()
        )

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, entity: Any) -> bool:
        return id(entity) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Any]:
        return (entity for entity, _ in self.entries())
