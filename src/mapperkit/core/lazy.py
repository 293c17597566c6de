"""
Lazy references to associated entities.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple

if TYPE_CHECKING:
    from .entity import Entity


Loader = Callable[[], "Entity"]


class LazyReference:
    """
    Either a loaded entity or a pending ``(entity type, key)`` pair.

    A pending reference resolves on the first call to :meth:`get`, which runs
    its loader exactly once and keeps the result. From then on it behaves as
    if it had been created loaded. Copies are always taken from the resolved
    state so they never carry the loader.
    """

    def __init__(
        self,
        entity_type: type["Entity"],
        key: Optional[Tuple[Any, ...]],
        *,
        entity: "Entity | None" = None,
        loader: Optional[Loader] = None,
    ) -> None:
        if entity is None and loader is None:
            raise ValueError("A lazy reference needs either an entity or a loader.")
        self.entity_type = entity_type
        self._key = key
        self._entity = entity
        self._loader = loader if entity is None else None

    @classmethod
    def loaded(cls, entity: "Entity") -> "LazyReference":
        return cls(type(entity), entity.pk, entity=entity)

    @classmethod
    def pending(
        cls, entity_type: type["Entity"], key: Tuple[Any, ...], loader: Loader
    ) -> "LazyReference":
        return cls(entity_type, tuple(key), loader=loader)

    @property
    def key(self) -> Optional[Tuple[Any, ...]]:
        """Identity of the target; read live from a loaded entity."""
        if self._entity is not None:
            return self._entity.pk
        return self._key

    @property
    def is_loaded(self) -> bool:
        return self._entity is not None

    def get(self) -> "Entity":
        if self._entity is None:
            loader = self._loader
            assert loader is not None
            self._entity = loader()
            self._loader = None
        return self._entity

    def __copy__(self) -> "LazyReference":
        return LazyReference.loaded(self.get())

    def __deepcopy__(self, memo: dict) -> "LazyReference":
        return LazyReference.loaded(copy.deepcopy(self.get(), memo))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LazyReference):
            return NotImplemented
        if self.entity_type is not other.entity_type:
            return False
        if self.is_loaded and other.is_loaded:
            return self._entity is other._entity
        return self.key == other.key

    def __hash__(self) -> int:
        # The key of a loaded target can change once it is saved.
        return hash(self.entity_type)

    def __repr__(self) -> str:
        state = "loaded" if self.is_loaded else "pending"
        return f"<LazyReference {self.entity_type.__name__}{self.key!r} {state}>"
