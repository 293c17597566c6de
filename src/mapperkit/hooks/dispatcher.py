"""
Hook dispatcher coordinating entity lifecycle events.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Type

from ..core.entity import Entity


HookHandler = Callable[..., None]


class LifecycleEvent:
    PRE_PERSIST = "pre_persist"
    POST_PERSIST = "post_persist"
    PRE_UPDATE = "pre_update"
    POST_UPDATE = "post_update"
    PRE_REMOVE = "pre_remove"
    POST_REMOVE = "post_remove"

    ALL = (PRE_PERSIST, POST_PERSIST, PRE_UPDATE, POST_UPDATE, PRE_REMOVE, POST_REMOVE)


class HookDispatcher:
    """
    Maintains global and per-entity-type hook handlers.

    Handlers registered for an entity type also receive events for its
    subtypes. Global handlers run first, then per-type handlers from the most
    general type down to the concrete one.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._entity_handlers: Dict[Type[Entity], Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(
        self, event: str, handler: HookHandler, *, entity_type: Optional[Type[Entity]] = None
    ) -> None:
        if entity_type:
            self._entity_handlers[entity_type][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def _handlers_for(self, event: str, entity_type: Optional[type]) -> List[HookHandler]:
        handlers = list(self._global_handlers.get(event, []))
        if entity_type is not None:
            for cls in reversed(entity_type.__mro__):
                per_type = self._entity_handlers.get(cls)
                if per_type:
                    handlers.extend(per_type.get(event, []))
        return handlers

    def has_listeners(self, event: str, entity_type: Optional[type] = None) -> bool:
        return bool(self._handlers_for(event, entity_type))

    def fire(self, event: str, instance: Optional[Entity], **context: Any) -> None:
        entity_type = instance.__class__ if instance is not None else None
        for handler in self._handlers_for(event, entity_type):
            handler(instance, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._entity_handlers.clear()
