"""
Lifecycle hooks for MapperKit entities.
"""

from .dispatcher import HookDispatcher, HookHandler, LifecycleEvent

__all__ = ["HookDispatcher", "HookHandler", "LifecycleEvent"]
