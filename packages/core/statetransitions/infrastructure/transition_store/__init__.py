"""Transition store implementations."""

from statetransitions.infrastructure.transition_store.memory_store import (
    InMemoryTransitionStore,
)
from statetransitions.infrastructure.transition_store.mongo_store import (
    MongoTransitionStore,
)

__all__ = ["InMemoryTransitionStore", "MongoTransitionStore"]
