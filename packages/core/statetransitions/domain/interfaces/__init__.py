"""Domain interfaces for dependency injection."""

from statetransitions.domain.interfaces.host import (
    ActorProvider,
    EntityPersister,
    MappingRoleProvider,
    RoleProvider,
    StaticActorProvider,
    Transitionable,
)
from statetransitions.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from statetransitions.domain.interfaces.transition_store import (
    HistoryQuery,
    TransitionStore,
    TransitionStoreError,
)

__all__ = [
    "ActorProvider",
    "EntityPersister",
    "HistoryQuery",
    "MappingRoleProvider",
    "ObservabilityError",
    "ObservabilityManager",
    "RoleProvider",
    "StaticActorProvider",
    "Transitionable",
    "TransitionStore",
    "TransitionStoreError",
]
