"""TransitionCatalog component for declaring legal state changes."""

from __future__ import annotations

from enum import Enum

from statetransitions.domain.components.state_codec import StateAttributeCodec
from statetransitions.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_safely,
)
from statetransitions.domain.interfaces.transition_store import TransitionStore
from statetransitions.domain.models.transition import Transition


class TransitionCatalog:
    """Set of declared (model_type, from_state, to_state) triples.

    The catalog enforces row-level uniqueness only. Whether the tokens are
    members of the model type's state enum is checked by the codec when the
    tokens are read or written at the engine boundary.
    """

    def __init__(
        self,
        store: TransitionStore,
        codec: StateAttributeCodec,
        observability_manager: ObservabilityManager,
    ) -> None:
        self._store = store
        self._codec = codec
        self._observability = observability_manager

    async def register(
        self,
        model_type: str,
        from_state: Enum | str,
        to_state: Enum | str,
    ) -> Transition:
        """Declare a legal state change.

        Args:
            model_type: Type tag of the transitionable entity. Must have a
                registered state enum.
            from_state: Source state (enum member or raw token).
            to_state: Target state (enum member or raw token).

        Returns:
            The stored Transition.

        Raises:
            UnresolvableStateEnumError: If model_type has no registered enum.
            DuplicateTransitionError: If the triple is already registered.
            TransitionStoreError: If the store write fails.
        """
        self._codec.registry.resolve(model_type)

        transition = Transition(
            model_type=model_type,
            from_state=self._codec.encode(from_state),
            to_state=self._codec.encode(to_state),
        )
        stored = await self._store.create_transition(transition)

        await emit_safely(
            self._observability,
            event_type="transition_registered",
            payload={
                "transition_id": stored.id,
                "model_type": stored.model_type,
                "from_state": stored.from_state,
                "to_state": stored.to_state,
            },
            metadata={"created_at": stored.created_at.isoformat()},
        )
        return stored

    async def list(self, model_type: str, from_state: Enum | str | None) -> list[Transition]:
        """Catalog entries leaving from_state for the given model type.

        A blank from_state has no outgoing transitions.
        """
        token = self._codec.encode(from_state)
        if token is None or not token.strip():
            return []
        return await self._store.list_transitions(model_type=model_type, from_state=token)

    async def get(self, transition_id: str) -> Transition | None:
        return await self._store.get_transition(transition_id)

    async def find(
        self,
        model_type: str,
        from_state: Enum | str,
        to_state: Enum | str,
    ) -> Transition | None:
        """Look up a catalog entry by its triple."""
        return await self._store.find_transition(
            model_type,
            self._codec.encode(from_state),
            self._codec.encode(to_state),
        )

    async def all(self, model_type: str | None = None) -> list[Transition]:
        """Every catalog entry, optionally restricted to one model type."""
        return await self._store.list_transitions(model_type=model_type)

    async def remove(self, transition_id: str) -> bool:
        """Delete a catalog entry together with all of its grants.

        Returns:
            True if the entry existed.
        """
        removed = await self._store.delete_transition(transition_id)
        if removed:
            await emit_safely(
                self._observability,
                event_type="transition_removed",
                payload={"transition_id": transition_id},
            )
        return removed
