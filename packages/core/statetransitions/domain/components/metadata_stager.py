"""TransitionMetadataStager: per-entity staging of history metadata.

Staged metadata lives in a side-table keyed by ModelReference instead of on
the entity object, so host entities stay plain data.

Example:
    ```python
    stager.stage(ModelReference.of(payment), description="Rejected due to fraud")
    payment.state = PaymentState.Rejected
    await engine.commit(payment, previous_state=PaymentState.Pending)

    # or in one call
    await stager.transition_to(
        payment,
        PaymentState.Approved,
        commit=engine.commit,
        description="Approved by manager",
    )
    ```
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.transition_metadata import TransitionMetadata

CommitCallback = Callable[[Any, Enum | str | None], Awaitable[Any]]


class TransitionMetadataStager:
    """Holds description/properties for the next recorded transition per entity."""

    def __init__(self, state_attribute: str = "state") -> None:
        self._pending: dict[ModelReference, TransitionMetadata] = {}
        self._locks: dict[ModelReference, asyncio.Lock] = {}
        self._lock_users: dict[ModelReference, int] = {}
        self._state_attribute = state_attribute

    def stage(
        self,
        reference: ModelReference,
        description: str | None = None,
        custom_properties: dict[str, Any] | None = None,
        *,
        allow_empty: bool = False,
    ) -> TransitionMetadata:
        """Merge metadata into the pending set of an entity.

        Blank values are ignored: they never clear previously staged values.
        With allow_empty=True an explicitly empty description or properties
        bag is kept and counts as present when the next commit is recorded.

        Returns:
            The pending metadata after merging.
        """
        current = self._pending.get(reference, TransitionMetadata())
        merged = current.merge(description, custom_properties, allow_empty=allow_empty)
        if merged.is_empty:
            self._pending.pop(reference, None)
        else:
            self._pending[reference] = merged
        return merged

    def peek(self, reference: ModelReference) -> TransitionMetadata:
        """Pending metadata of an entity without consuming it."""
        return self._pending.get(reference, TransitionMetadata())

    def consume_and_clear(self, reference: ModelReference) -> TransitionMetadata:
        """Return the pending metadata and reset it to empty."""
        return self._pending.pop(reference, TransitionMetadata())

    def clear(self, reference: ModelReference) -> None:
        self._pending.pop(reference, None)

    def has_pending(self, reference: ModelReference) -> bool:
        return reference in self._pending

    @asynccontextmanager
    async def lock(self, reference: ModelReference) -> AsyncIterator[None]:
        """Hold the lock serializing commit -> record -> clear for one entity.

        A reference's lock is dropped once no caller holds or awaits it.
        """
        lock = self._locks.setdefault(reference, asyncio.Lock())
        self._lock_users[reference] = self._lock_users.get(reference, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[reference] - 1
            if remaining:
                self._lock_users[reference] = remaining
            else:
                del self._lock_users[reference]
                del self._locks[reference]

    @property
    def active_locks(self) -> int:
        """Number of entities with a held or awaited lock."""
        return len(self._locks)

    async def transition_to(
        self,
        entity: Any,
        new_state: Enum | str,
        commit: CommitCallback,
        description: str | None = None,
        custom_properties: dict[str, Any] | None = None,
    ) -> Any:
        """Stage metadata, assign the new state and run the commit path.

        Equivalent to calling stage() and then performing the state mutation
        through the same commit callback a direct mutation would use.

        Args:
            entity: Transitionable entity to mutate.
            new_state: Target state (enum member or raw token).
            commit: Awaitable callback receiving (entity, previous_state).
            description: Optional description for the history record.
            custom_properties: Optional properties for the history record.

        Returns:
            Whatever the commit callback returns.
        """
        reference = ModelReference.of(entity)
        previous_state = getattr(entity, self._state_attribute, None)

        self.stage(reference, description, custom_properties)
        setattr(entity, self._state_attribute, new_state)
        return await commit(entity, previous_state)
