"""TransitionStore interface for catalog, grant, and history persistence.

This module defines the abstract TransitionStore interface that provides a
consistent API for persisting and querying the three collections the engine
owns (transitions, model_has_transitions, transition_history) across
different storage backends (in-memory, MongoDB, etc.).

Schema requirements every implementation must honour:
    - transitions: unique on (model_type, from_state, to_state)
    - model_has_transitions: unique on (transition_id, principal_type, principal_id);
      deleting a transition deletes its grants (cascade)
    - transition_history: indexed on (model_type, model_id), append-only

Example:
    ```python
    from statetransitions.domain.interfaces.transition_store import HistoryQuery
    from statetransitions.infrastructure.transition_store.memory_store import (
        InMemoryTransitionStore,
    )

    store = InMemoryTransitionStore()

    transition = await store.create_transition(
        Transition(model_type="payment", from_state="pending", to_state="approved")
    )
    await store.save_grant(
        TransitionGrant(transition_id=transition.id, principal=Principal.user("42"))
    )

    history = await store.query_history(
        HistoryQuery(model_type="payment", model_id="7")
    )
    ```
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.timestamps import ensure_utc
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_grant import TransitionGrant
from statetransitions.domain.models.transition_history import TransitionHistory


class HistoryQuery(BaseModel):
    """Query parameters for transition history lookups.

    Attributes:
        model_type: Filter by entity type tag. If None, matches all types.
        model_id: Filter by entity identifier. If None, matches all entities.
        from_state: Filter by previous state token.
        to_state: Filter by new state token.
        created_from: Start of created_at range filter. If None, no lower bound.
        created_to: End of created_at range filter. If None, no upper bound.
        custom_properties: Key/value pairs the record's custom_properties must
            contain. A list-valued property matches when it contains the value.
        newest_first: Return the most recent records first.
        limit: Maximum number of results to return. If None, returns all matches.
        offset: Number of results to skip (for pagination).

    Example:
        ```python
        # Everything recorded for one payment, oldest first
        query = HistoryQuery(model_type="payment", model_id="7")

        # Latest approval across all payments
        query = HistoryQuery(
            model_type="payment",
            to_state="approved",
            newest_first=True,
            limit=1,
        )
        ```
    """

    model_type: str | None = Field(
        default=None,
        description="Type tag of the entity",
    )
    model_id: str | None = Field(
        default=None,
        description="Identifier of the entity",
    )
    from_state: str | None = Field(
        default=None,
        description="Previous state token",
    )
    to_state: str | None = Field(
        default=None,
        description="New state token",
    )
    created_from: datetime | None = Field(
        default=None,
        description="Start of created_at range filter",
    )
    created_to: datetime | None = Field(
        default=None,
        description="End of created_at range filter",
    )
    custom_properties: dict[str, Any] | None = Field(
        default=None,
        description="Custom properties the record must contain",
    )
    newest_first: bool = Field(
        default=False,
        description="Sort by created_at descending instead of ascending",
    )
    limit: int | None = Field(
        default=None,
        description="Maximum number of results to return (for pagination)",
        ge=1,
    )
    offset: int | None = Field(
        default=None,
        description="Number of results to skip (for pagination)",
        ge=0,
    )

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
        str_strip_whitespace=True,
        protected_namespaces=(),
    )

    @field_validator("created_from", "created_to")
    @classmethod
    def normalize_bounds(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def matches(self, record: TransitionHistory) -> bool:
        """Check whether a history record satisfies the filters."""
        if self.custom_properties and not self._contains_properties(record.custom_properties):
            return False
        if self.model_type is not None and record.model_type != self.model_type:
            return False
        if self.model_id is not None and record.model_id != self.model_id:
            return False
        if self.from_state is not None and record.from_state != self.from_state:
            return False
        if self.to_state is not None and record.to_state != self.to_state:
            return False
        if self.created_from is not None and record.created_at < self.created_from:
            return False
        return not (self.created_to is not None and record.created_at > self.created_to)

    def _contains_properties(self, properties: dict[str, Any] | None) -> bool:
        if not properties:
            return False
        for key, expected in (self.custom_properties or {}).items():
            if key not in properties:
                return False
            actual = properties[key]
            if actual == expected:
                continue
            if isinstance(actual, list) and not isinstance(expected, list) and expected in actual:
                continue
            return False
        return True


class TransitionStore(ABC):
    """Abstract interface for transition catalog, grant, and history storage.

    All methods are async to support non-blocking I/O operations.
    Implementations raise TransitionStoreError for operation failures and
    DuplicateTransitionError when a catalog insert violates uniqueness.
    """

    @abstractmethod
    async def create_transition(self, transition: Transition) -> Transition:
        """Insert a catalog entry.

        Args:
            transition: The Transition to insert.

        Returns:
            The stored Transition.

        Raises:
            DuplicateTransitionError: If the (model_type, from_state, to_state)
                triple already exists.
            TransitionStoreError: If the insert fails for any other reason.
        """

    @abstractmethod
    async def get_transition(self, transition_id: str) -> Transition | None:
        """Retrieve a catalog entry by ID, or None if it does not exist."""

    @abstractmethod
    async def find_transition(
        self, model_type: str, from_state: str, to_state: str
    ) -> Transition | None:
        """Retrieve a catalog entry by its uniqueness triple."""

    @abstractmethod
    async def list_transitions(
        self,
        model_type: str | None = None,
        from_state: str | None = None,
    ) -> list[Transition]:
        """List catalog entries, optionally filtered by type and source state.

        Entries are returned in registration order.
        """

    @abstractmethod
    async def delete_transition(self, transition_id: str) -> bool:
        """Delete a catalog entry and every grant attached to it.

        Returns:
            True if the entry existed and was deleted, False otherwise.
        """

    @abstractmethod
    async def save_grant(self, grant: TransitionGrant) -> TransitionGrant:
        """Attach a principal to a transition.

        Saving a grant whose composite key already exists returns the stored
        grant unchanged.

        Raises:
            TransitionStoreError: If the transition does not exist or the
                write fails.
        """

    @abstractmethod
    async def delete_grant(self, transition_id: str, principal: Principal) -> bool:
        """Detach a principal from a transition.

        Returns:
            True if a grant was removed, False if none existed.
        """

    @abstractmethod
    async def list_grants(
        self,
        transition_id: str | None = None,
        principals: Iterable[Principal] | None = None,
        transition_ids: Iterable[str] | None = None,
    ) -> list[TransitionGrant]:
        """List grants filtered by transition and/or principal.

        Args:
            transition_id: Only grants of this transition.
            principals: Only grants held by one of these principals.
            transition_ids: Only grants of one of these transitions.
        """

    @abstractmethod
    async def save_history(self, record: TransitionHistory) -> TransitionHistory:
        """Append a history record to the audit trail.

        Raises:
            TransitionStoreError: If the write fails.
        """

    @abstractmethod
    async def get_history(self, history_id: str) -> TransitionHistory | None:
        """Retrieve one history record by ID."""

    @abstractmethod
    async def query_history(self, query: HistoryQuery) -> list[TransitionHistory]:
        """Query history records, ordered by created_at."""

    @abstractmethod
    async def update_history(
        self,
        history_id: str,
        changes: dict[str, Any],
    ) -> TransitionHistory | None:
        """Apply an administrative correction to a history record.

        Only 'description' and 'custom_properties' may be changed.

        Returns:
            The corrected record, or None if it does not exist.

        Raises:
            TransitionStoreError: If other fields are present in changes or
                the write fails.
        """

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None


CORRECTABLE_HISTORY_FIELDS = frozenset({"description", "custom_properties"})


class TransitionStoreError(Exception):
    """Raised when TransitionStore operations fail.

    This exception is raised by TransitionStore implementations when
    operations cannot be completed due to errors such as:
    - Connection failures
    - Validation errors
    - Referential integrity violations (grant for unknown transition)
    - Timeout errors
    """

    pass
