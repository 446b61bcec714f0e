"""In-memory transition store implementation.

This module provides an in-memory implementation of the TransitionStore
interface using Python dictionaries. It is safe for concurrent access from
coroutines and requires no external dependencies.

Example:
    ```python
    from statetransitions.infrastructure.transition_store.memory_store import (
        InMemoryTransitionStore,
    )

    store = InMemoryTransitionStore()
    transition = await store.create_transition(
        Transition(model_type="payment", from_state="pending", to_state="approved")
    )
    retrieved = await store.get_transition(transition.id)
    ```
"""

import asyncio
from collections.abc import Iterable
from typing import Any

from statetransitions.domain.interfaces.transition_store import (
    CORRECTABLE_HISTORY_FIELDS,
    HistoryQuery,
    TransitionStore,
    TransitionStoreError,
)
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.timestamps import utcnow
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_error import DuplicateTransitionError
from statetransitions.domain.models.transition_grant import TransitionGrant
from statetransitions.domain.models.transition_history import TransitionHistory


class InMemoryTransitionStore(TransitionStore):
    """In-memory implementation of TransitionStore interface.

    Thread Safety:
        - Write operations use a single asyncio.Lock
        - Read operations are safe without locks (dict reads are atomic in Python)

    Ordering:
        - Transitions are listed in registration order (dicts keep insertion order)
        - History is appended in commit order, so created_at is non-decreasing
          per entity; ties keep insertion order

    Attributes:
        _transitions: Catalog entries keyed by transition id
        _transition_keys: Uniqueness index (model_type, from_state, to_state) -> id
        _grants: Grants keyed by composite key
        _history: History records keyed by id, in insertion order
        _write_lock: asyncio.Lock for write operations
    """

    def __init__(self) -> None:
        self._transitions: dict[str, Transition] = {}
        self._transition_keys: dict[tuple[str, str, str], str] = {}
        self._grants: dict[tuple[str, str, str], TransitionGrant] = {}
        self._history: dict[str, TransitionHistory] = {}

        self._write_lock = asyncio.Lock()

    async def create_transition(self, transition: Transition) -> Transition:
        async with self._write_lock:
            if transition.key in self._transition_keys:
                raise DuplicateTransitionError(*transition.key)
            if transition.id in self._transitions:
                raise TransitionStoreError(f"Transition id already exists: {transition.id}")
            self._transitions[transition.id] = transition
            self._transition_keys[transition.key] = transition.id
        return transition

    async def get_transition(self, transition_id: str) -> Transition | None:
        return self._transitions.get(transition_id)

    async def find_transition(
        self, model_type: str, from_state: str, to_state: str
    ) -> Transition | None:
        transition_id = self._transition_keys.get((model_type, from_state, to_state))
        if transition_id is None:
            return None
        return self._transitions.get(transition_id)

    async def list_transitions(
        self,
        model_type: str | None = None,
        from_state: str | None = None,
    ) -> list[Transition]:
        return [
            t
            for t in self._transitions.values()
            if (model_type is None or t.model_type == model_type)
            and (from_state is None or t.from_state == from_state)
        ]

    async def delete_transition(self, transition_id: str) -> bool:
        async with self._write_lock:
            transition = self._transitions.pop(transition_id, None)
            if transition is None:
                return False
            self._transition_keys.pop(transition.key, None)
            # Cascade to grants
            for key in [k for k in self._grants if k[0] == transition_id]:
                del self._grants[key]
        return True

    async def save_grant(self, grant: TransitionGrant) -> TransitionGrant:
        async with self._write_lock:
            if grant.transition_id not in self._transitions:
                raise TransitionStoreError(
                    f"Cannot grant unknown transition: {grant.transition_id}"
                )
            existing = self._grants.get(grant.key)
            if existing is not None:
                return existing
            self._grants[grant.key] = grant
        return grant

    async def delete_grant(self, transition_id: str, principal: Principal) -> bool:
        key = (transition_id, principal.principal_type.value, principal.principal_id)
        async with self._write_lock:
            return self._grants.pop(key, None) is not None

    async def list_grants(
        self,
        transition_id: str | None = None,
        principals: Iterable[Principal] | None = None,
        transition_ids: Iterable[str] | None = None,
    ) -> list[TransitionGrant]:
        principal_set = set(principals) if principals is not None else None
        id_set = set(transition_ids) if transition_ids is not None else None
        return [
            g
            for g in self._grants.values()
            if (transition_id is None or g.transition_id == transition_id)
            and (principal_set is None or g.principal in principal_set)
            and (id_set is None or g.transition_id in id_set)
        ]

    async def save_history(self, record: TransitionHistory) -> TransitionHistory:
        async with self._write_lock:
            if record.id in self._history:
                raise TransitionStoreError(f"History record already exists: {record.id}")
            self._history[record.id] = record
        return record

    async def get_history(self, history_id: str) -> TransitionHistory | None:
        return self._history.get(history_id)

    async def query_history(self, query: HistoryQuery) -> list[TransitionHistory]:
        try:
            indexed = [
                (position, record)
                for position, record in enumerate(self._history.values())
                if query.matches(record)
            ]
            indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=query.newest_first)
            results = [record for _, record in indexed]

            if query.offset is not None:
                results = results[query.offset :]
            if query.limit is not None:
                results = results[: query.limit]
            return results
        except Exception as e:
            raise TransitionStoreError(f"Failed to query history: {e}") from e

    async def update_history(
        self,
        history_id: str,
        changes: dict[str, Any],
    ) -> TransitionHistory | None:
        illegal = set(changes) - CORRECTABLE_HISTORY_FIELDS
        if illegal:
            raise TransitionStoreError(
                f"History fields cannot be corrected: {', '.join(sorted(illegal))}"
            )
        async with self._write_lock:
            record = self._history.get(history_id)
            if record is None:
                return None
            try:
                corrected = TransitionHistory.model_validate(
                    {**record.model_dump(), **changes, "updated_at": utcnow()}
                )
            except ValueError as e:
                raise TransitionStoreError(f"Invalid history correction: {e}") from e
            self._history[history_id] = corrected
        return corrected
