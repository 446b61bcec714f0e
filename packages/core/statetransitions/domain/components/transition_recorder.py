"""TransitionRecorder component appending history after committed mutations."""

from enum import Enum
from typing import Any

from statetransitions.domain.components.metadata_stager import TransitionMetadataStager
from statetransitions.domain.components.state_codec import StateAttributeCodec
from statetransitions.domain.interfaces.host import ActorProvider
from statetransitions.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_safely,
    log_safely,
)
from statetransitions.domain.interfaces.transition_store import TransitionStore
from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.transition_error import HistoryWriteFailureError
from statetransitions.domain.models.transition_history import TransitionHistory
from statetransitions.domain.models.transition_metadata import is_blank


class TransitionRecorder:
    """Reacts to a committed mutation of a transitionable entity.

    The recorder is invoked explicitly by the code path that performed the
    mutation. A history record is written when the state changed or when
    metadata was staged for the entity. Staged metadata is cleared on every
    call, whether a record was written, skipped, or failed.

    Failure Semantics:
        The mutation has already committed when record() runs. Any failure
        while resolving the actor or writing the record raises
        HistoryWriteFailureError; the mutation is not rolled back and the
        write is not retried.
    """

    def __init__(
        self,
        store: TransitionStore,
        stager: TransitionMetadataStager,
        codec: StateAttributeCodec,
        observability_manager: ObservabilityManager,
        actor_provider: ActorProvider | None = None,
    ) -> None:
        self._store = store
        self._stager = stager
        self._codec = codec
        self._observability = observability_manager
        self._actor_provider = actor_provider

    @staticmethod
    def should_record(
        old_state: str | None,
        new_state: str | None,
        description: str | None,
        custom_properties: dict[str, Any] | None,
    ) -> bool:
        """Decision rule: state changed, or any staged metadata is present."""
        return old_state != new_state or description is not None or custom_properties is not None

    async def record(
        self,
        entity: Any,
        old_state: Enum | str | None,
        new_state: Enum | str | None,
    ) -> TransitionHistory | None:
        """Append a history record for a committed mutation if warranted.

        Args:
            entity: The entity (or its ModelReference) that was committed.
            old_state: State value before the commit.
            new_state: State value after the commit.

        Returns:
            The stored history record, or None when the commit was a no-op.

        Raises:
            ValueError: If the entity has no state after the commit.
            HistoryWriteFailureError: If the history write fails.
        """
        reference = ModelReference.of(entity)
        metadata = self._stager.consume_and_clear(reference)

        from_token = self._codec.encode(old_state)
        to_token = self._codec.encode(new_state)
        if is_blank(from_token):
            from_token = None

        if not self.should_record(
            from_token, to_token, metadata.description, metadata.custom_properties
        ):
            return None

        if is_blank(to_token):
            raise ValueError(f"Cannot record a transition of {reference} to a blank state")

        try:
            created_by = None
            if self._actor_provider is not None:
                created_by = await self._actor_provider.current_actor()
            record = TransitionHistory(
                model_type=reference.model_type,
                model_id=reference.model_id,
                from_state=from_token,
                to_state=to_token,
                description=metadata.description,
                custom_properties=metadata.custom_properties,
                created_by=created_by,
            )
            stored = await self._store.save_history(record)
        except Exception as e:
            await log_safely(
                self._observability,
                level="ERROR",
                message="Failed to record transition history",
                context={
                    "model_type": reference.model_type,
                    "model_id": reference.model_id,
                    "from_state": from_token,
                    "to_state": to_token,
                    "error": str(e),
                },
            )
            await emit_safely(
                self._observability,
                event_type="transition_record_failed",
                payload={
                    "model_type": reference.model_type,
                    "model_id": reference.model_id,
                    "from_state": from_token,
                    "to_state": to_token,
                },
            )
            raise HistoryWriteFailureError(
                reference.model_type, reference.model_id, str(e)
            ) from e

        await emit_safely(
            self._observability,
            event_type="transition_recorded",
            payload={
                "history_id": stored.id,
                "model_type": stored.model_type,
                "model_id": stored.model_id,
                "from_state": stored.from_state,
                "to_state": stored.to_state,
                "created_by": str(stored.created_by) if stored.created_by else None,
            },
            metadata={"created_at": stored.created_at.isoformat()},
        )
        return stored
