"""Tests for TransitionRecorder component."""

from unittest.mock import AsyncMock

import pytest
from fixtures.test_data import MockObservabilityManager, Payment, PaymentState

from statetransitions.domain.components.metadata_stager import TransitionMetadataStager
from statetransitions.domain.components.state_codec import StateAttributeCodec
from statetransitions.domain.components.transition_recorder import TransitionRecorder
from statetransitions.domain.interfaces.host import StaticActorProvider
from statetransitions.domain.interfaces.transition_store import (
    HistoryQuery,
    TransitionStoreError,
)
from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.transition_error import HistoryWriteFailureError
from statetransitions.infrastructure.transition_store.memory_store import (
    InMemoryTransitionStore,
)


@pytest.fixture
def actors() -> StaticActorProvider:
    return StaticActorProvider(Principal.user(9))


@pytest.fixture
def recorder(
    store: InMemoryTransitionStore,
    stager: TransitionMetadataStager,
    codec: StateAttributeCodec,
    observability: MockObservabilityManager,
    actors: StaticActorProvider,
) -> TransitionRecorder:
    return TransitionRecorder(
        store=store,
        stager=stager,
        codec=codec,
        observability_manager=observability,
        actor_provider=actors,
    )


async def history_of(store: InMemoryTransitionStore, payment: Payment):
    return await store.query_history(HistoryQuery(model_type="payment", model_id=str(payment.id)))


class TestShouldRecord:
    """Tests for the recording decision rule."""

    @pytest.mark.parametrize(
        ("old", "new", "description", "properties", "expected"),
        [
            ("pending", "approved", None, None, True),
            ("pending", "pending", "note", None, True),
            ("pending", "pending", None, {"k": 1}, True),
            ("pending", "pending", None, None, False),
            (None, "pending", None, None, True),
            ("pending", "pending", "", None, True),
        ],
    )
    def test_decision(self, old, new, description, properties, expected) -> None:
        assert TransitionRecorder.should_record(old, new, description, properties) is expected


class TestRecord:
    """Tests for record()."""

    @pytest.mark.asyncio
    async def test_state_change_is_recorded(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
        payment: Payment,
    ) -> None:
        payment.state = PaymentState.Approved

        record = await recorder.record(payment, PaymentState.Pending, payment.state)

        assert record is not None
        assert (record.from_state, record.to_state) == ("pending", "approved")
        assert record.description is None
        assert record.custom_properties is None
        assert record.created_by == Principal.user(9)
        assert await history_of(store, payment) == [record]

    @pytest.mark.asyncio
    async def test_no_op_commit_writes_nothing(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
        payment: Payment,
    ) -> None:
        result = await recorder.record(payment, PaymentState.Pending, PaymentState.Pending)

        assert result is None
        assert await history_of(store, payment) == []

    @pytest.mark.asyncio
    async def test_metadata_only_record(
        self,
        recorder: TransitionRecorder,
        stager: TransitionMetadataStager,
        store: InMemoryTransitionStore,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), description="x", custom_properties={"k": 1})

        record = await recorder.record(payment, "pending", "pending")

        assert record is not None
        assert (record.from_state, record.to_state) == ("pending", "pending")
        assert record.description == "x"
        assert record.custom_properties == {"k": 1}
        assert len(await history_of(store, payment)) == 1

    @pytest.mark.asyncio
    async def test_staged_metadata_is_cleared_after_recording(
        self,
        recorder: TransitionRecorder,
        stager: TransitionMetadataStager,
        store: InMemoryTransitionStore,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), description="First transition")
        await recorder.record(payment, "pending", "approved")

        second = await recorder.record(payment, "approved", "completed")

        assert second is not None
        assert second.description is None
        assert second.custom_properties is None
        assert not stager.has_pending(ModelReference.of(payment))

    @pytest.mark.asyncio
    async def test_blank_metadata_does_not_trigger_recording(
        self,
        recorder: TransitionRecorder,
        stager: TransitionMetadataStager,
        store: InMemoryTransitionStore,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), description="", custom_properties={})

        assert await recorder.record(payment, "pending", "pending") is None
        assert await history_of(store, payment) == []

    @pytest.mark.asyncio
    async def test_explicitly_empty_properties_are_recorded(
        self,
        recorder: TransitionRecorder,
        stager: TransitionMetadataStager,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), custom_properties={}, allow_empty=True)

        record = await recorder.record(payment, "pending", "pending")

        assert record is not None
        assert record.custom_properties == {}

    @pytest.mark.asyncio
    async def test_first_state_assignment_has_no_from_state(
        self,
        recorder: TransitionRecorder,
        payment: Payment,
    ) -> None:
        record = await recorder.record(payment, None, PaymentState.Pending)

        assert record is not None
        assert record.from_state is None
        assert record.to_state == "pending"

    @pytest.mark.asyncio
    async def test_blank_new_state_is_rejected(
        self,
        recorder: TransitionRecorder,
        payment: Payment,
    ) -> None:
        with pytest.raises(ValueError):
            await recorder.record(payment, PaymentState.Pending, None)

    @pytest.mark.asyncio
    async def test_without_actor_provider_created_by_is_none(
        self,
        store: InMemoryTransitionStore,
        stager: TransitionMetadataStager,
        codec: StateAttributeCodec,
        observability: MockObservabilityManager,
        payment: Payment,
    ) -> None:
        recorder = TransitionRecorder(store, stager, codec, observability)

        record = await recorder.record(payment, "pending", "approved")

        assert record is not None
        assert record.created_by is None

    @pytest.mark.asyncio
    async def test_record_accepts_model_reference(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
    ) -> None:
        reference = ModelReference(model_type="payment", model_id="55")

        record = await recorder.record(reference, "pending", "approved")

        assert record is not None
        assert record.reference == reference

    @pytest.mark.asyncio
    async def test_successful_record_emits_event(
        self,
        recorder: TransitionRecorder,
        observability: MockObservabilityManager,
        payment: Payment,
    ) -> None:
        record = await recorder.record(payment, "pending", "approved")

        assert observability.event_types() == ["transition_recorded"]
        payload = observability.events[0]["payload"]
        assert payload["history_id"] == record.id
        assert payload["created_by"] == "user:9"


class TestRecordFailure:
    """Tests for history write failures."""

    @pytest.mark.asyncio
    async def test_store_failure_raises_history_write_failure(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
        stager: TransitionMetadataStager,
        observability: MockObservabilityManager,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), description="lost")
        store.save_history = AsyncMock(side_effect=TransitionStoreError("write failed"))

        with pytest.raises(HistoryWriteFailureError) as exc_info:
            await recorder.record(payment, "pending", "approved")

        assert isinstance(exc_info.value.__cause__, TransitionStoreError)
        assert exc_info.value.details == {"model_type": "payment", "model_id": "1"}
        # Staged metadata is discarded even though nothing was written
        assert not stager.has_pending(ModelReference.of(payment))
        assert observability.logs[-1]["level"] == "ERROR"
        assert "transition_record_failed" in observability.event_types()

    @pytest.mark.asyncio
    async def test_non_json_properties_raise_history_write_failure(
        self,
        recorder: TransitionRecorder,
        stager: TransitionMetadataStager,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), custom_properties={"when": object()})

        with pytest.raises(HistoryWriteFailureError):
            await recorder.record(payment, "pending", "approved")

    @pytest.mark.asyncio
    async def test_actor_provider_failure_raises_history_write_failure(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
        stager: TransitionMetadataStager,
        actors: StaticActorProvider,
        payment: Payment,
    ) -> None:
        stager.stage(ModelReference.of(payment), description="lost")
        actors.current_actor = AsyncMock(side_effect=RuntimeError("auth backend down"))

        with pytest.raises(HistoryWriteFailureError) as exc_info:
            await recorder.record(payment, "pending", "approved")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert not stager.has_pending(ModelReference.of(payment))
        assert await history_of(store, payment) == []

    @pytest.mark.asyncio
    async def test_unexpected_store_exception_is_wrapped(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
        payment: Payment,
    ) -> None:
        store.save_history = AsyncMock(side_effect=ConnectionResetError("socket closed"))

        with pytest.raises(HistoryWriteFailureError) as exc_info:
            await recorder.record(payment, "pending", "approved")

        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_logging_failure_does_not_mask_write_failure(
        self,
        recorder: TransitionRecorder,
        store: InMemoryTransitionStore,
        observability: MockObservabilityManager,
        payment: Payment,
    ) -> None:
        store.save_history = AsyncMock(side_effect=TransitionStoreError("write failed"))
        observability.log = AsyncMock(side_effect=RuntimeError("log sink down"))
        observability.emit_error = RuntimeError("event sink down")

        with pytest.raises(HistoryWriteFailureError) as exc_info:
            await recorder.record(payment, "pending", "approved")

        assert isinstance(exc_info.value.__cause__, TransitionStoreError)
