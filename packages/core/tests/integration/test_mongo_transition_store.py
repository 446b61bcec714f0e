"""Integration tests for MongoTransitionStore.

Require a running MongoDB (MONGODB_URL, default mongodb://localhost:27017);
skipped otherwise.
"""

import os
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient

from statetransitions.domain.interfaces.transition_store import (
    HistoryQuery,
    TransitionStoreError,
)
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_error import DuplicateTransitionError
from statetransitions.domain.models.transition_grant import TransitionGrant
from statetransitions.domain.models.transition_history import TransitionHistory
from statetransitions.infrastructure.transition_store.mongo_store import (
    MongoTransitionStore,
)

TEST_DATABASE = "test_state_transitions"

pytestmark = pytest.mark.integration


@pytest.fixture
def mongodb_url() -> str:
    """Get MongoDB connection URL from environment or use default."""
    return os.getenv("MONGODB_URL", "mongodb://localhost:27017")


@pytest_asyncio.fixture
async def mongo_store(mongodb_url: str):
    """Initialized store on an empty test database."""
    try:
        client = AsyncIOMotorClient(mongodb_url, serverSelectionTimeoutMS=2000)
        await client.admin.command("ping")
        await client.drop_database(TEST_DATABASE)
        client.close()
    except Exception:
        pytest.skip("MongoDB is not available. Start MongoDB or set MONGODB_URL")

    store = MongoTransitionStore(
        connection_url=mongodb_url,
        database_name=TEST_DATABASE,
        server_selection_timeout_ms=3000,
    )
    await store.initialize()
    yield store

    client = AsyncIOMotorClient(mongodb_url, serverSelectionTimeoutMS=2000)
    await client.drop_database(TEST_DATABASE)
    client.close()
    await store.close()


def test_missing_connection_url_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MONGODB_URL", raising=False)

    with pytest.raises(TransitionStoreError, match="MongoDB connection URL not provided"):
        MongoTransitionStore()


@pytest.mark.asyncio
async def test_connection_established(mongo_store: MongoTransitionStore) -> None:
    assert await mongo_store.check_connection() is True


@pytest.mark.asyncio
async def test_create_and_find_transition(mongo_store: MongoTransitionStore) -> None:
    transition = Transition(model_type="payment", from_state="pending", to_state="approved")

    await mongo_store.create_transition(transition)

    assert await mongo_store.get_transition(transition.id) == transition
    assert await mongo_store.find_transition("payment", "pending", "approved") == transition
    assert await mongo_store.list_transitions(model_type="payment") == [transition]


@pytest.mark.asyncio
async def test_duplicate_triple_rejected_by_unique_index(
    mongo_store: MongoTransitionStore,
) -> None:
    await mongo_store.create_transition(
        Transition(model_type="payment", from_state="pending", to_state="approved")
    )

    with pytest.raises(DuplicateTransitionError):
        await mongo_store.create_transition(
            Transition(model_type="payment", from_state="pending", to_state="approved")
        )


@pytest.mark.asyncio
async def test_grants_and_cascade(mongo_store: MongoTransitionStore) -> None:
    approve = await mongo_store.create_transition(
        Transition(model_type="payment", from_state="pending", to_state="approved")
    )
    reject = await mongo_store.create_transition(
        Transition(model_type="payment", from_state="pending", to_state="rejected")
    )
    await mongo_store.save_grant(TransitionGrant(transition_id=approve.id, principal=Principal.user(1)))
    await mongo_store.save_grant(TransitionGrant(transition_id=approve.id, principal=Principal.user(1)))
    await mongo_store.save_grant(
        TransitionGrant(transition_id=reject.id, principal=Principal.role("manager"))
    )

    assert len(await mongo_store.list_grants(transition_id=approve.id)) == 1
    for_manager = await mongo_store.list_grants(principals=[Principal.role("manager")])
    assert [g.transition_id for g in for_manager] == [reject.id]

    assert await mongo_store.delete_transition(reject.id) is True
    assert await mongo_store.list_grants(transition_id=reject.id) == []
    assert await mongo_store.delete_grant(approve.id, Principal.user(1)) is True
    assert await mongo_store.list_grants() == []


@pytest.mark.asyncio
async def test_history_query_and_correction(mongo_store: MongoTransitionStore) -> None:
    base = datetime(2024, 1, 1)
    first = TransitionHistory(
        model_type="payment",
        model_id="1",
        from_state="pending",
        to_state="approved",
        created_by=Principal.user(7),
        created_at=base,
    )
    second = TransitionHistory(
        model_type="payment",
        model_id="1",
        from_state="approved",
        to_state="completed",
        custom_properties={"reference": "INV-1"},
        created_at=base + timedelta(minutes=5),
    )
    await mongo_store.save_history(second)
    await mongo_store.save_history(first)

    history = await mongo_store.query_history(HistoryQuery(model_type="payment", model_id="1"))
    assert [h.id for h in history] == [first.id, second.id]
    assert history[0].created_by == Principal.user(7)
    assert history[1].custom_properties == {"reference": "INV-1"}

    newest = await mongo_store.query_history(HistoryQuery(model_id="1", newest_first=True, limit=1))
    assert [h.id for h in newest] == [second.id]

    corrected = await mongo_store.update_history(first.id, {"description": "Approved by manager"})
    assert corrected is not None
    assert corrected.description == "Approved by manager"
    assert (await mongo_store.get_history(first.id)).description == "Approved by manager"

    with pytest.raises(TransitionStoreError):
        await mongo_store.update_history(first.id, {"to_state": "rejected"})


@pytest.mark.asyncio
async def test_history_query_by_custom_properties(mongo_store: MongoTransitionStore) -> None:
    urgent = TransitionHistory(
        model_type="payment",
        model_id="1",
        from_state="pending",
        to_state="approved",
        custom_properties={"priority": "high", "tags": ["fraud", "manual"]},
    )
    routine = TransitionHistory(
        model_type="payment",
        model_id="2",
        from_state="pending",
        to_state="approved",
        custom_properties={"priority": "low"},
    )
    await mongo_store.save_history(urgent)
    await mongo_store.save_history(routine)

    by_priority = await mongo_store.query_history(HistoryQuery(custom_properties={"priority": "high"}))
    by_tag = await mongo_store.query_history(HistoryQuery(custom_properties={"tags": "fraud"}))

    assert [h.id for h in by_priority] == [urgent.id]
    assert [h.id for h in by_tag] == [urgent.id]
    assert by_priority[0].created_at.tzinfo is not None
