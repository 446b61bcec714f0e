"""Tests for AuthorizationIndex component."""

import pytest
from fixtures.test_data import MockObservabilityManager

from statetransitions.domain.components.authorization_index import AuthorizationIndex
from statetransitions.domain.components.transition_catalog import TransitionCatalog
from statetransitions.domain.interfaces.transition_store import TransitionStoreError
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.transition import Transition


class TestAuthorizationIndexGrant:
    """Tests for granting and revoking transitions."""

    @pytest.mark.asyncio
    async def test_grant_to_user_and_role(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
    ) -> None:
        transition = await catalog.register("payment", "pending", "approved")

        await authorization_index.grant(transition, Principal.user(42))
        await authorization_index.grant(transition, Principal.role("manager"))

        principals = await authorization_index.principals_for(transition)
        assert principals.users == ["42"]
        assert principals.roles == ["manager"]

    @pytest.mark.asyncio
    async def test_grant_is_idempotent(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
    ) -> None:
        transition = await catalog.register("payment", "pending", "approved")

        first = await authorization_index.grant(transition, Principal.user(42))
        second = await authorization_index.grant(transition, Principal.user("42"))

        assert second.created_at == first.created_at
        assert (await authorization_index.principals_for(transition)).users == ["42"]

    @pytest.mark.asyncio
    async def test_grant_for_unknown_transition_fails(
        self, authorization_index: AuthorizationIndex
    ) -> None:
        orphan = Transition(model_type="payment", from_state="pending", to_state="approved")

        with pytest.raises(TransitionStoreError):
            await authorization_index.grant(orphan, Principal.user(1))

    @pytest.mark.asyncio
    async def test_grant_and_revoke_emit_events(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
        observability: MockObservabilityManager,
    ) -> None:
        transition = await catalog.register("payment", "pending", "approved")

        await authorization_index.grant(transition, Principal.role("manager"))
        assert await authorization_index.revoke(transition, Principal.role("manager")) is True
        assert await authorization_index.revoke(transition, Principal.role("manager")) is False

        assert observability.event_types() == [
            "transition_registered",
            "transition_granted",
            "transition_revoked",
        ]
        assert observability.events[1]["payload"]["principal_type"] == "role"

    @pytest.mark.asyncio
    async def test_revoke_keeps_other_principals(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
    ) -> None:
        transition = await catalog.register("payment", "pending", "approved")
        await authorization_index.grant(transition, Principal.user(1))
        await authorization_index.grant(transition, Principal.user(2))

        await authorization_index.revoke(transition, Principal.user(1))

        assert (await authorization_index.principals_for(transition)).users == ["2"]


class TestAuthorizationIndexLookup:
    """Tests for principal-side and batch lookups."""

    @pytest.mark.asyncio
    async def test_transitions_for_principal(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
    ) -> None:
        approve = await catalog.register("payment", "pending", "approved")
        reject = await catalog.register("payment", "pending", "rejected")
        await catalog.register("payment", "approved", "completed")
        await authorization_index.grant(approve, Principal.role("manager"))
        await authorization_index.grant(reject, Principal.role("manager"))
        await authorization_index.grant(reject, Principal.user(5))

        manager_transitions = await authorization_index.transitions_for(Principal.role("manager"))
        user_transitions = await authorization_index.transitions_for(Principal.user(5))

        assert [t.id for t in manager_transitions] == [approve.id, reject.id]
        assert [t.id for t in user_transitions] == [reject.id]

    @pytest.mark.asyncio
    async def test_no_implicit_grants(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
    ) -> None:
        transition = await catalog.register("payment", "pending", "approved")

        assert len(await authorization_index.principals_for(transition)) == 0
        assert await authorization_index.granted_transition_ids(
            [Principal.user(1)], [transition.id]
        ) == set()

    @pytest.mark.asyncio
    async def test_granted_transition_ids_is_union_over_principals(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
    ) -> None:
        approve = await catalog.register("payment", "pending", "approved")
        reject = await catalog.register("payment", "pending", "rejected")
        await authorization_index.grant(approve, Principal.user(1))
        await authorization_index.grant(reject, Principal.role("manager"))

        granted = await authorization_index.granted_transition_ids(
            [Principal.user(1), Principal.role("manager")],
            [approve.id, reject.id],
        )

        assert granted == {approve.id, reject.id}

    @pytest.mark.asyncio
    async def test_granted_transition_ids_with_empty_inputs(
        self, authorization_index: AuthorizationIndex
    ) -> None:
        assert await authorization_index.granted_transition_ids([], ["t1"]) == set()
        assert await authorization_index.granted_transition_ids([Principal.user(1)], []) == set()
