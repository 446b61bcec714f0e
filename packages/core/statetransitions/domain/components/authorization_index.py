"""AuthorizationIndex component mapping transitions to permitted principals."""

from statetransitions.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_safely,
)
from statetransitions.domain.interfaces.transition_store import TransitionStore
from statetransitions.domain.models.principal import (
    Principal,
    PrincipalSet,
    PrincipalType,
)
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_grant import TransitionGrant


class AuthorizationIndex:
    """Many-to-many index between catalog entries and users/roles.

    Authorization is purely enumerated: a principal may perform a transition
    only if a grant exists for it. There are no implicit or inherited grants.
    """

    def __init__(
        self,
        store: TransitionStore,
        observability_manager: ObservabilityManager,
    ) -> None:
        self._store = store
        self._observability = observability_manager

    async def grant(self, transition: Transition, principal: Principal) -> TransitionGrant:
        """Allow a principal to perform a transition.

        Granting twice is harmless and returns the existing grant.

        Raises:
            TransitionStoreError: If the transition is unknown to the store or
                the write fails.
        """
        grant = await self._store.save_grant(
            TransitionGrant(transition_id=transition.id, principal=principal)
        )
        await emit_safely(
            self._observability,
            event_type="transition_granted",
            payload={
                "transition_id": transition.id,
                "principal_type": principal.principal_type.value,
                "principal_id": principal.principal_id,
            },
        )
        return grant

    async def revoke(self, transition: Transition, principal: Principal) -> bool:
        """Withdraw a principal's permission for a transition.

        Returns:
            True if a grant was removed.
        """
        removed = await self._store.delete_grant(transition.id, principal)
        if removed:
            await emit_safely(
                self._observability,
                event_type="transition_revoked",
                payload={
                    "transition_id": transition.id,
                    "principal_type": principal.principal_type.value,
                    "principal_id": principal.principal_id,
                },
            )
        return removed

    async def principals_for(self, transition: Transition) -> PrincipalSet:
        """Users and roles allowed to perform a transition."""
        grants = await self._store.list_grants(transition_id=transition.id)
        users = [
            g.principal.principal_id
            for g in grants
            if g.principal.principal_type == PrincipalType.User
        ]
        roles = [
            g.principal.principal_id
            for g in grants
            if g.principal.principal_type == PrincipalType.Role
        ]
        return PrincipalSet(users=users, roles=roles)

    async def transitions_for(self, principal: Principal) -> list[Transition]:
        """Catalog entries granted directly to a principal."""
        grants = await self._store.list_grants(principals=[principal])
        transitions = []
        for grant in grants:
            transition = await self._store.get_transition(grant.transition_id)
            if transition is not None:
                transitions.append(transition)
        return transitions

    async def granted_transition_ids(
        self,
        principals: list[Principal],
        transition_ids: list[str],
    ) -> set[str]:
        """IDs among transition_ids granted to at least one of the principals."""
        if not principals or not transition_ids:
            return set()
        grants = await self._store.list_grants(
            principals=principals,
            transition_ids=transition_ids,
        )
        return {grant.transition_id for grant in grants}
