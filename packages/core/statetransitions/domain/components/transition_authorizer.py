"""TransitionAuthorizer component computing the transitions an actor may use."""

from enum import Enum
from typing import Any

from statetransitions.domain.components.authorization_index import AuthorizationIndex
from statetransitions.domain.components.state_codec import StateAttributeCodec
from statetransitions.domain.components.transition_catalog import TransitionCatalog
from statetransitions.domain.interfaces.host import ActorProvider, RoleProvider
from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.principal import Principal, PrincipalType
from statetransitions.domain.models.transition import Transition


class TransitionAuthorizer:
    """Answers "what can this actor do with this entity right now".

    The authorizer is a pure read: it re-resolves the catalog and grants on
    every call and never raises for a missing permission. An empty result is
    the denial signal.

    Example:
        ```python
        transitions = await authorizer.available_transitions(payment, Principal.user(7))
        if any(t.to_state == "approved" for t in transitions):
            ...
        ```
    """

    def __init__(
        self,
        catalog: TransitionCatalog,
        authorization_index: AuthorizationIndex,
        codec: StateAttributeCodec,
        actor_provider: ActorProvider | None = None,
        role_provider: RoleProvider | None = None,
        state_attribute: str = "state",
    ) -> None:
        """Initialize TransitionAuthorizer.

        Args:
            catalog: Catalog of legal transitions.
            authorization_index: Grants per transition.
            codec: Codec used to resolve the entity's current state.
            actor_provider: Optional resolver of the current actor, used by
                available_transitions_for_current_actor().
            role_provider: Optional source of actor roles. Without it,
                role grants are unreachable.
            state_attribute: Name of the entity attribute holding its state.
        """
        self._catalog = catalog
        self._index = authorization_index
        self._codec = codec
        self._actor_provider = actor_provider
        self._role_provider = role_provider
        self._state_attribute = state_attribute

    def current_state(self, entity: Any) -> str | None:
        """Validated state token currently held by the entity.

        Raises:
            UnresolvableStateEnumError: If the entity's type has no registered enum.
            UnknownStateTokenError: If the entity holds an illegal token.
        """
        reference = ModelReference.of(entity)
        value: Enum | str | None = getattr(entity, self._state_attribute, None)
        return self._codec.validate(reference.model_type, value)

    async def identities_of(self, actor: Principal) -> list[Principal]:
        """The actor itself plus each role attached to it."""
        identities = [actor]
        if self._role_provider is not None and actor.principal_type == PrincipalType.User:
            for role_id in await self._role_provider.roles_of(actor):
                role = Principal.role(role_id)
                if role not in identities:
                    identities.append(role)
        return identities

    async def available_transitions(
        self,
        entity: Any,
        actor: Principal | None,
    ) -> list[Transition]:
        """Catalog entries the actor may execute from the entity's current state.

        Args:
            entity: Transitionable entity (model_type, model_id, state attribute).
            actor: The acting principal, or None for an anonymous caller.

        Returns:
            Matching transitions in catalog order. Always empty for an
            anonymous actor or a blank current state.
        """
        reference = ModelReference.of(entity)
        current_state = self.current_state(entity)
        candidates = await self._catalog.list(reference.model_type, current_state)

        if actor is None or not candidates:
            return []

        identities = await self.identities_of(actor)
        granted = await self._index.granted_transition_ids(
            principals=identities,
            transition_ids=[t.id for t in candidates],
        )
        return [t for t in candidates if t.id in granted]

    async def available_transitions_for_current_actor(self, entity: Any) -> list[Transition]:
        """available_transitions() for the actor resolved by the ActorProvider."""
        actor = None
        if self._actor_provider is not None:
            actor = await self._actor_provider.current_actor()
        return await self.available_transitions(entity, actor)

    async def can_transition(
        self,
        entity: Any,
        actor: Principal | None,
        to_state: Enum | str,
    ) -> bool:
        """Whether the actor may move the entity to to_state."""
        return await self.find_available(entity, actor, to_state) is not None

    async def find_available(
        self,
        entity: Any,
        actor: Principal | None,
        to_state: Enum | str,
    ) -> Transition | None:
        """The available transition leading to to_state, if any."""
        target = self._codec.encode(to_state)
        for transition in await self.available_transitions(entity, actor):
            if transition.to_state == target:
                return transition
        return None
