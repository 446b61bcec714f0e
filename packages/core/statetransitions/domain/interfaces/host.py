"""Host collaborator interfaces consumed by the transition engine.

The engine never imports the host's ORM or authentication layer. Instead the
host supplies small adapters implementing the interfaces below:

    - Transitionable: structural protocol for entities whose state is tracked
    - ActorProvider: resolves the currently authenticated principal
    - RoleProvider: lists the roles attached to a user principal (optional)
    - EntityPersister: commits an entity mutation to the host's storage

Example:
    ```python
    class SessionActorProvider(ActorProvider):
        def __init__(self, session: Session) -> None:
            self._session = session

        async def current_actor(self) -> Principal | None:
            if self._session.user_id is None:
                return None
            return Principal.user(self._session.user_id)


    class OrmRoleProvider(RoleProvider):
        async def roles_of(self, principal: Principal) -> Sequence[str]:
            user = await User.get(principal.principal_id)
            return [str(role.id) for role in user.roles]
    ```
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from statetransitions.domain.models.principal import Principal


@runtime_checkable
class Transitionable(Protocol):
    """Protocol for entities whose lifecycle is governed by a state value.

    The state itself lives in an attribute whose name is configured by
    TransitionSettings.state_attribute ("state" by default). It may hold an
    enum member, a raw token string, or None.
    """

    @property
    def model_type(self) -> str:
        """Type tag registered with the StateEnumRegistry."""
        ...

    @property
    def model_id(self) -> Any:
        """Host identifier of the entity instance."""
        ...


class ActorProvider(ABC):
    """Resolves the principal performing the current operation."""

    @abstractmethod
    async def current_actor(self) -> Principal | None:
        """Return the authenticated user principal, or None if anonymous."""


class RoleProvider(ABC):
    """Optional capability: lists the roles held by a user principal.

    When no RoleProvider is configured, role-based grants are simply
    unreachable. That is not an error.
    """

    @abstractmethod
    async def roles_of(self, principal: Principal) -> Sequence[str]:
        """Return the role identifiers attached to the principal."""


class EntityPersister(ABC):
    """Commits a mutated entity to the host's storage."""

    @abstractmethod
    async def save(self, entity: Any) -> None:
        """Persist the entity. Must raise if the commit fails."""


class StaticActorProvider(ActorProvider):
    """ActorProvider returning a fixed principal (or None).

    Useful for scripts, background jobs, and tests.
    """

    def __init__(self, actor: Principal | None = None) -> None:
        self._actor = actor

    async def current_actor(self) -> Principal | None:
        return self._actor

    def set_actor(self, actor: Principal | None) -> None:
        """Replace the principal returned by current_actor()."""
        self._actor = actor


class MappingRoleProvider(RoleProvider):
    """RoleProvider backed by an in-memory user id -> role ids mapping."""

    def __init__(self, roles: dict[str, Sequence[str]] | None = None) -> None:
        self._roles: dict[str, list[str]] = {
            user_id: list(role_ids) for user_id, role_ids in (roles or {}).items()
        }

    async def roles_of(self, principal: Principal) -> Sequence[str]:
        return list(self._roles.get(principal.principal_id, []))

    def assign(self, user_id: str, role_id: str) -> None:
        """Attach a role to a user."""
        assigned = self._roles.setdefault(user_id, [])
        if role_id not in assigned:
            assigned.append(role_id)
