"""Principal data model and PrincipalType enum."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PrincipalType(str, Enum):
    """Kinds of principal that can hold a transition grant."""

    User = "user"
    """An individual actor identified by the host's authentication layer."""

    Role = "role"
    """A role attached to one or more users."""


class Principal(BaseModel):
    """Unit of authorization: a user or a role.

    Principals are value objects. Two principals with the same type and id
    are interchangeable, which lets the authorizer compare identity sets
    directly.
    """

    principal_type: PrincipalType = Field(
        ...,
        description="Whether this principal is a user or a role",
    )
    principal_id: str = Field(
        ...,
        description="Host identifier of the user or role",
        min_length=1,
    )

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )

    @field_validator("principal_id", mode="before")
    @classmethod
    def coerce_principal_id(cls, v: object) -> object:
        """Accept integer primary keys from hosts and store them as strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @classmethod
    def user(cls, principal_id: str | int) -> "Principal":
        """Build a user principal."""
        return cls(principal_type=PrincipalType.User, principal_id=principal_id)

    @classmethod
    def role(cls, principal_id: str | int) -> "Principal":
        """Build a role principal."""
        return cls(principal_type=PrincipalType.Role, principal_id=principal_id)

    def __str__(self) -> str:
        return f"{self.principal_type.value}:{self.principal_id}"


class PrincipalSet(BaseModel):
    """Users and roles granted a single transition."""

    users: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def __contains__(self, principal: object) -> bool:
        if not isinstance(principal, Principal):
            return False
        if principal.principal_type == PrincipalType.User:
            return principal.principal_id in self.users
        return principal.principal_id in self.roles

    def __len__(self) -> int:
        return len(self.users) + len(self.roles)
