"""TransitionGrant pivot model linking transitions to principals."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.timestamps import ensure_utc, utcnow


class TransitionGrant(BaseModel):
    """Authorizes one principal to execute one transition.

    The composite key (transition_id, principal_type, principal_id) is unique.
    Grants are owned by their transition: deleting the transition deletes
    every grant pointing at it.
    """

    transition_id: str = Field(
        ...,
        description="Identifier of the owning catalog entry",
        min_length=1,
    )
    principal: Principal = Field(
        ...,
        description="User or role allowed to perform the transition",
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp when the grant was attached",
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp when the grant was last modified",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def key(self) -> tuple[str, str, str]:
        """Composite primary key of the grant."""
        return (
            self.transition_id,
            self.principal.principal_type.value,
            self.principal.principal_id,
        )
