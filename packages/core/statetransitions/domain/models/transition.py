"""Transition data model for the transition catalog."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statetransitions.domain.models.timestamps import ensure_utc, utcnow


class Transition(BaseModel):
    """A declared legal state change for one model type.

    Transitions describe a class of change, not a change of a specific entity:
    they reference the transitionable type only by its tag. The triple
    (model_type, from_state, to_state) is unique across the catalog.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Stable, unique identifier for the catalog entry",
        min_length=1,
    )
    model_type: str = Field(
        ...,
        description="Type tag of the transitionable entity (e.g., 'payment')",
        min_length=1,
    )
    from_state: str = Field(
        ...,
        description="State token the entity must currently hold",
        min_length=1,
    )
    to_state: str = Field(
        ...,
        description="State token the entity moves to",
        min_length=1,
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp when the entry was registered",
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp when the entry was last modified",
    )

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        protected_namespaces=(),
    )

    @field_validator("model_type", "from_state", "to_state")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Reject blank tokens and overly long values."""
        if not v or not v.strip():
            raise ValueError("Transition tokens cannot be empty")
        if len(v) > 255:
            raise ValueError("Transition tokens must be 255 characters or less")
        return v.strip()

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def key(self) -> tuple[str, str, str]:
        """Uniqueness triple of this catalog entry."""
        return (self.model_type, self.from_state, self.to_state)

    def __str__(self) -> str:
        return f"{self.model_type}: {self.from_state} -> {self.to_state}"
