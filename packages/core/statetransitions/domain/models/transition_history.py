"""TransitionHistory data model for the audit trail."""

import json
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.timestamps import ensure_utc, utcnow


class TransitionHistory(BaseModel):
    """One observed state change of a transitionable entity.

    History records are append-only. Only description and custom_properties
    may change afterwards, and only through an explicit administrative
    correction on the store.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique identifier of the history record",
        min_length=1,
    )
    model_type: str = Field(
        ...,
        description="Type tag of the entity the record belongs to",
        min_length=1,
    )
    model_id: str = Field(
        ...,
        description="Identifier of the entity the record belongs to",
        min_length=1,
    )
    from_state: str | None = Field(
        default=None,
        description="State token before the commit (None if the entity had no state)",
    )
    to_state: str = Field(
        ...,
        description="State token after the commit",
    )
    description: str | None = Field(
        default=None,
        description="Optional free-text description of the change",
    )
    custom_properties: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured properties stored opaquely",
    )
    created_by: Principal | None = Field(
        default=None,
        description="Acting principal captured at write time",
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="Ordering timestamp of the record",
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp of the last administrative correction",
    )

    model_config = ConfigDict(
        frozen=True,
        protected_namespaces=(),
    )

    @field_validator("model_id", mode="before")
    @classmethod
    def coerce_model_id(cls, v: object) -> object:
        """Accept integer primary keys from hosts."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        return ensure_utc(v)

    @field_validator("custom_properties")
    @classmethod
    def validate_custom_properties(cls, v: dict[str, Any] | None) -> dict[str, Any] | None:
        """Custom properties must round-trip through JSON storage."""
        if v is None:
            return v
        try:
            json.dumps(v)
        except (TypeError, ValueError) as e:
            raise ValueError(f"custom_properties must be JSON-serializable: {e}") from e
        return v

    @property
    def reference(self) -> ModelReference:
        """Reference to the entity this record describes."""
        return ModelReference(model_type=self.model_type, model_id=self.model_id)

    @property
    def changed_state(self) -> bool:
        """Whether the record captures an actual state change."""
        return self.from_state != self.to_state
