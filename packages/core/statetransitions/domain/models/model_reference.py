"""ModelReference: tagged reference to a transitionable entity."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModelReference(BaseModel):
    """Identifies one transitionable entity instance.

    Stands in for a foreign key to a host table the core knows nothing about:
    a type tag plus an opaque identifier.
    """

    model_type: str = Field(
        ...,
        description="Type tag of the transitionable entity (e.g., 'payment')",
        min_length=1,
    )
    model_id: str = Field(
        ...,
        description="Opaque identifier of the entity instance",
        min_length=1,
    )

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        protected_namespaces=(),
    )

    @field_validator("model_id", mode="before")
    @classmethod
    def coerce_model_id(cls, v: object) -> object:
        """Accept integer primary keys from hosts and store them as strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @classmethod
    def of(cls, entity: object) -> "ModelReference":
        """Build a reference from any object exposing model_type and model_id."""
        if isinstance(entity, ModelReference):
            return entity
        return cls(
            model_type=entity.model_type,  # type: ignore[attr-defined]
            model_id=entity.model_id,  # type: ignore[attr-defined]
        )

    def __str__(self) -> str:
        return f"{self.model_type}:{self.model_id}"
