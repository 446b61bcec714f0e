"""TransitionMetadata: staged description and properties for the next record."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def is_blank(value: Any) -> bool:
    """Return True for None, whitespace-only strings, and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list, tuple, set)):
        return len(value) == 0
    return False


class TransitionMetadata(BaseModel):
    """Metadata pending consumption by the next recorded transition.

    Never persisted on its own. A value of None means "not provided"; the
    stager only stores blank values when the caller asks for them explicitly.
    """

    description: str | None = Field(
        default=None,
        description="Human-readable description for the next history record",
    )
    custom_properties: dict[str, Any] | None = Field(
        default=None,
        description="Structured properties for the next history record",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        """True when neither value has been staged."""
        return self.description is None and self.custom_properties is None

    def merge(
        self,
        description: str | None = None,
        custom_properties: dict[str, Any] | None = None,
        allow_empty: bool = False,
    ) -> "TransitionMetadata":
        """Return a copy with the provided values layered on top.

        Blank inputs are ignored rather than clearing previously staged values,
        unless allow_empty is set, in which case any non-None value is kept.
        """
        new_description = self.description
        new_properties = self.custom_properties

        if description is not None and (allow_empty or not is_blank(description)):
            new_description = description
        if custom_properties is not None and (allow_empty or not is_blank(custom_properties)):
            new_properties = dict(custom_properties)

        return TransitionMetadata(
            description=new_description,
            custom_properties=new_properties,
        )
