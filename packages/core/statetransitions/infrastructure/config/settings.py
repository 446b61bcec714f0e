"""Configuration settings using pydantic-settings."""

import os
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransitionSettings(BaseSettings):
    """Configuration settings for the transition engine.

    Settings can be loaded from environment variables or passed as a dictionary.
    Environment variables should be prefixed with 'STATETRANSITIONS_'
    (e.g., STATETRANSITIONS_STATE_ATTRIBUTE=status).

    Example:
        ```python
        # From environment variables
        settings = TransitionSettings()

        # From dictionary
        settings = TransitionSettings.from_dict({"state_attribute": "status"})
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="STATETRANSITIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Host entity configuration
    state_attribute: str = Field(
        default="state",
        description="Name of the entity attribute holding the state token",
    )

    # Observability configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON lines; console rendering when False",
    )

    # Catalog seeding
    catalog_file: str | None = Field(
        default=None,
        description="Optional YAML/JSON file seeding transitions and grants",
    )

    # MongoDB configuration
    mongodb_url: str | None = Field(
        default=None,
        description="MongoDB connection URL. Falls back to MONGODB_URL when unset",
    )
    database_name: str = Field(
        default="state_transitions",
        description="MongoDB database name",
    )

    @field_validator("state_attribute")
    @classmethod
    def validate_state_attribute(cls, v: str) -> str:
        v = v.strip()
        if not v.isidentifier():
            raise ValueError(f"state_attribute must be a valid attribute name, got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log_level: {v}")
        return level

    @model_validator(mode="after")
    def default_mongodb_url(self) -> "TransitionSettings":
        """Use MONGODB_URL, the variable MongoTransitionStore reads, when unset."""
        if not self.mongodb_url:
            self.mongodb_url = os.getenv("MONGODB_URL") or None
        return self

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "TransitionSettings":
        """Create settings from a dictionary.

        Args:
            config: Dictionary with configuration values.

        Returns:
            TransitionSettings instance.
        """
        return cls(**config)
