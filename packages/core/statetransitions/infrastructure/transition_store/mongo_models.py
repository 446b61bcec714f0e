"""MongoDB document models using Beanie ODM.

Maps the transition domain models to MongoDB documents carrying the indexes
the schema requires.

Example:
    ```python
    from motor.motor_asyncio import AsyncIOMotorClient
    from statetransitions.infrastructure.transition_store.mongo_models import (
        initialize_beanie_models,
    )

    client = AsyncIOMotorClient("mongodb://localhost:27017")
    await initialize_beanie_models(client["state_transitions"])
    ```
"""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed, init_beanie
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ConfigDict
from pymongo import IndexModel

from statetransitions.domain.models.principal import Principal, PrincipalType
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_grant import TransitionGrant
from statetransitions.domain.models.transition_history import TransitionHistory


class TransitionDocument(Document):
    """Beanie document model for a catalog entry.

    Indexes:
        - id: Unique index (primary key)
        - model_type + from_state + to_state: Unique compound index
        - created_at: Registration order
    """

    model_config = ConfigDict(protected_namespaces=())

    id: str  # Maps to MongoDB _id
    model_type: str
    from_state: str
    to_state: str
    created_at: Indexed(datetime)  # type: ignore[valid-type]
    updated_at: datetime

    class Settings:
        name = "transitions"
        indexes = [
            IndexModel(
                [("model_type", 1), ("from_state", 1), ("to_state", 1)],
                unique=True,
                name="transitions_model_type_from_state_to_state_unique",
            ),
        ]

    @classmethod
    def from_domain_model(cls, transition: Transition) -> "TransitionDocument":
        return cls(
            id=transition.id,
            model_type=transition.model_type,
            from_state=transition.from_state,
            to_state=transition.to_state,
            created_at=transition.created_at,
            updated_at=transition.updated_at,
        )

    def to_domain_model(self) -> Transition:
        return Transition(
            id=self.id,
            model_type=self.model_type,
            from_state=self.from_state,
            to_state=self.to_state,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class TransitionGrantDocument(Document):
    """Beanie document model for the transition/principal pivot.

    Indexes:
        - transition_id + principal_type + principal_id: Unique composite key
        - principal_type + principal_id: Principal-side lookups
    """

    transition_id: Indexed(str)  # type: ignore[valid-type]
    principal_type: str
    principal_id: str
    created_at: datetime
    updated_at: datetime

    class Settings:
        name = "model_has_transitions"
        indexes = [
            IndexModel(
                [("transition_id", 1), ("principal_type", 1), ("principal_id", 1)],
                unique=True,
                name="model_has_transitions_primary",
            ),
            IndexModel([("principal_type", 1), ("principal_id", 1)]),
        ]

    @classmethod
    def from_domain_model(cls, grant: TransitionGrant) -> "TransitionGrantDocument":
        return cls(
            transition_id=grant.transition_id,
            principal_type=grant.principal.principal_type.value,
            principal_id=grant.principal.principal_id,
            created_at=grant.created_at,
            updated_at=grant.updated_at,
        )

    def to_domain_model(self) -> TransitionGrant:
        return TransitionGrant(
            transition_id=self.transition_id,
            principal=Principal(
                principal_type=PrincipalType(self.principal_type),
                principal_id=self.principal_id,
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class TransitionHistoryDocument(Document):
    """Beanie document model for an audit trail record.

    Indexes:
        - id: Unique index (primary key)
        - model_type + model_id + created_at: Per-entity history in order
        - to_state: Lookups by target state
    """

    model_config = ConfigDict(protected_namespaces=())

    id: str  # Maps to MongoDB _id
    model_type: str
    model_id: str
    from_state: str | None = None
    to_state: str
    description: str | None = None
    custom_properties: dict[str, Any] | None = None
    created_by_type: str | None = None
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime

    class Settings:
        name = "transition_history"
        indexes = [
            IndexModel([("model_type", 1), ("model_id", 1), ("created_at", 1)]),
            IndexModel([("to_state", 1)]),
        ]

    @classmethod
    def from_domain_model(cls, record: TransitionHistory) -> "TransitionHistoryDocument":
        created_by = record.created_by
        return cls(
            id=record.id,
            model_type=record.model_type,
            model_id=record.model_id,
            from_state=record.from_state,
            to_state=record.to_state,
            description=record.description,
            custom_properties=record.custom_properties,
            created_by_type=created_by.principal_type.value if created_by else None,
            created_by_id=created_by.principal_id if created_by else None,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def to_domain_model(self) -> TransitionHistory:
        created_by = None
        if self.created_by_type is not None and self.created_by_id is not None:
            created_by = Principal(
                principal_type=PrincipalType(self.created_by_type),
                principal_id=self.created_by_id,
            )
        return TransitionHistory(
            id=self.id,
            model_type=self.model_type,
            model_id=self.model_id,
            from_state=self.from_state,
            to_state=self.to_state,
            description=self.description,
            custom_properties=self.custom_properties,
            created_by=created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


DOCUMENT_MODELS = [
    TransitionDocument,
    TransitionGrantDocument,
    TransitionHistoryDocument,
]


async def initialize_beanie_models(database: AsyncIOMotorDatabase) -> None:
    """Initialize Beanie with all document models.

    Registers the document models and creates their indexes. Call once at
    startup.

    Args:
        database: MongoDB database instance from motor client.
    """
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
