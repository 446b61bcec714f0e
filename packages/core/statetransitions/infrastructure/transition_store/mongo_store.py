"""MongoDB transition store implementation.

This module provides a MongoDB-backed implementation of the TransitionStore
interface using motor (async MongoDB driver) and beanie (Pydantic-based ODM).

Example:
    ```python
    import os
    os.environ["MONGODB_URL"] = "mongodb://localhost:27017"

    from statetransitions.infrastructure.transition_store.mongo_store import (
        MongoTransitionStore,
    )

    store = MongoTransitionStore()
    await store.initialize()

    transition = await store.create_transition(
        Transition(model_type="payment", from_state="pending", to_state="approved")
    )
    ```
"""

import os
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog
from beanie.operators import In, Or
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import (
    ConfigurationError,
    ConnectionFailure,
    DuplicateKeyError,
    NetworkTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from statetransitions.domain.interfaces.transition_store import (
    CORRECTABLE_HISTORY_FIELDS,
    HistoryQuery,
    TransitionStore,
    TransitionStoreError,
)
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.timestamps import utcnow
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_error import DuplicateTransitionError
from statetransitions.domain.models.transition_grant import TransitionGrant
from statetransitions.domain.models.transition_history import TransitionHistory
from statetransitions.infrastructure.transition_store.mongo_models import (
    TransitionDocument,
    TransitionGrantDocument,
    TransitionHistoryDocument,
    initialize_beanie_models,
)

logger = structlog.get_logger(__name__)


class MongoTransitionStore(TransitionStore):
    """MongoDB implementation of TransitionStore interface.

    Connection Configuration:
        - Connection string from parameter or MONGODB_URL environment variable
        - Connection pooling configured via motor client options
        - Health check via ping operation

    Integrity:
        - Catalog uniqueness is enforced by a unique compound index; a
          DuplicateKeyError surfaces as DuplicateTransitionError
        - MongoDB has no foreign keys, so delete_transition removes the
          transition's grants itself

    Attributes:
        _client: AsyncIOMotorClient instance for MongoDB connection
        _database_name: Name of the MongoDB database to use
        _initialized: Whether the connection has been initialized
    """

    def __init__(
        self,
        connection_url: str | None = None,
        database_name: str = "state_transitions",
        max_pool_size: int = 100,
        min_pool_size: int = 0,
        connect_timeout_ms: int = 20000,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        """Initialize MongoTransitionStore with connection configuration.

        Args:
            connection_url: MongoDB connection string. If None, reads from
                           MONGODB_URL environment variable.
            database_name: Name of the MongoDB database to use.
            max_pool_size: Maximum number of connections in the pool.
            min_pool_size: Minimum number of connections in the pool.
            connect_timeout_ms: Connection timeout in milliseconds.
            server_selection_timeout_ms: Server selection timeout in milliseconds.

        Raises:
            TransitionStoreError: If connection URL is missing or invalid.
        """
        if connection_url is None:
            connection_url = os.getenv("MONGODB_URL")
            if connection_url is None:
                raise TransitionStoreError(
                    "MongoDB connection URL not provided. Set MONGODB_URL environment variable or pass connection_url parameter."
                )

        self._database_name = database_name
        self._initialized = False

        try:
            self._client: AsyncIOMotorClient | None = AsyncIOMotorClient(
                connection_url,
                maxPoolSize=max_pool_size,
                minPoolSize=min_pool_size,
                connectTimeoutMS=connect_timeout_ms,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
                tz_aware=True,
            )
            logger.info(
                "MongoDB client created",
                database=database_name,
                max_pool_size=max_pool_size,
            )
        except (ConfigurationError, ValueError) as e:
            error_msg = f"Invalid MongoDB connection URL: {e}"
            logger.error("mongodb_connection_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def initialize(self) -> None:
        """Verify connectivity and initialize Beanie with the document models.

        Raises:
            TransitionStoreError: If connection fails or health check fails.
        """
        if self._initialized:
            return

        if self._client is None:
            raise TransitionStoreError("MongoDB client not initialized")

        try:
            await self._client.admin.command("ping")
            await initialize_beanie_models(self._client[self._database_name])

            self._initialized = True
            logger.info(
                "MongoDB connection established and Beanie initialized",
                database=self._database_name,
            )
        except (ConnectionFailure, ServerSelectionTimeoutError, NetworkTimeout) as e:
            error_msg = f"Failed to connect to MongoDB: {e}"
            logger.error("mongodb_connection_failure", error=error_msg)
            raise TransitionStoreError(error_msg) from e
        except OperationFailure as e:
            # Error code 18 is AuthenticationFailed
            if e.code == 18 or "authentication" in str(e).lower():
                error_msg = f"MongoDB authentication failed: {e}"
                logger.error("mongodb_authentication_failure", error=error_msg)
                raise TransitionStoreError(error_msg) from e
            raise
        except Exception as e:
            error_msg = f"Unexpected error during MongoDB initialization: {e}"
            logger.error("mongodb_initialization_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def check_connection(self) -> bool:
        """Ping the server; True if the connection is healthy."""
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning("mongodb_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._initialized = False
            logger.info("MongoDB connection closed")

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def create_transition(self, transition: Transition) -> Transition:
        await self._ensure_initialized()

        try:
            await TransitionDocument.from_domain_model(transition).insert()
            return transition
        except DuplicateKeyError as e:
            logger.info(
                "mongodb_duplicate_transition",
                model_type=transition.model_type,
                from_state=transition.from_state,
                to_state=transition.to_state,
            )
            raise DuplicateTransitionError(*transition.key) from e
        except Exception as e:
            error_msg = f"Failed to create transition {transition.id}: {e}"
            logger.error("mongodb_create_transition_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def get_transition(self, transition_id: str) -> Transition | None:
        await self._ensure_initialized()

        try:
            doc = await TransitionDocument.get(transition_id)
            return doc.to_domain_model() if doc is not None else None
        except Exception as e:
            error_msg = f"Failed to get transition {transition_id}: {e}"
            logger.error("mongodb_get_transition_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def find_transition(
        self, model_type: str, from_state: str, to_state: str
    ) -> Transition | None:
        await self._ensure_initialized()

        try:
            doc = await TransitionDocument.find_one(
                TransitionDocument.model_type == model_type,
                TransitionDocument.from_state == from_state,
                TransitionDocument.to_state == to_state,
            )
            return doc.to_domain_model() if doc is not None else None
        except Exception as e:
            error_msg = f"Failed to find transition {model_type}:{from_state}->{to_state}: {e}"
            logger.error("mongodb_find_transition_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def list_transitions(
        self,
        model_type: str | None = None,
        from_state: str | None = None,
    ) -> list[Transition]:
        await self._ensure_initialized()

        filters: dict[str, Any] = {}
        if model_type is not None:
            filters["model_type"] = model_type
        if from_state is not None:
            filters["from_state"] = from_state

        try:
            docs = await TransitionDocument.find(filters).sort("+created_at").to_list()
            return [doc.to_domain_model() for doc in docs]
        except Exception as e:
            error_msg = f"Failed to list transitions: {e}"
            logger.error("mongodb_list_transitions_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def delete_transition(self, transition_id: str) -> bool:
        await self._ensure_initialized()

        try:
            doc = await TransitionDocument.get(transition_id)
            if doc is None:
                return False
            # Grants first, so a failure never leaves orphans behind
            await TransitionGrantDocument.find(
                TransitionGrantDocument.transition_id == transition_id
            ).delete()
            await doc.delete()
            return True
        except Exception as e:
            error_msg = f"Failed to delete transition {transition_id}: {e}"
            logger.error("mongodb_delete_transition_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def _find_grant(
        self, transition_id: str, principal: Principal
    ) -> TransitionGrantDocument | None:
        return await TransitionGrantDocument.find_one(
            TransitionGrantDocument.transition_id == transition_id,
            TransitionGrantDocument.principal_type == principal.principal_type.value,
            TransitionGrantDocument.principal_id == principal.principal_id,
        )

    async def save_grant(self, grant: TransitionGrant) -> TransitionGrant:
        await self._ensure_initialized()

        try:
            if await TransitionDocument.get(grant.transition_id) is None:
                raise TransitionStoreError(
                    f"Cannot grant unknown transition: {grant.transition_id}"
                )
            existing = await self._find_grant(grant.transition_id, grant.principal)
            if existing is not None:
                return existing.to_domain_model()
            try:
                await TransitionGrantDocument.from_domain_model(grant).insert()
            except DuplicateKeyError:
                # Concurrent grant of the same pair won the insert
                existing = await self._find_grant(grant.transition_id, grant.principal)
                if existing is not None:
                    return existing.to_domain_model()
                raise
            return grant
        except TransitionStoreError:
            raise
        except Exception as e:
            error_msg = f"Failed to save grant on {grant.transition_id} for {grant.principal}: {e}"
            logger.error("mongodb_save_grant_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def delete_grant(self, transition_id: str, principal: Principal) -> bool:
        await self._ensure_initialized()

        try:
            doc = await self._find_grant(transition_id, principal)
            if doc is None:
                return False
            await doc.delete()
            return True
        except Exception as e:
            error_msg = f"Failed to delete grant on {transition_id} for {principal}: {e}"
            logger.error("mongodb_delete_grant_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def list_grants(
        self,
        transition_id: str | None = None,
        principals: Iterable[Principal] | None = None,
        transition_ids: Iterable[str] | None = None,
    ) -> list[TransitionGrant]:
        await self._ensure_initialized()

        conditions: list[Any] = []
        if transition_id is not None:
            conditions.append(TransitionGrantDocument.transition_id == transition_id)
        if transition_ids is not None:
            conditions.append(In(TransitionGrantDocument.transition_id, list(transition_ids)))
        if principals is not None:
            principal_list = list(principals)
            if not principal_list:
                return []
            conditions.append(
                Or(
                    *(
                        {
                            "principal_type": p.principal_type.value,
                            "principal_id": p.principal_id,
                        }
                        for p in principal_list
                    )
                )
            )

        try:
            docs = await TransitionGrantDocument.find(*conditions).sort("+created_at").to_list()
            return [doc.to_domain_model() for doc in docs]
        except Exception as e:
            error_msg = f"Failed to list grants: {e}"
            logger.error("mongodb_list_grants_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def save_history(self, record: TransitionHistory) -> TransitionHistory:
        await self._ensure_initialized()

        try:
            # Append-only audit trail
            await TransitionHistoryDocument.from_domain_model(record).insert()
            return record
        except Exception as e:
            error_msg = f"Failed to save history record {record.id}: {e}"
            logger.error(
                "mongodb_save_history_error",
                model_type=record.model_type,
                model_id=record.model_id,
                error=error_msg,
            )
            raise TransitionStoreError(error_msg) from e

    async def get_history(self, history_id: str) -> TransitionHistory | None:
        await self._ensure_initialized()

        try:
            doc = await TransitionHistoryDocument.get(history_id)
            return doc.to_domain_model() if doc is not None else None
        except Exception as e:
            error_msg = f"Failed to get history record {history_id}: {e}"
            logger.error("mongodb_get_history_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def query_history(self, query: HistoryQuery) -> list[TransitionHistory]:
        await self._ensure_initialized()

        filters: dict[str, Any] = {}
        for field in ("model_type", "model_id", "from_state", "to_state"):
            value = getattr(query, field)
            if value is not None:
                filters[field] = value
        created_range: dict[str, datetime] = {}
        if query.created_from is not None:
            created_range["$gte"] = query.created_from
        if query.created_to is not None:
            created_range["$lte"] = query.created_to
        if created_range:
            filters["created_at"] = created_range
        # Dotted equality also matches a list-valued property containing the value
        for key, value in (query.custom_properties or {}).items():
            filters[f"custom_properties.{key}"] = value

        try:
            beanie_query = TransitionHistoryDocument.find(filters).sort(
                "-created_at" if query.newest_first else "+created_at"
            )
            if query.offset is not None:
                beanie_query = beanie_query.skip(query.offset)
            if query.limit is not None:
                beanie_query = beanie_query.limit(query.limit)
            docs = await beanie_query.to_list()
            return [doc.to_domain_model() for doc in docs]
        except Exception as e:
            error_msg = f"Failed to query history: {e}"
            logger.error("mongodb_query_history_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e

    async def update_history(
        self,
        history_id: str,
        changes: dict[str, Any],
    ) -> TransitionHistory | None:
        illegal = set(changes) - CORRECTABLE_HISTORY_FIELDS
        if illegal:
            raise TransitionStoreError(
                f"History fields cannot be corrected: {', '.join(sorted(illegal))}"
            )
        await self._ensure_initialized()

        try:
            doc = await TransitionHistoryDocument.get(history_id)
            if doc is None:
                return None
            corrected = TransitionHistory.model_validate(
                {**doc.to_domain_model().model_dump(), **changes, "updated_at": utcnow()}
            )
            await doc.set(
                {
                    TransitionHistoryDocument.description: corrected.description,
                    TransitionHistoryDocument.custom_properties: corrected.custom_properties,
                    TransitionHistoryDocument.updated_at: corrected.updated_at,
                }
            )
            return corrected
        except Exception as e:
            error_msg = f"Failed to update history record {history_id}: {e}"
            logger.error("mongodb_update_history_error", error=error_msg)
            raise TransitionStoreError(error_msg) from e
