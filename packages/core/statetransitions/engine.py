"""TransitionEngine - Main facade wiring catalog, authorization, and audit."""

from enum import Enum
from pathlib import Path
from typing import Any

from statetransitions.domain.components.authorization_index import AuthorizationIndex
from statetransitions.domain.components.metadata_stager import TransitionMetadataStager
from statetransitions.domain.components.state_codec import (
    StateAttributeCodec,
    StateEnumRegistry,
)
from statetransitions.domain.components.transition_authorizer import TransitionAuthorizer
from statetransitions.domain.components.transition_catalog import TransitionCatalog
from statetransitions.domain.components.transition_recorder import TransitionRecorder
from statetransitions.domain.interfaces.host import (
    ActorProvider,
    EntityPersister,
    RoleProvider,
)
from statetransitions.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_safely,
)
from statetransitions.domain.interfaces.transition_store import (
    HistoryQuery,
    TransitionStore,
)
from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.principal import Principal
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_error import UnauthorizedActorError
from statetransitions.domain.models.transition_history import TransitionHistory
from statetransitions.domain.models.transition_metadata import TransitionMetadata
from statetransitions.infrastructure.config.file_loader import (
    CatalogFileLoader,
    ConfigurationError,
)
from statetransitions.infrastructure.config.settings import TransitionSettings
from statetransitions.infrastructure.observability.logger import (
    DefaultObservabilityManager,
)
from statetransitions.infrastructure.transition_store.memory_store import (
    InMemoryTransitionStore,
)
from statetransitions.infrastructure.transition_store.mongo_store import (
    MongoTransitionStore,
)


class TransitionEngine:
    """Main entry point for library.

    TransitionEngine wires the state codec, catalog, authorization index,
    authorizer, metadata stager and recorder around one TransitionStore, and
    exposes the operations a host application needs.

    Example:
        ```python
        engine = TransitionEngine(actor_provider=my_actor_provider)
        engine.register_model("payment", PaymentState)

        approve = await engine.register_transition(
            "payment", PaymentState.Pending, PaymentState.Approved
        )
        await engine.authorization_index.grant(approve, Principal.role("manager"))

        # Host mutates and saves the entity itself, then reports the commit
        engine.stage_metadata(payment, description="Approved by manager")
        payment.state = PaymentState.Approved
        await engine.record_commit(payment, previous_state=PaymentState.Pending)

        # Or let the engine drive persistence through an EntityPersister
        async with TransitionEngine(persister=my_persister) as engine:
            await engine.transition_to(payment, PaymentState.Settled)
        ```
    """

    def __init__(
        self,
        store: TransitionStore | None = None,
        observability_manager: ObservabilityManager | None = None,
        config: TransitionSettings | dict[str, Any] | None = None,
        actor_provider: ActorProvider | None = None,
        role_provider: RoleProvider | None = None,
        persister: EntityPersister | None = None,
        registry: StateEnumRegistry | None = None,
    ) -> None:
        """Initialize TransitionEngine with dependencies.

        Args:
            store: Optional TransitionStore implementation. Defaults to a
                MongoTransitionStore when the configuration names a MongoDB
                URL, otherwise to an InMemoryTransitionStore.
            observability_manager: Optional ObservabilityManager. Defaults to
                DefaultObservabilityManager.
            config: TransitionSettings instance, dictionary, or None (loads
                from environment variables).
            actor_provider: Resolves the current actor for history
                attribution and available_transitions_for_current_actor().
            role_provider: Supplies the roles of a user principal.
            persister: Host persistence hook used by commit() and transition_to().
            registry: Pre-populated StateEnumRegistry to share.

        Raises:
            ValueError: If configuration is invalid.
        """
        if config is None:
            self._config = TransitionSettings()
        elif isinstance(config, dict):
            self._config = TransitionSettings.from_dict(config)
        elif isinstance(config, TransitionSettings):
            self._config = config
        else:
            raise ValueError(
                f"Invalid config type: {type(config)}. Expected TransitionSettings, dict, or None"
            )

        if store is None:
            if self._config.mongodb_url:
                self._store: TransitionStore = MongoTransitionStore(
                    connection_url=self._config.mongodb_url,
                    database_name=self._config.database_name,
                )
            else:
                self._store = InMemoryTransitionStore()
        else:
            self._store = store

        if observability_manager is None:
            self._observability_manager: ObservabilityManager = DefaultObservabilityManager(
                log_level=self._config.log_level,
                json_format=self._config.json_logs,
            )
        else:
            self._observability_manager = observability_manager

        self._actor_provider = actor_provider
        self._persister = persister
        state_attribute = self._config.state_attribute

        self._registry = registry if registry is not None else StateEnumRegistry()
        self._codec = StateAttributeCodec(self._registry)
        self._catalog = TransitionCatalog(
            store=self._store,
            codec=self._codec,
            observability_manager=self._observability_manager,
        )
        self._authorization_index = AuthorizationIndex(
            store=self._store,
            observability_manager=self._observability_manager,
        )
        self._authorizer = TransitionAuthorizer(
            catalog=self._catalog,
            authorization_index=self._authorization_index,
            codec=self._codec,
            actor_provider=actor_provider,
            role_provider=role_provider,
            state_attribute=state_attribute,
        )
        self._stager = TransitionMetadataStager(state_attribute=state_attribute)
        self._recorder = TransitionRecorder(
            store=self._store,
            stager=self._stager,
            codec=self._codec,
            observability_manager=self._observability_manager,
            actor_provider=actor_provider,
        )

    async def __aenter__(self) -> "TransitionEngine":
        """Initialize the store and seed the catalog file, if one is configured.

        State enums referenced by the catalog file must be registered before
        entering the context.
        """
        initialize = getattr(self._store, "initialize", None)
        if initialize is not None:
            await initialize()
        if self._config.catalog_file:
            await self.load_catalog(self._config.catalog_file)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the store's resources."""
        await self._store.close()

    @property
    def config(self) -> TransitionSettings:
        return self._config

    @property
    def store(self) -> TransitionStore:
        return self._store

    @property
    def observability_manager(self) -> ObservabilityManager:
        return self._observability_manager

    @property
    def registry(self) -> StateEnumRegistry:
        return self._registry

    @property
    def codec(self) -> StateAttributeCodec:
        return self._codec

    @property
    def catalog(self) -> TransitionCatalog:
        return self._catalog

    @property
    def authorization_index(self) -> AuthorizationIndex:
        return self._authorization_index

    @property
    def authorizer(self) -> TransitionAuthorizer:
        return self._authorizer

    @property
    def stager(self) -> TransitionMetadataStager:
        return self._stager

    @property
    def recorder(self) -> TransitionRecorder:
        return self._recorder

    def register_model(self, model_type: str, state_enum: type[Enum]) -> None:
        """Register the state enum of a transitionable model type."""
        self._registry.register(model_type, state_enum)

    async def register_transition(
        self,
        model_type: str,
        from_state: Enum | str,
        to_state: Enum | str,
    ) -> Transition:
        """Declare a legal state change. See TransitionCatalog.register()."""
        return await self._catalog.register(model_type, from_state, to_state)

    def state_of(self, entity: Any) -> Enum | None:
        """Typed current state of an entity, or None when it has none."""
        reference = ModelReference.of(entity)
        return self._codec.decode(reference.model_type, self._authorizer.current_state(entity))

    def stage_metadata(
        self,
        entity: Any,
        description: str | None = None,
        custom_properties: dict[str, Any] | None = None,
        *,
        allow_empty: bool = False,
    ) -> TransitionMetadata:
        """Attach description/properties to the entity's next recorded transition."""
        return self._stager.stage(
            ModelReference.of(entity),
            description,
            custom_properties,
            allow_empty=allow_empty,
        )

    async def commit(
        self,
        entity: Any,
        previous_state: Enum | str | None,
    ) -> TransitionHistory | None:
        """Persist the entity through the EntityPersister, then record history.

        The state attribute must already hold the new value.

        Returns:
            The recorded history entry, or None for a no-op commit.

        Raises:
            HistoryWriteFailureError: If the entity was saved but the history
                write failed.
        """
        async with self._stager.lock(ModelReference.of(entity)):
            return await self._persist_and_record(entity, previous_state)

    async def record_commit(
        self,
        entity: Any,
        previous_state: Enum | str | None,
    ) -> TransitionHistory | None:
        """Record history for a mutation the host has already persisted."""
        async with self._stager.lock(ModelReference.of(entity)):
            return await self._record(entity, previous_state)

    async def transition_to(
        self,
        entity: Any,
        new_state: Enum | str,
        description: str | None = None,
        custom_properties: dict[str, Any] | None = None,
    ) -> TransitionHistory | None:
        """Stage metadata, move the entity to new_state and commit it.

        If persisting the entity fails, its state attribute is restored and
        the metadata staged for it is discarded.

        Raises:
            UnknownStateTokenError: If new_state is not legal for the model type.
            HistoryWriteFailureError: If the history write failed after saving.
        """
        reference = ModelReference.of(entity)
        self._codec.validate(reference.model_type, new_state)
        state_attribute = self._config.state_attribute

        persisted = False

        async def commit(target: Any, previous: Enum | str | None) -> TransitionHistory | None:
            nonlocal persisted
            if self._persister is not None:
                await self._persister.save(target)
            persisted = True
            return await self._record(target, previous)

        async with self._stager.lock(reference):
            previous_state = getattr(entity, state_attribute, None)
            try:
                return await self._stager.transition_to(
                    entity,
                    new_state,
                    commit=commit,
                    description=description,
                    custom_properties=custom_properties,
                )
            except Exception:
                if not persisted:
                    setattr(entity, state_attribute, previous_state)
                    self._stager.clear(reference)
                raise

    async def _persist_and_record(
        self,
        entity: Any,
        previous_state: Enum | str | None,
    ) -> TransitionHistory | None:
        if self._persister is not None:
            await self._persister.save(entity)
        return await self._record(entity, previous_state)

    async def _record(
        self,
        entity: Any,
        previous_state: Enum | str | None,
    ) -> TransitionHistory | None:
        new_state = getattr(entity, self._config.state_attribute, None)
        return await self._recorder.record(entity, previous_state, new_state)

    async def available_transitions(
        self,
        entity: Any,
        actor: Principal | None,
    ) -> list[Transition]:
        return await self._authorizer.available_transitions(entity, actor)

    async def available_transitions_for_current_actor(self, entity: Any) -> list[Transition]:
        return await self._authorizer.available_transitions_for_current_actor(entity)

    async def can_transition(
        self,
        entity: Any,
        actor: Principal | None,
        to_state: Enum | str,
    ) -> bool:
        return await self._authorizer.can_transition(entity, actor, to_state)

    async def authorize(
        self,
        entity: Any,
        actor: Principal | None,
        to_state: Enum | str,
    ) -> Transition:
        """Return the transition the actor may use to reach to_state.

        Raises:
            UnauthorizedActorError: If no granted catalog entry leads from the
                entity's current state to to_state for this actor.
        """
        transition = await self._authorizer.find_available(entity, actor, to_state)
        if transition is None:
            reference = ModelReference.of(entity)
            raise UnauthorizedActorError(
                reference.model_type,
                reference.model_id,
                str(self._codec.encode(to_state)),
                str(actor) if actor is not None else None,
            )
        return transition

    async def history(
        self,
        entity: Any,
        newest_first: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[TransitionHistory]:
        """History records of one entity, ordered by created_at."""
        reference = ModelReference.of(entity)
        return await self._store.query_history(
            HistoryQuery(
                model_type=reference.model_type,
                model_id=reference.model_id,
                newest_first=newest_first,
                limit=limit,
                offset=offset,
            )
        )

    async def latest_history(self, entity: Any) -> TransitionHistory | None:
        records = await self.history(entity, newest_first=True, limit=1)
        return records[0] if records else None

    async def correct_history(
        self,
        history_id: str,
        description: str | None = None,
        custom_properties: dict[str, Any] | None = None,
    ) -> TransitionHistory | None:
        """Administratively correct the metadata of a recorded transition.

        Only values that are not None are changed.

        Returns:
            The corrected record, or None if it does not exist.
        """
        changes: dict[str, Any] = {}
        if description is not None:
            changes["description"] = description
        if custom_properties is not None:
            changes["custom_properties"] = custom_properties
        if not changes:
            return await self._store.get_history(history_id)

        corrected = await self._store.update_history(history_id, changes)
        if corrected is not None:
            await emit_safely(
                self._observability_manager,
                event_type="transition_history_corrected",
                payload={"history_id": history_id, "fields": sorted(changes)},
            )
        return corrected

    async def load_catalog(self, path: str | Path | None = None) -> list[Transition]:
        """Seed transitions and grants from a YAML/JSON catalog file.

        Loading is idempotent: existing transitions and grants are kept.
        Every state token must be legal for its model type.

        Args:
            path: Catalog file. Defaults to the configured catalog_file.

        Returns:
            The catalog entries named by the file, in file order.

        Raises:
            ConfigurationError: If no file is configured or the file is invalid.
            UnresolvableStateEnumError: If a model type has no registered enum.
            UnknownStateTokenError: If a token is not legal for its model type.
        """
        path = path if path is not None else self._config.catalog_file
        if path is None:
            raise ConfigurationError("No catalog file configured", field="catalog_file")

        loader = CatalogFileLoader(path)
        config = loader.load()
        loader.validate_structure(config)
        entries = loader.parse_transitions(config)

        for entry in entries:
            self._codec.validate(entry["model_type"], entry["from_state"])
            self._codec.validate(entry["model_type"], entry["to_state"])

        transitions = []
        for entry in entries:
            transition = await self._catalog.find(
                entry["model_type"], entry["from_state"], entry["to_state"]
            )
            if transition is None:
                transition = await self._catalog.register(
                    entry["model_type"], entry["from_state"], entry["to_state"]
                )
            for user_id in entry["grants"]["users"]:
                await self._authorization_index.grant(transition, Principal.user(user_id))
            for role_id in entry["grants"]["roles"]:
                await self._authorization_index.grant(transition, Principal.role(role_id))
            transitions.append(transition)

        await self._observability_manager.log(
            level="INFO",
            message="Transition catalog loaded",
            context={"path": str(loader.path), "transitions": len(transitions)},
        )
        return transitions
