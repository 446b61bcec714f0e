"""State enum registry and the codec between stored tokens and typed states."""

from collections.abc import Iterable
from enum import Enum

from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_error import (
    UnknownStateTokenError,
    UnresolvableStateEnumError,
)
from statetransitions.domain.models.transition_history import TransitionHistory
from statetransitions.domain.models.transition_metadata import is_blank


class StateEnumRegistry:
    """Explicit mapping from model type tag to its state enum.

    Every transitionable model type must be registered before its tokens can
    be decoded. Hosts call require_all() at startup so that a missing
    registration surfaces immediately instead of on first use.

    Example:
        ```python
        class PaymentState(str, Enum):
            Pending = "pending"
            Approved = "approved"

        registry = StateEnumRegistry()
        registry.register("payment", PaymentState)
        registry.resolve("payment")  # PaymentState
        ```
    """

    def __init__(self) -> None:
        self._enums: dict[str, type[Enum]] = {}

    def register(self, model_type: str, state_enum: type[Enum]) -> None:
        """Register the state enum for a model type.

        Args:
            model_type: Type tag of the transitionable entity.
            state_enum: Enum whose member values are the legal state tokens.

        Raises:
            ValueError: If the model type is blank, the enum is not an Enum
                subclass, or its values are not strings.
        """
        if is_blank(model_type):
            raise ValueError("Model type cannot be empty")
        if not isinstance(state_enum, type) or not issubclass(state_enum, Enum):
            raise ValueError(f"State enum for {model_type} must be an Enum subclass")
        for member in state_enum:
            if not isinstance(member.value, str) or not member.value:
                raise ValueError(
                    f"State enum {state_enum.__name__} must have non-empty string values"
                )
        self._enums[model_type.strip()] = state_enum

    def resolve(self, model_type: str) -> type[Enum]:
        """Return the state enum of a model type.

        Raises:
            UnresolvableStateEnumError: If no enum is registered.
        """
        state_enum = self._enums.get(model_type)
        if state_enum is None:
            raise UnresolvableStateEnumError(model_type)
        return state_enum

    def is_registered(self, model_type: str) -> bool:
        return model_type in self._enums

    def tokens(self, model_type: str) -> list[str]:
        """Legal state tokens of a model type, in declaration order."""
        return [member.value for member in self.resolve(model_type)]

    def require_all(self, model_types: Iterable[str]) -> None:
        """Ensure every given model type has a registered enum.

        Raises:
            UnresolvableStateEnumError: For the first unregistered type.
        """
        for model_type in model_types:
            self.resolve(model_type)

    @property
    def model_types(self) -> list[str]:
        return list(self._enums)


class StateAttributeCodec:
    """Bidirectional mapping between stored state tokens and enum members.

    Storage holds plain strings. Callers work with enum members. The same
    codec is applied to catalog entries and history records.
    """

    def __init__(self, registry: StateEnumRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> StateEnumRegistry:
        return self._registry

    def decode(self, model_type: str, raw_token: str | None) -> Enum | None:
        """Convert a stored token to the model type's enum member.

        Args:
            model_type: Type tag used to resolve the enum.
            raw_token: Stored token. Blank tokens decode to None.

        Returns:
            The enum member, or None for a blank token.

        Raises:
            UnresolvableStateEnumError: If the model type has no registered enum.
            UnknownStateTokenError: If the token is not a member of the enum.
        """
        if is_blank(raw_token):
            return None

        state_enum = self._registry.resolve(model_type)
        try:
            return state_enum(raw_token)
        except ValueError as e:
            raise UnknownStateTokenError(
                model_type, str(raw_token), [member.value for member in state_enum]
            ) from e

    def encode(self, value: Enum | str | None) -> str | None:
        """Convert an enum member or raw token to the stored token.

        Enum members yield their value, strings pass through unchanged and
        None stays None.
        """
        if value is None:
            return None
        if isinstance(value, Enum):
            return str(value.value)
        return value

    def validate(self, model_type: str, value: Enum | str | None) -> str | None:
        """Encode a value and confirm it is a legal token of the model type.

        Returns:
            The token, or None for blank input.

        Raises:
            UnresolvableStateEnumError: If the model type has no registered enum.
            UnknownStateTokenError: If the token is not legal for the model type.
        """
        token = self.encode(value)
        member = self.decode(model_type, token)
        if member is None:
            return None
        return str(member.value)

    def decode_transition(self, transition: Transition) -> tuple[Enum | None, Enum | None]:
        """Typed (from_state, to_state) of a catalog entry."""
        return (
            self.decode(transition.model_type, transition.from_state),
            self.decode(transition.model_type, transition.to_state),
        )

    def decode_history(self, record: TransitionHistory) -> tuple[Enum | None, Enum | None]:
        """Typed (from_state, to_state) of a history record."""
        return (
            self.decode(record.model_type, record.from_state),
            self.decode(record.model_type, record.to_state),
        )
