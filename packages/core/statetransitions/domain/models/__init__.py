"""Domain models for model state transitions."""

from statetransitions.domain.models.model_reference import ModelReference
from statetransitions.domain.models.principal import (
    Principal,
    PrincipalSet,
    PrincipalType,
)
from statetransitions.domain.models.transition import Transition
from statetransitions.domain.models.transition_error import (
    DuplicateTransitionError,
    ErrorCategory,
    HistoryWriteFailureError,
    TransitionError,
    UnauthorizedActorError,
    UnknownStateTokenError,
    UnresolvableStateEnumError,
)
from statetransitions.domain.models.transition_grant import TransitionGrant
from statetransitions.domain.models.transition_history import TransitionHistory
from statetransitions.domain.models.transition_metadata import (
    TransitionMetadata,
    is_blank,
)

__all__ = [
    "ModelReference",
    "Principal",
    "PrincipalSet",
    "PrincipalType",
    "Transition",
    "TransitionGrant",
    "TransitionHistory",
    "TransitionMetadata",
    "is_blank",
    "ErrorCategory",
    "TransitionError",
    "DuplicateTransitionError",
    "UnknownStateTokenError",
    "UnresolvableStateEnumError",
    "UnauthorizedActorError",
    "HistoryWriteFailureError",
]
