"""Domain components for transition authorization and audit."""

from statetransitions.domain.components.authorization_index import AuthorizationIndex
from statetransitions.domain.components.metadata_stager import TransitionMetadataStager
from statetransitions.domain.components.state_codec import (
    StateAttributeCodec,
    StateEnumRegistry,
)
from statetransitions.domain.components.transition_authorizer import TransitionAuthorizer
from statetransitions.domain.components.transition_catalog import TransitionCatalog
from statetransitions.domain.components.transition_recorder import TransitionRecorder

__all__ = [
    "AuthorizationIndex",
    "StateAttributeCodec",
    "StateEnumRegistry",
    "TransitionAuthorizer",
    "TransitionCatalog",
    "TransitionMetadataStager",
    "TransitionRecorder",
]
