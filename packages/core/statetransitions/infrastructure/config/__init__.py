"""Configuration infrastructure module."""

from statetransitions.infrastructure.config.file_loader import (
    CatalogFileLoader,
    ConfigurationError,
)
from statetransitions.infrastructure.config.settings import TransitionSettings

__all__ = [
    "TransitionSettings",
    "CatalogFileLoader",
    "ConfigurationError",
]
