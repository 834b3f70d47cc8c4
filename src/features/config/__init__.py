"""Client configuration loading and validation."""

from src.features.config.loader import ConfigValidationError, load_client_config
from src.features.config.schemas import ClientConfig


__all__ = [
    "ClientConfig",
    "ConfigValidationError",
    "load_client_config",
]
