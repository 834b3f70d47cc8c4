"""Configuration schema definitions."""

from src.features.config.schemas.client import ClientConfig


__all__ = ["ClientConfig"]
