"""Shared data model bases."""

from src.data_model.base import StrictBaseModel


__all__ = ["StrictBaseModel"]
