"""Convenience client with client-level defaults."""

from src.features.client.client import HttpClient, JsonResponse
from src.features.client.errors import (
    ClientError,
    JsonDecodeFailedError,
    RequestFailedError,
    UnexpectedStatusError,
)


__all__ = [
    "ClientError",
    "HttpClient",
    "JsonDecodeFailedError",
    "JsonResponse",
    "RequestFailedError",
    "UnexpectedStatusError",
]
