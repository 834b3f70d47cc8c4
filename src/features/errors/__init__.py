"""Error taxonomy shared by the request engine."""

from src.features.errors.types import (
    BlockedAddressError,
    DecompressionFailedError,
    FailureKind,
    HttpStatusError,
    InvalidHeaderError,
    InvalidUrlError,
    RequestError,
    RequestTimeoutError,
    SinkError,
)


__all__ = [
    "BlockedAddressError",
    "DecompressionFailedError",
    "FailureKind",
    "HttpStatusError",
    "InvalidHeaderError",
    "InvalidUrlError",
    "RequestError",
    "RequestTimeoutError",
    "SinkError",
]
