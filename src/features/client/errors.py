"""Errors raised by the convenience client."""

from src.features.errors import HttpStatusError
from src.features.request.models import Failure, Success


class ClientError(Exception):
    """Base exception for convenience-wrapper errors."""


class RequestFailedError(ClientError):
    """Logical request resolved as a failure."""

    def __init__(self, failure: Failure) -> None:
        """Initialize the error.

        Args:
            failure: Failure outcome of the request.
        """
        self.failure = failure
        super().__init__(failure.message)


class UnexpectedStatusError(ClientError):
    """Response status does not match the success pattern."""

    def __init__(self, response: Success) -> None:
        """Initialize the error.

        Args:
            response: Response with the unexpected status.
        """
        self.response = response
        self.error = response.http_error or HttpStatusError.from_status(
            response.status, response.reason
        )
        self.code = response.status
        super().__init__(self.error.message)


class JsonDecodeFailedError(ClientError):
    """Response body is not valid JSON."""

    def __init__(self, response: Success, reason: str) -> None:
        """Initialize the error.

        Args:
            response: Response whose body failed to parse.
            reason: Decoder error message.
        """
        self.response = response
        super().__init__(f"Invalid JSON in response from {response.url}: {reason}")
