"""Client configuration schema."""

import re
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import Field, field_validator, model_validator

from src.data_model import StrictBaseModel
from src.features.access import AccessPolicy
from src.features.config.constants import (
    DEFAULT_ACCEPT_ENCODING,
    DEFAULT_DNS_TTL_SECONDS,
    DEFAULT_IDLE_TIMEOUT_MS,
    DEFAULT_REDIRECT_STATUSES,
    DEFAULT_RETRY_STATUS_RANGE,
    DEFAULT_SUCCESS_PATTERN,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
)


if TYPE_CHECKING:
    from src.settings import AppSettings

# None or False disables, True is unlimited, an int counts down
Budget = bool | int | None


class ClientConfig(StrictBaseModel):
    """Defaults applied to every request of a client.

    Attributes:
        user_agent: User-Agent header value.
        default_headers: Headers merged under every request's headers.
        timeout_ms: First-byte timeout in milliseconds (0 disables).
        idle_timeout_ms: Idle timeout in milliseconds (0 disables).
        follow: Redirect budget (False/None disabled, True unlimited, int max).
        retries: Retry budget (False/None disabled, True unlimited, int max).
        dns_ttl_seconds: Address cache TTL (0 disables caching).
        success_pattern: Regex a status must match to count as success.
        redirect_statuses: Statuses followed as redirects.
        retry_status_range: Inclusive range of retried statuses.
        auto_decompress: Decompress gzip/deflate/br response bodies.
        auto_error: Attach an HTTP error outside the success pattern.
        auto_content_length: Send Content-Length for buffered bodies.
        keep_alive: Pool connections across requests.
        verify_tls: Verify TLS certificates.
        access_policy: Address allow/deny rules.
    """

    user_agent: Annotated[str, Field(min_length=1)] = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = Field(
        default_factory=lambda: {"Accept-Encoding": DEFAULT_ACCEPT_ENCODING}
    )
    timeout_ms: Annotated[float, Field(ge=0)] = DEFAULT_TIMEOUT_MS
    idle_timeout_ms: Annotated[float, Field(ge=0)] = DEFAULT_IDLE_TIMEOUT_MS
    follow: Budget = False
    retries: Budget = False
    dns_ttl_seconds: Annotated[float, Field(ge=0)] = DEFAULT_DNS_TTL_SECONDS
    success_pattern: str = DEFAULT_SUCCESS_PATTERN
    redirect_statuses: frozenset[int] = DEFAULT_REDIRECT_STATUSES
    retry_status_range: tuple[int, int] = DEFAULT_RETRY_STATUS_RANGE
    auto_decompress: bool = True
    auto_error: bool = False
    auto_content_length: bool = True
    keep_alive: bool = False
    verify_tls: bool = True
    access_policy: AccessPolicy | None = None

    @field_validator("follow", "retries")
    @classmethod
    def validate_budget(cls, v: Budget) -> Budget:
        """Reject negative budgets."""
        if isinstance(v, int) and not isinstance(v, bool) and v < 0:
            raise ValueError(f"Budget must be >= 0, got {v}")
        return v

    @field_validator("success_pattern")
    @classmethod
    def validate_success_pattern(cls, v: str) -> str:
        """Validate that the success pattern compiles."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid success pattern '{v}': {e}") from e
        return v

    @model_validator(mode="after")
    def validate_retry_range(self) -> "ClientConfig":
        """Validate the retry status range bounds."""
        low, high = self.retry_status_range
        if not 100 <= low <= high <= 999:
            raise ValueError(f"Invalid retry status range: {low}-{high}")
        return self

    def matches_success(self, status: int) -> bool:
        """Check if a status matches the success pattern."""
        return re.search(self.success_pattern, str(status)) is not None

    def headers(self) -> dict[str, str]:
        """Get default headers including the User-Agent."""
        return {**self.default_headers, "User-Agent": self.user_agent}

    def updated(self, **changes: Any) -> "ClientConfig":
        """Return a validated copy with some fields changed."""
        return ClientConfig.model_validate({**self.model_dump(), **changes})

    @classmethod
    def from_settings(cls, settings: "AppSettings | None" = None) -> "ClientConfig":
        """Build a configuration from environment settings.

        Args:
            settings: Settings to use (default: read the environment).

        Returns:
            ClientConfig instance.
        """
        from src.settings import AppSettings

        settings = settings or AppSettings()
        return cls(
            user_agent=settings.user_agent,
            timeout_ms=settings.timeout_ms,
            idle_timeout_ms=settings.idle_timeout_ms,
            follow=settings.follow,
            retries=settings.retries,
            dns_ttl_seconds=settings.dns_ttl_seconds,
            keep_alive=settings.keep_alive,
            verify_tls=settings.verify_tls,
        )
