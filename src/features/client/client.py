"""Convenience HTTP client delegating to the request orchestrator."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any
from urllib.parse import urlencode

import structlog

from src.features.access import AccessControlFilter
from src.features.client.errors import (
    JsonDecodeFailedError,
    RequestFailedError,
    UnexpectedStatusError,
)
from src.features.config import ClientConfig
from src.features.dns_cache import AddressCache, get_default_address_cache
from src.features.request import (
    Budget,
    FormBody,
    Outcome,
    RequestOptions,
    RequestOrchestrator,
    Success,
)
from src.features.request.body import FileSpec
from src.features.request.headers import set_default_header
from src.features.transport import HttpxTransport, Transport


logger = structlog.get_logger()

_OPTION_NAMES = frozenset(f.name for f in fields(RequestOptions))


@dataclass(frozen=True)
class JsonResponse:
    """Parsed JSON body together with its response.

    Attributes:
        response: Successful response.
        data: Decoded JSON document.
    """

    response: Success
    data: Any


def _options(method: str, overrides: Mapping[str, Any]) -> RequestOptions:
    unknown = set(overrides) - _OPTION_NAMES
    if unknown:
        raise TypeError(f"Unknown request options: {', '.join(sorted(unknown))}")
    values = dict(overrides)
    values.setdefault("method", method)
    values["headers"] = dict(values.get("headers") or {})
    return RequestOptions(**values)


class HttpClient:
    """HTTP client with mutable defaults and GET/POST/JSON helpers.

    Setters replace the (immutable) configuration; requests already in
    flight keep the configuration they started with.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: Transport | None = None,
        address_cache: AddressCache | None = None,
        access_filter: AccessControlFilter | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Initial configuration (default: ClientConfig()).
            transport: Transport to use (default: HttpxTransport following
                the keep-alive setting).
            address_cache: Address cache (default: process-wide cache).
            access_filter: Address filter (default: from the config policy).
        """
        self._config = config or ClientConfig()
        self._owns_transport = transport is None
        self._transport = transport or self._build_transport()
        self._retired: list[Transport] = []
        self._cache = address_cache or get_default_address_cache()
        self._access_filter = access_filter
        self._orchestrator: RequestOrchestrator | None = None
        self._log = logger.bind(component="client")

    @property
    def config(self) -> ClientConfig:
        """Get the current configuration."""
        return self._config

    @property
    def address_cache(self) -> AddressCache:
        """Get the address cache."""
        return self._cache

    def _build_transport(self) -> Transport:
        return HttpxTransport(
            keep_alive=self._config.keep_alive,
            verify=self._config.verify_tls,
        )

    def _update(self, **changes: Any) -> None:
        self._config = self._config.updated(**changes)
        self._orchestrator = None

    @property
    def orchestrator(self) -> RequestOrchestrator:
        """Get the orchestrator for the current configuration."""
        if self._orchestrator is None:
            self._orchestrator = RequestOrchestrator(
                config=self._config,
                transport=self._transport,
                address_cache=self._cache,
                access_filter=self._access_filter,
            )
        return self._orchestrator

    def set_header(self, name: str, value: str) -> None:
        """Add or override a default header."""
        self._update(default_headers={**self._config.default_headers, name: value})

    def set_user_agent(self, user_agent: str) -> None:
        """Override the User-Agent header."""
        self._update(user_agent=user_agent)

    def set_timeout(self, timeout_ms: float) -> None:
        """Set the first-byte timeout in milliseconds (0 disables)."""
        self._update(timeout_ms=timeout_ms)

    def set_idle_timeout(self, idle_timeout_ms: float) -> None:
        """Set the idle timeout in milliseconds (0 disables)."""
        self._update(idle_timeout_ms=idle_timeout_ms)

    def set_follow(self, follow: Budget) -> None:
        """Set the redirect budget (bool or maximum number of redirects)."""
        self._update(follow=follow)

    def set_retries(self, retries: Budget) -> None:
        """Set the retry budget (bool or maximum number of retries)."""
        self._update(retries=retries)

    def set_dns_cache(self, ttl_seconds: float) -> None:
        """Set the address cache TTL in seconds (0 disables)."""
        self._update(dns_ttl_seconds=ttl_seconds)

    def flush_dns_cache(self) -> None:
        """Remove every cached address."""
        self._cache.flush()

    def set_success_match(self, pattern: str) -> None:
        """Set the regex a status must match to count as success."""
        self._update(success_pattern=pattern)

    def set_auto_decompress(self, enabled: bool) -> None:
        """Enable or disable response decompression."""
        self._update(auto_decompress=enabled)

    def set_auto_error(self, enabled: bool) -> None:
        """Enable or disable HTTP errors outside the success pattern."""
        self._update(auto_error=enabled)

    def set_auto_content_length(self, enabled: bool) -> None:
        """Enable or disable Content-Length on buffered POST bodies."""
        self._update(auto_content_length=enabled)

    def set_keep_alive(self, enabled: bool) -> None:
        """Enable or disable pooled keep-alive connections.

        Only affects the client's own transport; an injected transport is
        used as is.
        """
        if enabled == self._config.keep_alive:
            return
        self._update(keep_alive=enabled)
        if self._owns_transport:
            self._retired.append(self._transport)
            self._transport = self._build_transport()

    async def request(self, url: str, options: RequestOptions | None = None) -> Outcome:
        """Perform a request with explicit options.

        Args:
            url: Target URL.
            options: Request options.

        Returns:
            Outcome of the logical request.
        """
        return await self.orchestrator.request(url, options)

    async def get(self, url: str, **options: Any) -> Outcome:
        """Perform a GET request.

        Args:
            url: Target URL.
            **options: RequestOptions fields.

        Returns:
            Outcome of the request.
        """
        return await self.request(url, _options("GET", options))

    async def head(self, url: str, **options: Any) -> Outcome:
        """Perform a HEAD request."""
        return await self.request(url, _options("HEAD", options))

    async def post(
        self,
        url: str,
        data: Mapping[str, Any] | bytes | str | None = None,
        *,
        json_data: Any = None,
        files: Mapping[str, FileSpec] | None = None,
        **options: Any,
    ) -> Outcome:
        """Perform a POST request.

        Body encoding:
        - ``files`` given: multipart/form-data with ``data`` as plain fields
        - ``json_data`` given: JSON document
        - ``data`` mapping: application/x-www-form-urlencoded
        - ``data`` bytes or str: sent as is

        Args:
            url: Target URL.
            data: Form fields or raw body.
            json_data: Document to send as JSON.
            files: File uploads for a multipart body.
            **options: RequestOptions fields.

        Returns:
            Outcome of the request.
        """
        request_options = _options("POST", options)
        headers = request_options.headers
        form: FormBody | None = None

        if files:
            plain = data if isinstance(data, Mapping) else {}
            form_fields = {key: str(value) for key, value in plain.items()}
            form = FormBody(form_fields, files)
            request_options.body = form
        elif json_data is not None:
            request_options.body = (json.dumps(json_data) + "\n").encode("utf-8")
            set_default_header(headers, "Content-Type", "application/json")
        elif isinstance(data, Mapping):
            request_options.body = urlencode(data, doseq=True).encode("utf-8")
            set_default_header(
                headers, "Content-Type", "application/x-www-form-urlencoded"
            )
        elif data:
            request_options.body = data.encode("utf-8") if isinstance(data, str) else data

        try:
            return await self.request(url, request_options)
        finally:
            if form is not None:
                form.close()

    async def put(self, url: str, data: Any = None, **options: Any) -> Outcome:
        """Perform a PUT request, encoding the body like post()."""
        options.setdefault("method", "PUT")
        return await self.post(url, data, **options)

    async def delete(self, url: str, data: Any = None, **options: Any) -> Outcome:
        """Perform a DELETE request, encoding the body like post()."""
        options.setdefault("method", "DELETE")
        return await self.post(url, data, **options)

    async def json(self, url: str, data: Any = None, **options: Any) -> JsonResponse:
        """GET a JSON document, or POST ``data`` as JSON when given.

        Args:
            url: Target URL.
            data: Document to POST; None performs a GET.
            **options: RequestOptions fields.

        Returns:
            Parsed JSON with its response.

        Raises:
            RequestFailedError: If the request failed.
            UnexpectedStatusError: If the status does not match the success
                pattern.
            JsonDecodeFailedError: If the body is not JSON.
        """
        if data is not None:
            outcome = await self.post(url, json_data=data, **options)
        else:
            outcome = await self.get(url, **options)

        if not isinstance(outcome, Success):
            raise RequestFailedError(outcome)
        if not self._config.matches_success(outcome.status):
            raise UnexpectedStatusError(outcome)

        try:
            document = json.loads(outcome.body or b"")
        except ValueError as e:
            raise JsonDecodeFailedError(outcome, str(e)) from e
        return JsonResponse(response=outcome, data=document)

    async def aclose(self) -> None:
        """Close transports owned by the client."""
        for transport in self._retired:
            await transport.aclose()
        self._retired.clear()
        if self._owns_transport:
            await self._transport.aclose()
