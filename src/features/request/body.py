"""Request body sources."""

from collections.abc import AsyncIterable, AsyncIterator, Mapping
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

import httpx


# Headers a body source may contribute to the request
_BODY_HEADERS = ("content-type", "content-length", "transfer-encoding")

FileSpec = str | Path | bytes | IO[bytes] | tuple[str | Path | bytes | IO[bytes], str]


@runtime_checkable
class BodySource(Protocol):
    """Streaming request body that supplies its own headers."""

    def headers(self) -> dict[str, str]:
        """Headers describing the body (e.g. multipart boundary)."""
        ...

    def __aiter__(self) -> AsyncIterator[bytes]:
        """Iterate the encoded body. May be iterated again for a retry."""
        ...


class FormBody:
    """multipart/form-data body of plain fields and file uploads.

    Encoding is delegated to httpx. File paths are opened on construction
    and released by ``close()``; file objects are rewound on every
    iteration so the body can be replayed by a retry or redirect.
    """

    def __init__(
        self,
        fields: Mapping[str, str | bytes] | None = None,
        files: Mapping[str, FileSpec] | None = None,
    ) -> None:
        """Initialize the form.

        Args:
            fields: Plain form fields.
            files: Uploads, each a path, bytes, a binary file object or a
                (data, filename) pair.
        """
        self._opened: list[IO[bytes]] = []
        uploads = {name: self._upload(name, spec) for name, spec in (files or {}).items()}
        self._request = httpx.Request(
            "POST",
            "http://form.invalid/",
            data=dict(fields or {}),
            files=uploads,
        )

    def _upload(
        self, name: str, spec: FileSpec
    ) -> IO[bytes] | bytes | tuple[str, IO[bytes] | bytes]:
        if isinstance(spec, tuple):
            data, filename = spec
            return (filename, self._open(data))
        if isinstance(spec, str | Path):
            handle = self._open(spec)
            return (Path(spec).name, handle)
        if isinstance(spec, bytes):
            return (name, spec)
        return spec

    def _open(self, data: str | Path | bytes | IO[bytes]) -> IO[bytes] | bytes:
        if isinstance(data, str | Path):
            handle = Path(data).open("rb")
            self._opened.append(handle)
            return handle
        return data

    def headers(self) -> dict[str, str]:
        """Get Content-Type (with boundary) and length headers."""
        return {
            key: value
            for key, value in self._request.headers.items()
            if key in _BODY_HEADERS
        }

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._request.stream:  # type: ignore[union-attr]
            yield chunk

    def close(self) -> None:
        """Close files opened from paths."""
        for handle in self._opened:
            handle.close()
        self._opened.clear()


class ReplayableBody:
    """One-shot async iterable that can be sent again by a retry or redirect.

    Chunks are recorded as they are pulled from the source. A later
    iteration yields the recorded chunks first, then carries on reading the
    source where the previous iteration stopped.
    """

    def __init__(self, source: AsyncIterable[bytes]) -> None:
        self._source = source
        self._iterator: AsyncIterator[bytes] | None = None
        self._chunks: list[bytes] = []
        self._exhausted = False

    def headers(self) -> dict[str, str]:
        """Get no headers; the length of the source is unknown."""
        return {}

    async def __aiter__(self) -> AsyncIterator[bytes]:
        index = 0
        while True:
            if index < len(self._chunks):
                yield self._chunks[index]
                index += 1
                continue
            if self._exhausted:
                return
            if self._iterator is None:
                self._iterator = aiter(self._source)
            try:
                chunk = await anext(self._iterator)
            except StopAsyncIteration:
                self._exhausted = True
                return
            self._chunks.append(bytes(chunk))
