"""Response body decompression for gzip, deflate and brotli."""

import re
import zlib
from typing import Final, Literal

import brotli


Algorithm = Literal["br", "gzip", "deflate"]

# Checked in this order against the Content-Encoding header
_ENCODING_PATTERNS: Final[tuple[tuple[Algorithm, re.Pattern[str]], ...]] = (
    ("br", re.compile(r"\bbr\b", re.IGNORECASE)),
    ("gzip", re.compile(r"\bgzip\b", re.IGNORECASE)),
    ("deflate", re.compile(r"\bdeflate\b", re.IGNORECASE)),
)

_GZIP_WBITS: Final = 16 + zlib.MAX_WBITS
_RAW_DEFLATE_WBITS: Final = -zlib.MAX_WBITS


class CodecError(Exception):
    """Raised when compressed data cannot be decoded."""

    def __init__(self, algorithm: str, message: str) -> None:
        """Initialize the error.

        Args:
            algorithm: Algorithm that failed.
            message: Underlying error message.
        """
        self.algorithm = algorithm
        super().__init__(message)


def detect_encoding(content_encoding: str | None) -> Algorithm | None:
    """Detect a supported compression algorithm from a Content-Encoding value.

    Args:
        content_encoding: Raw header value, may be None.

    Returns:
        Algorithm name, or None if the body is not encoded with a
        supported algorithm.
    """
    if not content_encoding:
        return None
    for algorithm, pattern in _ENCODING_PATTERNS:
        if pattern.search(content_encoding):
            return algorithm
    return None


def decompress(data: bytes, algorithm: Algorithm) -> bytes:
    """Decompress a complete buffer.

    Args:
        data: Compressed bytes.
        algorithm: Compression algorithm.

    Returns:
        Decompressed bytes.

    Raises:
        CodecError: If the data is corrupt or truncated.
    """
    decoder = StreamDecompressor(algorithm)
    return decoder.feed(data) + decoder.flush()


class StreamDecompressor:
    """Incremental decompressing transform for streamed bodies."""

    def __init__(self, algorithm: Algorithm) -> None:
        """Initialize the transform.

        Args:
            algorithm: Compression algorithm.
        """
        self._algorithm = algorithm
        self._started = False
        self._brotli = brotli.Decompressor() if algorithm == "br" else None
        wbits = _GZIP_WBITS if algorithm == "gzip" else zlib.MAX_WBITS
        self._zlib = zlib.decompressobj(wbits)

    @property
    def algorithm(self) -> Algorithm:
        """Get the algorithm handled by this transform."""
        return self._algorithm

    def feed(self, chunk: bytes) -> bytes:
        """Decompress the next chunk.

        Args:
            chunk: Compressed bytes.

        Returns:
            Whatever decompressed output is available so far.

        Raises:
            CodecError: If the data is corrupt.
        """
        if not chunk:
            return b""

        first = not self._started
        self._started = True
        try:
            if self._brotli is not None:
                return bytes(self._brotli.process(chunk))
            if first and self._algorithm == "deflate":
                return self._feed_first_deflate(chunk)
            return self._zlib.decompress(chunk)
        except (zlib.error, brotli.error) as e:
            raise CodecError(self._algorithm, str(e)) from e

    def _feed_first_deflate(self, chunk: bytes) -> bytes:
        try:
            return self._zlib.decompress(chunk)
        except zlib.error:
            # Some servers send raw deflate without the zlib header
            self._zlib = zlib.decompressobj(_RAW_DEFLATE_WBITS)
            return self._zlib.decompress(chunk)

    def flush(self) -> bytes:
        """Finish the stream.

        Returns:
            Remaining decompressed output.

        Raises:
            CodecError: If the stream ended before the compressed data did.
        """
        if not self._started:
            return b""

        if self._brotli is not None:
            if not self._brotli.is_finished():
                raise CodecError(self._algorithm, "Unexpected end of brotli stream")
            return b""

        try:
            tail = self._zlib.flush()
        except zlib.error as e:
            raise CodecError(self._algorithm, str(e)) from e
        if not self._zlib.eof:
            raise CodecError(self._algorithm, "Unexpected end of compressed stream")
        return tail


class CompressionCodec:
    """Codec capability consumed by the request orchestrator.

    Wraps the module functions so an alternative codec can be injected.
    """

    def detect(self, content_encoding: str | None) -> Algorithm | None:
        """Detect the algorithm named by a Content-Encoding header."""
        return detect_encoding(content_encoding)

    def decompress(self, data: bytes, algorithm: Algorithm) -> bytes:
        """Decompress a complete buffer."""
        return decompress(data, algorithm)

    def stream(self, algorithm: Algorithm) -> StreamDecompressor:
        """Create a decompressing transform for a streamed body."""
        return StreamDecompressor(algorithm)
