"""Unit tests for response body decompression."""

import gzip
import zlib

import brotli
import pytest

from src.features.codec import (
    CodecError,
    CompressionCodec,
    StreamDecompressor,
    decompress,
    detect_encoding,
)


PAYLOAD = b"The quick brown fox jumps over the lazy dog. " * 50


class TestDetectEncoding:
    """Tests for detect_encoding."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("gzip", "gzip"),
            ("GZIP", "gzip"),
            ("x-gzip", "gzip"),
            ("deflate", "deflate"),
            ("br", "br"),
            ("gzip, br", "br"),
            ("identity", None),
            ("", None),
            (None, None),
        ],
    )
    def test_detection(self, header: str | None, expected: str | None) -> None:
        """Test algorithm detection from Content-Encoding."""
        assert detect_encoding(header) == expected


class TestDecompress:
    """Tests for whole-buffer decompression."""

    @pytest.mark.unit
    def test_gzip(self) -> None:
        """Test gzip decompression."""
        assert decompress(gzip.compress(PAYLOAD), "gzip") == PAYLOAD

    @pytest.mark.unit
    def test_zlib_deflate(self) -> None:
        """Test zlib-wrapped deflate decompression."""
        assert decompress(zlib.compress(PAYLOAD), "deflate") == PAYLOAD

    @pytest.mark.unit
    def test_raw_deflate(self) -> None:
        """Test raw deflate without the zlib header."""
        compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
        raw = compressor.compress(PAYLOAD) + compressor.flush()

        assert decompress(raw, "deflate") == PAYLOAD

    @pytest.mark.unit
    def test_brotli(self) -> None:
        """Test brotli decompression."""
        assert decompress(brotli.compress(PAYLOAD), "br") == PAYLOAD

    @pytest.mark.unit
    def test_corrupt_gzip(self) -> None:
        """Test that corrupt data raises CodecError."""
        with pytest.raises(CodecError) as exc_info:
            decompress(b"definitely not gzip", "gzip")

        assert exc_info.value.algorithm == "gzip"

    @pytest.mark.unit
    def test_truncated_gzip(self) -> None:
        """Test that a truncated stream raises CodecError."""
        data = gzip.compress(PAYLOAD)
        with pytest.raises(CodecError):
            decompress(data[: len(data) // 2], "gzip")

    @pytest.mark.unit
    def test_truncated_brotli(self) -> None:
        """Test that a truncated brotli stream raises CodecError."""
        data = brotli.compress(PAYLOAD)
        with pytest.raises(CodecError):
            decompress(data[: len(data) // 2], "br")


class TestStreamDecompressor:
    """Tests for incremental decompression."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("algorithm", "compress"),
        [
            ("gzip", gzip.compress),
            ("deflate", zlib.compress),
            ("br", brotli.compress),
        ],
    )
    def test_small_chunks(self, algorithm: str, compress: object) -> None:
        """Test that chunked input yields the whole payload."""
        data = compress(PAYLOAD)  # type: ignore[operator]
        decoder = StreamDecompressor(algorithm)  # type: ignore[arg-type]

        output = b"".join(decoder.feed(data[i : i + 7]) for i in range(0, len(data), 7))
        output += decoder.flush()

        assert output == PAYLOAD

    @pytest.mark.unit
    def test_empty_stream(self) -> None:
        """Test that an empty body flushes cleanly."""
        decoder = StreamDecompressor("gzip")
        assert decoder.feed(b"") == b""
        assert decoder.flush() == b""


class TestCompressionCodec:
    """Tests for the injectable codec."""

    @pytest.mark.unit
    def test_delegates(self) -> None:
        """Test that the codec exposes detect, decompress and stream."""
        codec = CompressionCodec()

        assert codec.detect("gzip") == "gzip"
        assert codec.decompress(gzip.compress(PAYLOAD), "gzip") == PAYLOAD
        assert codec.stream("br").algorithm == "br"
