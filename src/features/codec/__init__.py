"""Compression codecs for response bodies."""

from src.features.codec.compression import (
    Algorithm,
    CodecError,
    CompressionCodec,
    StreamDecompressor,
    decompress,
    detect_encoding,
)


__all__ = [
    "Algorithm",
    "CodecError",
    "CompressionCodec",
    "StreamDecompressor",
    "decompress",
    "detect_encoding",
]
