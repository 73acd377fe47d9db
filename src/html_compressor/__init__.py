"""HTML Compressor - Remove comments and redundant whitespace from HTML while keeping sensitive blocks intact."""

from html_compressor.compressor import (
    CompressionResult,
    CompressorOptions,
    PreservedBlock,
    compress,
    compress_file,
    compress_with_stats,
)

__all__ = [
    "compress",
    "compress_with_stats",
    "compress_file",
    "CompressorOptions",
    "CompressionResult",
    "PreservedBlock",
]
