"""
Byte level transforms used by signing request URIs.

The compression functions are pluggable so that embedders can supply their
own raw deflate implementation; the defaults use zlib with a raw window.
"""
import base64
import zlib
from dataclasses import dataclass
from typing import Callable

from ..exceptions import DecodeError

# Negative window bits select raw deflate (no zlib header or checksum)
RAW_WINDOW_BITS = -15


def deflate_raw(data: bytes) -> bytes:
    compressor = zlib.compressobj(9, zlib.DEFLATED, RAW_WINDOW_BITS)
    return compressor.compress(data) + compressor.flush()


def inflate_raw(data: bytes) -> bytes:
    try:
        return zlib.decompress(data, RAW_WINDOW_BITS)
    except zlib.error as e:
        raise DecodeError(f"Invalid compressed request data: {e}") from e


def base64u_encode(data: bytes) -> str:
    """URL safe base64 without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def base64u_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(text + padding)
    except (ValueError, TypeError) as e:
        raise DecodeError(f"Invalid base64u payload: {e}") from e


@dataclass(frozen=True)
class Codec:
    """
    Compression and text transforms shared by request encoding and decoding.

    Attributes:
        compress: Raw deflate function
        decompress: Raw inflate function
        text_encoding: Encoding used for URI text
    """
    compress: Callable[[bytes], bytes] = deflate_raw
    decompress: Callable[[bytes], bytes] = inflate_raw
    text_encoding: str = "ascii"

    def encode_text(self, text: str) -> bytes:
        try:
            return text.encode(self.text_encoding)
        except UnicodeEncodeError as e:
            raise DecodeError(f"Request URI contains invalid characters: {e}") from e

    def decode_text(self, data: bytes) -> str:
        return data.decode(self.text_encoding)

    def to_base64u(self, data: bytes) -> str:
        return base64u_encode(data)

    def from_base64u(self, text: str) -> bytes:
        # Round trip through the text codec to reject non-ASCII payloads early
        return base64u_decode(self.decode_text(self.encode_text(text)))


DEFAULT_CODEC = Codec()
