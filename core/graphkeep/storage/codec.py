"""
Value Codec - Column-safe encoding of arbitrary channel values.

Every value is stored as a ``(type_tag, payload)`` pair where ``payload`` is
base64 text. Two tags are registered:

    json   - the value serialized as UTF-8 JSON, then base64-encoded
    bytes  - raw binary data, base64-encoded

Decoding never raises for a stored row: a corrupted payload comes back as
text so one bad record cannot block a whole read.
"""

import base64
import binascii
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

logger = logging.getLogger(__name__)

JSON_TAG = "json"
BYTES_TAG = "bytes"


@dataclass(frozen=True)
class EncodedValue:
    """A tagged, column-safe rendering of one value."""

    type_tag: str
    payload: str

    def to_dict(self) -> dict[str, str]:
        return {"t": self.type_tag, "b64": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EncodedValue":
        return cls(type_tag=str(data.get("t", JSON_TAG)), payload=str(data.get("b64", "")))


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def jsonable(obj: Any) -> Any:
    # pydantic models, dataclasses, datetimes, enums
    try:
        return to_jsonable_python(obj)
    except PydanticSerializationError as e:
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable") from e


def _encode_json(value: Any) -> str:
    text = json.dumps(value, ensure_ascii=False, default=jsonable)
    return _b64(text.encode("utf-8"))


def _decode_json(payload: str) -> Any:
    try:
        text = base64.b64decode(payload, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug("json payload is not valid base64, returning raw text")
        return payload

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("json payload did not parse, returning decoded text")
        return text


def _decode_bytes(payload: str) -> Any:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return payload


_DECODERS: dict[str, Callable[[str], Any]] = {
    JSON_TAG: _decode_json,
    BYTES_TAG: _decode_bytes,
}


def register_decoder(type_tag: str, decoder: Callable[[str], Any]) -> None:
    """Register a decoder for an additional payload kind."""
    _DECODERS[type_tag] = decoder


def encode(value: Any) -> EncodedValue:
    """
    Encode a value for storage.

    Raises:
        TypeError: If the value cannot be represented as JSON
    """
    if isinstance(value, bytes | bytearray):
        return EncodedValue(BYTES_TAG, _b64(bytes(value)))
    return EncodedValue(JSON_TAG, _encode_json(value))


def decode(type_tag: str, payload: str) -> Any:
    """Decode a stored value. Falls back to text instead of raising."""
    decoder = _DECODERS.get(type_tag)
    if decoder is None:
        logger.warning(f"Unknown value type tag {type_tag!r}, returning raw bytes")
        return _decode_bytes(payload)
    return decoder(payload)
