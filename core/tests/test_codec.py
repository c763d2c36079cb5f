"""Tests for the value codec: tagged base64 encoding of channel values."""

import base64
from datetime import UTC, datetime

import pytest
from pydantic import BaseModel

from graphkeep.storage import codec
from graphkeep.storage.codec import BYTES_TAG, JSON_TAG, EncodedValue


class Note(BaseModel):
    title: str
    tags: list[str] = []


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class TestEncode:
    def test_json_values_use_json_tag(self):
        encoded = codec.encode({"x": 1, "items": [1, 2, 3]})
        assert encoded.type_tag == JSON_TAG
        assert base64.b64decode(encoded.payload).decode("utf-8") == '{"x": 1, "items": [1, 2, 3]}'

    def test_bytes_use_bytes_tag(self):
        encoded = codec.encode(b"\x00\xffbinary")
        assert encoded.type_tag == BYTES_TAG
        assert codec.decode(encoded.type_tag, encoded.payload) == b"\x00\xffbinary"

    def test_bytearray_is_stored_as_bytes(self):
        encoded = codec.encode(bytearray(b"abc"))
        assert encoded.type_tag == BYTES_TAG
        assert codec.decode(encoded.type_tag, encoded.payload) == b"abc"

    def test_payload_is_column_safe(self):
        encoded = codec.encode({"text": "line one\nline 'two' \"quoted\""})
        assert "\n" not in encoded.payload
        assert "'" not in encoded.payload

    def test_pydantic_model_is_encoded_as_its_fields(self):
        encoded = codec.encode({"note": Note(title="plan", tags=["a"])})
        assert codec.decode(encoded.type_tag, encoded.payload) == {
            "note": {"title": "plan", "tags": ["a"]}
        }

    def test_datetime_is_encoded_as_iso_string(self):
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        encoded = codec.encode({"at": when})
        assert codec.decode(encoded.type_tag, encoded.payload) == {"at": when.isoformat()}

    def test_unserializable_value_raises_type_error(self):
        with pytest.raises(TypeError):
            codec.encode({"lock": object()})


class TestDecode:
    @pytest.mark.parametrize(
        "value",
        [
            {"x": 1},
            [1, "two", None, True],
            "héllo wörld",
            42,
            None,
        ],
    )
    def test_json_values_survive_storage(self, value):
        encoded = codec.encode(value)
        assert codec.decode(encoded.type_tag, encoded.payload) == value

    def test_invalid_base64_returns_raw_text(self):
        assert codec.decode(JSON_TAG, "not base64!!") == "not base64!!"

    def test_non_json_payload_returns_decoded_text(self):
        assert codec.decode(JSON_TAG, _b64("hello {world")) == "hello {world"

    def test_unknown_tag_returns_bytes(self):
        assert codec.decode("pickle", _b64("abc")) == b"abc"

    def test_registered_decoder_is_used(self):
        codec.register_decoder("upper", lambda payload: payload.upper())
        try:
            assert codec.decode("upper", "abc") == "ABC"
        finally:
            codec._DECODERS.pop("upper", None)


class TestEncodedValue:
    def test_dict_form(self):
        value = EncodedValue(JSON_TAG, _b64("1"))
        assert value.to_dict() == {"t": "json", "b64": _b64("1")}
        assert EncodedValue.from_dict(value.to_dict()) == value

    def test_from_dict_defaults_to_json(self):
        value = EncodedValue.from_dict({"b64": _b64('"x"')})
        assert value.type_tag == JSON_TAG
        assert codec.decode(value.type_tag, value.payload) == "x"
