"""Tests for the typed JSON codec."""

import json
from typing import List, Optional

import pytest
from pydantic import Field

from s3shelf.errors import DecodeError
from s3shelf.storage.codec import JsonCodec, Record, codec_for


class Author(Record):
    display_name: str
    email: Optional[str] = None


class Article(Record):
    title: str
    word_count: int = 0
    summary: Optional[str] = None
    author: Optional[Author] = None
    tags: List[str] = Field(default_factory=list)
    external_id: Optional[str] = Field(default=None, alias="externalId")


class TestEncode:
    """Tests for JsonCodec.encode."""

    def test_omits_none_fields(self):
        data = JsonCodec(Article).encode(Article(title="Hello"))
        payload = json.loads(data)
        assert payload == {"title": "Hello", "word_count": 0, "tags": []}

    def test_compact_output(self):
        data = JsonCodec(Article).encode(Article(title="Hello", tags=["a", "b"]))
        assert b" " not in data
        assert b"\n" not in data

    def test_uses_alias(self):
        data = JsonCodec(Article).encode(Article(title="x", externalId="ext-1"))
        assert json.loads(data)["externalId"] == "ext-1"

    def test_nested_none_omitted(self):
        data = JsonCodec(Article).encode(Article(title="x", author=Author(display_name="Ann")))
        assert json.loads(data)["author"] == {"display_name": "Ann"}


class TestDecode:
    """Tests for JsonCodec.decode."""

    def test_round_trip(self):
        codec = JsonCodec(Article)
        article = Article(
            title="Round",
            word_count=3,
            author=Author(display_name="Ann", email="ann@example.com"),
            tags=["x"],
            externalId="e1",
        )
        assert codec.decode(codec.encode(article)) == article

    def test_case_insensitive_fields(self):
        payload = b'{"TITLE": "Loud", "Word_Count": 7, "AUTHOR": {"Display_Name": "Bo"}}'
        article = JsonCodec(Article).decode(payload)
        assert article.title == "Loud"
        assert article.word_count == 7
        assert article.author.display_name == "Bo"

    def test_case_insensitive_alias(self):
        article = JsonCodec(Article).decode(b'{"title": "t", "EXTERNALID": "e9"}')
        assert article.external_id == "e9"

    def test_exact_case_wins_over_folded_duplicate(self):
        article = JsonCodec(Article).decode(b'{"Title": "folded", "title": "exact"}')
        assert article.title == "exact"

    def test_ambiguous_case_variants_rejected(self):
        with pytest.raises(DecodeError, match="both match field 'title'"):
            JsonCodec(Article).decode(b'{"TITLE": "one", "Title": "two"}')

    def test_exact_key_settles_case_variants(self):
        article = JsonCodec(Article).decode(b'{"TITLE": "one", "Title": "two", "title": "exact"}')
        assert article.title == "exact"

    def test_unknown_fields_ignored(self):
        article = JsonCodec(Article).decode(b'{"title": "t", "extra": 1}')
        assert article.title == "t"

    @pytest.mark.parametrize("payload", [b"", b"   ", b"null", None])
    def test_empty_or_null_is_error(self, payload):
        with pytest.raises(DecodeError, match="null/empty"):
            JsonCodec(Article).decode(payload, key="a.json")

    def test_malformed_json_is_error(self):
        with pytest.raises(DecodeError, match="not valid JSON"):
            JsonCodec(Article).decode(b"{not json")

    def test_validation_failure_is_error(self):
        with pytest.raises(DecodeError, match="not a valid Article"):
            JsonCodec(Article).decode(b'{"word_count": 1}')

    def test_decode_optional_returns_none_for_null(self):
        assert JsonCodec(Article).decode_optional(b"null") is None
        assert JsonCodec(Article).decode_optional(b"") is None

    def test_decode_optional_still_rejects_malformed(self):
        with pytest.raises(DecodeError):
            JsonCodec(Article).decode_optional(b"[1, 2")

    def test_plain_types(self):
        codec = JsonCodec(dict)
        assert codec.decode(codec.encode({"a": 1, "b": [2]})) == {"a": 1, "b": [2]}


class TestCodecFor:
    """Tests for the shared codec cache."""

    def test_returns_same_instance(self):
        assert codec_for(Article) is codec_for(Article)

    def test_type_name(self):
        assert codec_for(Article).type_name == "Article"
