"""Typed JSON codec for stored records.

Records are written as compact JSON with ``None``-valued fields omitted,
and read back through pydantic validation. Models deriving from
:class:`Record` accept field names in any letter case.
"""

import json
from functools import lru_cache
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, model_validator

from ..errors import DecodeError

T = TypeVar("T")


class Record(BaseModel):
    """Base model for stored records.

    Incoming keys are matched to field names and aliases ignoring case,
    so ``{"Title": ...}`` and ``{"title": ...}`` both populate ``title``.
    An exact-case key wins over case variants of it. Two case variants
    with no exact key, such as ``{"TITLE": ..., "Title": ...}``, are
    rejected as ambiguous. Unknown keys are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _match_field_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        known: Dict[str, str] = {}
        for name, field in cls.model_fields.items():
            known[name.lower()] = name
            if field.alias:
                known[field.alias.lower()] = field.alias

        exact = set(known.values())
        matched: Dict[str, Any] = {}
        folded: Dict[str, str] = {}
        for key, value in data.items():
            if not isinstance(key, str) or key in exact:
                matched[key] = value
                continue
            target = known.get(key.lower(), key)
            if target in data:
                continue
            if target in folded:
                raise ValueError(f"keys '{folded[target]}' and '{key}' both match field '{target}'")
            folded[target] = key
            matched[target] = value
        return matched


class JsonCodec(Generic[T]):
    """Encode and decode values of one record type."""

    def __init__(self, record_type: Type[T]):
        self.record_type = record_type
        self._adapter: TypeAdapter = TypeAdapter(record_type)

    @property
    def type_name(self) -> str:
        return getattr(self.record_type, "__name__", str(self.record_type))

    def encode(self, value: T) -> bytes:
        """Serialize *value* to compact UTF-8 JSON."""
        return self._adapter.dump_json(value, by_alias=True, exclude_none=True)

    def decode_optional(self, data: Optional[bytes], key: str = "") -> Optional[T]:
        """Decode *data*, returning None for an empty or ``null`` payload.

        Raises:
            DecodeError: If the payload is malformed or fails validation
        """
        if not data or not data.strip():
            return None

        try:
            raw = json.loads(data)
        except ValueError as e:
            raise DecodeError(f"Object '{key}' is not valid JSON: {e}") from e

        if raw is None:
            return None

        try:
            return self._adapter.validate_python(raw)
        except ValidationError as e:
            raise DecodeError(
                f"Object '{key}' is not a valid {self.type_name}: {e}"
            ) from e

    def decode(self, data: Optional[bytes], key: str = "") -> T:
        """Decode *data* into the record type.

        Raises:
            DecodeError: If the payload is empty, ``null``, or invalid
        """
        value = self.decode_optional(data, key)
        if value is None:
            raise DecodeError(
                f"Object '{key}' contained null/empty JSON for type {self.type_name}"
            )
        return value


@lru_cache(maxsize=None)
def codec_for(record_type: Any) -> JsonCodec:
    """Return a shared codec for *record_type*."""
    return JsonCodec(record_type)
