"""JSON codec for transcription records and owner indexes."""

import json

import pydantic

from src.db.models import Transcription
from src.services.errors import CorruptRecordError


def encode_record(record: Transcription) -> str:
    """Serialize a record to its stored JSON form."""
    return record.model_dump_json(by_alias=True)


def decode_record(raw: str | bytes, key: str = "<record>") -> Transcription:
    """
    Parse a stored record.

    Raises:
        CorruptRecordError: If the data is not JSON or does not match the
            record shape.
    """
    try:
        return Transcription.model_validate_json(raw)
    except pydantic.ValidationError as e:
        raise CorruptRecordError(key, f"{e.error_count()} validation error(s)") from e


def encode_index(transcription_ids: list[str]) -> str:
    """Serialize an owner index (ordered list of ids)."""
    return json.dumps(list(transcription_ids))


def decode_index(raw: str | bytes, key: str = "<index>") -> list[str]:
    """
    Parse a stored owner index.

    Raises:
        CorruptRecordError: If the data is not a JSON array of strings.
    """
    try:
        value = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise CorruptRecordError(key, f"invalid JSON: {e}") from e

    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise CorruptRecordError(key, "expected a list of transcription ids")

    return value
