"""JSON codec for the ``data`` column."""

from __future__ import annotations

import json
from typing import Any

from .errors import CorruptRecordError, EncodingError
from .types import TaskDocument


def _check_json_native(value: Any, path: str = "$") -> None:
    """Reject values JSON would silently coerce (non-str keys, tuples, sets).

    Anything that passes decodes back to an equal value, so stored bytes can
    be compared directly to detect re-delivered documents.
    """
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f"{path}: object key {key!r} is not a string")
            _check_json_native(item, f"{path}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _check_json_native(item, f"{path}[{index}]")
    elif value is not None and not isinstance(value, str | int | float):
        # bool is an int subclass and passes here
        raise EncodingError(f"{path}: {type(value).__name__} is not a JSON value")


def encode(task: TaskDocument) -> bytes:
    """Serialize a task document to UTF-8 JSON.

    NaN/Infinity are rejected rather than written as non-standard JSON, so
    every blob this produces can be read back by any JSON parser.
    """
    try:
        payload = task.to_dict()
        _check_json_native(payload)
        text = json.dumps(
            payload,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        )
    except EncodingError as exc:
        raise EncodingError(f"Cannot encode task {task.id}: {exc}") from None
    except (TypeError, ValueError, RecursionError) as exc:
        raise EncodingError(f"Cannot encode task {task.id}: {exc}") from exc
    return text.encode("utf-8")


def _load(raw: bytes | str) -> dict[str, Any]:
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes | bytearray) else raw
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptRecordError(f"not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise CorruptRecordError(f"expected a JSON object, got {type(payload).__name__}")

    status = payload.get("status")
    if not isinstance(status, dict) or not isinstance(status.get("state"), str):
        raise CorruptRecordError("document has no status.state field")
    return payload


def extract_state(raw: bytes | str) -> str:
    """Return the embedded ``status.state`` without building the full document."""
    return _load(raw)["status"]["state"]


def decode(raw: bytes | str) -> TaskDocument:
    payload = _load(raw)
    try:
        return TaskDocument.from_dict(payload)
    except (KeyError, TypeError, AttributeError) as exc:
        raise CorruptRecordError(f"malformed task document: {exc!r}") from exc
