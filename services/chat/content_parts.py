"""
Decoding of message content parts.

A message body is an ordered list of typed fragments such as
``[{"type": "text", "text": "hello"}]``. Stored payloads are not trusted:
decoding returns either the list of parts or a ``ContentDecodeFailure`` value,
and callers map the failure to a safe default instead of raising.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

NO_MESSAGES = "No messages"
TEXT_PART = "text"


class ContentPart(BaseModel):
    """A single fragment. Only ``text`` fragments carry searchable text."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


@dataclass(frozen=True)
class ContentDecodeFailure:
    reason: str


DecodeResult = Union[List[ContentPart], ContentDecodeFailure]

_parts_adapter = TypeAdapter(List[ContentPart])


def decode_parts(raw: Any) -> DecodeResult:
    """
    Decode a stored parts payload.

    Args:
        raw: Serialized JSON text, or an already deserialized value

    Returns:
        The list of parts, or ContentDecodeFailure describing why it failed
    """
    try:
        payload = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        return _parts_adapter.validate_python(payload)
    except (ValueError, PydanticValidationError) as e:
        return ContentDecodeFailure(reason=f"{type(e).__name__}: {e}"[:200])


def text_fragments(parts: List[ContentPart]) -> List[str]:
    return [
        part.text for part in parts if part.type == TEXT_PART and part.text is not None
    ]


def summarize(raw: Any) -> str:
    """Text of the first ``text`` fragment, or the "No messages" placeholder."""
    decoded = decode_parts(raw)
    if isinstance(decoded, ContentDecodeFailure):
        return NO_MESSAGES
    for part in decoded:
        if part.type == TEXT_PART:
            return part.text or NO_MESSAGES
    return NO_MESSAGES


def searchable_fragments(raw: Any) -> List[str]:
    """
    The ``text`` fragments of a stored payload, each matched on its own.

    An undecodable payload has no searchable text.
    """
    decoded = decode_parts(raw)
    if isinstance(decoded, ContentDecodeFailure):
        return []
    return text_fragments(decoded)
