"""
Message model and decoder for Gotify ``/message`` responses.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List


class MessageParseError(ValueError):
    """Raised when a response body does not have the expected message-list shape."""


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    title: str
    body: str


def parse_message_list(payload: bytes | str) -> List[Message]:
    """
    Decode a ``{"messages": [{"id", "title", "message"}, ...]}`` body.

    Returns messages in the order the server delivered them. A missing or
    empty ``messages`` list yields an empty result.
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MessageParseError(f"Response is not valid UTF-8: {exc}") from exc

    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MessageParseError(f"Response is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise MessageParseError("Response root must be a JSON object.")

    raw_messages = document.get("messages")
    if raw_messages is None:
        return []
    if not isinstance(raw_messages, list):
        raise MessageParseError("'messages' must be a list.")

    return [_parse_message(entry, index) for index, entry in enumerate(raw_messages)]


def _parse_message(entry: Any, index: int) -> Message:
    if not isinstance(entry, dict):
        raise MessageParseError(f"Message #{index} must be an object.")

    message_id = entry.get("id")
    # bool is an int subclass; reject it explicitly.
    if not isinstance(message_id, int) or isinstance(message_id, bool):
        raise MessageParseError(f"Message #{index} has no integer 'id'.")

    title = entry.get("title")
    if title is None:
        title = ""
    elif not isinstance(title, str):
        raise MessageParseError(f"Message {message_id} has a non-string 'title'.")

    body = entry.get("message")
    if not isinstance(body, str):
        raise MessageParseError(f"Message {message_id} has no string 'message'.")

    return Message(id=message_id, title=title, body=body)
