"""Conversation history entries in the Responses API input format.

The history is a plain ``list`` of ``dict`` entries so it can be sent to
the completion service as-is and persisted by the caller as JSON:

  - ``{"role": "system" | "user" | "assistant", "content": ...}``
  - ``{"type": "function_call", "call_id", "name", "arguments"}``
  - ``{"type": "function_call_output", "call_id", "output"}``

User content is either a string or ``[input_file, input_text]`` parts when
a file reference is attached.
"""

from __future__ import annotations

import re
from typing import Any

Message = dict[str, Any]
History = list[Message]

# Inline file marker minted by the upload step, e.g. "[File attached: file-abc] hi"
FILE_MARKER_RE = re.compile(r"\[File attached:\s*([^\]\s]+)\s*\]\s*")


def system_message(text: str) -> Message:
    return {"role": "system", "content": text}


def assistant_message(text: str) -> Message:
    return {"role": "assistant", "content": text}


def user_message(text: str, file_ref: str | None = None) -> Message:
    """Build a user message; attaches the file as the first content part."""
    if not file_ref:
        return {"role": "user", "content": text}
    return {
        "role": "user",
        "content": [
            {"type": "input_file", "file_id": file_ref},
            {"type": "input_text", "text": text},
        ],
    }


def function_call(call_id: str, name: str, arguments: str) -> Message:
    return {
        "type": "function_call",
        "call_id": call_id,
        "name": name,
        "arguments": arguments,
    }


def function_call_output(call_id: str, output: str) -> Message:
    return {"type": "function_call_output", "call_id": call_id, "output": output}


def split_file_marker(text: str) -> tuple[str, str | None]:
    """Strip an inline file marker from *text*.

    Returns the visible text and the referenced file id (``None`` when the
    text carries no marker).
    """
    match = FILE_MARKER_RE.search(text)
    if match is None:
        return text, None
    visible = (text[: match.start()] + text[match.end():]).strip()
    return visible, match.group(1)


def user_text(message: Message) -> str:
    """Visible text of a user message, with any inline marker removed."""
    content = message.get("content")
    if isinstance(content, str):
        return split_file_marker(content)[0]
    parts = [
        part.get("text", "")
        for part in content or []
        if isinstance(part, dict) and part.get("type") in ("input_text", "text")
    ]
    return split_file_marker("".join(parts))[0]


def user_file_ref(message: Message) -> str | None:
    """File id attached to a user message, from a content part or inline marker."""
    content = message.get("content")
    if isinstance(content, str):
        return split_file_marker(content)[1]
    for part in content or []:
        if isinstance(part, dict) and part.get("type") == "input_file":
            return part.get("file_id")
    return None


def role_of(message: Message) -> str | None:
    return message.get("role")
