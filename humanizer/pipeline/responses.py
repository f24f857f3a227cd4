"""Parse Claude responses: text, token usage, titles, numbered lists and JSON payloads."""

from __future__ import annotations

import json
import re
from typing import Iterable

from humanizer.errors import TaskError

PLACEHOLDER_TITLE = "Untitled Article"

_HEADING = re.compile(r"^#\s+(.+?)\s*$", re.MULTILINE)
_NUMBERED = re.compile(r"^\s*\d+[.)]?\s+(.+?)\s*$", re.MULTILINE)


def message_text(message) -> str:
    """Concatenate the text blocks of a Messages API response."""
    parts = [getattr(block, "text", "") for block in (message.content or [])]
    return "".join(p for p in parts if p)


def token_usage(message) -> dict:
    usage = getattr(message, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", 0) or 0,
        "output_tokens": getattr(usage, "output_tokens", 0) or 0,
    }


def sum_usage(usages: Iterable[dict]) -> dict:
    total = {"input_tokens": 0, "output_tokens": 0}
    for usage in usages:
        total["input_tokens"] += usage.get("input_tokens", 0)
        total["output_tokens"] += usage.get("output_tokens", 0)
    return total


def extract_title(content: str) -> str:
    """H1 heading, else the first non-blank line, else a placeholder."""
    match = _HEADING.search(content or "")
    if match:
        return match.group(1).strip()
    for line in (content or "").splitlines():
        if line.strip():
            return line.strip().lstrip("#").strip() or PLACEHOLDER_TITLE
    return PLACEHOLDER_TITLE


def parse_numbered_list(text: str, limit: int) -> list[str]:
    items = [m.strip().strip('"').strip() for m in _NUMBERED.findall(text or "")]
    return [i for i in items if i][:limit]


def strip_code_fences(raw: str) -> str:
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
        if text.startswith("json"):
            text = text[4:].strip()
    return text


def parse_json_payload(raw: str, error_cls: type[TaskError], what: str):
    """Strictly decode a JSON response.

    Raises ``error_cls`` carrying the decoder's message; an unparseable
    response never becomes an empty result.
    """
    text = strip_code_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise error_cls(
            f"Failed to parse {what} JSON: {e.msg}",
            context={"parse_error": str(e), "raw_response": (raw or "")[:500]},
        ) from e


def json_list(payload, key: str, error_cls: type[TaskError], what: str) -> list:
    """Pull the list under ``key`` from a decoded payload (or accept a bare list)."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get(key, [])
        if isinstance(items, list):
            return items
    raise error_cls(
        f"Unexpected {what} JSON shape: expected a list under '{key}'",
        context={"payload_type": type(payload).__name__},
    )
