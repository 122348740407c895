"""Extract the JSON payload from raw CLI output.

CLI backends answer in one of three shapes: plain JSON, a ``{"type":
"result", "result": "<text>"}`` envelope, or that envelope with the JSON
wrapped in a markdown code fence inside the text.
"""
import json
import re
from typing import Any

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


class ResponseParseError(ValueError):
    pass


def unwrap(raw_text: str) -> Any:
    try:
        parsed = json.loads(raw_text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ResponseParseError(f"response is not valid JSON: {exc}") from exc

    if not _is_result_envelope(parsed):
        return parsed
    return unwrap_inner_text(parsed["result"])


def unwrap_inner_text(text: str) -> Any:
    """Return the JSON value inside ``text``, or ``text`` itself if there is none."""
    working = text
    match = _FENCED_BLOCK.search(working)
    if match:
        working = match.group(1)
    candidate = working.strip()
    if candidate.startswith("{") or candidate.startswith("["):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            return working
    return working


def _is_result_envelope(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("type") == "result"
        and isinstance(value.get("result"), str)
    )
