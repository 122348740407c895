import os
import re
from functools import lru_cache
from typing import List

DEFAULT_REPLACEMENT = "REDACTED"
DIAGNOSTIC_LIMIT = 500
_DEFAULT_PATTERNS = (
    (r"sk-(?:ant-)?[A-Za-z0-9_-]{10,}", "sk-REDACTED"),
    (r"AIza[0-9A-Za-z_-]{20,}", "AIza-REDACTED"),
    (r"(?i)\bBearer\s+[A-Za-z0-9\-._~+/]+=*\b", "Bearer REDACTED"),
    (
        r"(?i)\b([A-Z0-9_]*(?:api[_-]?key|token|secret|password))\b\s*[:=]\s*([^\s,;]+)",
        r"\1=REDACTED",
    ),
)
_EXTRA_PATTERNS_ENV = "RESUME_AI_REDACTION_PATTERNS"


def redact(text: str) -> str:
    """Mask API keys, bearer tokens and secret assignments in diagnostic text."""
    value = text or ""
    for regex, replacement in _compiled_patterns():
        value = regex.sub(replacement, value)
    return value


def truncate(text: str, limit: int = DIAGNOSTIC_LIMIT) -> str:
    """Shorten diagnostic text (stderr, raw responses) for error messages."""
    value = text or ""
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


@lru_cache(maxsize=2)
def _compiled_patterns() -> List[tuple[re.Pattern[str], str]]:
    items: List[tuple[re.Pattern[str], str]] = [
        (re.compile(pattern), replacement) for pattern, replacement in _DEFAULT_PATTERNS
    ]
    extra_raw = (os.environ.get(_EXTRA_PATTERNS_ENV) or "").strip()
    if not extra_raw:
        return items
    for token in extra_raw.split(";;"):
        pattern = token.strip()
        if not pattern:
            continue
        try:
            items.append((re.compile(pattern), DEFAULT_REPLACEMENT))
        except re.error:
            continue
    return items
