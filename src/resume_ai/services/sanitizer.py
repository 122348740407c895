"""Clean AI-generated text before it reaches resume and cover-letter fields.

Models leave artifacts in otherwise valid output: zero-width characters,
non-breaking spaces, stray markdown emphasis, runs of blank lines.  Every
function here is pure; ``sanitize_value`` walks dicts and lists and returns a
new structure with the same shape and key order.
"""
import re
from dataclasses import dataclass, replace
from typing import Any, Optional

_ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\ufeff\u200e\u200f\u2060-\u2064]")
# C0 controls except tab, LF and CR, plus DEL and the C1 block.
_INVISIBLE_CONTROL = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_UNUSUAL_SPACES = re.compile("[\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")

_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_BOLD = re.compile(r"(\*\*|__)(.+?)\1")
_ITALIC = re.compile(r"(?<![a-zA-Z0-9])([*_])(?!\s)(.+?)(?<!\s)\1(?![a-zA-Z0-9])")
_INLINE_CODE = re.compile(r"`([^`]+)`")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADER = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_STRIKETHROUGH = re.compile(r"~~(.+?)~~")
_BLOCKQUOTE = re.compile(r"^>\s*", re.MULTILINE)
_HORIZONTAL_RULE = re.compile(r"^[-*_]{3,}\s*$", re.MULTILINE)

_MULTI_SPACE = re.compile(r"([^\n]) {2,}")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class SanitizeOptions:
    remove_zero_width: bool = True
    remove_invisible: bool = True
    normalize_line_endings: bool = True
    normalize_spaces: bool = True
    strip_markdown: bool = False
    collapse_spaces: bool = True
    normalize_blank_lines: bool = True
    trim_lines: bool = False
    trim: bool = True


DEFAULT_OPTIONS = SanitizeOptions()
AI_RESPONSE_OPTIONS = replace(DEFAULT_OPTIONS, strip_markdown=True, trim_lines=True)


def remove_zero_width_chars(text: str) -> str:
    return _ZERO_WIDTH.sub("", text)


def remove_invisible_chars(text: str) -> str:
    return _INVISIBLE_CONTROL.sub("", text)


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_spaces(text: str) -> str:
    return _UNUSUAL_SPACES.sub(" ", text)


def collapse_multiple_spaces(text: str) -> str:
    """Collapse runs of two or more spaces that follow a non-newline character."""
    return _MULTI_SPACE.sub(r"\1 ", text)


def normalize_blank_lines(text: str) -> str:
    return _EXTRA_BLANK_LINES.sub("\n\n", text)


def trim_lines(text: str) -> str:
    return "\n".join(line.strip() for line in text.split("\n"))


def _unfence(match: "re.Match[str]") -> str:
    inner = match.group(0)[3:-3]
    inner = re.sub(r"^[^\n]*\n", "", inner, count=1)
    return inner.strip()


def strip_markdown(text: str) -> str:
    """Remove emphasis, links, headers and similar markup, keeping the text.

    List bullets and numbering are left alone: resume highlights use them on
    purpose.
    """
    result = _CODE_BLOCK.sub(_unfence, text)
    result = _BOLD.sub(r"\2", result)
    result = _ITALIC.sub(r"\2", result)
    result = _INLINE_CODE.sub(r"\1", result)
    result = _LINK.sub(r"\1", result)
    result = _HEADER.sub("", result)
    result = _STRIKETHROUGH.sub(r"\1", result)
    result = _BLOCKQUOTE.sub("", result)
    result = _HORIZONTAL_RULE.sub("", result)
    return result


def sanitize_text(text: str, options: Optional[SanitizeOptions] = None) -> str:
    opts = options or DEFAULT_OPTIONS
    result = text
    if opts.remove_zero_width:
        result = remove_zero_width_chars(result)
    if opts.remove_invisible:
        result = remove_invisible_chars(result)
    if opts.normalize_line_endings:
        result = normalize_line_endings(result)
    if opts.normalize_spaces:
        result = normalize_spaces(result)
    if opts.strip_markdown:
        result = strip_markdown(result)
    if opts.collapse_spaces:
        result = collapse_multiple_spaces(result)
    if opts.normalize_blank_lines:
        result = normalize_blank_lines(result)
    if opts.trim_lines:
        result = trim_lines(result)
    if opts.trim:
        result = result.strip()
    return result


def sanitize_value(value: Any, options: Optional[SanitizeOptions] = None) -> Any:
    if isinstance(value, str):
        return sanitize_text(value, options)
    if isinstance(value, dict):
        return {key: sanitize_value(item, options) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize_value(item, options) for item in value)
    return value


def sanitize_ai_response(value: Any) -> Any:
    return sanitize_value(value, AI_RESPONSE_OPTIONS)
