"""
Description sanitizer shared by machine-generated and human-supplied text.

Intent:
    Every description that reaches the metadata store or an `X-Alt-Text`
    header passes through `sanitize`. There is no second code path.

Pipeline (in order):
    1. Trim surrounding whitespace.
    2. Remove markup-like `<...>` spans.
    3. Collapse runs of whitespace and control characters into one space.
    4. Escape `& < > " ' \\`` to entity form. An `&` that already starts one
       of the entities this function produces is left alone.
    5. Encode non-ASCII characters as numeric character references.
    6. Truncate to MAX_DESCRIPTION_LENGTH without cutting an entity in half,
       then strip trailing spaces.

Guarantees:
    - Output is printable ASCII without `<`, `>`, quotes or backticks, so it is
      a valid HTTP header value and safe as plain text in HTML.
    - `len(sanitize(x)) <= MAX_DESCRIPTION_LENGTH`.
    - `sanitize(sanitize(x)) == sanitize(x)`.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any

MAX_DESCRIPTION_LENGTH = 500

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_ENTITY_RE = re.compile(r"&(?:amp|lt|gt|quot|#\d{1,7});")
_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
    "`": "&#96;",
}


def _collapse_whitespace(text: str) -> str:
    # Control/format characters (CR, LF, NUL, zero-width, ...) act as separators.
    cleaned = "".join(
        " " if unicodedata.category(ch) in ("Cc", "Cf", "Zl", "Zp") else ch for ch in text
    )
    return _WS_RE.sub(" ", cleaned).strip()


def _escape(text: str) -> str:
    out: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "&":
            match = _ENTITY_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
            out.append("&amp;")
        elif ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) > 126:
            out.append(f"&#{ord(ch)};")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit]
    amp = cut.rfind("&")
    if amp != -1 and ";" not in cut[amp:]:
        cut = cut[:amp]
    return cut.rstrip()


def sanitize(raw: Any) -> str:
    """Return the cleaned, escaped and bounded form of `raw` (may be empty)."""
    text = str(raw if raw is not None else "").strip()
    text = _TAG_RE.sub("", text)
    text = _collapse_whitespace(text)
    text = _escape(text)
    return _truncate(text, MAX_DESCRIPTION_LENGTH)


__all__ = ["MAX_DESCRIPTION_LENGTH", "sanitize"]
