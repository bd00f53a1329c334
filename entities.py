"""
HTML entity decoding for text pulled out of raw markup.

Handles named (&amp;, &nbsp;, ...), decimal (&#39;) and hex (&#x27;) entities
and strips left-to-right / right-to-left marks, which Amazon sprinkles into
product details tables. Malformed entities are left untouched.
"""

import re
from html.entities import html5

_ENTITY_RE = re.compile(r"&(#[0-9]{1,8}|#[xX][0-9a-fA-F]{1,8}|[A-Za-z][A-Za-z0-9]{1,31});")

# Directional marks, both as entities and as literal code points
_DIRECTIONAL_RE = re.compile(r"&(?:lrm|rlm);|[\u200e\u200f]")


def _replace(match: re.Match) -> str:
    body = match.group(1)
    if body.startswith(("#x", "#X")):
        try:
            return chr(int(body[2:], 16))
        except (ValueError, OverflowError):
            return match.group(0)
    if body.startswith("#"):
        try:
            return chr(int(body[1:]))
        except (ValueError, OverflowError):
            return match.group(0)
    return html5.get(f"{body};", match.group(0))


def decode_entities(text: str | None) -> str:
    """Decode HTML entities and drop directional marks.

    Returns "" for None. Text without entities comes back unchanged, so applying
    this to already-decoded text is a no-op.
    """
    if text is None:
        return ""
    text = str(text)
    if "&" not in text and "\u200e" not in text and "\u200f" not in text:
        return text
    text = _DIRECTIONAL_RE.sub("", text)
    text = _ENTITY_RE.sub(_replace, text)
    # &nbsp; decodes to U+00A0; product text wants a plain space
    return text.replace("\xa0", " ")
