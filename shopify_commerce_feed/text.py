"""Plain-text normalization for HTML product descriptions."""

import re
from typing import Optional

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Only these entities are decoded; anything else is left as written.
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def strip_markup(html: Optional[str]) -> str:
    """
    Convert an HTML fragment to a single line of plain text.

    Tags become spaces, the common entities are decoded, whitespace runs are
    collapsed and the result is trimmed.
    """
    if not html:
        return ""
    text = _TAG_RE.sub(" ", html)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return _WHITESPACE_RE.sub(" ", text).strip()
