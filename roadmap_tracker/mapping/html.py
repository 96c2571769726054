"""Plain-text reduction of HTML-bearing upstream fields."""

from __future__ import annotations

import re

_TAG = re.compile(r"<[^>]*>?")

# Only this fixed set is decoded; anything else is left as written.
NAMED_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&#39;": "'",
    "&apos;": "'",
    "&quot;": '"',
}
_ENTITY = re.compile("|".join(re.escape(name) for name in NAMED_ENTITIES))


def strip_html(markup: str) -> str:
    """Drop tags, decode the known entities in one pass and trim.

    ``&amp;lt;`` becomes ``&lt;``, not ``<``: decoded text is never decoded
    again.
    """

    if not markup:
        return ""
    text = _TAG.sub("", markup)
    text = _ENTITY.sub(lambda match: NAMED_ENTITIES[match.group(0)], text)
    return text.strip()


__all__ = ["NAMED_ENTITIES", "strip_html"]
