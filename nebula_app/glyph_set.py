from __future__ import annotations

import re
from typing import List

# Punctuation and whitespace that never become glyphs:
# ASCII comma / period / semicolon, full-width comma, ideographic full stop,
# space, tab, carriage return and newline.
_STRIPPED = re.compile(r"[.,;，。 \t\r\n]")


def extract_glyphs(text: str) -> List[str]:
    """
    Return the distinct glyphs of *text* in first-seen order.

    The stripped punctuation / whitespace class is removed first; each
    remaining character is one glyph. Empty input gives an empty list.
    """
    cleaned = _STRIPPED.sub("", text or "")
    # dict preserves insertion order, so this keeps the first occurrence
    return list(dict.fromkeys(cleaned))
