from __future__ import annotations

from typing import Callable

TokenCounter = Callable[[str], int]


def word_token_count(text: str) -> int:
    """Return an approximate token count for ``text``.

    Counts whitespace-delimited words. This is a cheap proxy rather than a
    real tokenizer; pass a different ``TokenCounter`` to ``Transcript`` to
    substitute one.
    """
    if not text:
        return 0
    return len(text.split())
