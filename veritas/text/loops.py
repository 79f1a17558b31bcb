"""Loop cleaner — collapses stuttering word and phrase repetitions.

Speech models under load sometimes get stuck emitting the same word or
phrase over and over ("mas, mas, mas, mas"). Four or more consecutive
repetitions are collapsed to a single occurrence. Word loops are handled
first so a short stutter is fixed before the phrase pass can fold it into
an unrelated longer match.
"""

from __future__ import annotations

import re

LOOP_MIN_REPEATS = 4

_WORD_LOOP_RE = re.compile(
    r"\b(\w+)(?:[\s,.]+\1\b){%d,}" % (LOOP_MIN_REPEATS - 1), re.IGNORECASE
)
_PHRASE_LOOP_RE = re.compile(
    r"(.{5,50}?)(?:[\s,.]+\1){%d,}" % (LOOP_MIN_REPEATS - 1), re.IGNORECASE
)


def _single_pass(text: str) -> str:
    text = _WORD_LOOP_RE.sub(r"\1", text)
    return _PHRASE_LOOP_RE.sub(r"\1", text)


def clean_repetitive_loops(text: str) -> str:
    """Collapse word and phrase loops until the text no longer changes.

    Iterating to a fixed point keeps the function idempotent: collapsing one
    loop can line up repetitions that were not adjacent before, and the
    cleaner runs again at several pipeline stages on overlapping text.
    """
    if not text:
        return ""
    while True:
        cleaned = _single_pass(text)
        # Each substitution strictly shortens the text, so this terminates.
        if cleaned == text:
            return cleaned
        text = cleaned
