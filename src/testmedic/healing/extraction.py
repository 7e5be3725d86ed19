"""Pulling test code out of a free-text model response."""

from __future__ import annotations

import re

FENCED_BLOCK = re.compile(r"```([A-Za-z0-9_+-]*)[ \t]*\r?\n(.*?)```", re.DOTALL)

# A block must look like a test: an import, a test declaration or an assertion
TEST_CODE_MARKERS = [
    re.compile(r"^\s*import\s", re.MULTILINE),
    re.compile(r"^\s*from\s+[\w.]+\s+import\s", re.MULTILINE),
    re.compile(r"\b(?:test|it|describe)(?:\.\w+)*\s*\("),
    re.compile(r"^\s*(?:async\s+)?def\s+test_\w*\s*\(", re.MULTILINE),
    re.compile(r"\bexpect\s*\("),
    re.compile(r"^\s*assert\s", re.MULTILINE),
]

INTERACTION_IDIOMS = re.compile(r"page\.(?:waitForLoadState|locator|getBy\w+|wait_for_load_state|get_by_\w+)")

BASE_CONFIDENCE = 50
CODE_BLOCK_BONUS = 20
LONG_RESPONSE_BONUS = 15
IDIOM_BONUS = 15
LONG_RESPONSE_CHARS = 200


def fenced_blocks(response: str) -> list[str]:
    """Bodies of every fenced block, in order."""
    return [body for _, body in FENCED_BLOCK.findall(response or "")]


def looks_like_test_code(block: str) -> bool:
    return any(marker.search(block) for marker in TEST_CODE_MARKERS)


def extract_code(response: str) -> str | None:
    """
    Longest fenced block that looks like test code, or None.

    When several blocks qualify the longest one wins; it is most likely the
    complete file rather than a fragment.
    """
    candidates = [block.strip("\n") for block in fenced_blocks(response) if looks_like_test_code(block)]
    if not candidates:
        return None
    best = max(candidates, key=len)
    return best + "\n" if best.strip() else None


def score_confidence(response: str) -> int:
    """Informational 0-100 score; never used to gate behavior."""
    response = response or ""
    score = BASE_CONFIDENCE
    if any(looks_like_test_code(b) for b in fenced_blocks(response)):
        score += CODE_BLOCK_BONUS
    if len(response) > LONG_RESPONSE_CHARS:
        score += LONG_RESPONSE_BONUS
    if INTERACTION_IDIOMS.search(response):
        score += IDIOM_BONUS
    return min(score, 100)
