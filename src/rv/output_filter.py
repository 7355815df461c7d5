"""Line filtering for disassembly listings."""

from __future__ import annotations

ALTERNATION = r"\|"


def filter_text(text: str, pattern: str | None = None) -> str:
    """Keep only the lines of *text* that contain *pattern*.

    Matching is a case-sensitive substring test, so every kept line contains
    the pattern literally; characters such as ``.`` or ``(`` carry no special
    meaning.  grep's ``\\|`` splits the pattern into alternatives and a line is
    kept when it contains any of them.  Kept lines are returned unmodified and
    in their original order.
    """
    if pattern is None:
        return text
    alternatives = _alternatives(pattern)
    kept = [
        line
        for line in text.splitlines(keepends=True)
        if any(alternative in line for alternative in alternatives)
    ]
    return "".join(kept)


def _alternatives(pattern: str) -> tuple[str, ...]:
    if ALTERNATION not in pattern:
        return (pattern,)
    return tuple(part for part in pattern.split(ALTERNATION) if part) or (pattern,)
