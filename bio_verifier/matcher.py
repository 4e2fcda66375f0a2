from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

# Members keep typing the community name's common misspelling into their bio.
DEFAULT_SUBSTITUTION: Final[tuple[str, str]] = ("JAIME", "JAMIE")


@dataclass(slots=True, frozen=True)
class CodeMatcher:
    """Substring matcher for proof codes with one literal typo variant."""

    substitution: tuple[str, str] | None = DEFAULT_SUBSTITUTION

    def variants(self, code: str) -> tuple[str, ...]:
        code_upper = code.upper()
        if not self.substitution:
            return (code_upper,)
        correct, mistyped = (part.upper() for part in self.substitution)
        typo = code_upper.replace(correct, mistyped, 1)
        if typo == code_upper:
            return (code_upper,)
        return (code_upper, typo)

    def match(self, bio: str | None, candidates: Iterable[str]) -> str | None:
        """Return the first candidate code found in ``bio``, as issued."""
        if not bio:
            return None
        bio_upper = bio.upper()
        for code in candidates:
            if not code:
                continue
            if any(variant in bio_upper for variant in self.variants(code)):
                return code
        return None


def parse_substitution(raw: str | None) -> tuple[str, str] | None:
    """Parse ``CORRECT:MISTYPED`` into a substitution pair."""
    if raw is None:
        return DEFAULT_SUBSTITUTION
    correct, sep, mistyped = raw.strip().partition(":")
    if not sep or not correct.strip() or not mistyped.strip():
        return None
    return correct.strip(), mistyped.strip()
