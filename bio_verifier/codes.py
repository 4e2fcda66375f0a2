from __future__ import annotations

import logging
import random
import re
from typing import Final

from .dispatch import CommunityDirectory

log: Final = logging.getLogger("bio-verifier")

DEFAULT_PREFIX: Final[str] = "VERIFY"
MAX_PREFIX_LENGTH: Final[int] = 10
CODE_MIN: Final[int] = 10000
CODE_MAX: Final[int] = 99999

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def name_prefix(name: str | None) -> str:
    """Return the upper-cased first word of ``name``, alphanumerics only."""
    words = (name or "").split()
    if not words:
        return DEFAULT_PREFIX
    clean = _NON_ALNUM.sub("", words[0]).upper()
    return clean[:MAX_PREFIX_LENGTH] or DEFAULT_PREFIX


class CodeGenerator:
    """Issue ``PREFIX-NNNNN`` proof codes with a cached per-community prefix."""

    def __init__(
        self, directory: CommunityDirectory, rng: random.Random | None = None
    ) -> None:
        self._directory = directory
        self._rng = rng or random.SystemRandom()
        self._prefixes: dict[int, str] = {}

    async def prefix_for(self, community_id: int) -> str:
        if community_id in self._prefixes:
            return self._prefixes[community_id]

        name: str | None = None
        try:
            name = await self._directory.owner_name(community_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning(
                "Owner lookup failed for community %s, using community name: %s",
                community_id,
                exc,
            )
        if not name:
            name = await self._directory.community_name(community_id)

        prefix = name_prefix(name)
        self._prefixes[community_id] = prefix
        return prefix

    async def generate(self, community_id: int) -> str:
        prefix = await self.prefix_for(community_id)
        return f"{prefix}-{self._rng.randint(CODE_MIN, CODE_MAX)}"

    def forget(self, community_id: int) -> None:
        self._prefixes.pop(community_id, None)
