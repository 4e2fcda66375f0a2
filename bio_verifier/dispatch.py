"""Interfaces the engine calls out to.

The surrounding application implements these; the engine only ever holds
the injected objects and never talks to Discord (or any chat client)
directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from .errors import VerificationError
from .models import Identity

NoticeKind = Literal["verified", "manually_verified", "not_found", "expired"]


@dataclass(slots=True, frozen=True)
class VerificationNotice:
    """Typed payload handed to ``Dispatcher.notify``; the app renders it."""

    kind: NoticeKind
    handle: str | None = None
    matched_code: str | None = None


class Dispatcher(Protocol):
    async def grant_role(self, identity: Identity, role_id: int) -> None: ...

    async def revoke_role(self, identity: Identity, role_id: int) -> None: ...

    async def notify(self, identity: Identity, notice: VerificationNotice) -> None: ...

    async def alert_operator(
        self, community_id: int, error: VerificationError
    ) -> None: ...


class CommunityDirectory(Protocol):
    async def owner_name(self, community_id: int) -> str | None: ...

    async def community_name(self, community_id: int) -> str | None: ...
