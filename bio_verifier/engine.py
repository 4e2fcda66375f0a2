"""Inbound entry points used by the chat application.

Every method returns typed results; rendering them for members or admins
is left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Literal

from .codes import CodeGenerator
from .dispatch import Dispatcher, VerificationNotice
from .errors import (
    CheckInProgressError,
    ConfigurationError,
    DispatchError,
    InvalidHandleError,
)
from .models import (
    CommunityConfig,
    Identity,
    PendingVerification,
    VerifiedRecord,
    utc_now_iso,
)
from .profile import ProfileFetchResult, normalize_handle
from .reconciler import CheckResult, CleanupReport, Reconciler, SweepSummary
from .settings import EngineSettings
from .storage import VerificationStore

log: Final = logging.getLogger("bio-verifier")

VerificationState = Literal["no_record", "code_issued", "pending", "verified"]
RejectionReason = Literal["empty", "invalid_format", "no_pending"]


@dataclass(slots=True, frozen=True)
class Rejection:
    reason: RejectionReason
    raw: str


class VerificationEngine:
    def __init__(
        self,
        store: VerificationStore,
        reconciler: Reconciler,
        codes: CodeGenerator,
        dispatcher: Dispatcher,
        settings: EngineSettings | None = None,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._codes = codes
        self._dispatcher = dispatcher
        self._settings = settings or EngineSettings()

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    # ---------- member flow ----------
    async def initiate(self, identity: Identity) -> str:
        """Issue a fresh proof code, keeping recent codes in the history."""
        if identity in self._reconciler.active:
            raise CheckInProgressError(identity)

        code = await self._codes.generate(identity.community_id)
        record = self._store.get_pending(identity)
        if record is None:
            record = PendingVerification(identity=identity, code=code)
        else:
            record.issue_code(code, self._settings.history_limit)
            record.handle = None
            record.created_at = utc_now_iso()
        self._store.save_pending(record)
        log.info(
            "Issued code %s to %s (%d previous codes kept)",
            code,
            identity,
            len(record.code_history),
        )
        return code

    async def submit_handle(
        self, identity: Identity, raw: str | None
    ) -> PendingVerification | Rejection:
        raw = (raw or "").strip()
        if not raw:
            return Rejection(reason="empty", raw=raw)

        handle = normalize_handle(raw)
        log.info("Handle input %r parsed as %r for %s", raw, handle, identity)
        if handle is None:
            return Rejection(reason="invalid_format", raw=raw)

        if identity in self._reconciler.active:
            raise CheckInProgressError(identity)

        record = self._store.get_pending(identity)
        if record is None:
            return Rejection(reason="no_pending", raw=raw)

        if record.handle != handle:
            record.handle = handle
            self._store.save_pending(record)
        return record

    async def check_now(self, identity: Identity) -> CheckResult:
        return await self._reconciler.quick_check(identity)

    def state(self, identity: Identity) -> VerificationState:
        pending = self._store.get_pending(identity)
        if pending is not None:
            return "pending" if pending.handle else "code_issued"
        if self._store.get_verified(identity) is not None:
            return "verified"
        return "no_record"

    # ---------- admin flow ----------
    async def manual_verify(self, identity: Identity, handle: str) -> VerifiedRecord:
        clean = normalize_handle(handle)
        if clean is None:
            raise InvalidHandleError(handle)
        role_id = self._reconciler.trust_role_id(identity.community_id)
        if role_id is None:
            raise ConfigurationError(identity.community_id)

        await self._dispatcher.grant_role(identity, role_id)
        record = self._reconciler.record_verified(identity, clean)
        try:
            await self._dispatcher.notify(
                identity, VerificationNotice("manually_verified", clean)
            )
        except DispatchError as exc:
            log.info("Could not notify %s of manual verification: %s", identity, exc)
        log.info("Manually verified %s as @%s", identity, clean)
        return record

    async def unverify(self, identity: Identity, *, revoke_role: bool = True) -> bool:
        """Forget an identity's records; returns whether it was verified."""
        verified = self._store.get_verified(identity)
        if verified is not None:
            self._store.delete_verified(identity)
            log.info("Unverified %s (was @%s)", identity, verified.handle)
        if self._store.get_pending(identity) is not None:
            self._store.delete_pending(identity)
            log.info("Cleared pending verification for %s", identity)

        if revoke_role and verified is not None:
            role_id = self._reconciler.trust_role_id(identity.community_id)
            if role_id is not None:
                try:
                    await self._dispatcher.revoke_role(identity, role_id)
                except DispatchError as exc:
                    log.warning("Could not revoke role from %s: %s", identity, exc)
        return verified is not None

    async def handle_role_removed(self, identity: Identity) -> bool:
        """The trust role was taken away outside the engine."""
        return await self.unverify(identity, revoke_role=False)

    def configure_community(
        self, community_id: int, trust_role_id: int
    ) -> CommunityConfig:
        config = CommunityConfig(community_id=community_id, trust_role_id=trust_role_id)
        self._store.save_config(config)
        return config

    def list_pending(self, community_id: int) -> list[PendingVerification]:
        return self._store.list_pending(community_id)

    def list_verified(self, community_id: int) -> list[VerifiedRecord]:
        return self._store.list_verified(community_id)

    async def cleanup_pending(self, community_id: int | None = None) -> CleanupReport:
        return await self._reconciler.cleanup(community_id)

    # ---------- scheduled work ----------
    async def sweep(self) -> SweepSummary:
        return await self._reconciler.sweep()

    async def health_check(self) -> ProfileFetchResult:
        return await self._reconciler.health_check()
