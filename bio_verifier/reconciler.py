from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Final, Literal

from .dispatch import Dispatcher, VerificationNotice
from .errors import (
    CheckInProgressError,
    ConfigurationError,
    DispatchError,
    PersistenceError,
)
from .matcher import CodeMatcher
from .models import Identity, PendingVerification, VerifiedRecord, parse_iso
from .profile import ProfileFetcher, ProfileFetchResult, normalize_handle
from .retry import RetryPolicy, Sleep
from .settings import EngineSettings
from .storage import VerificationStore

log: Final = logging.getLogger("bio-verifier")

CheckStatus = Literal[
    "verified",
    "pending",
    "not_found",
    "invalid_handle",
    "in_progress",
    "no_record",
    "misconfigured",
]


@dataclass(slots=True)
class CheckResult:
    status: CheckStatus
    identity: Identity
    handle: str | None = None
    matched_code: str | None = None
    attempts: int = 0
    last_fetch: ProfileFetchResult | None = None
    record: VerifiedRecord | None = None
    error: Exception | None = None

    @property
    def bio_empty(self) -> bool:
        return self.last_fetch is not None and self.last_fetch.status == "empty"


@dataclass(slots=True)
class SweepSummary:
    checked: int = 0
    verified: int = 0
    not_found: int = 0
    expired: int = 0
    skipped: int = 0
    failed: int = 0
    misconfigured: int = 0

    def record(self, result: CheckResult) -> None:
        if result.status in ("in_progress", "no_record", "invalid_handle"):
            self.skipped += 1
            return
        self.checked += 1
        if result.status == "verified":
            self.verified += 1
        elif result.status == "not_found":
            self.not_found += 1
        elif result.status == "misconfigured":
            self.misconfigured += 1


@dataclass(slots=True)
class CleanupReport:
    removed: list[tuple[Identity, str]] = field(default_factory=list)
    issues: list[tuple[Identity, str]] = field(default_factory=list)
    remaining: int = 0


class ActiveChecks:
    """Identities with a check loop currently running in this process."""

    def __init__(self) -> None:
        self._active: set[Identity] = set()

    def __contains__(self, identity: object) -> bool:
        return identity in self._active

    def __len__(self) -> int:
        return len(self._active)

    @contextmanager
    def hold(self, identity: Identity) -> Iterator[None]:
        if identity in self._active:
            raise CheckInProgressError(identity)
        self._active.add(identity)
        try:
            yield
        finally:
            self._active.discard(identity)


class Reconciler:
    """Drives pending records to a terminal state via fetch + match."""

    def __init__(
        self,
        store: VerificationStore,
        fetcher: ProfileFetcher,
        matcher: CodeMatcher,
        dispatcher: Dispatcher,
        settings: EngineSettings,
        *,
        active: ActiveChecks | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._matcher = matcher
        self._dispatcher = dispatcher
        self._settings = settings
        self._sleep = sleep
        self.active = active or ActiveChecks()

    # ---------- checks ----------
    async def quick_check(self, identity: Identity) -> CheckResult:
        return await self.check(identity, self._settings.quick_check_policy)

    async def check(
        self, identity: Identity, policy: RetryPolicy, *, background: bool = False
    ) -> CheckResult:
        if identity in self.active:
            log.info("Check already in progress for %s", identity)
            return CheckResult(status="in_progress", identity=identity)
        with self.active.hold(identity):
            return await self._check(identity, policy, background=background)

    async def _check(
        self, identity: Identity, policy: RetryPolicy, *, background: bool
    ) -> CheckResult:
        record = self._store.get_pending(identity)
        if record is None:
            return CheckResult(status="no_record", identity=identity)

        handle = normalize_handle(record.handle)
        if handle is None:
            log.info("No usable handle stored for %s: %r", identity, record.handle)
            return CheckResult(
                status="invalid_handle", identity=identity, handle=record.handle
            )

        candidates = record.candidate_codes()

        async def attempt(number: int) -> tuple[ProfileFetchResult, str | None]:
            fetch = await self._fetcher.fetch(handle, attempt=number)
            matched = (
                self._matcher.match(fetch.bio, candidates)
                if fetch.status == "found"
                else None
            )
            log.info(
                "Check %s @%s attempt %d/%d: %s, codes %s, matched %s",
                identity,
                handle,
                number,
                policy.max_attempts,
                fetch.status,
                ", ".join(candidates),
                matched or "none",
            )
            return fetch, matched

        outcome = await policy.run(
            attempt,
            stop=lambda result: result[0].terminal or result[1] is not None,
            sleep=self._sleep,
        )
        fetch, matched = outcome.result

        if fetch.terminal:
            log.info("Profile @%s not found, dropping pending %s", handle, identity)
            self._store.delete_pending(identity)
            if background:
                await self._notify(identity, VerificationNotice("not_found", handle))
            return CheckResult(
                status="not_found",
                identity=identity,
                handle=handle,
                attempts=outcome.attempts,
                last_fetch=fetch,
            )

        if matched is None:
            return CheckResult(
                status="pending",
                identity=identity,
                handle=handle,
                attempts=outcome.attempts,
                last_fetch=fetch,
            )

        result = await self._complete(record, handle, matched)
        result.attempts = outcome.attempts
        result.last_fetch = fetch
        return result

    async def _complete(
        self, record: PendingVerification, handle: str, matched: str
    ) -> CheckResult:
        identity = record.identity
        role_id = self.trust_role_id(identity.community_id)
        if role_id is None:
            error = ConfigurationError(identity.community_id)
            log.error("%s; leaving %s pending", error, identity)
            await self.alert_operator(identity.community_id, error)
            return CheckResult(
                status="misconfigured",
                identity=identity,
                handle=handle,
                matched_code=matched,
                error=error,
            )

        verified = self.record_verified(identity, handle)
        error = await self.grant(identity, role_id)
        await self._notify(
            identity, VerificationNotice("verified", handle, matched_code=matched)
        )
        log.info("Verified %s as @%s with code %s", identity, handle, matched)
        return CheckResult(
            status="verified",
            identity=identity,
            handle=handle,
            matched_code=matched,
            record=verified,
            error=error,
        )

    # ---------- shared transitions ----------
    def trust_role_id(self, community_id: int) -> int | None:
        config = self._store.get_config(community_id)
        if config is not None and config.trust_role_id:
            return config.trust_role_id
        return self._settings.default_trust_role_id

    def record_verified(self, identity: Identity, handle: str) -> VerifiedRecord:
        verified = VerifiedRecord(identity=identity, handle=handle)
        self._store.save_verified(verified)
        self._store.delete_pending(identity)
        return verified

    async def grant(self, identity: Identity, role_id: int) -> DispatchError | None:
        try:
            await self._dispatcher.grant_role(identity, role_id)
        except DispatchError as exc:
            log.warning("Could not grant role %s to %s: %s", role_id, identity, exc)
            await self.alert_operator(identity.community_id, exc)
            return exc
        return None

    async def alert_operator(self, community_id: int, error: Exception) -> None:
        try:
            await self._dispatcher.alert_operator(community_id, error)
        except DispatchError as exc:
            log.warning("Could not alert operators of %s: %s", community_id, exc)

    async def _notify(self, identity: Identity, notice: VerificationNotice) -> None:
        try:
            await self._dispatcher.notify(identity, notice)
        except DispatchError as exc:
            log.info("Could not notify %s (%s): %s", identity, notice.kind, exc)

    # ---------- background ----------
    def is_stale(self, record: PendingVerification, now: datetime | None = None) -> bool:
        hours = self._settings.pending_stale_hours
        if not hours:
            return False
        created = parse_iso(record.created_at)
        if created is None:
            return False
        return (now or datetime.now(UTC)) - created > timedelta(hours=hours)

    async def sweep(self) -> SweepSummary:
        summary = SweepSummary()
        try:
            pending = self._store.list_all_pending()
        except PersistenceError as exc:
            log.error("Sweep aborted, cannot list pending verifications: %s", exc)
            return summary

        log.info("Sweep started: %d pending verifications", len(pending))
        for record in pending:
            identity = record.identity
            try:
                if identity in self.active:
                    log.info("Skipping %s: check already in progress", identity)
                    summary.skipped += 1
                    continue
                if self.is_stale(record):
                    log.info("Expiring stale pending verification %s", identity)
                    self._store.delete_pending(identity)
                    summary.expired += 1
                    await self._notify(
                        identity, VerificationNotice("expired", record.handle)
                    )
                    continue
                if not record.handle:
                    log.debug("Skipping %s: no handle submitted yet", identity)
                    summary.skipped += 1
                    continue

                result = await self.check(
                    identity, self._settings.sweep_policy, background=True
                )
                summary.record(result)
            except Exception as exc:  # pylint: disable=broad-except
                summary.failed += 1
                log.exception("Sweep failed for %s: %s", identity, exc)
                continue

            if self._settings.sweep_identity_delay_seconds > 0:
                await self._sleep(self._settings.sweep_identity_delay_seconds)

        log.info(
            "Sweep complete: checked=%d verified=%d not_found=%d expired=%d "
            "skipped=%d failed=%d",
            summary.checked,
            summary.verified,
            summary.not_found,
            summary.expired,
            summary.skipped,
            summary.failed,
        )
        return summary

    async def health_check(self, handle: str | None = None) -> ProfileFetchResult:
        """Fetch a known public profile to confirm bios are still readable."""
        handle = handle or self._settings.health_check_handle
        result = await self._fetcher.fetch(handle)
        if result.status == "found":
            log.info("Health check passed: read bio of @%s", handle)
        else:
            log.error(
                "Health check failed for @%s (%s) - profile source may be blocking",
                handle,
                result.status,
            )
        return result

    async def cleanup(self, community_id: int | None = None) -> CleanupReport:
        """Drop pending records that can never verify; report doubtful ones."""
        report = CleanupReport()
        if community_id is None:
            pending = self._store.list_all_pending()
        else:
            pending = self._store.list_pending(community_id)

        for record in pending:
            identity = record.identity
            if identity in self.active:
                continue
            handle = normalize_handle(record.handle)
            if handle is None:
                self._store.delete_pending(identity)
                report.removed.append((identity, "no_handle"))
                continue

            fetch = await self._fetcher.fetch(handle)
            if fetch.terminal:
                self._store.delete_pending(identity)
                report.removed.append((identity, "not_found"))
            elif fetch.status == "empty":
                report.issues.append((identity, "empty_bio"))
            elif fetch.status == "unavailable":
                report.issues.append((identity, "unavailable"))
            await self._sleep(1.0)

        report.remaining = len(pending) - len(report.removed)
        log.info(
            "Cleanup removed %d pending verifications, %d flagged",
            len(report.removed),
            len(report.issues),
        )
        return report
