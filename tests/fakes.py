"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio

from bio_verifier import Identity, ProfileFetchResult


class FakeTable:
    """In-memory stand-in for a boto3 DynamoDB Table keyed by pk/sk."""

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_item(self, *, Key):
        self._check()
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item else {}

    def put_item(self, *, Item):
        self._check()
        self.items[(Item["pk"], Item["sk"])] = dict(Item)

    def delete_item(self, *, Key):
        self._check()
        self.items.pop((Key["pk"], Key["sk"]), None)

    def query(self, *, KeyConditionExpression, Select="ALL_ATTRIBUTES", **_kwargs):
        self._check()
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":  # pragma: no branch - helper
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        items = [
            dict(self.items[key])
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        return {"Items": items, "Count": len(items)}

    def scan(self, **_kwargs):
        self._check()
        items = [dict(self.items[key]) for key in sorted(self.items)]
        return {"Items": items, "Count": len(items)}


class ScriptedFetcher:
    """Returns queued fetch results in order, repeating the last one."""

    def __init__(self, *results: ProfileFetchResult) -> None:
        self.results = list(results)
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    def queue(self, *results: ProfileFetchResult) -> None:
        self.results.extend(results)

    async def fetch(self, handle: str, *, attempt: int = 1) -> ProfileFetchResult:
        self.calls.append(handle)
        if self.gate is not None:
            await self.gate.wait()
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    async def close(self) -> None:
        return None


class RecordingDispatcher:
    def __init__(self) -> None:
        self.granted: list[tuple[Identity, int]] = []
        self.revoked: list[tuple[Identity, int]] = []
        self.notices: list[tuple[Identity, object]] = []
        self.alerts: list[tuple[int, Exception]] = []
        self.grant_error: Exception | None = None
        self.notify_error: Exception | None = None

    async def grant_role(self, identity, role_id):
        if self.grant_error is not None:
            raise self.grant_error
        self.granted.append((identity, role_id))

    async def revoke_role(self, identity, role_id):
        self.revoked.append((identity, role_id))

    async def notify(self, identity, notice):
        if self.notify_error is not None:
            raise self.notify_error
        self.notices.append((identity, notice))

    async def alert_operator(self, community_id, error):
        self.alerts.append((community_id, error))


class StaticDirectory:
    def __init__(self, owner: str | None = "Jaime Bea", community: str = "Fan Club"):
        self.owner = owner
        self.community = community
        self.owner_calls = 0

    async def owner_name(self, community_id):
        self.owner_calls += 1
        if isinstance(self.owner, Exception):
            raise self.owner
        return self.owner

    async def community_name(self, community_id):
        return self.community


class CountingRng:
    """Deterministic ``randint`` yielding consecutive numbers."""

    def __init__(self, start: int = 10000) -> None:
        self.next_value = start

    def randint(self, low: int, high: int) -> int:
        value = self.next_value
        self.next_value += 1
        return value


def found(bio: str, handle: str = "foo") -> ProfileFetchResult:
    return ProfileFetchResult(status="found", handle=handle, bio=bio)


def empty(handle: str = "foo") -> ProfileFetchResult:
    return ProfileFetchResult(status="empty", handle=handle, bio="")


def not_found(handle: str = "foo") -> ProfileFetchResult:
    return ProfileFetchResult(status="not_found", handle=handle)


def unavailable(handle: str = "foo") -> ProfileFetchResult:
    return ProfileFetchResult(status="unavailable", handle=handle)


async def no_sleep(_seconds: float) -> None:
    return None


COMMUNITY_ID = 42
ROLE_ID = 777
