from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def parse_iso(value: str) -> datetime | None:
    try:
        return datetime.strptime(value, ISO_FORMAT).replace(tzinfo=UTC)
    except (TypeError, ValueError):
        return None


def _community_key(community_id: int) -> str:
    return f"COMMUNITY#{community_id}"


def _split_id(value: object) -> int:
    return int(str(value).split("#", 1)[1])


@dataclass(slots=True, frozen=True)
class Identity:
    community_id: int
    member_id: int

    def __str__(self) -> str:
        return f"{self.member_id}@{self.community_id}"


@dataclass(slots=True)
class PendingVerification:
    identity: Identity
    code: str
    code_history: list[str] = field(default_factory=list)
    handle: str | None = None
    created_at: str = field(default_factory=utc_now_iso)

    SK_PREFIX: ClassVar[str] = "PENDING#"

    @property
    def community_id(self) -> int:
        return self.identity.community_id

    @classmethod
    def key(cls, identity: Identity) -> dict[str, str]:
        return {
            "pk": _community_key(identity.community_id),
            "sk": f"{cls.SK_PREFIX}{identity.member_id}",
        }

    def issue_code(self, new_code: str, history_limit: int) -> None:
        """Replace the current code, keeping the newest prior codes."""
        if self.code:
            self.code_history.insert(0, self.code)
        del self.code_history[max(history_limit, 0) :]
        self.code = new_code

    def candidate_codes(self) -> list[str]:
        return [self.code, *self.code_history]

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.identity)
        item.update(
            {
                "community_id": str(self.identity.community_id),
                "member_id": str(self.identity.member_id),
                "handle": self.handle,
                "code": self.code,
                "code_history": list(self.code_history),
                "created_at": self.created_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> PendingVerification:
        identity = Identity(
            community_id=_split_id(item["pk"]),
            member_id=_split_id(item["sk"]),
        )
        handle = item.get("handle")
        history = item.get("code_history") or []
        return cls(
            identity=identity,
            code=str(item.get("code", "")),
            code_history=[str(code) for code in history],  # type: ignore[union-attr]
            handle=str(handle) if handle else None,
            created_at=str(item.get("created_at", "")),
        )


@dataclass(slots=True)
class VerifiedRecord:
    identity: Identity
    handle: str
    verified_at: str = field(default_factory=utc_now_iso)

    SK_PREFIX: ClassVar[str] = "VERIFIED#"

    @classmethod
    def key(cls, identity: Identity) -> dict[str, str]:
        return {
            "pk": _community_key(identity.community_id),
            "sk": f"{cls.SK_PREFIX}{identity.member_id}",
        }

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.identity)
        item.update(
            {
                "community_id": str(self.identity.community_id),
                "member_id": str(self.identity.member_id),
                "handle": self.handle,
                "verified_at": self.verified_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> VerifiedRecord:
        return cls(
            identity=Identity(
                community_id=_split_id(item["pk"]),
                member_id=_split_id(item["sk"]),
            ),
            handle=str(item.get("handle", "")),
            verified_at=str(item.get("verified_at", "")),
        )


@dataclass(slots=True)
class CommunityConfig:
    community_id: int
    trust_role_id: int

    SK_VALUE: ClassVar[str] = "CONFIG"

    @classmethod
    def key(cls, community_id: int) -> dict[str, str]:
        return {"pk": _community_key(community_id), "sk": cls.SK_VALUE}

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.community_id)
        item.update(
            {
                "community_id": str(self.community_id),
                "trust_role_id": str(self.trust_role_id),
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> CommunityConfig:
        return cls(
            community_id=_split_id(item["pk"]),
            trust_role_id=int(str(item.get("trust_role_id", 0))),
        )
