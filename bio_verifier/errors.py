from __future__ import annotations


class VerificationError(Exception):
    """Base exception for the verification engine."""


class InvalidHandleError(VerificationError, ValueError):
    """Raised when a profile handle cannot be normalized."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"Invalid profile handle: {raw!r}")
        self.raw = raw


class ParseError(VerificationError):
    """Raised when a profile payload matches none of the known shapes."""


class PersistenceError(VerificationError):
    """Raised when a storage backend rejects a read or write."""


class ConfigurationError(VerificationError):
    """Raised when a community has no trust role configured."""

    def __init__(self, community_id: int) -> None:
        super().__init__(f"No trust role configured for community {community_id}")
        self.community_id = community_id


class CheckInProgressError(VerificationError):
    """Raised when a check is already running for an identity."""

    def __init__(self, identity) -> None:
        super().__init__(f"Check already in progress for {identity}")
        self.identity = identity


class DispatchError(VerificationError):
    """Raised by dispatchers when a side effect could not be applied."""
