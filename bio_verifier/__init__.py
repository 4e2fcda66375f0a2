"""Bio-code profile verification engine.

Issues proof codes, reads the code back from a member's public profile bio
and drives each pending verification to a terminal state.
"""

from .codes import CodeGenerator, name_prefix
from .dispatch import CommunityDirectory, Dispatcher, VerificationNotice
from .engine import Rejection, VerificationEngine
from .errors import (
    CheckInProgressError,
    ConfigurationError,
    DispatchError,
    InvalidHandleError,
    ParseError,
    PersistenceError,
    VerificationError,
)
from .matcher import CodeMatcher
from .models import CommunityConfig, Identity, PendingVerification, VerifiedRecord
from .profile import ProfileFetcher, ProfileFetchResult, normalize_handle
from .reconciler import ActiveChecks, CheckResult, Reconciler, SweepSummary
from .retry import RetryPolicy
from .settings import EngineSettings
from .storage import DynamoBackend, LocalFileBackend, VerificationStore

__all__ = [
    "ActiveChecks",
    "CheckInProgressError",
    "CheckResult",
    "CodeGenerator",
    "CodeMatcher",
    "CommunityConfig",
    "CommunityDirectory",
    "ConfigurationError",
    "DispatchError",
    "Dispatcher",
    "DynamoBackend",
    "EngineSettings",
    "Identity",
    "InvalidHandleError",
    "LocalFileBackend",
    "ParseError",
    "PendingVerification",
    "PersistenceError",
    "ProfileFetchResult",
    "ProfileFetcher",
    "Reconciler",
    "Rejection",
    "RetryPolicy",
    "SweepSummary",
    "VerificationEngine",
    "VerificationError",
    "VerificationNotice",
    "VerificationStore",
    "VerifiedRecord",
    "name_prefix",
    "normalize_handle",
]
