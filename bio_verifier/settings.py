from __future__ import annotations

from dataclasses import dataclass, field

from .matcher import DEFAULT_SUBSTITUTION
from .retry import RetryPolicy


@dataclass(frozen=True)
class EngineSettings:
    """Tunables for the reconciliation engine."""

    history_limit: int = 5
    quick_check_attempts: int = 3
    quick_check_delay_seconds: float = 3.0
    sweep_interval_minutes: float = 120.0
    sweep_attempts: int = 10
    sweep_attempt_delay_seconds: float = 2.0
    sweep_identity_delay_seconds: float = 2.0
    pending_stale_hours: float | None = None
    health_check_interval_hours: float = 4.0
    health_check_handle: str = "tiktok"
    fetch_timeout_seconds: float = 10.0
    default_trust_role_id: int | None = None
    typo_substitution: tuple[str, str] | None = field(
        default=DEFAULT_SUBSTITUTION
    )

    @property
    def quick_check_policy(self) -> RetryPolicy:
        return RetryPolicy(self.quick_check_attempts, self.quick_check_delay_seconds)

    @property
    def sweep_policy(self) -> RetryPolicy:
        return RetryPolicy(self.sweep_attempts, self.sweep_attempt_delay_seconds)
