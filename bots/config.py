"""Configuration helpers for the verifier runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from bio_verifier.matcher import parse_substitution
from bio_verifier.settings import EngineSettings

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, *, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ShadowConfig:
    enabled: bool
    channel_id: int | None


def read_shadow_config(*, default_enabled: bool = False) -> ShadowConfig:
    return ShadowConfig(
        enabled=env_bool("SHADOW_MODE", default=default_enabled),
        channel_id=env_int("SHADOW_CHANNEL_ID"),
    )


def read_engine_settings() -> EngineSettings:
    defaults = EngineSettings()
    stale_hours = env_float("PENDING_STALE_HOURS")
    return EngineSettings(
        history_limit=env_int("HISTORY_LIMIT", default=defaults.history_limit),
        quick_check_attempts=env_int(
            "QUICK_CHECK_ATTEMPTS", default=defaults.quick_check_attempts
        ),
        quick_check_delay_seconds=env_float(
            "QUICK_CHECK_DELAY_SECONDS", default=defaults.quick_check_delay_seconds
        ),
        sweep_interval_minutes=env_float(
            "SWEEP_INTERVAL_MINUTES", default=defaults.sweep_interval_minutes
        ),
        sweep_attempts=env_int("SWEEP_ATTEMPTS", default=defaults.sweep_attempts),
        sweep_attempt_delay_seconds=env_float(
            "SWEEP_ATTEMPT_DELAY_SECONDS",
            default=defaults.sweep_attempt_delay_seconds,
        ),
        sweep_identity_delay_seconds=env_float(
            "SWEEP_IDENTITY_DELAY_SECONDS",
            default=defaults.sweep_identity_delay_seconds,
        ),
        pending_stale_hours=stale_hours if stale_hours and stale_hours > 0 else None,
        health_check_interval_hours=env_float(
            "HEALTH_CHECK_INTERVAL_HOURS",
            default=defaults.health_check_interval_hours,
        ),
        health_check_handle=os.getenv("HEALTH_CHECK_HANDLE")
        or defaults.health_check_handle,
        fetch_timeout_seconds=env_float(
            "FETCH_TIMEOUT_SECONDS", default=defaults.fetch_timeout_seconds
        ),
        default_trust_role_id=env_int("VERIFIED_ROLE_ID"),
        typo_substitution=parse_substitution(os.getenv("TYPO_SUBSTITUTION")),
    )


@dataclass(frozen=True)
class EnvironmentConfig:
    discord_token: str
    table_name: str | None
    aws_region: str
    data_file: str
    admin_log_channel_id: int | None
    mirror_to_file: bool

    @classmethod
    def load(cls) -> EnvironmentConfig:
        missing = [name for name in ("DISCORD_TOKEN",) if not os.getenv(name)]
        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(missing))

        return cls(
            discord_token=os.environ["DISCORD_TOKEN"],
            table_name=os.getenv("DDB_TABLE_NAME") or None,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            data_file=os.getenv("VERIFICATION_DATA_FILE", "verification-data.json"),
            admin_log_channel_id=env_int("ADMIN_LOG_CHANNEL_ID") or None,
            mirror_to_file=env_bool("MIRROR_TO_FILE", default=True),
        )
