from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeVar

from .governance.models import BallotKind, BallotPolicy, MissingVotePolicy, ResolutionRule, Visibility

log = logging.getLogger("warden.config")

E = TypeVar("E", bound=Enum)


class ConfigError(RuntimeError):
    """Startup configuration is missing or unusable."""


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("%s=%r is not an integer, using %s", name, raw, default)
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _get_id(name: str) -> Optional[int]:
    value = _get_int(name, 0)
    return value or None


def _get_enum(name: str, enum_cls: type[E], default: E) -> E:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        log.warning("%s=%r is not one of (%s), using %s", name, raw, allowed, default.value)
        return default


def _require_id(name: str) -> int:
    value = _get_int(name, 0)
    if not value:
        raise ConfigError(f"{name} is required")
    return value


ADMISSION_POLICY = BallotPolicy(
    duration_seconds=24 * 3600,
    visibility=Visibility.ANONYMOUS,
    rule=ResolutionRule.SIMPLE_MAJORITY,
    missing=MissingVotePolicy.IGNORE,
)
MANUAL_SANCTION_POLICY = BallotPolicy(
    duration_seconds=10 * 60,
    visibility=Visibility.PUBLIC,
    rule=ResolutionRule.SIMPLE_MAJORITY,
    missing=MissingVotePolicy.IGNORE,
)
SEVERE_SANCTION_POLICY = BallotPolicy(
    duration_seconds=24 * 3600,
    visibility=Visibility.PUBLIC,
    rule=ResolutionRule.ABSOLUTE_MAJORITY,
    missing=MissingVotePolicy.COUNT_AS_NO,
)


@dataclass(frozen=True)
class Settings:
    token: str
    guild_id: int
    privileged_role_id: int

    # Optional roles; a missing one disables the feature that needs it.
    pending_role_id: Optional[int] = None
    sanctioned_role_id: Optional[int] = None
    protected_role_id: Optional[int] = None
    rollback_protected_role: bool = False

    # Channels
    vote_channel_id: Optional[int] = None
    log_channel_id: Optional[int] = None
    fallback_channel_id: Optional[int] = None
    invite_channel_id: Optional[int] = None
    purge_channel_id: Optional[int] = None

    # Ballots
    admission_policy: BallotPolicy = ADMISSION_POLICY
    manual_sanction_policy: BallotPolicy = MANUAL_SANCTION_POLICY
    severe_sanction_policy: BallotPolicy = SEVERE_SANCTION_POLICY
    sanction_duration_seconds: float = 24 * 3600
    severe_trigger_enabled: bool = True

    # Protection
    attribution_freshness_seconds: float = 5.0
    reentry_retention_seconds: float = 24 * 3600
    role_propagation_delay_seconds: float = 2.0
    snapshot_cache_size: int = 1000
    snapshot_max_age_seconds: int = 3600
    sweep_interval_seconds: int = 300

    # Membership purge ("HH:MM", UTC)
    purge_enabled: bool = False
    purge_time: str = "23:42"

    sqlite_path: str = "warden.sqlite3"
    log_level: str = "INFO"

    def policy_for(self, kind: BallotKind) -> BallotPolicy:
        return {
            BallotKind.ADMISSION: self.admission_policy,
            BallotKind.MANUAL_SANCTION: self.manual_sanction_policy,
            BallotKind.SEVERE_SANCTION: self.severe_sanction_policy,
        }[kind]

    def degraded_features(self) -> list[str]:
        """Human readable notes for every optional identifier left unset."""
        notes: list[str] = []
        if self.pending_role_id is None:
            notes.append("PENDING_ROLE_ID unset: nominees get no pending marker role")
        if self.sanctioned_role_id is None:
            notes.append("SANCTIONED_ROLE_ID unset: manual sanction ballots are disabled")
        if self.protected_role_id is None:
            notes.append("PROTECTED_ROLE_ID unset: no secondary protected role is guarded")
        if self.vote_channel_id is None:
            notes.append("VOTE_CHANNEL_ID unset: ballots are posted where the command was used")
        if self.log_channel_id is None:
            notes.append("LOG_CHANNEL_ID unset: security notifications are only logged")
        if self.fallback_channel_id is None:
            notes.append("FALLBACK_CHANNEL_ID unset: undeliverable invites go to the vote or log channel")
        if self.invite_channel_id is None:
            notes.append("INVITE_CHANNEL_ID unset: re-entry invites use the first channel that allows it")
        if self.purge_enabled and self.purge_channel_id is None:
            notes.append("PURGE_CHANNEL_ID unset: purge reports are only logged")
        return notes


def _load_policy(prefix: str, default: BallotPolicy) -> BallotPolicy:
    minutes = _get_float(f"{prefix}_DURATION_MINUTES", default.duration_seconds / 60)
    return BallotPolicy(
        duration_seconds=max(1.0, minutes * 60),
        visibility=default.visibility,
        rule=_get_enum(f"{prefix}_RULE", ResolutionRule, default.rule),
        missing=_get_enum(f"{prefix}_MISSING_VOTES", MissingVotePolicy, default.missing),
        resolve_early=_get_bool(f"{prefix}_RESOLVE_EARLY", default.resolve_early),
    )


def _load_purge_time() -> str:
    raw = os.getenv("PURGE_TIME", "23:42").strip() or "23:42"
    try:
        hours, minutes = (int(part) for part in raw.split(":", 1))
    except ValueError:
        log.warning("PURGE_TIME=%r is not HH:MM, using 23:42", raw)
        return "23:42"
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        log.warning("PURGE_TIME=%r is out of range, using 23:42", raw)
        return "23:42"
    return f"{hours:02d}:{minutes:02d}"


def load_settings() -> Settings:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise ConfigError("DISCORD_TOKEN is required")
    return Settings(
        token=token,
        guild_id=_require_id("GUILD_ID"),
        privileged_role_id=_require_id("PRIVILEGED_ROLE_ID"),
        pending_role_id=_get_id("PENDING_ROLE_ID"),
        sanctioned_role_id=_get_id("SANCTIONED_ROLE_ID"),
        protected_role_id=_get_id("PROTECTED_ROLE_ID"),
        rollback_protected_role=_get_bool("ROLLBACK_PROTECTED_ROLE", False),
        vote_channel_id=_get_id("VOTE_CHANNEL_ID"),
        log_channel_id=_get_id("LOG_CHANNEL_ID"),
        fallback_channel_id=_get_id("FALLBACK_CHANNEL_ID"),
        invite_channel_id=_get_id("INVITE_CHANNEL_ID"),
        purge_channel_id=_get_id("PURGE_CHANNEL_ID"),
        admission_policy=_load_policy("ADMISSION", ADMISSION_POLICY),
        manual_sanction_policy=_load_policy("MANUAL_SANCTION", MANUAL_SANCTION_POLICY),
        severe_sanction_policy=_load_policy("SEVERE_SANCTION", SEVERE_SANCTION_POLICY),
        sanction_duration_seconds=max(1.0, _get_float("SANCTION_DURATION_HOURS", 24.0) * 3600),
        severe_trigger_enabled=_get_bool("SEVERE_TRIGGER_ENABLED", True),
        attribution_freshness_seconds=_get_float("ATTRIBUTION_FRESHNESS_SECONDS", 5.0),
        reentry_retention_seconds=max(60.0, _get_float("REENTRY_RETENTION_HOURS", 24.0) * 3600),
        role_propagation_delay_seconds=max(0.0, _get_float("ROLE_PROPAGATION_DELAY_SECONDS", 2.0)),
        snapshot_cache_size=max(1, _get_int("SNAPSHOT_CACHE_SIZE", 1000)),
        snapshot_max_age_seconds=max(1, _get_int("SNAPSHOT_MAX_AGE_SECONDS", 3600)),
        sweep_interval_seconds=max(10, _get_int("SWEEP_INTERVAL_SECONDS", 300)),
        purge_enabled=_get_bool("PURGE_ENABLED", False),
        purge_time=_load_purge_time(),
        sqlite_path=(os.getenv("SQLITE_PATH", "warden.sqlite3").strip() or "warden.sqlite3"),
        log_level=(os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"),
    )
