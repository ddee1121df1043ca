import pytest

from warden.config import ConfigError, Settings, load_settings
from warden.governance.models import BallotKind, MissingVotePolicy, ResolutionRule, Visibility

_ENV_KEYS = (
    "DISCORD_TOKEN", "GUILD_ID", "PRIVILEGED_ROLE_ID", "PENDING_ROLE_ID", "SANCTIONED_ROLE_ID",
    "PROTECTED_ROLE_ID", "VOTE_CHANNEL_ID", "LOG_CHANNEL_ID", "FALLBACK_CHANNEL_ID",
    "INVITE_CHANNEL_ID", "PURGE_CHANNEL_ID", "PURGE_ENABLED", "PURGE_TIME",
    "ADMISSION_DURATION_MINUTES", "ADMISSION_RULE", "ADMISSION_MISSING_VOTES",
    "SEVERE_SANCTION_MISSING_VOTES", "MANUAL_SANCTION_RESOLVE_EARLY", "SANCTION_DURATION_HOURS",
)


@pytest.fixture
def env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("GUILD_ID", "1")
    monkeypatch.setenv("PRIVILEGED_ROLE_ID", "100")
    return monkeypatch


def test_minimal_environment_loads_defaults(env):
    settings = load_settings()

    assert settings.guild_id == 1
    assert settings.privileged_role_id == 100
    assert settings.pending_role_id is None
    assert settings.attribution_freshness_seconds == 5.0
    assert settings.reentry_retention_seconds == 24 * 3600
    admission = settings.policy_for(BallotKind.ADMISSION)
    assert admission.visibility is Visibility.ANONYMOUS
    assert admission.rule is ResolutionRule.SIMPLE_MAJORITY
    assert admission.missing is MissingVotePolicy.IGNORE
    severe = settings.policy_for(BallotKind.SEVERE_SANCTION)
    assert severe.rule is ResolutionRule.ABSOLUTE_MAJORITY
    assert severe.missing is MissingVotePolicy.COUNT_AS_NO
    assert settings.policy_for(BallotKind.MANUAL_SANCTION).duration_seconds == 600


@pytest.mark.parametrize("missing", ["DISCORD_TOKEN", "GUILD_ID", "PRIVILEGED_ROLE_ID"])
def test_required_identifiers(env, missing):
    env.delenv(missing)

    with pytest.raises(ConfigError, match=missing):
        load_settings()


def test_per_kind_policy_overrides(env):
    env.setenv("ADMISSION_DURATION_MINUTES", "30")
    env.setenv("ADMISSION_RULE", "unanimous")
    env.setenv("SEVERE_SANCTION_MISSING_VOTES", "count-as-yes")
    env.setenv("MANUAL_SANCTION_RESOLVE_EARLY", "false")
    env.setenv("SANCTION_DURATION_HOURS", "2")

    settings = load_settings()

    assert settings.admission_policy.duration_seconds == 1800
    assert settings.admission_policy.rule is ResolutionRule.UNANIMOUS
    assert settings.severe_sanction_policy.missing is MissingVotePolicy.COUNT_AS_YES
    assert settings.manual_sanction_policy.resolve_early is False
    assert settings.sanction_duration_seconds == 7200


def test_invalid_values_fall_back(env):
    env.setenv("ADMISSION_RULE", "plurality")
    env.setenv("PENDING_ROLE_ID", "not-a-number")
    env.setenv("PURGE_TIME", "25:99")

    settings = load_settings()

    assert settings.admission_policy.rule is ResolutionRule.SIMPLE_MAJORITY
    assert settings.pending_role_id is None
    assert settings.purge_time == "23:42"


def test_degraded_features_are_reported():
    bare = Settings(token="t", guild_id=1, privileged_role_id=100)
    notes = bare.degraded_features()

    assert any("SANCTIONED_ROLE_ID" in n for n in notes)
    assert any("LOG_CHANNEL_ID" in n for n in notes)

    full = Settings(
        token="t", guild_id=1, privileged_role_id=100, pending_role_id=1, sanctioned_role_id=2,
        protected_role_id=3, vote_channel_id=4, log_channel_id=5, fallback_channel_id=6, invite_channel_id=7,
    )
    assert full.degraded_features() == []
