import pytest

from warden.governance.events import MemberRolesChanged, MessageCreated
from warden.governance.models import MessageSnapshot, Outcome
from warden.testing.fakes import PENDING, PRIVILEGED, seed_members


def snapshot(message_id, author_id=1, content="hello"):
    return MessageSnapshot(
        message_id=message_id, author_id=author_id, author_name="member", channel_id=600, content=content
    )


@pytest.mark.asyncio
class TestGovernanceEngine:
    async def test_unknown_event_is_rejected(self, engine):
        with pytest.raises(TypeError):
            await engine.dispatch(object())

    async def test_messages_are_captured(self, engine):
        await engine.dispatch(MessageCreated(snapshot(1)))

        assert engine.snapshots.pop(1).content == "hello"

    async def test_mass_mention_by_outsider_opens_nothing(self, platform, engine):
        seed_members(platform, 3)
        platform.add_member(40, "visitor")

        await engine.dispatch(MessageCreated(snapshot(1, author_id=40), mass_mention=True))

        assert engine.votes.active() == []

    async def test_admission_cancelled_when_role_granted_by_hand(self, platform, engine):
        seed_members(platform, 3)
        platform.add_member(50, "nominee")
        ballot = await engine.votes.open_admission(1, 50, channel_id=None)
        await platform.add_role(50, PRIVILEGED, reason="granted by hand")

        await engine.dispatch(
            MemberRolesChanged(platform.members[50], added=frozenset({PRIVILEGED}), removed=frozenset())
        )

        assert ballot.outcome is Outcome.CANCELLED
        assert PENDING not in platform.roles_of(50)
        assert PRIVILEGED in platform.roles_of(50)

    async def test_sweep_prunes_expired_state(self, clock, engine):
        await engine.dispatch(MessageCreated(snapshot(1)))
        engine.reentry.record(5, "https://discord.gg/x", "member5")
        engine.trust.expect(5, PRIVILEGED)
        clock.advance(2 * 24 * 3600)

        report = await engine.sweep()

        assert report.snapshots_expired == 1
        assert report.reentries_expired == 1
        assert report.expectations_expired == 1
        assert len(engine.snapshots) == 0
        assert 5 not in engine.reentry

    async def test_start_and_close(self, engine):
        engine.start()
        assert engine._sweeper is not None

        await engine.close()

        assert engine._sweeper is None
