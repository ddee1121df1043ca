from __future__ import annotations

import discord

from ..constants import COLORS
from ..services.audit_store import SecurityRecord
from ..utils import field_value, mention, safe_embed
from .models import Ballot, BallotKind, Choice, Outcome, Visibility
from .tally import Tally

_TITLES = {
    BallotKind.ADMISSION: "Admission vote",
    BallotKind.MANUAL_SANCTION: "Sanction vote",
    BallotKind.SEVERE_SANCTION: "Severe sanction vote",
}

_OUTCOME_TEXT = {
    Outcome.APPROVED: "Approved",
    Outcome.REJECTED: "Rejected",
    Outcome.CANCELLED: "Cancelled",
}

_OUTCOME_COLORS = {
    Outcome.APPROVED: COLORS["success"],
    Outcome.REJECTED: COLORS["error"],
    Outcome.CANCELLED: COLORS["muted"],
}


def _question(ballot: Ballot) -> str:
    subject = f"{ballot.subject_name} ({mention(ballot.subject_id)})"
    if ballot.kind is BallotKind.ADMISSION:
        return f"Should {subject} become a member?"
    if ballot.kind is BallotKind.MANUAL_SANCTION:
        return f"Should {subject} be suspended from the group?"
    return f"Should {subject} be removed from the server?"


def _effects(ballot: Ballot) -> str:
    if ballot.kind is BallotKind.ADMISSION:
        return "If approved the nominee receives the member role."
    if ballot.kind is BallotKind.MANUAL_SANCTION:
        return "If approved the member role is suspended for a limited time."
    return "If approved the member is kicked from the server."


def _add_tally_fields(embed: discord.Embed, ballot: Ballot, t: Tally) -> None:
    if ballot.policy.visibility is Visibility.ANONYMOUS:
        embed.add_field(name="Yes", value=str(t.yes), inline=True)
        embed.add_field(name="No", value=str(t.no), inline=True)
    else:
        embed.add_field(
            name=f"Yes ({t.yes})", value=field_value(", ".join(ballot.voter_names(Choice.YES))), inline=True
        )
        embed.add_field(
            name=f"No ({t.no})", value=field_value(", ".join(ballot.voter_names(Choice.NO))), inline=True
        )
    embed.add_field(name="Not voted", value=str(t.missing), inline=True)


def ballot_embed(ballot: Ballot, t: Tally) -> discord.Embed:
    """Live state of an open ballot."""
    description = f"{_question(ballot)}\n{_effects(ballot)}"
    if ballot.reason:
        description += f"\n\n**Reason:** {ballot.reason}"
    embed = safe_embed(_TITLES[ballot.kind], description, COLORS["default"])
    if ballot.initiator_id is not None:
        embed.add_field(name="Requested by", value=mention(ballot.initiator_id), inline=True)
    embed.add_field(name="Rule", value=ballot.policy.rule.value, inline=True)
    embed.add_field(name="Ends", value=f"<t:{int(ballot.deadline)}:R>", inline=True)
    _add_tally_fields(embed, ballot, t)
    embed.set_footer(text=f"Ballot {ballot.id} · {ballot.policy.visibility.value} vote")
    return embed


def result_embed(ballot: Ballot, t: Tally) -> discord.Embed:
    """Final state of a resolved or cancelled ballot."""
    outcome = ballot.outcome or Outcome.CANCELLED
    embed = safe_embed(
        f"{_TITLES[ballot.kind]}: {_OUTCOME_TEXT[outcome]}",
        _question(ballot),
        _OUTCOME_COLORS[outcome],
    )
    _add_tally_fields(embed, ballot, t)
    embed.set_footer(text=f"Ballot {ballot.id}")
    return embed


def result_announcement(ballot: Ballot) -> str:
    subject = mention(ballot.subject_id)
    outcome = ballot.outcome
    if outcome is Outcome.CANCELLED:
        return f"The {_TITLES[ballot.kind].lower()} about {subject} was cancelled."
    if ballot.kind is BallotKind.ADMISSION:
        if outcome is Outcome.APPROVED:
            return f"{subject} has been accepted as a member."
        return f"{subject} was not accepted."
    if ballot.kind is BallotKind.MANUAL_SANCTION:
        if outcome is Outcome.APPROVED:
            return f"{subject} has been suspended from the group."
        return f"The suspension of {subject} was rejected."
    if outcome is Outcome.APPROVED:
        return f"{subject} has been removed from the server."
    return f"{subject} keeps their membership; the severe sanction was rejected."


def active_summary(ballots: list[Ballot]) -> discord.Embed:
    if not ballots:
        return safe_embed("Active votes", "No vote is currently open.", COLORS["info"])
    lines = []
    for b in ballots:
        t_yes, t_no = b.count(Choice.YES), b.count(Choice.NO)
        lines.append(
            f"`{b.id}` {_TITLES[b.kind]}: {b.subject_name} · {t_yes} yes / {t_no} no · ends <t:{int(b.deadline)}:R>"
        )
    return safe_embed("Active votes", "\n".join(lines), COLORS["info"])


def journal_embed(records: list[SecurityRecord], subject_id: int | None = None) -> discord.Embed:
    """Newest journal entries, optionally about one member."""
    title = "Security log" if subject_id is None else "Security log for a member"
    if not records:
        return safe_embed(title, "Nothing has been recorded.", COLORS["info"])
    lines = []
    for r in records:
        line = f"`{r.created_at_iso[:16]}` **{r.kind}** {r.action.replace('_', ' ')}"
        if r.actor_id is not None:
            line += f" by {mention(r.actor_id)}"
        if r.target_id is not None and subject_id is None:
            line += f" on {mention(r.target_id)}"
        outcome = r.details.get("outcome")
        if outcome:
            line += f" ({outcome})"
        lines.append(line)
    embed = safe_embed(title, "\n".join(lines), COLORS["security"])
    if subject_id is not None:
        embed.add_field(name="Member", value=mention(subject_id), inline=True)
    return embed
