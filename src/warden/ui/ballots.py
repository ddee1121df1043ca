from __future__ import annotations

import logging

import discord

from ..governance.errors import GovernanceError, PlatformError
from ..governance.events import BallotChoiceCast
from ..governance.models import Choice
from ..utils import error_embed, safe_followup, success_embed

log = logging.getLogger("warden.ui.ballots")


class BallotButton(discord.ui.Button):
    def __init__(self, ballot_id: str, choice: Choice, disabled: bool = False):
        yes = choice is Choice.YES
        super().__init__(
            label="Yes" if yes else "No",
            style=discord.ButtonStyle.success if yes else discord.ButtonStyle.danger,
            custom_id=f"warden:ballot:{ballot_id}:{choice.value}",
            disabled=disabled,
        )
        self.ballot_id = ballot_id
        self.choice = choice

    async def callback(self, interaction: discord.Interaction) -> None:
        if not interaction.guild:
            return
        bot = interaction.client  # type: ignore
        await interaction.response.defer(ephemeral=True)
        try:
            await bot.engine.dispatch(BallotChoiceCast(self.ballot_id, interaction.user.id, self.choice))  # type: ignore[attr-defined]
        except GovernanceError as e:
            await safe_followup(interaction, embed=error_embed(str(e)), ephemeral=True)
            return
        except PlatformError as e:
            log.error("Vote on %s by %s failed: %s", self.ballot_id, interaction.user.id, e)
            await safe_followup(interaction, embed=error_embed("Your vote could not be processed."), ephemeral=True)
            return
        await safe_followup(
            interaction, embed=success_embed(f"Your vote (**{self.choice.value}**) has been recorded."), ephemeral=True
        )


class BallotView(discord.ui.View):
    def __init__(self, ballot_id: str, disabled: bool = False):
        super().__init__(timeout=None)
        self.add_item(BallotButton(ballot_id, Choice.YES, disabled))
        self.add_item(BallotButton(ballot_id, Choice.NO, disabled))
