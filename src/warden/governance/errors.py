from __future__ import annotations


class GovernanceError(Exception):
    """A request was refused. The message is shown to the requesting user."""


class DuplicateBallotError(GovernanceError):
    pass


class IneligibleError(GovernanceError):
    pass


class SelfVoteError(GovernanceError):
    pass


class BallotClosedError(GovernanceError):
    pass


class FeatureDisabledError(GovernanceError):
    pass


class PlatformError(Exception):
    """A Discord call failed (permissions, rate limit, network)."""


class DeliveryError(PlatformError):
    """A private message could not be delivered."""
