from __future__ import annotations

from typing import Final

# Discord limits
MAX_MESSAGE_LENGTH: Final[int] = 2000
MAX_EMBED_DESCRIPTION: Final[int] = 4096
MAX_EMBED_TITLE: Final[int] = 256
MAX_FIELD_VALUE: Final[int] = 1024

# Audit trail
AUDIT_PAGE_SIZE: Final[int] = 5

# In-memory bookkeeping lifetimes
TRUST_EXPECTATION_TTL_SECONDS: Final[int] = 60
DEPARTED_MEMORY_TTL_SECONDS: Final[int] = 60

# Membership purge
PURGE_KICK_PAUSE_SECONDS: Final[float] = 1.0

# Colors (hex values)
COLORS = {
    "default": 0x5865F2,
    "success": 0x57F287,
    "warning": 0xF1C40F,
    "error": 0xED4245,
    "info": 0x3498DB,
    "muted": 0x4F545C,
    "security": 0xE67E22,
}

# Error messages
ERROR_MESSAGES = {
    "missing_permissions": "You don't have permission to use this command.",
    "invalid_user": "Member not found.",
    "platform_error": "Discord refused that action. Check the bot's role position and permissions.",
    "unexpected_error": "Something went wrong running that command.",
}
