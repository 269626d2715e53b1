"""
Minecraft Whitelist Manager

Whitelist synchronization for Minecraft servers (Java + Bedrock via Geyser).
Resolves player names to UUIDs, keeps whitelist.json in sync and mirrors
the whitelist toggle between the manager and the host panel.

Version: 1.0.0
"""

__version__ = "1.0.0"
__description__ = "Whitelist synchronization and player identity resolution for Minecraft servers"

from .user_cache import PlayerIdentity, UserCache
from .whitelist import ActionResult, Whitelist, WhitelistSettings

__all__ = [
    "ActionResult",
    "PlayerIdentity",
    "UserCache",
    "Whitelist",
    "WhitelistSettings",
]
