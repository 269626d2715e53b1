"""
Configuration for Minecraft Whitelist Manager

Defines API endpoints, file names, setting nodes and default tunables.
"""

from datetime import timedelta
from pathlib import Path

from . import __version__

# Server directory used when no config overrides it
DEFAULT_SERVER_DIR = Path.cwd()

# Files managed inside the server directory
WHITELIST_FILE = "whitelist.json"
USER_CACHE_FILE = "usercache.json"

# API Endpoints
GEYSER_API = "https://api.geysermc.org/v2"
MOJANG_API = "https://api.mojang.com"

USER_AGENT = f"minecraft-whitelist-manager/{__version__}"
REQUEST_TIMEOUT = 10

# Bedrock players joining through Geyser/Floodgate carry this name prefix
DEFAULT_GEYSER_PREFIX = "."

# Failed lookups are not retried inside this window
LOOKUP_MISS_TTL = timedelta(minutes=5)

# Fresh user cache entries stay valid for this long
USER_CACHE_RETENTION = timedelta(days=30)

# usercache.json timestamp layout, e.g. "2024-05-01 13:37:00 +00:00"
EXPIRES_ON_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# Setting nodes shared with the host panel
WHITELIST_ENABLED_NODE = "WhitelistManager.Whitelist.Enabled"
WHITELIST_USERS_NODE = "WhitelistManager.Whitelist.Users"
HOST_WHITELIST_NODE = "MinecraftModule.Game.Whitelist"

CONSOLE_RELOAD_COMMAND = "whitelist reload"
