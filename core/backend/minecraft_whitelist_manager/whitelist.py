"""
Whitelist Management

Owns whitelist.json. Every mutation resolves names through the user cache,
writes the file, republishes the name list and asks a running server to
reload. The whitelist toggle is mirrored with the host's setting, and
console output is watched for toggles, kicks and joins.
"""

import asyncio
import functools
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from .config import (
    CONSOLE_RELOAD_COMMAND,
    DEFAULT_GEYSER_PREFIX,
    WHITELIST_ENABLED_NODE,
    WHITELIST_FILE,
    WHITELIST_USERS_NODE,
)
from .flag_sync import WhitelistFlagSync
from .host import RunState, ServerHost
from .storage import FileService
from .user_cache import PlayerIdentity, UserCache

logger = logging.getLogger(__name__)

# Console line prefix, e.g. "[13:37:00] [Server thread/INFO]: "
LOG_PREFIX = r"^\[\d\d:\d\d:\d\d\] \[(.+?)?INFO\]: "
IPV4 = r"(?P<ip>(?:\d{1,3}\.){3}\d{1,3}):\d{1,5}"

_MESSAGE_HANDLERS = []


def message_handler(pattern: str):
    """Register a Whitelist method to be called for console lines matching pattern"""
    regex = re.compile(pattern)

    def decorator(func):
        _MESSAGE_HANDLERS.append((regex, func.__name__))
        return func
    return decorator


@dataclass
class ActionResult:
    """Outcome of a whitelist operation, as reported to the UI"""

    success: bool
    reason: str = ""
    skipped: bool = False

    @classmethod
    def ok(cls) -> "ActionResult":
        return cls(success=True)

    @classmethod
    def failure(cls, reason: str) -> "ActionResult":
        return cls(success=False, reason=reason)

    @classmethod
    def skip(cls, reason: str) -> "ActionResult":
        return cls(success=False, reason=reason, skipped=True)

    def __bool__(self):
        return self.success


@dataclass
class WhitelistSettings:
    """Whitelist section of the manager's settings"""

    enabled: bool = False
    users: List[str] = field(default_factory=list)
    geyser_prefix: str = DEFAULT_GEYSER_PREFIX

    def __post_init__(self):
        self.users = self._parse_list(self.users)
        self.enabled = bool(self.enabled)
        self.geyser_prefix = "" if self.geyser_prefix is None else str(self.geyser_prefix)

    @staticmethod
    def _parse_list(value) -> List[str]:
        """Accept a list or a newline separated string"""
        if isinstance(value, list):
            return [str(x).strip() for x in value if str(x).strip()]
        if isinstance(value, str) and value.strip():
            return [line.strip() for line in value.split("\n") if line.strip()]
        return []

    @classmethod
    def from_dict(cls, config: dict) -> "WhitelistSettings":
        return cls(**{k: v for k, v in config.items() if k in cls.__annotations__})


def single_flight(description: str):
    """
    Drop calls made while the same operation is still running

    The wrapped coroutine's failures are logged and reported as a failed
    ActionResult instead of propagating.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            kind = func.__name__
            if kind in self._running:
                logger.debug(f"{description} already in progress, skipping")
                return ActionResult.skip(f"{description} already in progress")

            self._running.add(kind)
            logger.info(f"{description}...")
            try:
                return await func(self, *args, **kwargs)
            except Exception as e:
                logger.exception(f"{description} failed: {e}")
                return ActionResult.failure(str(e))
            finally:
                self._running.discard(kind)
        return wrapper
    return decorator


class Whitelist:
    """The server whitelist and its enabled flag"""

    def __init__(self, host: ServerHost, files: FileService, user_cache: UserCache,
                 settings: Optional[WhitelistSettings] = None,
                 on_user_not_whitelisted: Optional[Callable[[str, str], None]] = None):
        """
        Args:
            host: Server host (run state, console, settings observers)
            files: File access for the server directory
            user_cache: Name -> UUID resolver
            settings: Whitelist settings; defaults if omitted
            on_user_not_whitelisted: Called with (name, ip) when a player is
                turned away for not being whitelisted
        """
        self.host = host
        self.files = files
        self.user_cache = user_cache
        self.settings = settings or WhitelistSettings()
        self.on_user_not_whitelisted = on_user_not_whitelisted
        self._running = set()

        self._whitelist: List[PlayerIdentity] = self._read_whitelist()
        self.settings.users = self.get_whitelist_names()

        self.flag_sync = WhitelistFlagSync(self.settings.enabled)

        host.subscribe_log(self.on_log_line)
        host.subscribe_settings(self.on_setting_modified)

    @property
    def entries(self) -> List[PlayerIdentity]:
        return list(self._whitelist)

    def get_whitelist_names(self) -> List[str]:
        """Get the names of users on the whitelist"""
        return [entry.name for entry in self._whitelist]

    # ----------------------------- Persistence -----------------------------

    def _read_whitelist(self) -> List[PlayerIdentity]:
        """
        Read the whitelist from whitelist.json

        Returns:
            List of whitelist entries; empty if missing or malformed
        """
        file = self.files.get_file(WHITELIST_FILE)
        if file is None or not file.exists():
            logger.debug("Failed to get whitelist.json")
            return []

        try:
            raw = file.read_text()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read whitelist.json: {e}")
            return []

        logger.debug(f"Whitelist: {raw}")
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.info(f"Failed to parse whitelist.json: {e}")
            return []

        if not isinstance(data, list):
            logger.info("Failed to parse whitelist.json: expected a list")
            return []

        whitelist = []
        for item in data:
            try:
                whitelist.append(PlayerIdentity.from_json(item))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed whitelist entry {item!r}: {e}")

        logger.info("Whitelist loaded")
        return whitelist

    def _write_whitelist(self, whitelist: List[PlayerIdentity]) -> None:
        """
        Write the whitelist to whitelist.json

        Raises:
            OSError: If the file cannot be written
        """
        file = self.files.get_file(WHITELIST_FILE)
        if file is None:
            raise FileNotFoundError("Failed to get whitelist.json")

        data = json.dumps([entry.to_json() for entry in whitelist], indent=2)
        file.write_text(data)

        logger.info("Whitelist saved")
        logger.debug(f"Whitelist: {data}")

    async def _commit(self, whitelist: List[PlayerIdentity]) -> None:
        await asyncio.to_thread(self._write_whitelist, whitelist)
        self._whitelist = whitelist
        await self.reload_settings()

    # ----------------------------- Observers -----------------------------

    def _publish_names(self) -> None:
        names = self.get_whitelist_names()
        self.settings.users = names
        self.host.push_settings({WHITELIST_USERS_NODE: names})

    async def _host_state(self) -> RunState:
        return await asyncio.to_thread(getattr, self.host, "state")

    async def reload_settings(self) -> None:
        """Have a running server reload whitelist.json and republish the names"""
        if await self._host_state() == RunState.READY:
            await asyncio.to_thread(self.host.write_line, CONSOLE_RELOAD_COMMAND)
        self._publish_names()

    # ----------------------------- Operations -----------------------------

    @single_flight("Refreshing whitelist")
    async def refresh(self) -> ActionResult:
        """Re-read whitelist.json and republish the names"""
        self._whitelist = await asyncio.to_thread(self._read_whitelist)
        self._publish_names()
        return ActionResult.ok()

    @single_flight("Updating the whitelist's users")
    async def set_whitelist(self, names: Optional[Iterable[str]] = None) -> ActionResult:
        """
        Replace the whitelist with a list of players

        Names that cannot be resolved are left out.

        Args:
            names: Player names; defaults to the configured user list
        """
        names = list(self.settings.users if names is None else names)

        state = await self._host_state()
        if state not in (RunState.READY, RunState.STOPPED):
            logger.debug("Server is not fully started or fully shut down, skipping whitelist update")
            await self.refresh()
            return ActionResult.failure("Server is not fully started or fully shut down")

        resolved = await self.user_cache.resolve_many(names, self.settings.geyser_prefix)
        await self._commit(resolved)
        return ActionResult.ok()

    @single_flight("Adding users to whitelist")
    async def add_users(self, names: Iterable[str]) -> ActionResult:
        """
        Add players to the whitelist

        Args:
            names: Player names
        """
        resolved = await self.user_cache.resolve_many(names, self.settings.geyser_prefix)
        await self._commit(self._whitelist + resolved)
        return ActionResult.ok()

    async def remove_users(self, names: Iterable[str]) -> ActionResult:
        """
        Remove players from the whitelist

        Args:
            names: Player names (exact match)
        """
        names = set(names)
        try:
            await self._commit([entry for entry in self._whitelist if entry.name not in names])
        except Exception as e:
            logger.exception(f"Removing users from whitelist failed: {e}")
            return ActionResult.failure(str(e))
        return ActionResult.ok()

    # ----------------------------- Event Handlers -----------------------------

    def on_setting_modified(self, node: str, value: Any) -> None:
        if node == WHITELIST_ENABLED_NODE and isinstance(value, bool):
            self.settings.enabled = value
        elif node == WHITELIST_USERS_NODE and isinstance(value, list):
            self.settings.users = WhitelistSettings._parse_list(value)

        changes = self.flag_sync.on_setting_modified(node, value)
        if changes:
            self.host.push_settings(changes)

    def on_log_line(self, line: str) -> None:
        line = line.rstrip("\r\n")
        for regex, handler_name in _MESSAGE_HANDLERS:
            match = regex.match(line)
            if match:
                getattr(self, handler_name)(match)
                return

    def _console_toggle(self, enabled: bool) -> None:
        self.settings.enabled = enabled
        changes = self.flag_sync.on_console_toggle(enabled)
        if changes:
            self.host.push_settings(changes)

    @message_handler(LOG_PREFIX + r"Whitelist is now turned on$")
    def whitelist_enabled(self, match: re.Match) -> None:
        logger.debug("Whitelist enabled via console")
        self._console_toggle(True)

    @message_handler(LOG_PREFIX + r"Whitelist is now turned off$")
    def whitelist_disabled(self, match: re.Match) -> None:
        logger.debug("Whitelist disabled via console")
        self._console_toggle(False)

    @message_handler(LOG_PREFIX + r"(?P<name>\S+) \(/" + IPV4 + r"\) lost connection: You are not whitelisted on this server!$")
    @message_handler(LOG_PREFIX + r"Disconnecting (?P<name>\S+) \(/" + IPV4 + r"\): You are not whitelisted on this server!$")
    def user_not_whitelisted(self, match: re.Match) -> None:
        name, ip = match.group("name"), match.group("ip")
        logger.info(f"User not whitelisted: {name} ({ip})")
        if self.on_user_not_whitelisted is not None:
            self.on_user_not_whitelisted(name, ip)

    @message_handler(LOG_PREFIX + r"UUID of player (?P<name>\S+) is (?P<uuid>[0-9a-fA-F-]{36})$")
    def user_joined(self, match: re.Match) -> None:
        name, user_id = match.group("name"), match.group("uuid").lower()
        logger.debug(f"Saw {name} join with UUID {user_id}")
        self.user_cache.on_user_joined(name, user_id)
