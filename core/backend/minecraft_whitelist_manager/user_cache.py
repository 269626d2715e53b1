"""
User Cache and Identity Resolution

Resolves player names to UUIDs. Java names go to the Mojang profile API,
names carrying the Geyser prefix go to the GeyserMC XUID API. Results are
kept in usercache.json (shared with the server's own session tracking),
and names that failed to resolve are not looked up again for a few minutes.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from .api_clients import GeyserXUIDClient, MojangProfileClient
from .config import (
    DEFAULT_GEYSER_PREFIX,
    EXPIRES_ON_FORMAT,
    LOOKUP_MISS_TTL,
    USER_CACHE_FILE,
    USER_CACHE_RETENTION,
)
from .storage import FileService

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_expires_on(moment: datetime) -> str:
    """Format a timestamp the way usercache.json stores it (offset with a colon)"""
    offset = moment.strftime("%z") or "+0000"
    return moment.strftime("%Y-%m-%d %H:%M:%S ") + f"{offset[:3]}:{offset[3:]}"


def parse_expires_on(value: str) -> datetime:
    """
    Parse a usercache.json timestamp

    Accepts both "+00:00" and "+0000" offsets.

    Raises:
        ValueError: If the timestamp is malformed or has no offset
    """
    return datetime.strptime(value, EXPIRES_ON_FORMAT)


@dataclass(frozen=True)
class PlayerIdentity:
    """A player name paired with its platform UUID"""

    name: str
    id: str

    def to_json(self) -> dict:
        return {"name": self.name, "uuid": self.id}

    @classmethod
    def from_json(cls, data: dict) -> "PlayerIdentity":
        return cls(name=str(data["name"]), id=str(data["uuid"]))


@dataclass
class UserCacheEntry:
    name: str
    uuid: str
    expires_on: datetime

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "uuid": self.uuid,
            "expiresOn": format_expires_on(self.expires_on),
        }

    @classmethod
    def from_json(cls, data: dict) -> "UserCacheEntry":
        if not isinstance(data["uuid"], str):
            raise TypeError(f"uuid must be a string, not {type(data['uuid']).__name__}")
        return cls(
            name=str(data["name"]),
            uuid=str(uuid.UUID(data["uuid"])),
            expires_on=parse_expires_on(data["expiresOn"]),
        )


class UserCache:
    """Name -> UUID resolver with a persistent cache and a lookup-miss backoff"""

    def __init__(self, files: FileService,
                 geyser_client: Optional[GeyserXUIDClient] = None,
                 mojang_client: Optional[MojangProfileClient] = None,
                 retention: timedelta = USER_CACHE_RETENTION,
                 miss_ttl: timedelta = LOOKUP_MISS_TTL,
                 clock: Callable[[], datetime] = utcnow):
        """
        Args:
            files: File access for the server directory
            geyser_client: Bedrock lookup backend
            mojang_client: Java lookup backend
            retention: Lifetime of new cache entries
            miss_ttl: How long a failed lookup suppresses retries
            clock: Returns the current time (timezone-aware)
        """
        self.files = files
        self.geyser_client = geyser_client or GeyserXUIDClient()
        self.mojang_client = mojang_client or MojangProfileClient()
        self.retention = retention
        self.miss_ttl = miss_ttl
        self.clock = clock

        self._lookup_misses: Dict[str, datetime] = {}
        self._cache: Dict[str, UserCacheEntry] = self._read_user_cache()

    @property
    def entries(self) -> List[UserCacheEntry]:
        return list(self._cache.values())

    def __len__(self):
        return len(self._cache)

    def __contains__(self, name: str):
        return name in self._cache

    # ----------------------------- Persistence -----------------------------

    def _read_user_cache(self) -> Dict[str, UserCacheEntry]:
        """
        Load usercache.json, dropping expired and malformed entries

        Returns:
            Dict of {name: entry}; empty if the file is missing or unreadable
        """
        file = self.files.get_file(USER_CACHE_FILE)
        if file is None or not file.exists():
            logger.warning("User cache file not found.")
            return {}

        try:
            raw = file.read_text()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read user cache: {e}")
            return {}

        logger.debug(f"Usercache: {raw}")
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error(f"Failed to parse user cache JSON: {e}")
            return {}

        if not isinstance(data, list):
            logger.error("Failed to parse user cache JSON: expected a list")
            return {}

        now = self.clock()
        cache = {}
        expired = 0
        for item in data:
            try:
                entry = UserCacheEntry.from_json(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed user cache entry {item!r}: {e}")
                continue

            if entry.expires_on < now:
                expired += 1
                continue
            cache[entry.name] = entry

        if expired:
            logger.debug(f"Purged {expired} expired user cache entries")
        return cache

    def _write_user_cache(self) -> None:
        file = self.files.get_file(USER_CACHE_FILE)
        if file is None:
            logger.warning("User cache file not found.")
            return

        data = json.dumps([entry.to_json() for entry in self._cache.values()], indent=2)
        try:
            file.write_text(data)
        except OSError as e:
            logger.error(f"Failed to write user cache: {e}")
            return

        logger.debug(f"Wrote usercache: {data}")

    async def write_user_cache(self) -> None:
        """Persist the positive cache to usercache.json"""
        await asyncio.to_thread(self._write_user_cache)

    async def refresh(self) -> None:
        """Reload the cache from usercache.json"""
        self._cache = await asyncio.to_thread(self._read_user_cache)

    # ----------------------------- Lookups -----------------------------

    def on_user_joined(self, name: str, user_id: str) -> None:
        """
        Record a player seen by the server, extending the entry's lifetime

        Args:
            name: Player name as reported by the server
            user_id: Player UUID
        """
        try:
            user_id = str(uuid.UUID(user_id))
        except (TypeError, ValueError, AttributeError):
            logger.warning(f"Ignoring join of {name} with malformed UUID {user_id!r}")
            return

        expires_on = self.clock() + self.retention
        entry = self._cache.get(name)
        if entry is not None and entry.uuid == user_id:
            entry.expires_on = expires_on
        else:
            self._cache[name] = UserCacheEntry(name, user_id, expires_on)
        self._lookup_misses.pop(name, None)

    async def _query(self, name: str, geyser_prefix: str) -> Optional[uuid.UUID]:
        if geyser_prefix and name.startswith(geyser_prefix):
            return await asyncio.to_thread(self.geyser_client.lookup, name[len(geyser_prefix):])
        return await asyncio.to_thread(self.mojang_client.lookup, name)

    async def resolve_one(self, name: str, geyser_prefix: str = DEFAULT_GEYSER_PREFIX) -> Optional[uuid.UUID]:
        """
        Get a player's UUID from their name

        Args:
            name: The player's name
            geyser_prefix: Name prefix marking Bedrock players

        Returns:
            The player's UUID, or None if it could not be resolved
        """
        now = self.clock()

        # Check if the user was missed recently
        missed_at = self._lookup_misses.get(name)
        if missed_at is not None:
            if missed_at > now - self.miss_ttl:
                logger.debug(f"Lookup miss for {name}")
                return None
            del self._lookup_misses[name]

        entry = self._cache.get(name)
        if entry is not None:
            logger.debug(f"Cache hit for {name}")
            return uuid.UUID(entry.uuid)

        logger.debug(f"Looking up ID for {name}")
        try:
            result = await self._query(name, geyser_prefix)
        except Exception as e:
            logger.exception(f"Lookup failed for {name}: {e}")
            result = None

        if result is not None:
            self._cache[name] = UserCacheEntry(name, str(result), self.clock() + self.retention)
            self._lookup_misses.pop(name, None)
        else:
            logger.debug(f"Adding {name} to lookup misses")
            self._lookup_misses[name] = self.clock()
        return result

    async def resolve_many(self, names: Iterable[str],
                           geyser_prefix: str = DEFAULT_GEYSER_PREFIX) -> List[PlayerIdentity]:
        """
        Look up a list of players concurrently

        Args:
            names: Player names
            geyser_prefix: Name prefix marking Bedrock players

        Returns:
            Identities for the names that resolved; failures are left out
        """
        names = list(names)
        results = await asyncio.gather(*(self.resolve_one(name, geyser_prefix) for name in names))

        users = []
        for name, result in zip(names, results):
            if result is not None:
                logger.debug(f"Found ID for {name}: {result}")
                users.append(PlayerIdentity(name, str(result)))

        await self.write_user_cache()
        return users
