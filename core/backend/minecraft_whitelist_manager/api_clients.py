"""
API Clients for Player Identity Lookups

Handles communication with the GeyserMC (Xbox XUID) and Mojang profile APIs.
"""

import logging
import uuid
from typing import Optional

import requests

from .config import GEYSER_API, MOJANG_API, REQUEST_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)


def xuid_to_uuid(xuid: int) -> uuid.UUID:
    """
    Convert an Xbox XUID to the UUID Floodgate assigns to Bedrock players

    The XUID is written as hex and left-padded to 32 digits, giving
    00000000-0000-0000-xxxx-xxxxxxxxxxxx.

    Raises:
        ValueError: If the XUID does not fit a 128-bit UUID
    """
    return uuid.UUID(hex=format(xuid, "X").rjust(32, "0"))


class GeyserXUIDClient:
    """Client for the GeyserMC global API (Bedrock gamertag -> XUID)"""

    def __init__(self, timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def lookup(self, gamertag: str) -> Optional[uuid.UUID]:
        """
        Look up the Floodgate UUID of a Bedrock player

        Args:
            gamertag: Xbox gamertag, without the Geyser prefix

        Returns:
            UUID derived from the player's XUID, or None if not found
        """
        url = f"{GEYSER_API}/xbox/xuid/{gamertag}"

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to query Geyser API for {gamertag}: {e}")
            return None

        if response.status_code != 200:
            logger.info(f"Failed to get XUID for {gamertag}")
            logger.debug(f"Response: {response.text}")
            return None

        try:
            xuid = response.json()["xuid"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Malformed Geyser API response for {gamertag}: {e}")
            return None

        if not isinstance(xuid, int) or isinstance(xuid, bool):
            logger.error(f"Malformed Geyser API response for {gamertag}: xuid is not an integer")
            logger.debug(f"XUID: {xuid!r}")
            return None

        try:
            return xuid_to_uuid(xuid)
        except ValueError as e:
            logger.error(f"Failed to parse XUID for {gamertag}")
            logger.error(f"XUID: {xuid}")
            logger.error(str(e))
            return None


class MojangProfileClient:
    """Client for the Mojang profile API (Java username -> UUID)"""

    def __init__(self, timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def lookup(self, username: str) -> Optional[uuid.UUID]:
        """
        Look up the UUID of a Java player

        Args:
            username: Exact player name

        Returns:
            Player UUID, or None if not found
        """
        url = f"{MOJANG_API}/users/profiles/minecraft/{username}"

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to query Mojang API for {username}: {e}")
            return None

        if response.status_code != 200:
            logger.info(f"Failed to get UUID for {username}")
            logger.debug(f"Response: {response.text}")
            return None

        try:
            profile_id = response.json()["id"]
            return uuid.UUID(hex=profile_id)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Failed to parse UUID for {username}: {e}")
            return None
