"""
Pterodactyl API Client

Runs the whitelist manager against a server hosted on a Pterodactyl panel:
run state, console commands and file access all go through the client API.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .config import HOST_WHITELIST_NODE, REQUEST_TIMEOUT
from .host import RunState, ServerHost
from .storage import FileHandle, FileService

logger = logging.getLogger(__name__)

# Pterodactyl power states -> host run states
POWER_STATES = {
    "offline": RunState.STOPPED,
    "starting": RunState.STARTING,
    "running": RunState.READY,
    "stopping": RunState.STOPPING,
}


class PterodactylError(IOError):
    pass


class PterodactylClient:
    """Client for a single server on the Pterodactyl client API"""

    def __init__(self, panel_url: str, api_key: str, server_id: str, timeout: float = REQUEST_TIMEOUT):
        """
        Initialize Pterodactyl API client

        Args:
            panel_url: Base URL of Pterodactyl panel (e.g., https://panel.example.com)
            api_key: Client API key (ptlc_ prefix)
            server_id: Server identifier (short id or UUID)
            timeout: Request timeout in seconds
        """
        self.panel_url = panel_url.rstrip('/')
        self.api_key = api_key
        self.server_id = server_id
        self.timeout = timeout

        if not api_key.startswith('ptlc_'):
            logger.warning("API key doesn't start with ptlc_ - file and console access need a client key")

        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Accept': 'application/json',
        })

    def _url(self, endpoint: str) -> str:
        return f"{self.panel_url}/api/client/servers/{self.server_id}{endpoint}"

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, self._url(endpoint), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"API request failed: {e}")
            raise PterodactylError(str(e)) from e
        return response

    def get_state(self) -> RunState:
        """
        Get the current power state of the server

        Returns:
            Mapped run state, UNKNOWN if the panel cannot be reached
        """
        try:
            response = self._request('GET', '/resources')
            response.raise_for_status()
            current = response.json().get('attributes', {}).get('current_state', '')
        except (PterodactylError, requests.RequestException, ValueError) as e:
            logger.error(f"Failed to get server state: {e}")
            return RunState.UNKNOWN

        return POWER_STATES.get(current, RunState.UNKNOWN)

    def send_command(self, command: str) -> bool:
        """
        Send a console command

        Args:
            command: Command line without leading slash

        Returns:
            True if the panel accepted the command
        """
        try:
            response = self._request('POST', '/command', json={'command': command})
        except PterodactylError:
            return False

        if response.status_code not in (200, 204):
            logger.error(f"Panel rejected command {command!r}: HTTP {response.status_code}")
            return False
        return True

    def read_file(self, path: str) -> Optional[str]:
        """
        Read a file from the server volume

        Returns:
            File contents, or None if the file does not exist
        """
        response = self._request('GET', '/files/contents', params={'file': f"/{path}"})
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise PterodactylError(f"Failed to read {path}: HTTP {response.status_code}")
        response.encoding = 'utf-8'
        return response.text

    def write_file(self, path: str, content: str) -> None:
        response = self._request(
            'POST', '/files/write',
            params={'file': f"/{path}"},
            data=content.encode('utf-8'),
            headers={'Content-Type': 'text/plain'},
        )
        if response.status_code not in (200, 204):
            raise PterodactylError(f"Failed to write {path}: HTTP {response.status_code}")

    def delete_file(self, path: str) -> None:
        response = self._request('POST', '/files/delete', json={'root': '/', 'files': [path]})
        if response.status_code not in (200, 204):
            raise PterodactylError(f"Failed to delete {path}: HTTP {response.status_code}")


class PterodactylFile(FileHandle):
    def __init__(self, client: PterodactylClient, path: str):
        self.client = client
        self.path = path
        # Body downloaded by exists(), handed to the next read_text()
        self._fetched: Optional[str] = None

    def exists(self) -> bool:
        try:
            self._fetched = self.client.read_file(self.path)
        except PterodactylError:
            self._fetched = None
            return False
        return self._fetched is not None

    def read_text(self) -> str:
        if self._fetched is not None:
            content, self._fetched = self._fetched, None
        else:
            content = self.client.read_file(self.path)
        if content is None:
            raise FileNotFoundError(self.path)
        return content

    def write_text(self, content: str) -> None:
        self.client.write_file(self.path, content)

    def delete(self) -> None:
        self.client.delete_file(self.path)


class PterodactylFileService(FileService):
    def __init__(self, client: PterodactylClient):
        self.client = client

    def get_file(self, path: str) -> Optional[FileHandle]:
        return PterodactylFile(self.client, path)


class PterodactylHost(ServerHost):
    """Host backed by a Pterodactyl server"""

    def __init__(self, client: PterodactylClient):
        super().__init__()
        self.client = client
        self.settings: Dict[str, Any] = {}

    @property
    def state(self) -> RunState:
        return self.client.get_state()

    def write_line(self, text: str) -> bool:
        if self.state != RunState.READY:
            logger.warning(f"Server not ready, dropping console command: {text}")
            return False
        return self.client.send_command(text)

    def push_settings(self, settings: Dict[str, Any]) -> None:
        if not settings:
            return
        # The panel has no settings store of its own; keep the latest values
        self.settings.update(settings)
        for node, value in settings.items():
            logger.info(f"Setting {node} = {value!r}")

        # The server-side toggle is applied through the console
        if HOST_WHITELIST_NODE in settings:
            self.write_line("whitelist on" if settings[HOST_WHITELIST_NODE] else "whitelist off")
