"""
Server Host Interface

The host is the panel or process supervisor running the Minecraft server.
Components talk to it only through this interface: query the run state,
write console commands, push setting values to observers, and subscribe
to console lines and setting changes.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

LogCallback = Callable[[str], None]
SettingCallback = Callable[[str, Any], None]


class RunState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"
    UNKNOWN = "unknown"


class ServerHost:
    """Base class for hosts; keeps the subscriber registries"""

    def __init__(self):
        self._log_callbacks: List[LogCallback] = []
        self._setting_callbacks: List[SettingCallback] = []

    @property
    def state(self) -> RunState:
        raise NotImplementedError

    def write_line(self, text: str) -> bool:
        """
        Send a line to the server console

        Returns:
            True if the line was delivered
        """
        raise NotImplementedError

    def push_settings(self, settings: Dict[str, Any]) -> None:
        """Publish setting values to observers (UI, panel)"""
        raise NotImplementedError

    def subscribe_log(self, callback: LogCallback) -> None:
        self._log_callbacks.append(callback)

    def subscribe_settings(self, callback: SettingCallback) -> None:
        self._setting_callbacks.append(callback)

    def dispatch_log_line(self, line: str) -> None:
        for callback in list(self._log_callbacks):
            try:
                callback(line)
            except Exception as e:
                logger.exception(f"Log handler failed on line {line!r}: {e}")

    def dispatch_setting(self, node: str, value: Any) -> None:
        for callback in list(self._setting_callbacks):
            try:
                callback(node, value)
            except Exception as e:
                logger.exception(f"Setting handler failed for {node}: {e}")


class LocalServerHost(ServerHost):
    """
    Host for a server directory managed by hand

    There is no console attached, so the run state is whatever the operator
    declares and console commands are only logged.
    """

    def __init__(self, state: RunState = RunState.STOPPED):
        super().__init__()
        self._state = state
        self.settings: Dict[str, Any] = {}
        self.console: List[str] = []

    @property
    def state(self) -> RunState:
        return self._state

    @state.setter
    def state(self, value: RunState):
        self._state = value

    def write_line(self, text: str) -> bool:
        if self._state != RunState.READY:
            logger.warning(f"Server not ready, dropping console command: {text}")
            return False
        logger.info(f"Console: {text}")
        self.console.append(text)
        return True

    def push_settings(self, settings: Dict[str, Any]) -> None:
        if not settings:
            return
        self.settings.update(settings)
        for node, value in settings.items():
            logger.debug(f"Setting {node} = {value!r}")
        # Settings pushed by us are observed like any other change
        for node, value in settings.items():
            self.dispatch_setting(node, value)
