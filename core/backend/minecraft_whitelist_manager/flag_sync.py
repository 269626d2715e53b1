"""
Whitelist Toggle Mirroring

The "whitelist enabled" flag exists twice: as our own setting and as the
host's server setting. A change on either side is copied to the other.
Each direction remembers the last value it pushed so the echo of its own
update is recognised and not sent back again.
"""

import logging
from typing import Any, Dict, Optional

from .config import HOST_WHITELIST_NODE, WHITELIST_ENABLED_NODE

logger = logging.getLogger(__name__)


class WhitelistFlagSync:
    """State machine tracking the last value seen on each side of the flag"""

    def __init__(self, enabled: bool,
                 plugin_node: str = WHITELIST_ENABLED_NODE,
                 host_node: str = HOST_WHITELIST_NODE):
        self.plugin_node = plugin_node
        self.host_node = host_node
        # Last value pushed to (or confirmed on) each side
        self.plugin_value = enabled
        self.host_value: Optional[bool] = enabled

    def on_setting_modified(self, node: str, value: Any) -> Dict[str, bool]:
        """
        Handle a setting change from either side

        Args:
            node: Setting node that changed
            value: New value

        Returns:
            Settings to push to the other side; empty if nothing to do
        """
        if not isinstance(value, bool):
            return {}

        if node == self.plugin_node:
            self.plugin_value = value
            if self.host_value == value:
                return {}
            self.host_value = value
            logger.debug(f"Mirroring {node}={value} to {self.host_node}")
            return {self.host_node: value}

        if node == self.host_node:
            self.host_value = value
            if self.plugin_value == value:
                return {}
            self.plugin_value = value
            logger.debug(f"Mirroring {node}={value} to {self.plugin_node}")
            return {self.plugin_node: value}

        return {}

    def forget_host_value(self) -> None:
        """Treat the host's value as unknown so our next change is always pushed"""
        self.host_value = None

    def on_console_toggle(self, enabled: bool) -> Dict[str, bool]:
        """
        Handle the server reporting the whitelist was switched on or off

        The server already has the new value, so only our setting is updated.
        """
        self.host_value = enabled
        if self.plugin_value == enabled:
            return {}
        self.plugin_value = enabled
        return {self.plugin_node: enabled}
