"""
Configuration Loader

Loads and validates configuration from YAML files.
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional

import yaml

from .config import (
    DEFAULT_GEYSER_PREFIX,
    DEFAULT_SERVER_DIR,
    LOOKUP_MISS_TTL,
    REQUEST_TIMEOUT,
    USER_CACHE_RETENTION,
)
from .host import RunState

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'server': {
        'dir': str(DEFAULT_SERVER_DIR),
        'assume_state': RunState.STOPPED.value,
    },
    'whitelist': {
        'enabled': False,
        'users': [],
        'geyser_prefix': DEFAULT_GEYSER_PREFIX,
    },
    'user_cache': {
        'retention_days': USER_CACHE_RETENTION.days,
        'miss_ttl_minutes': int(LOOKUP_MISS_TTL.total_seconds() // 60),
    },
    'http': {
        'timeout': REQUEST_TIMEOUT,
    },
    'pterodactyl': {},
}


def get_config_paths() -> list[Path]:
    """
    Get list of config file paths to check in priority order

    Returns:
        List of paths to check (first found wins)
    """
    paths = []

    # 1. User config directory
    user_config = Path.home() / ".config" / "minecraft-whitelist-manager" / "config.yaml"
    paths.append(user_config)

    # 2. Current working directory
    cwd_config = Path.cwd() / "config.yaml"
    paths.append(cwd_config)

    # 3. Project root (for development)
    project_root = Path(__file__).parent.parent.parent.parent
    project_config = project_root / "config.yaml"
    paths.append(project_config)

    return paths


def load_config(config_path: Optional[Path] = None) -> Dict:
    """
    Load configuration from YAML file

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Configuration dict with server, whitelist, user_cache, http and
        pterodactyl sections
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    # Determine which config file to use
    if config_path:
        config_files = [config_path]
    else:
        config_files = get_config_paths()

    loaded_from = None
    for path in config_files:
        if path.exists():
            loaded_from = path
            break

    if not loaded_from:
        logger.info("No config file found, using defaults")
        return config

    logger.info(f"Loading configuration from: {loaded_from}")

    try:
        with open(loaded_from, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)

        if not user_config:
            logger.warning(f"Config file {loaded_from} is empty")
            return config

        if not isinstance(user_config, dict):
            logger.error(f"Config file {loaded_from} must contain a mapping")
            logger.info("Falling back to defaults")
            return config

        # Process environment variable substitution
        user_config = substitute_env_vars(user_config)

        # Merge user config with defaults, section by section
        for section, defaults in config.items():
            if section in user_config and isinstance(user_config[section], dict):
                defaults.update(user_config[section])

        logger.info(f"✓ Loaded {len(config['whitelist']['users'] or [])} whitelisted user(s) from config")

        return config

    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML config: {e}")
        logger.info("Falling back to defaults")
        return copy.deepcopy(DEFAULT_CONFIG)
    except OSError as e:
        logger.error(f"Error loading config: {e}")
        logger.info("Falling back to defaults")
        return copy.deepcopy(DEFAULT_CONFIG)


def substitute_env_vars(config: Dict) -> Dict:
    """
    Substitute environment variables in config values

    Handles patterns like:
    - ${ENV_VAR}
    - ${ENV_VAR:-default_value}

    Args:
        config: Configuration dict

    Returns:
        Config with environment variables substituted
    """
    pattern = re.compile(r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}')

    def replacer(match):
        var_name = match.group(1)
        default_value = match.group(2) or ""
        return os.environ.get(var_name, default_value)

    def substitute_value(value):
        if isinstance(value, str):
            return pattern.sub(replacer, value)
        elif isinstance(value, dict):
            return {k: substitute_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [substitute_value(item) for item in value]
        else:
            return value

    return substitute_value(config)


def validate_config(config: Dict) -> tuple[bool, list[str]]:
    """
    Validate configuration structure

    Args:
        config: Configuration dict to validate

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []

    server = config.get('server', {})
    valid_states = [state.value for state in RunState]
    if server.get('assume_state') not in valid_states:
        errors.append(
            f"server.assume_state must be one of {', '.join(valid_states)}"
        )

    whitelist = config.get('whitelist', {})
    if not isinstance(whitelist.get('enabled'), bool):
        errors.append("whitelist.enabled must be true or false")

    users = whitelist.get('users')
    if users is not None and not isinstance(users, (list, str)):
        errors.append("whitelist.users must be a list of player names")

    prefix = whitelist.get('geyser_prefix')
    if prefix is not None and not isinstance(prefix, str):
        errors.append("whitelist.geyser_prefix must be a string")

    user_cache = config.get('user_cache', {})
    for key in ('retention_days', 'miss_ttl_minutes'):
        value = user_cache.get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
            errors.append(f"user_cache.{key} must be a non-negative number")

    timeout = config.get('http', {}).get('timeout')
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        errors.append("http.timeout must be a positive number")

    # Validate Pterodactyl config (if present)
    if config.get('pterodactyl'):
        ptero = config['pterodactyl']

        if 'panel_url' not in ptero:
            errors.append("Pterodactyl config missing 'panel_url'")

        if 'api_key' not in ptero:
            errors.append("Pterodactyl config missing 'api_key'")

        if 'server_id' not in ptero:
            errors.append("Pterodactyl config missing 'server_id'")

    is_valid = len(errors) == 0
    return is_valid, errors


def save_config(config: Dict, config_path: Optional[Path] = None) -> bool:
    """
    Save configuration to YAML file

    Args:
        config: Configuration dict to save
        config_path: Optional path to save to (defaults to user config)

    Returns:
        True if saved successfully
    """
    if not config_path:
        # Default to user config directory
        config_path = Path.home() / ".config" / "minecraft-whitelist-manager" / "config.yaml"

    try:
        # Create directory if it doesn't exist
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)

        logger.info(f"✓ Configuration saved to: {config_path}")
        return True

    except OSError as e:
        logger.error(f"Failed to save config: {e}")
        return False
