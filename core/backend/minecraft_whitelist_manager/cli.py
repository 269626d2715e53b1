"""
Command-Line Interface

Entry point for minecraft-whitelist-manager CLI tool.
"""

import argparse
import asyncio
import copy
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Dict, Optional, Tuple

from . import __version__
from .api_clients import GeyserXUIDClient, MojangProfileClient
from .config import WHITELIST_ENABLED_NODE
from .config_loader import DEFAULT_CONFIG, load_config, save_config, validate_config
from .host import LocalServerHost, RunState, ServerHost
from .pterodactyl import PterodactylClient, PterodactylFileService, PterodactylHost
from .storage import FileService, LocalFileService
from .user_cache import UserCache
from .whitelist import ActionResult, Whitelist, WhitelistSettings

logger = logging.getLogger(__name__)


# Logging setup
def setup_logging(verbose: bool = False, log_file: Optional[Path] = None):
    """Configure logging for CLI"""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def build_backend(config: Dict) -> Tuple[ServerHost, FileService]:
    """
    Create the host and file service described by the config

    A pterodactyl section selects the panel; otherwise the local server
    directory is used.
    """
    timeout = config['http']['timeout']
    ptero = config.get('pterodactyl') or {}

    if ptero:
        client = PterodactylClient(ptero['panel_url'], ptero['api_key'], ptero['server_id'], timeout=timeout)
        return PterodactylHost(client), PterodactylFileService(client)

    server = config['server']
    host = LocalServerHost(state=RunState(server['assume_state']))
    return host, LocalFileService(Path(server['dir']))


def build_whitelist(config: Dict) -> Whitelist:
    """Wire up the user cache and whitelist for the configured server"""
    host, files = build_backend(config)

    timeout = config['http']['timeout']
    cache_config = config['user_cache']
    user_cache = UserCache(
        files,
        geyser_client=GeyserXUIDClient(timeout=timeout),
        mojang_client=MojangProfileClient(timeout=timeout),
        retention=timedelta(days=cache_config['retention_days']),
        miss_ttl=timedelta(minutes=cache_config['miss_ttl_minutes']),
    )

    def user_not_whitelisted(name: str, ip: str):
        logger.warning(f"⚠ {name} ({ip}) tried to join but is not whitelisted")

    settings = WhitelistSettings.from_dict(config['whitelist'])
    whitelist = Whitelist(host, files, user_cache, settings, on_user_not_whitelisted=user_not_whitelisted)
    # A fresh process has not seen the server's toggle yet
    whitelist.flag_sync.forget_host_value()
    return whitelist


def report(action: str, result: ActionResult) -> int:
    if result.success:
        logger.info(f"✓ {action} completed")
        return 0
    if result.skipped:
        logger.warning(f"⚠ {action} skipped: {result.reason}")
        return 1
    logger.error(f"✗ {action} failed: {result.reason}")
    return 1


def show_status(whitelist: Whitelist) -> None:
    logger.info("=" * 70)
    logger.info("Whitelist Status")
    logger.info("=" * 70)
    logger.info(f"Server state: {whitelist.host.state.value}")
    logger.info(f"Whitelist enabled: {whitelist.settings.enabled}")
    logger.info(f"Geyser prefix: {whitelist.settings.geyser_prefix!r}")
    logger.info(f"Cached identities: {len(whitelist.user_cache)}")
    logger.info("")

    entries = whitelist.entries
    if not entries:
        logger.info("No whitelisted players")
        return

    logger.info(f"{len(entries)} whitelisted player(s):")
    for entry in entries:
        logger.info(f"  • {entry.name:<20} {entry.id}")


def run_lookup(whitelist: Whitelist, names) -> int:
    """Resolve names without touching the whitelist"""
    users = asyncio.run(whitelist.user_cache.resolve_many(names, whitelist.settings.geyser_prefix))
    found = {user.name: user.id for user in users}

    for name in names:
        if name in found:
            logger.info(f"  ✓ {name}: {found[name]}")
        else:
            logger.info(f"  ✗ {name}: not found")

    return 0 if len(found) == len(set(names)) else 1


def run_toggle(whitelist: Whitelist, enabled: bool) -> int:
    """Switch the whitelist on or off and mirror it to the server"""
    whitelist.on_setting_modified(WHITELIST_ENABLED_NODE, enabled)
    logger.info(f"✓ Whitelist {'enabled' if enabled else 'disabled'}")
    return 0


def run_scan_log(whitelist: Whitelist, log_path: Path) -> int:
    """Feed a server log through the console handlers"""
    if not log_path.exists():
        logger.error(f"✗ Log file not found: {log_path}")
        return 1

    lines = 0
    with open(log_path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            whitelist.host.dispatch_log_line(line)
            lines += 1

    # Players seen joining were added to the user cache
    asyncio.run(whitelist.user_cache.write_user_cache())

    logger.info(f"✓ Scanned {lines} line(s) from {log_path}")
    logger.info(f"Whitelist enabled: {whitelist.settings.enabled}")
    return 0


def run_init_wizard() -> int:
    """
    Interactive setup wizard to create config.yaml

    Returns:
        Exit code (0 = success)
    """
    logger.info("=" * 70)
    logger.info("Minecraft Whitelist Manager - Setup Wizard")
    logger.info("=" * 70)
    logger.info("\nThis wizard will help you create a configuration file.\n")

    config = copy.deepcopy(DEFAULT_CONFIG)

    logger.info("Step 1: Server Location")
    logger.info("-" * 40)
    panel_url = input("Pterodactyl panel URL [skip for a local server directory]: ").strip()

    if panel_url:
        api_key = input("Client API key (ptlc_ prefix): ").strip()
        server_id = input("Server identifier: ").strip()

        if not api_key or not server_id:
            logger.warning("Missing API key or server id - skipping Pterodactyl configuration")
        else:
            config['pterodactyl'] = {
                'panel_url': panel_url,
                'api_key': api_key,
                'server_id': server_id,
            }

            # Test connection
            logger.info("\nTesting Pterodactyl connection...")
            state = PterodactylClient(panel_url, api_key, server_id).get_state()
            if state == RunState.UNKNOWN:
                logger.error("✗ Could not read server state")
                logger.info("You can fix the panel settings later manually")
            else:
                logger.info(f"✓ Connection successful! Server is {state.value}")

    if not config['pterodactyl']:
        default_dir = config['server']['dir']
        server_dir = input(f"Server directory [{default_dir}]: ").strip() or default_dir
        config['server']['dir'] = server_dir

    logger.info("\nStep 2: Whitelist")
    logger.info("-" * 40)
    prefix = input(f"Geyser name prefix [{config['whitelist']['geyser_prefix']}]: ").strip()
    if prefix:
        config['whitelist']['geyser_prefix'] = prefix
    enabled = input("Enable whitelist? [y/N]: ").strip().lower()
    config['whitelist']['enabled'] = enabled == 'y'

    logger.info("\nStep 3: Save Configuration")
    logger.info("-" * 40)
    default_path = Path.home() / ".config" / "minecraft-whitelist-manager" / "config.yaml"
    save_path_input = input(f"Save to [{default_path}]: ").strip()
    save_path = Path(save_path_input) if save_path_input else default_path

    if save_config(config, save_path):
        logger.info("\nNext steps:")
        logger.info("  1. Review the config file and customize as needed")
        logger.info("  2. Run 'minecraft-whitelist-manager --status' to verify")
        return 0
    else:
        logger.error("\n✗ Failed to save configuration")
        return 1


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description=f"Minecraft Whitelist Manager v{__version__} - Whitelist sync for Java and Bedrock players",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the whitelist
  %(prog)s --status

  # Replace the whitelist (Bedrock players carry the Geyser prefix)
  %(prog)s --set Notch .BedrockPlayer

  # Replace the whitelist with the users listed in config.yaml
  %(prog)s --set

  # Add or remove players
  %(prog)s --add jeb_
  %(prog)s --remove Notch

  # Turn the whitelist on or off
  %(prog)s --enable
  %(prog)s --disable

  # Pick up whitelist toggles and player UUIDs from a server log
  %(prog)s --scan-log logs/latest.log
        """
    )

    # Configuration commands
    parser.add_argument("--init", action="store_true", help="Run interactive setup wizard to create config.yaml")

    # Whitelist commands
    parser.add_argument("--refresh", action="store_true", help="Reload whitelist.json and republish the player list")
    parser.add_argument("--set", nargs="*", metavar="NAME", help="Replace the whitelist (defaults to configured users, then the current list)")
    parser.add_argument("--add", nargs="+", metavar="NAME", help="Add players to the whitelist")
    parser.add_argument("--remove", nargs="+", metavar="NAME", help="Remove players from the whitelist")
    parser.add_argument("--lookup", nargs="+", metavar="NAME", help="Resolve player names to UUIDs")
    parser.add_argument("--scan-log", type=Path, metavar="FILE", help="Process a server log for whitelist events")
    toggle = parser.add_mutually_exclusive_group()
    toggle.add_argument("--enable", dest="toggle", action="store_const", const=True, help="Turn the whitelist on")
    toggle.add_argument("--disable", dest="toggle", action="store_const", const=False, help="Turn the whitelist off")
    parser.add_argument("--status", action="store_true", help="Show the current whitelist")

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Config file override
    parser.add_argument("--config", type=Path, help="Path to config file (overrides default search paths)")

    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    # Default to status if no action specified
    if not any([args.init, args.refresh, args.set is not None, args.add, args.remove,
                args.lookup, args.scan_log, args.status, args.toggle is not None]):
        args.status = True

    try:
        # Handle --init mode (setup wizard)
        if args.init:
            return run_init_wizard()

        # Load configuration
        config = load_config(args.config if args.config else None)

        # Validate configuration
        is_valid, errors = validate_config(config)
        if not is_valid:
            logger.error("\n✗ Configuration validation failed:")
            for error in errors:
                logger.error(f"  - {error}")
            logger.info("\nRun 'minecraft-whitelist-manager --init' to create a valid configuration")
            return 1

        whitelist = build_whitelist(config)

        if args.lookup:
            return run_lookup(whitelist, args.lookup)

        if args.scan_log:
            return run_scan_log(whitelist, args.scan_log)

        if args.toggle is not None:
            return run_toggle(whitelist, args.toggle)

        if args.refresh:
            return report("Refresh", asyncio.run(whitelist.refresh()))

        if args.set is not None:
            # Without names, the users listed in config.yaml win over the current file
            configured = WhitelistSettings.from_dict(config['whitelist']).users
            names = args.set or configured or None
            return report("Whitelist update", asyncio.run(whitelist.set_whitelist(names)))

        if args.add:
            return report("Add", asyncio.run(whitelist.add_users(args.add)))

        if args.remove:
            return report("Remove", asyncio.run(whitelist.remove_users(args.remove)))

        show_status(whitelist)
        return 0

    except KeyboardInterrupt:
        logger.info("\n\nInterrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
