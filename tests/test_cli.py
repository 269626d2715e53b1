import json
from unittest import mock

import pytest
import yaml
from conftest import ALICE_ID, STEVE_ID, RecordingHost

from minecraft_whitelist_manager import cli
from minecraft_whitelist_manager.config import HOST_WHITELIST_NODE, WHITELIST_ENABLED_NODE
from minecraft_whitelist_manager.storage import LocalFileService


@pytest.fixture
def server_dir(tmp_path):
    server = tmp_path / "server"
    server.mkdir()
    (server / "whitelist.json").write_text(json.dumps([{"name": "Alice", "uuid": ALICE_ID}]))
    return server


@pytest.fixture
def config_path(tmp_path, server_dir):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"server": {"dir": str(server_dir), "assume_state": "stopped"}}))
    return path


def test_status(config_path):
    assert cli.main(["--config", str(config_path), "--status"]) == 0


def test_remove(config_path, server_dir):
    assert cli.main(["--config", str(config_path), "--remove", "Alice"]) == 0
    assert json.loads((server_dir / "whitelist.json").read_text()) == []


def test_scan_log_records_joins(config_path, server_dir, tmp_path):
    log = tmp_path / "latest.log"
    log.write_text(
        "[12:00:00] [Server thread/INFO]: Starting minecraft server version 1.20.4\n"
        f"[12:00:01] [User Authenticator #1/INFO]: UUID of player Steve is {STEVE_ID}\n"
    )

    assert cli.main(["--config", str(config_path), "--scan-log", str(log)]) == 0

    cache = json.loads((server_dir / "usercache.json").read_text())
    assert [(entry["name"], entry["uuid"]) for entry in cache] == [("Steve", str(STEVE_ID))]


def test_invalid_config_exits_nonzero(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"server": {"assume_state": "sleeping"}}))
    assert cli.main(["--config", str(path), "--status"]) == 1


@pytest.mark.parametrize("flag, value", [("--enable", True), ("--disable", False)])
def test_toggle_is_pushed_to_server(config_path, server_dir, flag, value):
    host = RecordingHost()
    with mock.patch.object(cli, "build_backend", return_value=(host, LocalFileService(server_dir))):
        assert cli.main(["--config", str(config_path), flag]) == 0

    assert {HOST_WHITELIST_NODE: value} in host.pushes
    assert {WHITELIST_ENABLED_NODE: value} not in host.pushes


def test_enable_and_disable_are_exclusive(config_path):
    with pytest.raises(SystemExit):
        cli.main(["--config", str(config_path), "--enable", "--disable"])
