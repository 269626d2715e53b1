import uuid
from unittest import mock

import pytest
import requests

from minecraft_whitelist_manager.api_clients import GeyserXUIDClient, MojangProfileClient, xuid_to_uuid
from minecraft_whitelist_manager.config import USER_AGENT


def make_session(status_code=200, payload=None, exc=None):
    session = mock.Mock()
    session.headers = {}
    if exc is not None:
        session.get.side_effect = exc
    else:
        response = mock.Mock(status_code=status_code, text="body")
        response.json.return_value = payload
        session.get.return_value = response
    return session


def test_xuid_is_left_padded_into_uuid():
    assert xuid_to_uuid(12345) == uuid.UUID("00000000-0000-0000-0000-000000003039")
    assert xuid_to_uuid(2535405290989500) == uuid.UUID("00000000-0000-0000-0009-01f00bbb27bc")


def test_xuid_too_large_for_uuid():
    with pytest.raises(ValueError):
        xuid_to_uuid(1 << 128)


def test_geyser_lookup_converts_xuid():
    session = make_session(payload={"xuid": 12345})
    client = GeyserXUIDClient(session=session)

    assert client.lookup("Steve") == uuid.UUID("00000000-0000-0000-0000-000000003039")
    url = session.get.call_args[0][0]
    assert url == "https://api.geysermc.org/v2/xbox/xuid/Steve"
    assert session.headers["User-Agent"] == USER_AGENT


@pytest.mark.parametrize("session", [
    make_session(status_code=404, payload={}),
    make_session(status_code=200, payload={"xuid": -5}),
    make_session(status_code=200, payload={"message": "nope"}),
    make_session(exc=requests.ConnectionError("down")),
])
def test_geyser_failures_are_not_found(session):
    assert GeyserXUIDClient(session=session).lookup("Steve") is None


@pytest.mark.parametrize("xuid", [1.9, True, "123", None])
def test_geyser_xuid_must_be_an_integer(xuid):
    session = make_session(payload={"xuid": xuid})
    assert GeyserXUIDClient(session=session).lookup("Steve") is None


def test_mojang_lookup_parses_compact_id():
    session = make_session(payload={"id": "069a79f444e94726a5befca90e38aaf5", "name": "Notch"})
    client = MojangProfileClient(session=session)

    assert client.lookup("Notch") == uuid.UUID("069a79f4-44e9-4726-a5be-fca90e38aaf5")
    url = session.get.call_args[0][0]
    assert url == "https://api.mojang.com/users/profiles/minecraft/Notch"
    assert session.headers["User-Agent"] == USER_AGENT


@pytest.mark.parametrize("session", [
    make_session(status_code=204, payload=None),
    make_session(status_code=404, payload={"errorMessage": "Couldn't find any profile"}),
    make_session(status_code=200, payload={"id": "not-hex"}),
    make_session(status_code=200, payload={"id": 42}),
    make_session(exc=requests.Timeout("slow")),
])
def test_mojang_failures_are_not_found(session):
    assert MojangProfileClient(session=session).lookup("Notch") is None
