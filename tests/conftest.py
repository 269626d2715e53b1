"""Shared fakes for the whitelist manager tests"""

import json
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from minecraft_whitelist_manager.host import RunState, ServerHost
from minecraft_whitelist_manager.storage import FileHandle, FileService
from minecraft_whitelist_manager.user_cache import UserCache

ALICE_ID = "11111111-1111-1111-1111-111111111111"
STEVE_ID = uuid.UUID("069a79f4-44e9-4726-a5be-fca90e38aaf5")
NOTCH_ID = uuid.UUID("853c80ef-3c37-49fd-aa49-938b674adae6")


class MemoryFile(FileHandle):
    def __init__(self, service, path):
        self.service = service
        self.path = path

    def exists(self):
        return self.path in self.service.files

    def read_text(self):
        self.service.reads[self.path] += 1
        if self.path not in self.service.files:
            raise FileNotFoundError(self.path)
        return self.service.files[self.path]

    def write_text(self, content):
        self.service.writes[self.path] += 1
        self.service.files[self.path] = content

    def delete(self):
        self.service.files.pop(self.path, None)


class MemoryFileService(FileService):
    """In-memory server directory that counts reads and writes per file"""

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.reads = Counter()
        self.writes = Counter()

    def get_file(self, path):
        return MemoryFile(self, path)

    def load_json(self, path):
        return json.loads(self.files[path])


class FakeLookupClient:
    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls = []

    def lookup(self, name):
        self.calls.append(name)
        return self.results.get(name)


class RecordingHost(ServerHost):
    def __init__(self, state=RunState.STOPPED):
        super().__init__()
        self._state = state
        self.pushes = []
        self.console = []

    @property
    def state(self):
        return self._state

    @state.setter
    def state(self, value):
        self._state = value

    def write_line(self, text):
        self.console.append(text)
        return True

    def push_settings(self, settings):
        self.pushes.append(dict(settings))


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def files():
    return MemoryFileService()


@pytest.fixture
def mojang():
    return FakeLookupClient({"Steve": STEVE_ID, "Notch": NOTCH_ID})


@pytest.fixture
def geyser():
    return FakeLookupClient()


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def user_cache(files, geyser, mojang, clock):
    return UserCache(files, geyser_client=geyser, mojang_client=mojang, clock=clock)
