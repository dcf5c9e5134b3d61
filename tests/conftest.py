"""Pytest configuration and shared fixtures."""

import asyncio
import json
from pathlib import Path

import pytest
import pytest_asyncio

from walink.config import Config, PairingConfig, PageConfig
from walink.pairing.backend import ConnectionOpened


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from walink.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest_asyncio.fixture(autouse=True, loop_scope="function")
async def cleanup_aiohttp_sessions():
    """Give aiohttp sessions time to clean up their connectors."""
    yield
    await asyncio.sleep(0)


class Pause:
    """Scripted delay inside a fake event stream."""

    def __init__(self, seconds: float):
        self.seconds = seconds


class FakeConnection:
    """PairingConnection that replays a scripted event list.

    When a ConnectionOpened event is replayed and ``creds`` is set, the
    credentials file is written into the session storage first, the way
    the real backend does.
    """

    def __init__(self, script=(), creds=None, hang=True):
        self.script = list(script)
        self.creds = creds
        self.hang = hang
        self.storage_dir: Path | None = None
        self.sent = []
        self.send_error: Exception | None = None
        self.send_delay = 0.0
        self.close_calls = 0
        self.yielded = []

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def events(self):
        for item in self.script:
            if isinstance(item, Pause):
                await asyncio.sleep(item.seconds)
                continue
            if isinstance(item, ConnectionOpened) and self.creds is not None:
                payload = self.creds
                if isinstance(payload, dict):
                    payload = json.dumps(payload).encode()
                (self.storage_dir / "creds.json").write_bytes(payload)
            self.yielded.append(item)
            yield item
        if self.hang:
            await asyncio.Event().wait()

    async def send_file(self, recipient, artifact, caption):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((recipient, artifact, caption))

    async def close(self):
        self.close_calls += 1


class FakeBackend:
    """PairingBackend handing out one FakeConnection."""

    def __init__(self, connection=None, connect_error=None):
        self.connection = connection or FakeConnection()
        self.connect_error = connect_error
        self.calls = []
        self.contents_at_connect = []

    async def connect(self, storage_dir, identity, version=None):
        self.calls.append((Path(storage_dir), identity, version))
        self.contents_at_connect.append(
            sorted(p.name for p in Path(storage_dir).iterdir())
        )
        if self.connect_error is not None:
            raise self.connect_error
        self.connection.storage_dir = Path(storage_dir)
        return self.connection


class RecordingResponder:
    """Responder that records everything it is asked to produce."""

    def __init__(self):
        self.challenges = []
        self.outcomes = []
        self.attempts = []

    @property
    def finished(self) -> bool:
        return bool(self.outcomes)

    async def show_challenge(self, token):
        if self.finished:
            return False
        self.challenges.append(token)
        return True

    async def succeed(self):
        return self._terminal(("success",))

    async def time_out(self):
        return self._terminal(("timeout",))

    async def fail(self, message):
        return self._terminal(("error", message))

    def _terminal(self, outcome):
        self.attempts.append(outcome)
        if self.outcomes:
            return False
        self.outcomes.append(outcome)
        return True


@pytest.fixture
def config(tmp_path):
    """Fast config with storage under tmp_path."""
    return Config(
        storage_root=str(tmp_path),
        pairing=PairingConfig(
            deadline_seconds=0.5,
            settle_seconds=0.0,
            linger_seconds=0.0,
            send_timeout_seconds=0.5,
        ),
        page=PageConfig(refresh_seconds=0),
    )


@pytest.fixture
def pause():
    return Pause


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def responder():
    return RecordingResponder()
