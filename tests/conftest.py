"""Configure pytest fixtures and environment for CardLink tests."""

import httpx
import pytest

from cardlink.core import config as config_module
from cardlink.core.config import ClientConfig
from cardlink.core.logging import clear_correlation_id
from cardlink.data.api_client import ApiClient
from cardlink.data.storage import MemoryStore, StorageKeys

TEST_BASE_URL = "https://api.test"

CARDLINK_ENV_VARS = (
    "EXPO_PUBLIC_API_BASE",
    "EXPO_PUBLIC_API_PREFIX",
    "CARDLINK_APP_CONFIG",
    "CARDLINK_STORAGE_PATH",
    "CARDLINK_REQUEST_TIMEOUT",
    "CARDLINK_MAX_ATTEMPTS",
    "CARDLINK_BACKOFF_STEP",
    "CARDLINK_APP_VERSION",
    "CARDLINK_PLATFORM",
    "EXPO_PUBLIC_DEV_TOKEN",
    "EXPO_PUBLIC_DEV_EMAIL",
    "EXPO_PUBLIC_DEV_PASSWORD",
    "EAS_PROJECT_ID",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and .env file."""
    for name in CARDLINK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "settings", None)
    yield
    clear_correlation_id()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sleeps():
    """Delays requested by the retry loop, in seconds."""
    return []


class Recorder:
    """Request log plus a queue of canned responses for MockTransport."""

    def __init__(self, responses=None):
        self.requests = []
        self.responses = list(responses or [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json={})
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        return outcome

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def make_client(store, sleeps):
    """Factory for an ApiClient talking to a MockTransport handler."""
    clients = []

    def _make(handler, token=None, clock=None, **config_overrides):
        if token:
            store.set_item(StorageKeys.TOKEN, token)
        config = ClientConfig(base_url=TEST_BASE_URL, **config_overrides)
        extra = {"clock": clock} if clock is not None else {}
        client = ApiClient(
            config, store, transport=httpx.MockTransport(handler), sleep=sleeps.append, **extra
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()


@pytest.fixture
def recorder():
    return Recorder
