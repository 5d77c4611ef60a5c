"""Shared fixtures for the aichat_client test suite."""

import json

import httpx
import pytest

from aichat_client.auth import TokenManager
from aichat_client.config import ENV_OVERRIDES, ConfigManager
from aichat_client.http_client import HTTPClient


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Environment overrides must not leak from the developer's shell."""
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("AICHAT_CONFIG_DIR", raising=False)


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(tmp_path, use_env=False)


@pytest.fixture
def token_manager(tmp_path):
    return TokenManager(tmp_path / "auth-token.json")


def completion_payload(content, **extra):
    payload = {
        "id": "cmpl-1",
        "model": "sonar",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }
    payload.update(extra)
    return payload


class RecordingTransport:
    """MockTransport handler that records request bodies and replies with fixed content."""

    def __init__(self, content="Hello!", status_code=200, body=None):
        self.content = content
        self.status_code = status_code
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, json=completion_payload(self.content))

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def recorder():
    return RecordingTransport()


@pytest.fixture
def http_client(config_manager, token_manager, recorder):
    config_manager.set_api_key("sk-test-key")
    client = HTTPClient(
        config_manager=config_manager,
        token_manager=token_manager,
        transport=httpx.MockTransport(recorder),
    )
    yield client
    client.close()
