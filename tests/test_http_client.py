"""Tests for aichat_client.http_client."""

import time

import httpx
import pytest

from aichat_client.exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    ServerError,
    TokenExpiredError,
    TransportError,
    ValidationError,
)
from aichat_client.http_client import HTTPClient
from aichat_client.models import CompletionMessage, TokenData

from conftest import RecordingTransport

MESSAGES = [
    CompletionMessage(role="system", content="be brief"),
    CompletionMessage(role="user", content="hi"),
]


def make_client(config_manager, token_manager, handler):
    return HTTPClient(
        config_manager=config_manager,
        token_manager=token_manager,
        transport=httpx.MockTransport(handler),
    )


class TestChatCompletion:
    def test_request_and_response(self, http_client, recorder):
        response = http_client.chat_completion(MESSAGES)

        assert response.text == "Hello!"
        request = recorder.requests[-1]
        assert request.method == "POST"
        assert str(request.url) == "https://api.perplexity.ai/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test-key"

        body = recorder.last_json
        assert body["model"] == "sonar"
        assert body["max_tokens"] == 1024
        assert body["temperature"] == 0.7
        assert body["messages"] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ]
        assert "web_search" not in body

    def test_overrides_and_web_search(self, http_client, recorder):
        http_client.chat_completion(MESSAGES, model="sonar-pro", max_tokens=10, temperature=0.0, web_search=True)
        body = recorder.last_json
        assert body["model"] == "sonar-pro"
        assert body["max_tokens"] == 10
        assert body["temperature"] == 0.0
        assert body["web_search"] is True

    def test_session_token_when_no_api_key(self, config_manager, token_manager, recorder):
        token_manager.capture_from_storage({"accessToken": "browser-token"})
        client = make_client(config_manager, token_manager, recorder)
        client.chat_completion(MESSAGES)
        assert recorder.requests[-1].headers["Authorization"] == "Bearer browser-token"

    def test_no_credentials(self, config_manager, token_manager, recorder):
        client = make_client(config_manager, token_manager, recorder)
        assert not client.is_authenticated
        with pytest.raises(AuthenticationError) as exc_info:
            client.chat_completion(MESSAGES)
        assert type(exc_info.value) is AuthenticationError
        assert recorder.requests == []

    def test_expired_session_token(self, config_manager, token_manager, recorder):
        token_manager.update_token_data(TokenData(access_token="old", expires_at=int(time.time() * 1000)))
        client = make_client(config_manager, token_manager, recorder)
        with pytest.raises(TokenExpiredError):
            client.chat_completion(MESSAGES)


class TestErrorMapping:
    @pytest.mark.parametrize("status, exc_type", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (400, ValidationError),
        (422, ValidationError),
        (500, ServerError),
        (503, ServerError),
    ])
    def test_status_codes(self, config_manager, token_manager, status, exc_type):
        config_manager.set_api_key("sk")
        handler = RecordingTransport(status_code=status, body={"error": {"message": "nope", "type": "x"}})
        client = make_client(config_manager, token_manager, handler)
        with pytest.raises(exc_type) as exc_info:
            client.chat_completion(MESSAGES)
        assert exc_info.value.message == "nope"

    def test_server_error_keeps_status(self, config_manager, token_manager):
        config_manager.set_api_key("sk")
        handler = RecordingTransport(status_code=503, body={"message": "down"})
        client = make_client(config_manager, token_manager, handler)
        with pytest.raises(ServerError) as exc_info:
            client.chat_completion(MESSAGES)
        assert exc_info.value.status_code == 503

    def test_other_status_is_api_error(self, config_manager, token_manager):
        config_manager.set_api_key("sk")
        handler = RecordingTransport(status_code=429, body={"error": "rate_limited", "message": "slow down"})
        client = make_client(config_manager, token_manager, handler)
        with pytest.raises(APIError) as exc_info:
            client.chat_completion(MESSAGES)
        assert type(exc_info.value) is APIError
        assert exc_info.value.status_code == 429
        assert exc_info.value.error_type == "rate_limited"

    def test_network_failure(self, config_manager, token_manager):
        config_manager.set_api_key("sk")

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(config_manager, token_manager, handler)
        with pytest.raises(TransportError) as exc_info:
            client.chat_completion(MESSAGES)
        assert isinstance(exc_info.value, APIError)

    def test_malformed_body(self, config_manager, token_manager):
        config_manager.set_api_key("sk")
        handler = RecordingTransport(body={"choices": "not-a-list"})
        client = make_client(config_manager, token_manager, handler)
        with pytest.raises(APIError):
            client.chat_completion(MESSAGES)
