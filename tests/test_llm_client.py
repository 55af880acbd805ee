"""
Chat LLM Client Tests
=====================

Retry behaviour of ChatClient against a mocked requests session.
"""

from unittest.mock import MagicMock

import pytest
import requests

from llm_client import ChatClient, EmptyResponse, LLMError, RateLimited, TransientNetworkError


def _response(status_code=200, content="こんにちは", body=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    if body is None:
        body = {"choices": [{"message": {"content": content}}]}
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def chat(session, sleeps):
    return ChatClient(
        api_url="https://llm.test/v1/",
        model="test-model",
        api_key="sk-test",
        timeout=5,
        session=session,
        sleep=sleeps.append,
    )


# =============================================================================
# Test: Request shape
# =============================================================================

class TestRequest:

    @pytest.mark.readonly
    def test_success(self, chat, session, sleeps):
        session.post.return_value = _response(content="献立です")

        assert chat.generate("prompt", temperature=0.4) == "献立です"
        assert sleeps == []

        args, kwargs = session.post.call_args
        assert args[0] == "https://llm.test/v1/chat/completions"
        assert kwargs["json"]["model"] == "test-model"
        assert kwargs["json"]["temperature"] == 0.4
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["json"]["top_p"] == 0.95
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == 5

    @pytest.mark.readonly
    def test_no_key_no_auth_header(self, session, sleeps):
        session.post.return_value = _response()
        client = ChatClient(api_url="https://llm.test/v1", model="m", api_key="",
                            session=session, sleep=sleeps.append)
        client.generate("prompt")
        assert "Authorization" not in session.post.call_args.kwargs["headers"]

    @pytest.mark.readonly
    def test_callable(self, chat, session):
        session.post.return_value = _response(content="ok")
        assert chat("prompt", temperature=0.7) == "ok"


# =============================================================================
# Test: Retry policy
# =============================================================================

class TestRetry:

    @pytest.mark.readonly
    def test_rate_limit_backoff_then_success(self, chat, session, sleeps):
        session.post.side_effect = [_response(429), _response(429), _response(content="ok")]
        assert chat.generate("prompt", max_retries=3) == "ok"
        assert sleeps == [2.0, 4.0]

    @pytest.mark.readonly
    def test_rate_limit_backoff_capped(self, chat, session, sleeps):
        session.post.return_value = _response(429)
        with pytest.raises(RateLimited) as exc_info:
            chat.generate("prompt", max_retries=7)
        assert sleeps == [2.0, 4.0, 6.0, 8.0, 10.0, 10.0]
        assert exc_info.value.status_code == 429
        assert exc_info.value.attempt == 7

    @pytest.mark.readonly
    def test_timeout_waits_one_second(self, chat, session, sleeps):
        session.post.side_effect = [requests.Timeout("slow"), _response(content="ok")]
        assert chat.generate("prompt", max_retries=3) == "ok"
        assert sleeps == [1.0]

    @pytest.mark.readonly
    def test_connection_error_exhausts_retries(self, chat, session, sleeps):
        session.post.side_effect = requests.ConnectionError("reset")
        with pytest.raises(TransientNetworkError):
            chat.generate("prompt", max_retries=2)
        assert session.post.call_count == 2
        assert sleeps == [1.0]

    @pytest.mark.readonly
    def test_empty_content_retried_without_wait(self, chat, session, sleeps):
        session.post.side_effect = [_response(content="   "), _response(content="ok")]
        assert chat.generate("prompt", max_retries=3) == "ok"
        assert sleeps == []

    @pytest.mark.readonly
    def test_empty_content_every_time(self, chat, session):
        session.post.return_value = _response(content="")
        with pytest.raises(EmptyResponse):
            chat.generate("prompt", max_retries=2)
        assert session.post.call_count == 2

    @pytest.mark.readonly
    def test_server_error_raised_immediately(self, chat, session, sleeps):
        session.post.return_value = _response(500)
        with pytest.raises(LLMError) as exc_info:
            chat.generate("prompt", max_retries=3)
        assert type(exc_info.value) is LLMError
        assert exc_info.value.status_code == 500
        assert session.post.call_count == 1
        assert sleeps == []

    @pytest.mark.readonly
    def test_unexpected_body_is_an_error(self, chat, session):
        session.post.return_value = _response(body={"error": "?"})
        with pytest.raises(LLMError, match="Unexpected response format"):
            chat.generate("prompt", max_retries=3)
        assert session.post.call_count == 1

    @pytest.mark.readonly
    def test_default_attempts_from_config(self, chat, session):
        session.post.return_value = _response(429)
        with pytest.raises(RateLimited):
            chat.generate("prompt")
        assert session.post.call_count == 3


# =============================================================================
# Test: Exceptions
# =============================================================================

class TestExceptions:

    @pytest.mark.readonly
    def test_message_includes_status_and_attempt(self):
        error = LLMError("boom", status_code=503, attempt=2)
        assert str(error) == "boom (status=503) (attempt=2)"
        assert error.message == "boom"

    @pytest.mark.readonly
    def test_hierarchy(self):
        for cls in (EmptyResponse, RateLimited, TransientNetworkError):
            assert issubclass(cls, LLMError)
