"""
Tests for the lazily-initialized OpenAI client and text generator.
"""

import pytest
from unittest.mock import MagicMock

from medquiz.utils import openai_client
from medquiz.utils.api_retry import RetryConfig
from medquiz.utils.openai_client import (
    SYSTEM_PROMPT,
    OpenAITextGenerator,
    get_openai_client,
    reset_client,
)


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


@pytest.fixture
def mock_client() -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion('{"questionText": "..."}')
    return client


@pytest.fixture(autouse=True)
def fresh_client():
    reset_client()
    yield
    reset_client()


class TestClientInitialization:
    """Test lazy client creation"""

    @pytest.mark.unit
    def test_missing_api_key(self, monkeypatch):
        """A missing key raises on first use, not at import"""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            get_openai_client()

    @pytest.mark.unit
    def test_client_is_cached(self, monkeypatch):
        """The same client is returned until reset"""
        monkeypatch.setenv("OPENAI_API_KEY", "test-key-not-real")

        first = get_openai_client()

        assert get_openai_client() is first
        reset_client()
        assert openai_client._client is None


class TestOpenAITextGenerator:
    """Test the generate_text adapter"""

    @pytest.mark.unit
    def test_generate_text_uses_json_mode(self, mock_client):
        """Requests carry the system prompt and JSON response format"""
        generator = OpenAITextGenerator(client=mock_client, model="gpt-4o-mini",
                                        temperature=0.2, max_tokens=500)

        text = generator.generate_text("Génère une question")

        assert text == '{"questionText": "..."}'
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 500
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert kwargs["messages"][1] == {"role": "user", "content": "Génère une question"}

    @pytest.mark.unit
    def test_empty_content_becomes_empty_string(self, mock_client):
        """A None message content is returned as ''"""
        mock_client.chat.completions.create.return_value = _completion(None)

        assert OpenAITextGenerator(client=mock_client)("prompt") == ""

    @pytest.mark.unit
    def test_transient_errors_are_retried(self, mock_client, mocker):
        """Connection errors go through the retry decorator"""
        mocker.patch("medquiz.utils.api_retry.time.sleep")
        mock_client.chat.completions.create.side_effect = [
            ConnectionError("reset by peer"),
            _completion('{"ok": true}'),
        ]
        generator = OpenAITextGenerator(client=mock_client,
                                        retry_config=RetryConfig(max_retries=1))

        assert generator.generate_text("prompt") == '{"ok": true}'
        assert mock_client.chat.completions.create.call_count == 2
