"""
Unit tests for SDK layer.

Tests the Gemini adapter: request shape, JSON parsing, token usage
pass-through and failure handling.
"""

import json
from unittest.mock import Mock, patch

import pytest
from openai import OpenAIError

from lingo_ledger.core.catalog import MODEL_CATALOG, ModelInfo, ModelTier
from lingo_ledger.sdk.gemini_client import (
    GEMINI_OPENAI_BASE_URL,
    GeminiAdapter,
    UpstreamError,
)


def _response(payload, prompt_tokens=100, completion_tokens=50, total_tokens=150):
    """Build a chat completion response carrying a JSON payload."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    response.usage.total_tokens = total_tokens
    return response


class TestGeminiAdapterInit:
    """Test adapter construction and client creation."""

    def test_rejects_non_google_model(self):
        info = ModelInfo(
            id="gpt-4",
            provider="openai",
            label="GPT-4",
            description="",
            tier=ModelTier.PREMIUM,
            provider_model="gpt-4"
        )
        with pytest.raises(ValueError, match="not a Google Gemini model"):
            GeminiAdapter(info)

    def test_client_created_lazily(self):
        """Verify no API key is needed until a request is made."""
        adapter = GeminiAdapter(MODEL_CATALOG["gemini-2.5-flash"])
        assert adapter.id == "gemini-2.5-flash"

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_api_key(self):
        adapter = GeminiAdapter(MODEL_CATALOG["gemini-2.5-flash"])
        with pytest.raises(UpstreamError, match="GEMINI_API_KEY"):
            adapter.translate_text("Hello", "English", "Kannada")

    @patch.dict("os.environ", {"GEMINI_API_KEY": "env-key"})
    @patch("lingo_ledger.sdk.gemini_client.OpenAI")
    def test_client_uses_gemini_endpoint(self, mock_openai_class):
        adapter = GeminiAdapter(MODEL_CATALOG["gemini-2.5-flash"])

        assert adapter.client is mock_openai_class.return_value
        mock_openai_class.assert_called_once_with(api_key="env-key", base_url=GEMINI_OPENAI_BASE_URL)

    @patch("lingo_ledger.sdk.gemini_client.OpenAI")
    def test_explicit_api_key(self, mock_openai_class):
        adapter = GeminiAdapter(MODEL_CATALOG["gemini-2.5-pro"], api_key="explicit")
        adapter.client
        mock_openai_class.assert_called_once_with(api_key="explicit", base_url=GEMINI_OPENAI_BASE_URL)


class TestGeminiAdapterCalls:
    """Test each adapter operation against a mocked client."""

    def setup_method(self):
        """Set up test environment."""
        self.client = Mock()
        self.adapter = GeminiAdapter(MODEL_CATALOG["gemini-2.5-flash"], client=self.client)

    def test_translate_text(self):
        self.client.chat.completions.create.return_value = _response(
            {"translation": "ನಮಸ್ಕಾರ", "transliteration": "namaskara"}
        )

        response = self.adapter.translate_text("Hello", "English", "Kannada")

        assert response.data.translation == "ನಮಸ್ಕಾರ"
        assert response.data.transliteration == "namaskara"
        assert response.usage.input_tokens == 100
        assert response.usage.output_tokens == 50
        assert response.usage.total_tokens == 150

    def test_request_shape(self):
        """Verify the provider model, temperature and JSON mode are sent."""
        self.client.chat.completions.create.return_value = _response({"translation": "x"})

        self.adapter.translate_text("Hello", "English", "Kannada")

        kwargs = self.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["temperature"] == 0.7
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "user"
        assert "Hello" in kwargs["messages"][0]["content"]

    def test_generate_content(self):
        self.client.chat.completions.create.return_value = _response({"items": [
            {"english": "Hello", "target": "ನಮಸ್ಕಾರ", "transliteration": "namaskara",
             "context": "Greeting"},
            {"english": "Thank you", "target": "ಧನ್ಯವಾದ"},
        ]})

        response = self.adapter.generate_content("kn", "Kannada", "Karnataka", "basic", "greetings", 2)

        assert [item.english for item in response.data] == ["Hello", "Thank you"]
        assert response.data[0].context == "Greeting"
        assert response.data[1].transliteration is None

    def test_translate_with_analysis(self):
        self.client.chat.completions.create.return_value = _response({
            "translation": "ನಮಸ್ಕಾರ",
            "transliteration": "namaskara",
            "wordMeanings": [{"word": "ನಮಸ್ಕಾರ", "meaning": "greetings", "transliteration": "namaskara"}],
            "quickTip": "Used at any time of day",
        })

        result = self.adapter.translate_with_analysis("Hello", "English", "Kannada", "kn").data

        assert result.translation == "ನಮಸ್ಕಾರ"
        assert result.word_meanings[0].meaning == "greetings"
        assert result.quick_tip == "Used at any time of day"

    def test_check_answer(self):
        self.client.chat.completions.create.return_value = _response(
            {"isCorrect": True, "feedback": "Great!", "score": 95}
        )

        result = self.adapter.check_answer("namaskara", "namaskara", "greeting", "practice").data

        assert result.is_correct is True
        assert result.feedback == "Great!"
        assert result.score == 95.0

    def test_check_answer_detailed(self):
        self.client.chat.completions.create.return_value = _response({
            "whatsRight": "Good word choice",
            "mainPointToImprove": "Verb ending",
            "hint": "Think of -ide",
        })

        result = self.adapter.check_answer_detailed("a", "b", "c", "lesson").data

        assert result.whats_right == "Good word choice"
        assert result.main_point_to_improve == "Verb ending"
        assert result.hint == "Think of -ide"

    def test_provider_error_wrapped(self):
        """Verify SDK errors surface as UpstreamError with the cause kept."""
        error = OpenAIError("quota exceeded")
        self.client.chat.completions.create.side_effect = error

        with pytest.raises(UpstreamError, match="Failed to translate") as exc_info:
            self.adapter.translate_text("Hello", "English", "Kannada")
        assert exc_info.value.__cause__ is error

    def test_empty_content(self):
        self.client.chat.completions.create.return_value = _response("")

        with pytest.raises(UpstreamError, match="no content generated"):
            self.adapter.translate_text("Hello", "English", "Kannada")

    def test_invalid_json(self):
        self.client.chat.completions.create.return_value = _response("not json {")

        with pytest.raises(UpstreamError, match="not valid JSON"):
            self.adapter.check_answer("a", "b", "c", "practice")

    def test_non_object_json(self):
        self.client.chat.completions.create.return_value = _response("[1, 2]")

        with pytest.raises(UpstreamError, match="expected a JSON object"):
            self.adapter.check_answer("a", "b", "c", "practice")

    def test_missing_field(self):
        self.client.chat.completions.create.return_value = _response({"feedback": "ok"})

        with pytest.raises(UpstreamError, match="unexpected response shape"):
            self.adapter.check_answer("a", "b", "c", "practice")

    def test_missing_usage(self):
        response = _response({"translation": "x"})
        response.usage = None
        self.client.chat.completions.create.return_value = response

        assert self.adapter.translate_text("Hello", "English", "Kannada").usage is None

    def test_analyze_words(self):
        self.client.chat.completions.create.return_value = _response({
            "wordMeanings": [{"word": "ನೀರು", "meaning": "water"}],
            "quickTip": "Ask for neeru at any restaurant",
        })

        response = self.adapter.analyze_words_for_learning("Water", "ನೀರು", "kn")

        assert response.data.word_meanings[0].word == "ನೀರು"
        assert response.data.is_empty is False
        assert response.usage.total_tokens == 150

    def test_analyze_words_failure_raises(self):
        """Verify word analysis surfaces provider failures like every other call."""
        self.client.chat.completions.create.side_effect = OpenAIError("boom")

        with pytest.raises(UpstreamError, match="Failed to analyze words"):
            self.adapter.analyze_words_for_learning("Water", "ನೀರು", "kn")

    def test_analyze_words_bad_shape_raises(self):
        self.client.chat.completions.create.return_value = _response(
            {"wordMeanings": [{"word": "ನೀರು"}]}
        )

        with pytest.raises(UpstreamError, match="unexpected response shape"):
            self.adapter.analyze_words_for_learning("Water", "ನೀರು", "kn")
