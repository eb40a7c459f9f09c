"""Tests for Gemini client construction and the text-generation adapter."""

import pytest
from unittest.mock import patch, MagicMock
from pydantic import ValidationError

from docsort.config import Settings, get_settings
from docsort.services.gemini_client import (
    PDF_MIME_TYPE,
    PNG_MIME_TYPE,
    GeminiTextModel,
    ModelResponseError,
    get_gemini_client,
)


@pytest.fixture
def mock_env_vars(monkeypatch, tmp_path):
    """Set up mock environment variables for testing."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    monkeypatch.setenv('GEMINI_API_KEY', 'test-gemini-api-key')
    yield
    get_settings.cache_clear()


def make_response(text):
    response = MagicMock()
    response.text = text
    return response


class TestGeminiClient:
    """Test suite for Gemini client initialization."""

    def test_get_gemini_client_success(self, mock_env_vars):
        """Test successful Gemini client initialization with valid API key."""
        with patch('docsort.services.gemini_client.genai.Client') as mock_client:
            mock_client_instance = MagicMock()
            mock_client.return_value = mock_client_instance

            client = get_gemini_client()

            mock_client.assert_called_once_with(api_key='test-gemini-api-key')
            assert client == mock_client_instance

    def test_get_gemini_client_with_explicit_settings(self):
        with patch('docsort.services.gemini_client.genai.Client') as mock_client:
            get_gemini_client(Settings(gemini_api_key='explicit-key'))

            mock_client.assert_called_once_with(api_key='explicit-key')

    def test_get_gemini_client_missing_api_key(self, monkeypatch, tmp_path):
        """Test that ValidationError is raised when GEMINI_API_KEY is not set."""
        monkeypatch.chdir(tmp_path)
        get_settings.cache_clear()
        monkeypatch.delenv('GEMINI_API_KEY', raising=False)

        with pytest.raises(ValidationError) as exc_info:
            get_gemini_client()

        assert 'gemini_api_key' in str(exc_info.value)
        get_settings.cache_clear()


class TestGeminiTextModel:
    """Test suite for the GeminiTextModel adapter."""

    def test_generate_text_prompt_only(self):
        client = MagicMock()
        client.models.generate_content.return_value = make_response("CATEGORY: COF")
        model = GeminiTextModel(client, "gemini-2.5-flash")

        reply = model.generate_text("Classify this", system_instruction="Be terse", temperature=0.1)

        assert reply == "CATEGORY: COF"
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs['model'] == "gemini-2.5-flash"
        assert kwargs['contents'] == ["Classify this"]
        assert kwargs['config'].system_instruction == "Be terse"
        assert kwargs['config'].temperature == 0.1

    def test_generate_text_with_pdf_attachment(self):
        client = MagicMock()
        client.models.generate_content.return_value = make_response("text")
        model = GeminiTextModel(client, "gemini-2.5-flash")

        with patch('docsort.services.gemini_client.types.Part.from_bytes') as from_bytes:
            from_bytes.return_value = "pdf-part"
            model.generate_text("Read this", attachment=b"%PDF-1.4")

        from_bytes.assert_called_once_with(data=b"%PDF-1.4", mime_type=PDF_MIME_TYPE)
        assert client.models.generate_content.call_args.kwargs['contents'] == ["pdf-part", "Read this"]

    def test_generate_text_with_image_attachment(self):
        client = MagicMock()
        client.models.generate_content.return_value = make_response("text")
        model = GeminiTextModel(client, "gemini-2.5-flash")

        with patch('docsort.services.gemini_client.types.Part.from_bytes') as from_bytes:
            model.generate_text("Read this", attachment=b"png", mime_type=PNG_MIME_TYPE)

        from_bytes.assert_called_once_with(data=b"png", mime_type=PNG_MIME_TYPE)

    @pytest.mark.parametrize("text", [None, "", "   \n"])
    def test_empty_response_raises(self, text):
        client = MagicMock()
        client.models.generate_content.return_value = make_response(text)
        model = GeminiTextModel(client, "gemini-2.5-flash")

        with pytest.raises(ModelResponseError, match="empty response"):
            model.generate_text("prompt")

    def test_transient_error_is_retried(self):
        error = Exception("Service unavailable")
        error.code = 503  # type: ignore
        client = MagicMock()
        client.models.generate_content.side_effect = [error, make_response("ok")]
        model = GeminiTextModel(client, "gemini-2.5-flash", max_retries=2)

        with patch('docsort.utils.retry.time.sleep') as sleep:
            assert model.generate_text("prompt") == "ok"

        assert client.models.generate_content.call_count == 2
        sleep.assert_called_once()

    def test_client_error_is_not_retried(self):
        error = Exception("API key not valid")
        error.code = 400  # type: ignore
        client = MagicMock()
        client.models.generate_content.side_effect = error
        model = GeminiTextModel(client, "gemini-2.5-flash", max_retries=2)

        with patch('docsort.utils.retry.time.sleep') as sleep:
            with pytest.raises(Exception, match="API key not valid"):
                model.generate_text("prompt")

        assert client.models.generate_content.call_count == 1
        sleep.assert_not_called()

    def test_from_settings(self):
        settings = Settings(gemini_api_key='k', model_name='gemini-2.5-pro', model_max_retries=4)
        client = MagicMock()

        model = GeminiTextModel.from_settings(settings, client=client)

        assert model.client is client
        assert model.model == 'gemini-2.5-pro'
        assert model.max_retries == 4
