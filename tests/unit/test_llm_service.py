"""Unit tests for LLM service."""

import base64

import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from config.errors import DrawQuoteError, ErrorCode
from services.llm_service import LLMService, build_attachment_part, parse_json_content


def _response(content, tokens=50):
    return MagicMock(content=content, response_metadata={"token_usage": {"total_tokens": tokens}})


class TestLLMService:
    """Tests for LLMService."""

    def test_initialization(self):
        """Test LLMService initialization."""
        service = LLMService(
            model="gpt-4-turbo",
            temperature=0.2,
            api_key="test-key",
            timeout=30,
            max_attempts=5
        )

        assert service.model == "gpt-4-turbo"
        assert service.temperature == 0.2
        assert service.api_key == "test-key"
        assert service.timeout == 30
        assert service.max_attempts == 5

    def test_zero_temperature_is_kept(self):
        service = LLMService(temperature=0.0, api_key="test-key")

        assert service.temperature == 0.0

    def test_default_initialization(self, mock_settings):
        """Test LLMService uses settings defaults."""
        service = LLMService()

        assert service.model == mock_settings.llm_model
        assert service.api_key == "test-api-key"

    def test_client_built_lazily(self):
        with patch('services.llm_service.ChatOpenAI') as chat_cls:
            service = LLMService(api_key="test-key", timeout=12)
            chat_cls.assert_not_called()

            _ = service.client

            kwargs = chat_cls.call_args.kwargs
            assert kwargs["timeout"] == 12
            assert kwargs["max_retries"] == 0

    def test_client_requires_api_key(self):
        service = LLMService(api_key="test-key")
        service.api_key = None

        with pytest.raises(DrawQuoteError) as exc_info:
            _ = service.client

        assert exc_info.value.code == ErrorCode.LLM_ERROR

    @pytest.mark.asyncio
    async def test_generate(self, mock_llm_service):
        """Test generate method."""
        from langchain_core.messages import HumanMessage

        result = await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert result["content"] == "Mock response content"
        assert result["tokens_used"] == 100
        assert mock_llm_service.total_tokens_used == 100

    @pytest.mark.asyncio
    async def test_generate_passes_max_tokens(self, mock_llm_service):
        await mock_llm_service.generate_with_system_prompt("system", "user", max_tokens=300)

        assert mock_llm_service._client.ainvoke.call_args.kwargs["max_tokens"] == 300

    @pytest.mark.asyncio
    async def test_generate_json(self, mock_llm_service):
        mock_llm_service._client.ainvoke.return_value = _response('{"material": "steel", "complexity": 4}')

        result = await mock_llm_service.generate_json(
            system_prompt="Return JSON.",
            user_message="Extract."
        )

        assert result["content"] == {"material": "steel", "complexity": 4}
        assert result["tokens_used"] == 50

    @pytest.mark.asyncio
    async def test_generate_json_with_attachment(self, mock_llm_service):
        mock_llm_service._client.ainvoke.return_value = _response('```json\n{"material": "copper"}\n```')

        result = await mock_llm_service.generate_json_with_attachment(
            system_prompt="Analyze.",
            user_message="Extract.",
            data=b"png-bytes",
            media_type="image/png",
        )

        assert result["content"]["material"] == "copper"
        messages = mock_llm_service._client.ainvoke.call_args.args[0]
        parts = messages[1].content
        assert parts[0]["type"] == "image_url"
        assert parts[1] == {"type": "text", "text": "Extract."}

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, mock_llm_service):
        mock_llm_service._client.ainvoke.return_value = _response("I cannot read this drawing.")

        with pytest.raises(DrawQuoteError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "Extract.")

        assert exc_info.value.code == ErrorCode.LLM_ERROR

    @pytest.mark.asyncio
    async def test_rate_limit_error_mapping(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = Exception("rate_limit_exceeded")

        with pytest.raises(DrawQuoteError) as exc_info:
            await mock_llm_service.generate_with_system_prompt("system", "user")

        assert exc_info.value.code == ErrorCode.LLM_RATE_LIMIT

    @pytest.mark.asyncio
    async def test_context_length_error_mapping(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = Exception("maximum context length is 128000 tokens")

        with pytest.raises(DrawQuoteError) as exc_info:
            await mock_llm_service.generate_with_system_prompt("system", "user")

        assert exc_info.value.code == ErrorCode.LLM_CONTEXT_TOO_LONG

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, mock_chat_openai):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        mock_chat_openai.ainvoke.side_effect = [
            openai.APIConnectionError(request=request),
            _response("recovered"),
        ]
        service = LLMService(api_key="test-key", max_attempts=2)
        service._client = mock_chat_openai

        with patch("services.llm_service.wait_exponential", return_value=lambda retry_state: 0):
            result = await service.generate_with_system_prompt("system", "user")

        assert result["content"] == "recovered"
        assert mock_chat_openai.ainvoke.await_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self, mock_chat_openai):
        mock_chat_openai.ainvoke.side_effect = ValueError("bad request")
        service = LLMService(api_key="test-key", max_attempts=3)
        service._client = mock_chat_openai

        with pytest.raises(DrawQuoteError):
            await service.generate_with_system_prompt("system", "user")

        assert mock_chat_openai.ainvoke.await_count == 1


class TestHelpers:
    """Tests for JSON parsing and attachment helpers."""

    def test_parse_json_with_surrounding_prose(self):
        assert parse_json_content('Here you go: {"a": 1} Thanks!') == {"a": 1}

    def test_parse_json_rejects_arrays(self):
        with pytest.raises(DrawQuoteError):
            parse_json_content("[1, 2, 3]")

    def test_image_attachment_is_data_url(self):
        part = build_attachment_part(b"abc", "image/png")

        assert part["image_url"]["url"] == "data:image/png;base64," + base64.b64encode(b"abc").decode()

    def test_pdf_attachment_is_file_part(self):
        part = build_attachment_part(b"%PDF", "application/pdf", "housing.pdf")

        assert part["type"] == "file"
        assert part["file"]["filename"] == "housing.pdf"
        assert part["file"]["file_data"].startswith("data:application/pdf;base64,")
