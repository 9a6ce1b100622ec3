"""LLM service for DrawQuote.

Provides LangChain/OpenAI integration for the drawing extraction,
spec validation and cost analysis services. Retry and timeout policy for
the AI providers lives here and nowhere else in the pipeline.
"""

import base64
import json
from typing import Dict, Any, Optional, List

import openai
import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings
from config.errors import DrawQuoteError, ErrorCode

logger = structlog.get_logger()

# OpenAI errors worth another attempt
TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
)

JSON_INSTRUCTION = "IMPORTANT: You MUST respond with valid JSON only. No markdown, no explanation, just JSON."


def _strip_code_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_json_content(content: str) -> Dict[str, Any]:
    """Parse a JSON object out of an LLM response.

    Handles markdown code blocks and prose around a single JSON object.

    Raises:
        DrawQuoteError: If no JSON object can be parsed.
    """
    text = _strip_code_fences(content)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise DrawQuoteError(
                code=ErrorCode.LLM_ERROR,
                message="LLM did not return valid JSON",
                details={"parse_error": str(e), "raw_content": content[:500]}
            )
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError as inner:
            raise DrawQuoteError(
                code=ErrorCode.LLM_ERROR,
                message="LLM did not return valid JSON",
                details={"parse_error": str(inner), "raw_content": content[:500]}
            )

    if not isinstance(parsed, dict):
        raise DrawQuoteError(
            code=ErrorCode.LLM_ERROR,
            message="LLM JSON response is not an object",
            details={"raw_content": content[:500]}
        )
    return parsed


def build_attachment_part(data: bytes, media_type: str, file_name: str = "drawing") -> Dict[str, Any]:
    """Build a multimodal message part for a drawing file.

    Images are sent as base64 data URLs; PDFs as file parts.
    """
    encoded = base64.b64encode(data).decode("ascii")
    data_url = f"data:{media_type};base64,{encoded}"
    if media_type == "application/pdf":
        return {"type": "file", "file": {"filename": file_name, "file_data": data_url}}
    return {"type": "image_url", "image_url": {"url": data_url}}


class LLMService:
    """Service for LLM operations using LangChain.

    Provides a wrapper around ChatOpenAI with token tracking,
    retries for transient errors, and error mapping.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
            timeout: Request timeout in seconds (default from settings).
            max_attempts: Attempts for transient errors (default from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self.timeout = timeout or settings.llm_timeout_seconds
        self.max_attempts = max_attempts or settings.llm_max_attempts

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization)."""
        if self._client is None:
            if not self.api_key:
                raise DrawQuoteError(
                    code=ErrorCode.LLM_ERROR,
                    message="OPENAI_API_KEY is not set"
                )
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0
            )
            logger.info("llm_client_initialized", model=self.model)
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    async def _invoke(self, messages: List[BaseMessage], **kwargs: Any) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "llm_retrying",
                        model=self.model,
                        attempt=attempt.retry_state.attempt_number
                    )
                return await self.client.ainvoke(messages, **kwargs)

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.

        Raises:
            DrawQuoteError: If LLM call fails.
        """
        try:
            kwargs = {}
            if max_tokens:
                kwargs["max_tokens"] = max_tokens

            response = await self._invoke(messages, **kwargs)

            tokens_used = 0
            if hasattr(response, "response_metadata"):
                usage = response.response_metadata.get("token_usage", {}) or {}
                tokens_used = usage.get("total_tokens", 0)
                self._total_tokens_used += tokens_used

            content = response.content if isinstance(response.content, str) else str(response.content)

            logger.info(
                "llm_generated",
                model=self.model,
                tokens_used=tokens_used,
                content_length=len(content)
            )

            return {
                "content": content,
                "tokens_used": tokens_used
            }

        except DrawQuoteError:
            raise
        except Exception as e:
            error_msg = str(e)

            if "rate_limit" in error_msg.lower() or isinstance(e, openai.RateLimitError):
                raise DrawQuoteError(
                    code=ErrorCode.LLM_RATE_LIMIT,
                    message="OpenAI rate limit exceeded",
                    details={"original_error": error_msg}
                )
            elif "context_length" in error_msg.lower() or "maximum context" in error_msg.lower():
                raise DrawQuoteError(
                    code=ErrorCode.LLM_CONTEXT_TOO_LONG,
                    message="Input too long for model context",
                    details={"original_error": error_msg}
                )
            else:
                raise DrawQuoteError(
                    code=ErrorCode.LLM_ERROR,
                    message=f"LLM generation failed: {error_msg}",
                    details={"original_error": error_msg}
                )

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response with system prompt.

        Args:
            system_prompt: System prompt for context.
            user_message: User message/query.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.
        """
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_message)
        ]
        return await self.generate(messages, max_tokens)

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a JSON response.

        Returns:
            Dict with parsed JSON content and token usage.

        Raises:
            DrawQuoteError: If response is not valid JSON.
        """
        result = await self.generate_with_system_prompt(
            f"{system_prompt}\n\n{JSON_INSTRUCTION}",
            user_message,
            max_tokens
        )
        return {
            "content": parse_json_content(result["content"]),
            "tokens_used": result["tokens_used"]
        }

    async def generate_json_with_attachment(
        self,
        system_prompt: str,
        user_message: str,
        data: bytes,
        media_type: str,
        file_name: str = "drawing",
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a JSON response about an attached image or PDF.

        Returns:
            Dict with parsed JSON content and token usage.
        """
        messages = [
            SystemMessage(content=f"{system_prompt}\n\n{JSON_INSTRUCTION}"),
            HumanMessage(content=[
                build_attachment_part(data, media_type, file_name),
                {"type": "text", "text": user_message},
            ])
        ]
        result = await self.generate(messages, max_tokens)
        return {
            "content": parse_json_content(result["content"]),
            "tokens_used": result["tokens_used"]
        }
