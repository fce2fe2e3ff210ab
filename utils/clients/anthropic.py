"""
Anthropic API client utilities for the Conversion Advisor.

This module contains functions for interacting with the Anthropic Claude API
with automatic retry logic for transient failures.
"""

import logging
from typing import List, Optional

import anthropic
from pydantic import BaseModel
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from config import settings
from utils.errors import LLMServiceError

logger = logging.getLogger(__name__)

# Lazy initialization of Anthropic client
_anthropic_client = None


class ClaudeResponse(BaseModel):
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


def get_anthropic_client() -> anthropic.Anthropic:
    """Get or create the Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        if not settings.ANTHROPIC_API_KEY:
            raise LLMServiceError("ANTHROPIC_API_KEY environment variable is not set")
        _anthropic_client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
    return _anthropic_client


def build_message_content(user_prompt: str, screenshots: Optional[List[str]] = None) -> list:
    """Text prompt first, then every captured screenshot as a base64 PNG image block"""
    content = [{"type": "text", "text": user_prompt}]
    for screenshot in screenshots or []:
        if not screenshot:
            continue
        content.append({
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": "image/png",
                "data": screenshot,
            },
        })
    return content


@retry(
    stop=stop_after_attempt(settings.LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(
        (anthropic.APIConnectionError, anthropic.RateLimitError)
    ),
    reraise=True,
)
def _create_message(client, **request):
    return client.messages.create(**request)


def describe_api_error(error: anthropic.APIError) -> str:
    """Merchant-readable message for an Anthropic failure"""
    status = getattr(error, "status_code", None)
    if status == 429:
        return "Rate limit exceeded. Please try again in a few minutes."
    if status == 401:
        return "Invalid Anthropic API key. Please check your environment variables."
    if status == 404:
        return f"Model not found: {error.message}"
    if status == 400:
        return f"Claude API 400 error: {error.message}"
    return f"Claude API error: {str(error)}"


def call_claude(
    system_prompt: str,
    user_prompt: str,
    screenshots: Optional[List[str]] = None,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
) -> ClaudeResponse:
    """
    Calls Anthropic API with automatic retry logic for transient failures.

    Retries (up to LLM_MAX_RETRIES attempts) for:
    - APIConnectionError (network issues)
    - RateLimitError (rate limit exceeded)

    Does NOT retry for:
    - AuthenticationError (bad API key)
    - BadRequestError (malformed request)
    - Other permanent errors

    Args:
        system_prompt: System prompt
        user_prompt: User prompt text
        screenshots: Base64-encoded PNG screenshots (optional)
        model: Override for settings.ANTHROPIC_MODEL
        max_tokens: Override for settings.MAX_TOKENS
        temperature: Override for settings.TEMPERATURE

    Returns:
        ClaudeResponse with the text block and token usage

    Raises:
        LLMServiceError: If the API call fails or returns no text
    """
    client = get_anthropic_client()
    model = model or settings.ANTHROPIC_MODEL
    content = build_message_content(user_prompt, screenshots)

    logger.info(f"🤖 Calling Claude ({model}) with {len(content) - 1} screenshots")

    try:
        response = _create_message(
            client,
            model=model,
            max_tokens=max_tokens or settings.MAX_TOKENS,
            temperature=settings.TEMPERATURE if temperature is None else temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": content}],
        )
    except anthropic.APIError as e:
        logger.error(f"❌ Claude API call failed: {str(e)}")
        raise LLMServiceError(describe_api_error(e), status_code=getattr(e, "status_code", None)) from e

    text_block = next(
        (block for block in response.content if getattr(block, "type", None) == "text"),
        None,
    )
    if text_block is None:
        raise LLMServiceError("No text content in Claude response")

    usage = getattr(response, "usage", None)
    logger.info("✅ Claude API response received")

    return ClaudeResponse(
        text=text_block.text,
        model=model,
        input_tokens=getattr(usage, "input_tokens", 0) or 0,
        output_tokens=getattr(usage, "output_tokens", 0) or 0,
    )
