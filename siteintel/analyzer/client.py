"""
Claude API Client for Site Analysis

Provides a robust client for interacting with Claude API,
including retry logic, cost tracking and structured (JSON) responses
validated against pydantic schemas.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

import anthropic
from pydantic import BaseModel, ValidationError

from siteintel.utils.config import get_settings

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass
class TokenUsage:
    """Track token usage for cost calculation."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def estimated_cost(self) -> float:
        """Estimate cost based on Claude Sonnet 4 pricing."""
        # Sonnet 4 pricing: $3/1M input, $15/1M output
        input_cost = (self.input_tokens / 1_000_000) * 3.0
        output_cost = (self.output_tokens / 1_000_000) * 15.0
        return input_cost + output_cost


@dataclass
class AnalysisResponse:
    """Response from Claude analysis."""
    content: str
    usage: TokenUsage
    model: str
    stop_reason: str
    success: bool = True
    error: Optional[str] = None


def extract_json_object(content: str) -> Optional[Dict[str, Any]]:
    """
    Pull the outermost JSON object out of a model response.

    Handles responses wrapped in prose or ```json fences.
    Returns None when nothing parseable is found.
    """
    match = re.search(r"\{[\s\S]*\}", content or "")
    if not match:
        return None

    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse JSON from Claude response: {e}")
        return None

    return data if isinstance(data, dict) else None


class ClaudeClient:
    """
    Async client for Claude API used by the signal extractor.

    Features:
    - Token usage tracking
    - Retry with exponential backoff
    - Schema-validated JSON responses
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    MAX_TOKENS = 4000
    TEMPERATURE = 0.2

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to settings)
            model: Model to use (defaults to settings / Sonnet 4)
        """
        settings = get_settings()
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not provided")

        self.model = model or settings.CLAUDE_MODEL or self.DEFAULT_MODEL
        self.async_client = anthropic.AsyncAnthropic(api_key=self.api_key)

        # Track cumulative usage
        self.total_usage = TokenUsage()
        self.call_count = 0

    async def analyze(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE,
    ) -> AnalysisResponse:
        """
        Send a prompt to Claude.

        Args:
            prompt: User prompt
            system: System prompt
            max_tokens: Maximum output tokens
            temperature: Sampling temperature

        Returns:
            AnalysisResponse with content and usage
        """
        try:
            kwargs = {
                "model": self.model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [{"role": "user", "content": prompt}],
            }

            if system:
                kwargs["system"] = system

            response = await self.async_client.messages.create(**kwargs)

            content = ""
            for block in response.content:
                if hasattr(block, "text"):
                    content += block.text

            usage = TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )
            self.total_usage.input_tokens += usage.input_tokens
            self.total_usage.output_tokens += usage.output_tokens
            self.call_count += 1

            logger.info(
                f"Claude call: {usage.input_tokens} in, {usage.output_tokens} out, "
                f"${usage.estimated_cost:.4f}"
            )

            return AnalysisResponse(
                content=content,
                usage=usage,
                model=self.model,
                stop_reason=response.stop_reason,
            )

        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            return AnalysisResponse(
                content="",
                usage=TokenUsage(),
                model=self.model,
                stop_reason="error",
                success=False,
                error=str(e),
            )

    async def analyze_with_retry(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_retries: int = 3,
        **kwargs,
    ) -> AnalysisResponse:
        """
        Analyze with retry logic for transient failures.

        Args:
            prompt: User prompt
            system: System prompt
            max_retries: Maximum retry attempts
            **kwargs: Additional arguments for analyze()

        Returns:
            AnalysisResponse
        """
        last_error = None

        for attempt in range(max_retries):
            response = await self.analyze(prompt, system, **kwargs)

            if response.success:
                return response

            last_error = response.error
            if attempt == max_retries - 1:
                break

            wait_time = 2 ** attempt  # Exponential backoff
            logger.warning(
                f"Claude call failed (attempt {attempt + 1}/{max_retries}), "
                f"retrying in {wait_time}s: {response.error}"
            )
            await asyncio.sleep(wait_time)

        return AnalysisResponse(
            content="",
            usage=TokenUsage(),
            model=self.model,
            stop_reason="max_retries",
            success=False,
            error=f"Max retries exceeded. Last error: {last_error}",
        )

    async def invoke_json(
        self,
        prompt: str,
        schema: Type[SchemaT],
        system: Optional[str] = None,
        **kwargs,
    ) -> Optional[SchemaT]:
        """
        Ask Claude for a JSON object and validate it against a schema.

        The model may fail or return malformed JSON; both come back as None.

        Args:
            prompt: User prompt (should describe the expected JSON)
            schema: Pydantic model the response must satisfy
            system: System prompt

        Returns:
            Validated schema instance, or None
        """
        response = await self.analyze_with_retry(prompt=prompt, system=system, **kwargs)
        if not response.success:
            return None

        data = extract_json_object(response.content)
        if data is None:
            logger.warning(f"Claude returned no JSON object for {schema.__name__}")
            return None

        try:
            return schema.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Claude response failed {schema.__name__} validation: {e}")
            return None

    def get_usage_summary(self) -> Dict[str, Any]:
        """Get summary of all API usage."""
        return {
            "total_calls": self.call_count,
            "input_tokens": self.total_usage.input_tokens,
            "output_tokens": self.total_usage.output_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "estimated_cost": self.total_usage.estimated_cost,
        }


def create_claude_client(api_key: Optional[str] = None) -> Optional[ClaudeClient]:
    """
    Create a Claude client.

    Args:
        api_key: API key (defaults to ANTHROPIC_API_KEY setting)

    Returns:
        ClaudeClient or None if not configured
    """
    key = api_key or get_settings().ANTHROPIC_API_KEY
    if not key:
        logger.warning("Anthropic API key not configured - AI extraction disabled")
        return None

    return ClaudeClient(api_key=key)
