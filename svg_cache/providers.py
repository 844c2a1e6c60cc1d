"""SVG generation through a forced structured tool call, using litellm."""

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import litellm
from loguru import logger

from .config import Settings
from .exceptions import ToolCallDecodeError, UpstreamError
from .retry import RETRYABLE_ERRORS, with_llm_retry
from .types import TokenUsage

SYSTEM_PROMPT = "You are creating SVG files based on filename provided by the user."

RESPOND_WITH_FILE_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "respond_with_file",
        "parameters": {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                },
            },
            "required": ["content"],
        },
    },
}

SVG_OPEN = "<svg"
SVG_CLOSE = "</svg>"
_OPENING_TAG = re.compile(r"<svg\b[^>]*>")
USAGE_FIELDS = ("prompt_tokens", "completion_tokens", "total_tokens")


def setup_litellm() -> None:
    """Setup litellm configuration."""
    litellm.drop_params = True
    litellm.suppress_debug_info = True


def trim_svg(text: str) -> str:
    """Drop text before the first ``<svg`` and after the last ``</svg>``.

    A self-closing root (``<svg ... />``) with no closing tag is cut right
    after the tag. Text without ``<svg`` is returned unchanged.
    """
    start = text.find(SVG_OPEN)
    if start == -1:
        return text
    text = text[start:]

    end = text.rfind(SVG_CLOSE)
    if end != -1:
        return text[: end + len(SVG_CLOSE)]

    opening = _OPENING_TAG.match(text)
    if opening and opening.group().endswith("/>"):
        return text[: opening.end()]
    return text


def extract_tool_content(response: Any) -> str:
    """Decode the ``content`` argument of the first tool call.

    Raises:
        ToolCallDecodeError: If the response carries no usable tool call.
    """
    try:
        tool_calls = response.choices[0].message.tool_calls
    except (AttributeError, IndexError, TypeError) as e:
        raise ToolCallDecodeError("Response has no message choices") from e

    if not tool_calls:
        raise ToolCallDecodeError("Response contains no tool call")

    try:
        arguments = tool_calls[0].function.arguments
    except (AttributeError, IndexError, TypeError) as e:
        raise ToolCallDecodeError("Tool call has no function arguments") from e

    if isinstance(arguments, dict):
        payload = arguments
    else:
        try:
            payload = json.loads(arguments or "")
        except (json.JSONDecodeError, TypeError) as e:
            raise ToolCallDecodeError(f"Tool call arguments are not valid JSON: {e}") from e

    content = payload.get("content") if isinstance(payload, dict) else None
    if not isinstance(content, str):
        raise ToolCallDecodeError("Tool call arguments have no content string")
    return content


@dataclass
class LLMConfig:
    """Configuration for the generation client."""

    model: str = "gpt-4o"
    fast_model: str = "gpt-3.5-turbo"
    api_key: str | None = None
    timeout: int = 60
    max_attempts: int = 1


@dataclass
class GeneratedSvg:
    """Trimmed generation output."""

    content: str
    model: str
    usage: TokenUsage = field(default_factory=dict)  # type: ignore[assignment]


class SvgGeneratorProtocol(Protocol):
    """Protocol for SVG generators."""

    async def generate(self, prompt: str, fast: bool = False) -> GeneratedSvg: ...
    async def health_check(self) -> bool: ...


class SvgGenerator:
    """Produces SVG markup for a short prompt through litellm."""

    def __init__(self, config: LLMConfig, provider_name: str = "OpenAI") -> None:
        """Initialize the generator.

        Args:
            config: LLM configuration
            provider_name: Name of the provider for logging
        """
        self.config = config
        self.provider_name = provider_name

        if not config.api_key:
            logger.warning(f"{provider_name} API key not configured; generation will fail")

        setup_litellm()
        self._complete = with_llm_retry(provider_name, max_attempts=config.max_attempts)(
            self._request
        )

    async def generate(self, prompt: str, fast: bool = False) -> GeneratedSvg:
        """Generate SVG text for the prompt.

        Args:
            prompt: Text the image is named after.
            fast: Use the cheaper model variant.

        Returns:
            The trimmed content with model and usage details.

        Raises:
            ToolCallDecodeError: If the structured payload cannot be decoded.
            UpstreamError: If the API call fails.
        """
        model = self.config.fast_model if fast else self.config.model
        logger.info(f"Generating SVG for {prompt!r} with {model}")

        response = await self._complete(prompt, model)
        content = trim_svg(extract_tool_content(response))
        usage = self._extract_usage(response)

        if usage:
            logger.info(
                f"{model} used {usage.get('total_tokens', '?')} tokens "
                f"({usage.get('prompt_tokens', '?')} prompt, "
                f"{usage.get('completion_tokens', '?')} completion), "
                f"cost ${usage.get('cost_usd', '?')}"
            )

        return GeneratedSvg(
            content=content,
            model=getattr(response, "model", None) or model,
            usage=usage,
        )

    async def _request(self, prompt: str, model: str) -> Any:
        """Single round trip to the completion API."""
        try:
            return await litellm.acompletion(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                tools=[RESPOND_WITH_FILE_TOOL],
                tool_choice="required",
                timeout=self.config.timeout,
                api_key=self.config.api_key,
            )
        except RETRYABLE_ERRORS:
            raise
        except Exception as e:
            logger.error(f"{self.provider_name} completion failed: {e}")
            raise UpstreamError(f"{self.provider_name} completion failed: {e}") from e

    def _extract_usage(self, response: Any) -> TokenUsage:
        """Token counts and, when litellm knows the model's pricing, the cost."""
        usage = getattr(response, "usage", None)
        if usage is None:
            return {}

        counts: TokenUsage = {}
        for name in USAGE_FIELDS:
            value = getattr(usage, name, None)
            if isinstance(value, int):
                counts[name] = value  # type: ignore[literal-required]

        cost = self._completion_cost(response)
        if cost is not None:
            counts["cost_usd"] = cost
        return counts

    @staticmethod
    def _completion_cost(response: Any) -> Decimal | None:
        try:
            cost = litellm.completion_cost(completion_response=response)
        except Exception as e:  # noqa: BLE001
            # Raised for unpriced or custom models
            logger.debug(f"No cost available for this completion: {e}")
            return None
        return Decimal(str(cost)) if cost is not None else None

    async def health_check(self) -> bool:
        """Check if the generator is configured."""
        return bool(self.config.api_key)


def create_svg_generator(settings: Settings) -> SvgGenerator:
    """Factory function to create the generator from settings."""
    config = LLMConfig(
        model=settings.llm_model,
        fast_model=settings.llm_fast_model,
        api_key=settings.openai_api_key,
        timeout=settings.llm_timeout,
        max_attempts=settings.generation_max_attempts,
    )
    return SvgGenerator(config)
