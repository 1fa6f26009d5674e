"""Model clients - the seam between the engine and an LLM API."""

from abc import ABC, abstractmethod
from typing import Any, Optional
import logging

import httpx
from pydantic import BaseModel, ConfigDict

from ..models import TokenUsage
from .context import PromptContext

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 4096
ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


class ExecutionOptions(BaseModel):
    """
    Options passed through to the model client.
    
    The engine never interprets these; unknown fields are kept so callers
    can hand client-specific settings through.
    """
    
    model_config = ConfigDict(extra="allow")
    
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = 1.0
    timeout: Optional[float] = None
    """Seconds before the client gives up on one call."""


class ModelResponse(BaseModel):
    """What a model client returns for one step."""
    
    output: Any = None
    tokens_used: Optional[TokenUsage] = None
    error: Optional[str] = None
    """Set when the client reports a failure without raising."""
    
    @property
    def success(self) -> bool:
        return self.error is None


class ModelClientError(Exception):
    """The model API call failed."""


class ModelClient(ABC):
    """
    Executes one step's prompt context against a model.
    
    Implementations may raise or return a response with ``error`` set;
    the StepRunner treats both as a step failure.
    """
    
    name: str = "model"
    
    @abstractmethod
    async def execute(
        self,
        context: PromptContext,
        options: ExecutionOptions,
    ) -> ModelResponse:
        pass
    
    async def close(self) -> None:
        """Release any held resources."""


class PlaceholderModelClient(ModelClient):
    """Development client that echoes a prompt preview without calling an API."""
    
    name = "placeholder"
    
    def __init__(self, preview_chars: int = 200):
        self.preview_chars = preview_chars
        self.calls: list[str] = []
    
    async def execute(
        self,
        context: PromptContext,
        options: ExecutionOptions,
    ) -> ModelResponse:
        self.calls.append(context.step.id)
        prompt = context.render()
        preview = prompt[: self.preview_chars]
        output = (
            f"[dev mode] {context.step.action}\n\n"
            f"Prompt preview ({len(prompt)} chars):\n{preview}"
        )
        return ModelResponse(output=output, tokens_used=TokenUsage(input=0, output=0))


class AnthropicModelClient(ModelClient):
    """Calls the Anthropic Messages API over httpx."""
    
    name = "anthropic"
    
    def __init__(
        self,
        api_key: str,
        base_url: str = ANTHROPIC_API_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("An API key is required for the Anthropic client")
        
        self.api_key = api_key
        self._client = http_client or httpx.AsyncClient(base_url=base_url)
    
    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
    
    async def execute(
        self,
        context: PromptContext,
        options: ExecutionOptions,
    ) -> ModelResponse:
        payload = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [{"role": "user", "content": context.render()}],
        }
        
        request_kwargs: dict[str, Any] = {"json": payload, "headers": self._headers()}
        if options.timeout is not None:
            request_kwargs["timeout"] = options.timeout
        
        logger.debug(f"Calling {options.model} for step {context.step.id}")
        try:
            response = await self._client.post("/v1/messages", **request_kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ModelClientError(f"Claude API error: {e}") from e
        
        data = response.json()
        output = "\n".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        
        return ModelResponse(
            output=output,
            tokens_used=TokenUsage(
                input=usage.get("input_tokens", 0),
                output=usage.get("output_tokens", 0),
            ),
        )
    
    async def close(self) -> None:
        await self._client.aclose()
