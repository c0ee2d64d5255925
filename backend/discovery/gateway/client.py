"""Forced structured-output contract over the Anthropic Messages API.

A StructuredRequest names exactly one tool and forces the model to call it;
the response is that tool call's input object. Anything else (provider error
after retries, timeout, a reply without the tool call) is a GatewayError.
Provider-specific request shapes never leave this module.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import anthropic
import structlog
from anthropic._exceptions import OverloadedError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from discovery.core.config import get_settings
from discovery.core.exceptions import GatewayError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ToolSchema:
    name: str
    description: str
    input_schema: dict[str, Any]

    def to_param(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "input_schema": self.input_schema}


@dataclass
class StructuredRequest:
    system: str
    messages: list[dict[str, Any]]
    tool: ToolSchema
    max_tokens: int = 1024
    metadata: dict[str, Any] = field(default_factory=dict)  # log context only


@retry(
    retry=retry_if_exception_type(OverloadedError),
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=2, min=2, max=30),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "claude_overloaded_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
    ),
)
async def _create_with_retry(client: Any, **kwargs: Any) -> Any:
    """Invoke messages.create(), retrying only on Claude 529 overload."""
    return await client.messages.create(**kwargs)


def extract_tool_input(response: Any, tool_name: str) -> dict[str, Any] | None:
    """Return the input of the first matching tool_use block, or None."""
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "tool_use" and getattr(block, "name", tool_name) == tool_name:
            payload = getattr(block, "input", None)
            return payload if isinstance(payload, dict) else None
    return None


class StructuredLLMClient:
    """Executes StructuredRequests against Claude with a forced tool choice."""

    def __init__(self, api_key: str | None = None, model: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.model = model or settings.discovery_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self._client = anthropic.AsyncAnthropic(api_key=api_key or settings.anthropic_api_key)

    async def aclose(self) -> None:
        await self._client.close()

    async def invoke(self, request: StructuredRequest) -> dict[str, Any]:
        try:
            response = await asyncio.wait_for(
                _create_with_retry(
                    self._client,
                    model=self.model,
                    max_tokens=request.max_tokens,
                    system=request.system,
                    messages=request.messages,
                    tools=[request.tool.to_param()],
                    tool_choice={"type": "tool", "name": request.tool.name},
                ),
                timeout=self.timeout,
            )
        except (anthropic.APIError, asyncio.TimeoutError) as exc:
            logger.error(
                "llm_call_failed",
                tool=request.tool.name,
                error=str(exc),
                error_type=type(exc).__name__,
                **request.metadata,
            )
            raise GatewayError(f"LLM call failed for {request.tool.name}") from exc

        payload = extract_tool_input(response, request.tool.name)
        if payload is None:
            logger.error(
                "llm_no_structured_output",
                tool=request.tool.name,
                stop_reason=getattr(response, "stop_reason", None),
                **request.metadata,
            )
            raise GatewayError(f"Claude did not return a {request.tool.name} tool response")

        usage = getattr(response, "usage", None)
        logger.info(
            "llm_call_completed",
            tool=request.tool.name,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
            **request.metadata,
        )
        return payload
