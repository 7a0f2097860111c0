"""OpenAI HTTP API client used for reviewing and fixing."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from pr_reviewer.config import DEFAULT_MODEL, DEFAULT_MODEL_BASE_URL, ModelSettings

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """Configuration for the model API client."""

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_MODEL_BASE_URL
    timeout: int = 300

    @classmethod
    def from_settings(cls, settings: ModelSettings) -> "ModelConfig":
        return cls(
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
        )


@dataclass
class ToolCall:
    """A function call emitted by the model."""

    name: str
    arguments: str
    call_id: str = ""

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON argument string.

        Raises:
            json.JSONDecodeError: If the arguments are not valid JSON
        """
        return json.loads(self.arguments)


class ModelClient:
    """Thin async wrapper around the Responses and Chat Completions endpoints."""

    def __init__(self, config: ModelConfig) -> None:
        """Initialize the model client.

        Args:
            config: Configuration for the client
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ModelClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def call_tool(
        self,
        instructions: str,
        user_input: str,
        tool: dict[str, Any],
    ) -> list[ToolCall]:
        """Run a completion that must answer through the given function tool.

        Tool choice is forced to ``tool["name"]``, so a well-behaved model
        cannot reply with free text only.

        Args:
            instructions: System instructions
            user_input: User turn
            tool: Function tool definition (``type``, ``name``, ``parameters``...)

        Returns:
            All function calls found in the response output, possibly empty
        """
        body = {
            "model": self.config.model,
            "instructions": instructions,
            "input": user_input,
            "tools": [tool],
            "tool_choice": {"type": "function", "name": tool["name"]},
        }

        logger.debug(f"Requesting {tool['name']} from {self.config.model}")
        response = await self._client.post("/responses", json=body)
        response.raise_for_status()

        data = response.json()
        calls = [
            ToolCall(
                name=item.get("name", ""),
                arguments=item.get("arguments") or "{}",
                call_id=item.get("call_id", ""),
            )
            for item in data.get("output", [])
            if item.get("type") == "function_call"
        ]
        logger.debug(f"Model returned {len(calls)} function call(s)")
        return calls

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> str:
        """Plain chat completion.

        Returns:
            The assistant message content, or an empty string if there is none
        """
        body = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

        response = await self._client.post("/chat/completions", json=body)
        response.raise_for_status()

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            return ""
        return choices[0].get("message", {}).get("content") or ""
