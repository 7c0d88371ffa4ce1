"""Anthropic Messages API adapter (stateful tool-use content blocks)."""

import logging
from collections.abc import Sequence
from typing import Any

from triage.core.schemas import ModelInfo, ProviderKind, ToolCall
from triage.llm.base import ProviderAdapter
from triage.llm.tools import ToolContract

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    """Tool calls and results travel as typed content blocks inside messages."""

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.ANTHROPIC

    @property
    def base_url(self) -> str:
        return "https://api.anthropic.com/v1"

    @property
    def chat_path(self) -> str:
        return "/messages"

    @property
    def models_path(self) -> str:
        return "/models"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-5-20250929"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

    def auth_header(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def format_request(
        self,
        turns: Sequence[Any],
        tools: Sequence[ToolContract],
        forced_tool: str,
        system: str,
        max_tokens: int,
        model: str,
    ) -> dict[str, Any]:
        self._check_forced(tools, forced_tool)
        return {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "tools": [self.format_tool(t) for t in tools],
            "tool_choice": {"type": "tool", "name": forced_tool},
            "messages": self.format_messages(turns),
        }

    def format_tool(self, contract: ToolContract) -> dict[str, Any]:
        return {
            "name": contract.name,
            "description": contract.description,
            "input_schema": contract.input_schema,
        }

    def format_user(self, text: str) -> dict[str, Any]:
        return {"role": "user", "content": text}

    def format_assistant_tool_use(self, call: ToolCall) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": [
                {"type": "tool_use", "id": call.id, "name": call.name, "input": dict(call.input)},
            ],
        }

    def format_tool_result(self, tool_id: str, content: str) -> dict[str, Any]:
        return {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": tool_id, "content": content}],
        }

    def parse_tool_response(self, body: Any) -> ToolCall | None:
        if not isinstance(body, dict):
            return None
        blocks = body.get("content")
        if not isinstance(blocks, list):
            return None
        for block in blocks:
            if not isinstance(block, dict) or block.get("type") != "tool_use":
                continue
            name = block.get("name")
            tool_id = block.get("id")
            tool_input = block.get("input")
            if not isinstance(name, str) or not isinstance(tool_id, str):
                logger.debug("tool_use block without name/id: %r", block)
                return None
            if not isinstance(tool_input, dict):
                tool_input = {}
            return ToolCall(name=name, id=tool_id, input=tool_input)
        return None

    def parse_models(self, body: Any) -> list[ModelInfo]:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            return []
        models: list[ModelInfo] = []
        for item in data:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                continue
            name = item.get("display_name") or item["id"]
            models.append(ModelInfo(id=item["id"], name=str(name)))
        return models
