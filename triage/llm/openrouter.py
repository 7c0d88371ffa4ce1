"""OpenRouter adapter (OpenAI-compatible chat completions with function calling).

``provider.base_url`` may point at an OpenRouter mirror or proxy. Forced calls
always carry OpenRouter's ``reasoning`` field, so endpoints that reject unknown
body fields will fail every evaluation open.
The API is stateless, so the neutral history is re-rendered into chat
messages on every request.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any

from triage.core.schemas import ModelInfo, ProviderKind, ToolCall
from triage.llm.base import ProviderAdapter
from triage.llm.tools import ToolContract

logger = logging.getLogger(__name__)


class OpenRouterAdapter(ProviderAdapter):
    """Tool calls are ``tool_calls`` entries; results are ``role: tool`` messages."""

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OPENROUTER

    @property
    def base_url(self) -> str:
        return "https://openrouter.ai/api/v1"

    @property
    def chat_path(self) -> str:
        return "/chat/completions"

    @property
    def models_path(self) -> str:
        return "/models"

    @property
    def default_model(self) -> str:
        return "anthropic/claude-sonnet-4.5"

    @property
    def env_var(self) -> str:
        return "OPENROUTER_API_KEY"

    def auth_header(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
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
        messages: list[Any] = [{"role": "system", "content": system}]
        messages.extend(self.format_messages(turns))
        return {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
            "tools": [self.format_tool(t) for t in tools],
            "tool_choice": {"type": "function", "function": {"name": forced_tool}},
            # Reasoning mode rejects a forced tool_choice on several upstream models.
            "reasoning": {"enabled": False},
        }

    def format_tool(self, contract: ToolContract) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": contract.name,
                "description": contract.description,
                "parameters": contract.input_schema,
            },
        }

    def format_user(self, text: str) -> dict[str, Any]:
        return {"role": "user", "content": text}

    def format_assistant_tool_use(self, call: ToolCall) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.input)},
                },
            ],
        }

    def format_tool_result(self, tool_id: str, content: str) -> dict[str, Any]:
        return {"role": "tool", "tool_call_id": tool_id, "content": content}

    def parse_tool_response(self, body: Any) -> ToolCall | None:
        if not isinstance(body, dict):
            return None
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return None
        tool_calls = message.get("tool_calls")
        if not isinstance(tool_calls, list) or not tool_calls:
            return None

        first = tool_calls[0]
        function = first.get("function") if isinstance(first, dict) else None
        if not isinstance(function, dict):
            return None
        name = function.get("name")
        tool_id = first.get("id")
        if not isinstance(name, str) or not isinstance(tool_id, str):
            return None

        raw_args = function.get("arguments")
        if isinstance(raw_args, dict):
            args = raw_args
        else:
            try:
                args = json.loads(raw_args or "{}")
            except (TypeError, json.JSONDecodeError):
                logger.warning("Tool call '%s' has non-JSON arguments: %r", name, raw_args)
                return None
        if not isinstance(args, dict):
            return None
        return ToolCall(name=name, id=tool_id, input=args)

    def parse_models(self, body: Any) -> list[ModelInfo]:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            return []
        models: list[ModelInfo] = []
        for item in data:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                continue
            models.append(ModelInfo(id=item["id"], name=str(item.get("name") or item["id"])))
        return models
