"""Abstract base class for provider adapters and shared history conversion."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from triage.core.schemas import (
    ModelInfo,
    ProviderKind,
    ToolCall,
    ToolCallTurn,
    ToolResultTurn,
    UserTurn,
)
from triage.llm.tools import ToolContract

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Translates the neutral conversation model into one provider's wire format.

    Adapters hold no per-request state; one instance serves the whole process.
    """

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Which wire protocol this adapter speaks."""

    @property
    @abstractmethod
    def base_url(self) -> str:
        """Default API root, without a trailing slash."""

    @property
    @abstractmethod
    def chat_path(self) -> str: ...

    @property
    @abstractmethod
    def models_path(self) -> str: ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The model ID used when no override is configured."""

    @property
    @abstractmethod
    def env_var(self) -> str:
        """Environment variable conventionally holding the API key."""

    def chat_url(self, base_url: str | None = None) -> str:
        return f"{base_url or self.base_url}{self.chat_path}"

    def models_url(self, base_url: str | None = None) -> str:
        return f"{base_url or self.base_url}{self.models_path}"

    @abstractmethod
    def auth_header(self, api_key: str) -> dict[str, str]:
        """Headers that authenticate a request (content type included)."""

    @abstractmethod
    def format_request(
        self,
        turns: Sequence[Any],
        tools: Sequence[ToolContract],
        forced_tool: str,
        system: str,
        max_tokens: int,
        model: str,
    ) -> dict[str, Any]:
        """Build the JSON request body for one forced-tool call."""

    @abstractmethod
    def parse_tool_response(self, body: Any) -> ToolCall | None:
        """Extract the first tool call from a response body, or None."""

    @abstractmethod
    def format_user(self, text: str) -> dict[str, Any]: ...

    @abstractmethod
    def format_tool_result(self, tool_id: str, content: str) -> dict[str, Any]: ...

    @abstractmethod
    def format_assistant_tool_use(self, call: ToolCall) -> dict[str, Any]: ...

    @abstractmethod
    def format_tool(self, contract: ToolContract) -> dict[str, Any]: ...

    @abstractmethod
    def parse_models(self, body: Any) -> list[ModelInfo]:
        """Map a models-endpoint response to ModelInfo entries."""

    def format_messages(self, turns: Sequence[Any]) -> list[Any]:
        """Convert the whole neutral history in one pass.

        Turns of an unknown shape are passed through unchanged and logged.
        """
        messages: list[Any] = []
        for turn in turns:
            if isinstance(turn, UserTurn):
                messages.append(self.format_user(turn.text))
            elif isinstance(turn, ToolCallTurn):
                messages.append(self.format_assistant_tool_use(turn.call))
            elif isinstance(turn, ToolResultTurn):
                messages.append(self.format_tool_result(turn.tool_id, turn.content))
            else:
                logger.warning(
                    "%s adapter: passing through unrecognised turn %r",
                    self.kind.value,
                    type(turn).__name__,
                )
                messages.append(turn)
        return messages

    @staticmethod
    def _check_forced(tools: Sequence[ToolContract], forced_tool: str) -> None:
        if forced_tool not in {t.name for t in tools}:
            msg = f"Forced tool '{forced_tool}' is not among the supplied tools"
            raise ValueError(msg)
