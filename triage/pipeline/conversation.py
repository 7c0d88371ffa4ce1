"""Per-domain conversation history shared by successive evaluations.

A primed conversation starts with three turns (criteria, an acknowledging
tool call, its tool result) and grows by exactly three turns per evaluated
record: the record text, the model's tool call, and the tool result.
"""

import logging
from typing import Any

from triage.core.schemas import Domain, ToolCall, ToolCallTurn, ToolResultTurn, Turn, UserTurn
from triage.llm.tools import CARD_TRIAGE, JOB_EVALUATION, PEOPLE_SCORE
from triage.pipeline.prompts import Protocol, priming_text

logger = logging.getLogger(__name__)

PRIMING_TOOL_ID = "init_ack"

# (tool name, acknowledgement input, tool result text) used to prime each protocol.
_PRIMING: dict[Protocol, tuple[str, dict[str, Any], str]] = {
    Protocol.FILTER: (JOB_EVALUATION, {"download": True}, "Ready to evaluate jobs."),
    Protocol.TRIAGE: (
        CARD_TRIAGE,
        {"decision": "maybe", "reason": "Awaiting the first card."},
        "Ready to evaluate using three-tier triage.",
    ),
    Protocol.SCORE: (
        PEOPLE_SCORE,
        {"score": 3, "reason": "Awaiting the first profile."},
        "Ready to score profiles.",
    ),
}


class Conversation:
    """Ordered turn history for one domain."""

    def __init__(self, domain: Domain) -> None:
        self.domain = domain
        self.protocol: Protocol | None = None
        self._turns: list[Turn] = []

    @property
    def initialized(self) -> bool:
        return self.protocol is not None

    @property
    def turns(self) -> list[Turn]:
        """A copy of the history; mutate through ``record_exchange`` only."""
        return list(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def prime(self, protocol: Protocol, criteria: str) -> bool:
        """Seed the history with the criteria exchange.

        Idempotent: returns False and changes nothing when already primed.
        """
        if self.initialized:
            return False
        tool_name, ack_input, ack_text = _PRIMING[protocol]
        self._turns = [
            UserTurn(text=priming_text(self.domain, protocol, criteria)),
            ToolCallTurn(call=ToolCall(name=tool_name, id=PRIMING_TOOL_ID, input=ack_input)),
            ToolResultTurn(tool_id=PRIMING_TOOL_ID, content=ack_text),
        ]
        self.protocol = protocol
        logger.info("%s conversation initialized (%s)", self.domain.value, protocol.value)
        return True

    def pending(self, text: str) -> list[Turn]:
        """History plus a not-yet-committed user turn, for building a request."""
        return [*self._turns, UserTurn(text=text)]

    def record_exchange(self, text: str, call: ToolCall, result: str) -> None:
        """Commit one validated evaluation: record, tool call, paired tool result."""
        self._turns.extend(
            [
                UserTurn(text=text),
                ToolCallTurn(call=call),
                ToolResultTurn(tool_id=call.id, content=result),
            ],
        )

    def tool_names(self) -> list[str]:
        """Names of tools invoked anywhere in the history, first-seen order."""
        names: list[str] = []
        for turn in self._turns:
            if isinstance(turn, ToolCallTurn) and turn.call.name not in names:
                names.append(turn.call.name)
        return names

    def reset(self) -> None:
        self._turns = []
        self.protocol = None


class ConversationManager:
    """Owns exactly one Conversation per domain."""

    def __init__(self) -> None:
        self._conversations = {domain: Conversation(domain) for domain in Domain}

    def get(self, domain: Domain) -> Conversation:
        return self._conversations[domain]

    def ensure_initialized(self, domain: Domain, protocol: Protocol, criteria: str) -> Conversation:
        conversation = self._conversations[domain]
        conversation.prime(protocol, criteria)
        return conversation

    def reset(self, domain: Domain | None = None) -> None:
        """Reset one domain's history, or all of them."""
        domains = list(Domain) if domain is None else [domain]
        for d in domains:
            self._conversations[d].reset()
            logger.info("%s conversation reset", d.value)
