"""Structured-decision tool contracts presented to the model as forced tools."""

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

JOB_EVALUATION = "job_evaluation"
CARD_TRIAGE = "card_triage"
FULL_EVALUATION = "full_evaluation"
PEOPLE_SCORE = "people_score"


@dataclass(frozen=True)
class ToolContract:
    """One decision tool: a name, a description, and a JSON schema for its input."""

    name: str
    description: str
    _schema: Mapping[str, Any] = field(repr=False)
    reason_limit: int | None = None

    @property
    def input_schema(self) -> dict[str, Any]:
        """A fresh copy of the schema, safe for the caller to mutate."""
        return copy.deepcopy(dict(self._schema))


def _contract(
    name: str,
    description: str,
    properties: dict[str, Any],
    reason_limit: int | None = None,
) -> ToolContract:
    schema = {
        "type": "object",
        "properties": properties,
        "required": list(properties),
    }
    return ToolContract(name, description, MappingProxyType(schema), reason_limit)


def _reason(limit: int, description: str) -> dict[str, Any]:
    return {"type": "string", "maxLength": limit, "description": f"{description} (max {limit} chars)"}


_CONTRACTS: dict[str, ToolContract] = {
    c.name: c
    for c in (
        _contract(
            JOB_EVALUATION,
            "Indicate whether this job should be downloaded for detailed review",
            {
                "download": {
                    "type": "boolean",
                    "description": "true if job matches criteria, false if clearly irrelevant",
                },
            },
        ),
        _contract(
            CARD_TRIAGE,
            "Triage a card based on limited information (title, company, location "
            "or name, headline, location)",
            {
                "decision": {
                    "type": "string",
                    "enum": ["reject", "keep", "maybe"],
                    "description": "reject=clearly irrelevant, keep=clearly relevant, "
                    "maybe=need full details to decide",
                },
                "reason": _reason(100, "Brief explanation for the decision"),
            },
            reason_limit=100,
        ),
        _contract(
            FULL_EVALUATION,
            "Final decision after reviewing the complete record",
            {
                "accept": {
                    "type": "boolean",
                    "description": "true to accept and save the record, false to reject",
                },
                "reason": _reason(150, "Explanation for the decision, especially for rejections"),
            },
            reason_limit=150,
        ),
        _contract(
            PEOPLE_SCORE,
            "Score how relevant this person is to the user's criteria",
            {
                "score": {
                    "type": "integer",
                    "minimum": 0,
                    "maximum": 5,
                    "description": "0=irrelevant, 1=low, 2=some, 3=moderate, 4=good, 5=strong match",
                },
                "reason": _reason(200, "Specific explanation for the score"),
            },
            reason_limit=200,
        ),
    )
}

TOOL_CONTRACTS: Mapping[str, ToolContract] = MappingProxyType(_CONTRACTS)


def get_contract(name: str) -> ToolContract:
    """Return the contract for a tool name.

    Raises:
        ValueError: If the name is not one of the four decision tools.
    """
    try:
        return TOOL_CONTRACTS[name]
    except KeyError:
        valid = ", ".join(sorted(TOOL_CONTRACTS))
        msg = f"Unknown tool '{name}'. Available: {valid}"
        raise ValueError(msg) from None


def contracts_for(names: Iterable[str]) -> list[ToolContract]:
    """Resolve names to contracts, keeping first-seen order and dropping repeats."""
    result: list[ToolContract] = []
    for name in names:
        contract = get_contract(name)
        if contract not in result:
            result.append(contract)
    return result


def cap_reason(name: str, reason: str) -> str:
    """Trim a reason string to the contract's length cap."""
    limit = get_contract(name).reason_limit
    if limit is None or len(reason) <= limit:
        return reason
    return reason[:limit]
