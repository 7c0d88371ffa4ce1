"""Decision engine: staged LLM evaluation protocols with fail-open defaults.

Protocols:
  - evaluate       single-tier job filter (job_evaluation)
  - triage         stage 1 of two-stage evaluation (card_triage)
  - evaluate_full  stage 2 of two-stage evaluation (full_evaluation)
  - score          graded 0-5 people relevance (people_score)

Any failure resolves to the protocol's permissive outcome (download / keep /
accept / 3). The conversation is only extended after a tool response has
been parsed and validated, so a failed call leaves history untouched.
"""

import json
import logging

from triage.core.context import EvaluationContext
from triage.core.schemas import (
    SCORE_LABELS,
    BinaryFilterDecision,
    Domain,
    FullEvaluationDecision,
    ScoreDecision,
    ToolCall,
    TriageDecision,
    TriageOutcome,
)
from triage.llm.tools import (
    CARD_TRIAGE,
    FULL_EVALUATION,
    JOB_EVALUATION,
    PEOPLE_SCORE,
    cap_reason,
    contracts_for,
)
from triage.llm.transport import TransportError, post_json
from triage.pipeline.prompts import Protocol, system_prompt

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "AI not configured"
NO_REASON = "(no reason provided)"
NEUTRAL_SCORE = 3
FULL_DETAILS_PREFIX = "Here are the full details for your final decision:\n\n"

_TRIAGE_RESULTS: dict[TriageOutcome, str] = {
    TriageOutcome.REJECT: "Record rejected and skipped.",
    TriageOutcome.KEEP: "Record accepted. Fetching full details for output.",
    TriageOutcome.MAYBE: "Need more information. Full details will follow.",
}


class EvaluationError(Exception):
    """A call that cannot produce a trusted decision. ``reason`` is user-facing."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def score_to_label(value: int) -> str:
    """Map a 0-5 score to its fixed label.

    Raises:
        ValueError: If the value is outside 0-5.
    """
    if isinstance(value, bool) or value not in SCORE_LABELS:
        msg = f"score must be an integer 0-5, got {value!r}"
        raise ValueError(msg)
    return SCORE_LABELS[value]


async def _request_tool_call(
    ctx: EvaluationContext,
    domain: Domain,
    protocol: Protocol,
    user_text: str,
    tool_name: str,
    max_tokens: int,
    timeout: float,
) -> ToolCall:
    """Send the pending history with ``tool_name`` forced and return its call.

    Raises:
        EvaluationError: On transport failure, non-200, bad JSON, or a
            response that does not invoke ``tool_name``.
    """
    conversation = ctx.conversations.ensure_initialized(domain, protocol, ctx.criteria(domain))
    adapter = ctx.adapter
    tools = contracts_for([*conversation.tool_names(), tool_name])
    body = adapter.format_request(
        conversation.pending(user_text),
        tools,
        tool_name,
        system_prompt(domain, conversation.protocol or protocol),
        max_tokens,
        ctx.model,
    )

    try:
        response = await post_json(
            ctx.client,
            adapter.chat_url(ctx.base_url),
            adapter.auth_header(ctx.api_key),
            body,
            timeout,
        )
    except TransportError as e:
        raise EvaluationError(e.reason) from e

    if response.status_code != 200:
        logger.error("%s API error %d: %s", tool_name, response.status_code, response.text[:500])
        raise EvaluationError(f"API error {response.status_code}")

    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error("Failed to parse %s response: %s", tool_name, e)
        raise EvaluationError(f"Parse error: {e}") from e

    call = adapter.parse_tool_response(data)
    if call is None or call.name != tool_name:
        logger.warning(
            "Unexpected %s response format (got %s)",
            tool_name,
            call.name if call else "no tool call",
        )
        raise EvaluationError("Unexpected response format")
    return call


def _reason_from(call: ToolCall) -> str:
    reason = call.input.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        return NO_REASON
    return cap_reason(call.name, reason.strip())


# ---------------------------------------------------------------------------
# Single-tier filter
# ---------------------------------------------------------------------------


async def evaluate(ctx: EvaluationContext, record_text: str) -> BinaryFilterDecision:
    """Decide whether a job card is worth downloading.

    Returns download=True without a network call when AI is not configured,
    and on any error or malformed answer.
    """
    if not ctx.is_configured(Domain.JOBS):
        logger.warning("AI client not configured, allowing job.")
        return BinaryFilterDecision(download=True, reason=NOT_CONFIGURED, fail_open=True)

    cfg = ctx.settings.evaluation
    try:
        call = await _request_tool_call(
            ctx,
            Domain.JOBS,
            Protocol.FILTER,
            record_text,
            JOB_EVALUATION,
            cfg.filter_max_tokens,
            cfg.triage_timeout_s,
        )
    except EvaluationError as e:
        logger.warning("AI evaluation failed (%s), allowing job.", e.reason)
        return BinaryFilterDecision(download=True, reason=e.reason, fail_open=True)

    download = call.input.get("download")
    if not isinstance(download, bool):
        logger.warning("Invalid download value %r, allowing job.", download)
        return BinaryFilterDecision(
            download=True,
            reason=f"Invalid download value: {download!r}",
            fail_open=True,
        )

    ctx.conversations.get(Domain.JOBS).record_exchange(
        record_text,
        call,
        "Job queued for download." if download else "Job skipped.",
    )
    logger.info("AI evaluation: %s", "DOWNLOAD" if download else "SKIP")
    return BinaryFilterDecision(download=download)


# ---------------------------------------------------------------------------
# Two-stage triage
# ---------------------------------------------------------------------------


async def triage(
    ctx: EvaluationContext,
    record_text: str,
    domain: Domain = Domain.JOBS,
) -> TriageDecision:
    """Stage 1: sort a card into reject / keep / maybe.

    Any error or invalid decision resolves to keep.
    """
    if not ctx.is_configured(domain):
        logger.warning("AI client not configured for %s, keeping record.", domain.value)
        return TriageDecision(decision=TriageOutcome.KEEP, reason=NOT_CONFIGURED, fail_open=True)

    cfg = ctx.settings.evaluation
    try:
        call = await _request_tool_call(
            ctx,
            domain,
            Protocol.TRIAGE,
            record_text,
            CARD_TRIAGE,
            cfg.triage_max_tokens,
            cfg.triage_timeout_s,
        )
    except EvaluationError as e:
        logger.warning("AI triage failed (%s), returning keep.", e.reason)
        return TriageDecision(decision=TriageOutcome.KEEP, reason=e.reason, fail_open=True)

    raw = call.input.get("decision")
    try:
        outcome = TriageOutcome(raw)
    except ValueError:
        logger.warning("Invalid triage decision %r, returning keep.", raw)
        return TriageDecision(
            decision=TriageOutcome.KEEP,
            reason=f"Invalid decision value: {raw!r}",
            fail_open=True,
        )

    reason = _reason_from(call)
    ctx.conversations.get(domain).record_exchange(record_text, call, _TRIAGE_RESULTS[outcome])
    logger.info("AI triage (%s): %s - %s", domain.value, outcome.value, reason)
    return TriageDecision(decision=outcome, reason=reason)


async def evaluate_full(
    ctx: EvaluationContext,
    record_text: str,
    domain: Domain = Domain.JOBS,
) -> FullEvaluationDecision:
    """Stage 2: final accept/reject from the complete record.

    The caller decides when to call this (normally only after ``maybe``).
    Any failure resolves to accept.
    """
    if not ctx.is_configured(domain):
        logger.warning("AI client not configured for %s, accepting record.", domain.value)
        return FullEvaluationDecision(accept=True, reason=NOT_CONFIGURED, fail_open=True)

    cfg = ctx.settings.evaluation
    message = FULL_DETAILS_PREFIX + record_text
    try:
        call = await _request_tool_call(
            ctx,
            domain,
            Protocol.TRIAGE,
            message,
            FULL_EVALUATION,
            cfg.full_max_tokens,
            cfg.full_timeout_s,
        )
    except EvaluationError as e:
        logger.warning("AI full evaluation failed (%s), accepting record.", e.reason)
        return FullEvaluationDecision(accept=True, reason=e.reason, fail_open=True)

    accept = call.input.get("accept")
    if not isinstance(accept, bool):
        logger.warning("Invalid accept value %r, accepting record.", accept)
        return FullEvaluationDecision(
            accept=True,
            reason=f"Invalid accept value: {accept!r}",
            fail_open=True,
        )

    reason = _reason_from(call)
    ctx.conversations.get(domain).record_exchange(
        message,
        call,
        "Record accepted and saved." if accept else "Record rejected after full review.",
    )
    logger.info("AI full evaluation (%s): %s - %s", domain.value, "ACCEPT" if accept else "REJECT", reason)
    return FullEvaluationDecision(accept=accept, reason=reason)


# ---------------------------------------------------------------------------
# Graded scoring
# ---------------------------------------------------------------------------


async def score(ctx: EvaluationContext, record_text: str) -> ScoreDecision:
    """Score a people card 0-5. Any failure resolves to the neutral 3."""
    if not ctx.is_configured(Domain.PEOPLE):
        logger.warning("People AI not configured, using neutral score.")
        return ScoreDecision(value=NEUTRAL_SCORE, reason=NOT_CONFIGURED, fail_open=True)

    cfg = ctx.settings.evaluation
    try:
        call = await _request_tool_call(
            ctx,
            Domain.PEOPLE,
            Protocol.SCORE,
            record_text,
            PEOPLE_SCORE,
            cfg.score_max_tokens,
            cfg.triage_timeout_s,
        )
    except EvaluationError as e:
        logger.warning("AI scoring failed (%s), using neutral score.", e.reason)
        return ScoreDecision(value=NEUTRAL_SCORE, reason=e.reason, fail_open=True)

    value = call.input.get("score")
    if isinstance(value, bool) or not isinstance(value, int) or value not in SCORE_LABELS:
        logger.warning("Invalid score value %r, using neutral score.", value)
        return ScoreDecision(
            value=NEUTRAL_SCORE,
            reason=f"Invalid score value: {value!r}",
            fail_open=True,
        )

    reason = _reason_from(call)
    label = score_to_label(value)
    ctx.conversations.get(Domain.PEOPLE).record_exchange(
        record_text,
        call,
        f"Scored {value}/5 ({label}).",
    )
    logger.info("AI score: %d (%s) - %s", value, label, reason)
    return ScoreDecision(value=value, reason=reason)
