"""Page orchestrator: runs one page of the active session through the engine.

Per item:
  1. Skip viewed items when the session excludes them
  2. Evaluate the card (filter / triage / score, depending on toggles);
     with AI off or unconfigured the full record is kept unannotated
  3. Fetch the full record when kept; stage-2 evaluation after ``maybe``
  4. Re-check the session is still active, then commit:
     buffer append, counters, item index (in that order)

One process handles one page; conversations restart with every page.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from triage.core.context import EvaluationContext
from triage.core.schemas import CounterName, Domain, SessionRecord, Stage, TriageOutcome
from triage.pipeline.decisions import evaluate, evaluate_full, score, triage
from triage.pipeline.session_store import SessionStore
from triage.platforms.base import RecordSource

logger = logging.getLogger(__name__)


class PageOutcome(str, Enum):
    NEXT_PAGE = "next_page"
    FINISHED = "finished"
    STOPPED = "stopped"


class _SessionStopped(Exception):
    """The session went idle while an item was in flight."""


@dataclass
class ItemResult:
    """What happened to one item before it is committed."""

    item_id: str
    record: dict[str, Any] | None = None
    evaluated: bool = False
    accepted: bool = False


def _ensure_active(store: SessionStore, item_id: str, step: str) -> None:
    if not store.is_active():
        logger.info("Session stopped during %s of item %s, discarding", step, item_id)
        raise _SessionStopped


def _annotate(
    record: dict[str, Any],
    decision: str,
    reason: str,
    stage: Stage = Stage.CARD,
) -> dict[str, Any]:
    annotated = dict(record)
    annotated["ai_stage"] = stage.value
    annotated["ai_decision"] = decision
    annotated["ai_reason"] = reason
    return annotated


async def _two_stage(
    ctx: EvaluationContext,
    store: SessionStore,
    source: RecordSource,
    item_id: str,
    card: str,
) -> ItemResult:
    """Card triage, then full evaluation only after ``maybe``."""
    domain = source.domain
    decision = await triage(ctx, card, domain)
    _ensure_active(store, item_id, "triage")
    result = ItemResult(item_id=item_id, evaluated=True)

    if decision.decision is TriageOutcome.REJECT:
        logger.info("Item %s rejected: %s", item_id, decision.reason)
        return result

    record = await source.fetch_full(item_id)
    _ensure_active(store, item_id, "fetch")

    if decision.decision is TriageOutcome.KEEP:
        result.record = _annotate(record, decision.decision.value, decision.reason)
        result.accepted = True
        return result

    full = await evaluate_full(ctx, source.full_text(record), domain)
    _ensure_active(store, item_id, "full evaluation")
    if full.accept:
        result.record = _annotate(record, "accept", full.reason, Stage.FULL)
        result.accepted = True
    else:
        logger.info("Item %s rejected after full review: %s", item_id, full.reason)
    return result


async def _process_item(
    ctx: EvaluationContext,
    store: SessionStore,
    source: RecordSource,
    session: SessionRecord,
    item_id: str,
) -> ItemResult | None:
    """Evaluate one item. Returns None when the item is skipped without a decision."""
    if not session.include_viewed:
        viewed = await source.is_viewed(item_id)
        _ensure_active(store, item_id, "viewed check")
        if viewed:
            logger.debug("Skipping viewed item %s", item_id)
            return None

    toggles = session.toggles
    if source.domain is Domain.JOBS:
        ai_on, two_stage = toggles.ai_enabled, toggles.full_ai_enabled
    else:
        ai_on, two_stage = toggles.people_ai_enabled, toggles.people_full_ai_enabled

    if not (ai_on and ctx.is_configured(source.domain)):
        record = await source.fetch_full(item_id)
        _ensure_active(store, item_id, "fetch")
        return ItemResult(item_id=item_id, record=record)

    card = await source.card_text(item_id)
    _ensure_active(store, item_id, "card read")

    if two_stage:
        return await _two_stage(ctx, store, source, item_id, card)

    if source.domain is Domain.JOBS:
        filtered = await evaluate(ctx, card)
        _ensure_active(store, item_id, "evaluation")
        if not filtered.download:
            return ItemResult(item_id=item_id, evaluated=True)
        record = await source.fetch_full(item_id)
        _ensure_active(store, item_id, "fetch")
        return ItemResult(
            item_id=item_id,
            record=_annotate(record, "download", filtered.reason),
            evaluated=True,
            accepted=True,
        )

    scored = await score(ctx, card)
    _ensure_active(store, item_id, "scoring")
    accepted = scored.value >= ctx.settings.evaluation.people_min_score
    record = await source.fetch_full(item_id)
    _ensure_active(store, item_id, "fetch")
    record = _annotate(record, "accept" if accepted else "low_score", scored.reason)
    record["ai_score"] = scored.value
    record["ai_label"] = scored.label
    return ItemResult(item_id=item_id, record=record, evaluated=True, accepted=accepted)


def _commit(store: SessionStore, domain: Domain, result: ItemResult | None, next_index: int) -> None:
    if result is not None:
        if result.record is not None:
            store.append_buffer([result.record])
        store.increment(domain, CounterName.RECORDS_PROCESSED)
        if result.evaluated:
            store.increment(domain, CounterName.AI_EVALUATED)
        if result.accepted:
            store.increment(domain, CounterName.AI_ACCEPTED)
    store.set_item_index(next_index)


async def run_page(
    ctx: EvaluationContext,
    store: SessionStore,
    source: RecordSource,
) -> PageOutcome:
    """Process the current page of the active session, resuming mid-page."""
    session = store.load()
    if not session.active:
        logger.info("No active session, nothing to do")
        return PageOutcome.STOPPED

    if source.domain is not session.mode:
        msg = (
            f"Record source domain '{source.domain.value}' does not match "
            f"session mode '{session.mode.value}'"
        )
        raise ValueError(msg)

    ctx.conversations.reset(session.mode)

    item_ids = session.page.item_ids
    start = session.page.item_index
    if not item_ids or start == 0:
        item_ids = await source.list_item_ids()
        if not store.is_active():
            return PageOutcome.STOPPED
        if not item_ids:
            logger.info("Page %d has no items, finishing", session.cursor.current_page)
            return PageOutcome.FINISHED
        store.set_page_items(item_ids)
        start = 0

    logger.info(
        "Page %d: %d items (resuming at %d)",
        session.cursor.current_page, len(item_ids), start,
    )

    for index in range(start, len(item_ids)):
        item_id = item_ids[index]
        try:
            result = await _process_item(ctx, store, source, session, item_id)
        except _SessionStopped:
            return PageOutcome.STOPPED
        except Exception:
            logger.exception("Failed to process item %s, skipping", item_id)
            result = None

        if not store.is_active():
            return PageOutcome.STOPPED
        _commit(store, session.mode, result, index + 1)

    pages_done = session.cursor.pages_scraped
    if pages_done >= session.cursor.target_page_count:
        logger.info("Target of %d pages reached", session.cursor.target_page_count)
        return PageOutcome.FINISHED
    if not await source.has_next_page():
        logger.info("No next page after page %d", session.cursor.current_page)
        return PageOutcome.FINISHED

    store.advance_page()
    return PageOutcome.NEXT_PAGE


def finish_session(store: SessionStore) -> list[dict[str, Any]]:
    """Return the buffered records and clear the session."""
    records = store.buffer()
    store.clear()
    logger.info("Session finished with %d records", len(records))
    return records
