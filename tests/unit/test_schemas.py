"""Tests for decision, turn, and session models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from triage.core.schemas import (
    SCORE_LABELS,
    BinaryFilterDecision,
    Cursor,
    Decision,
    Domain,
    FullEvaluationDecision,
    ScoreDecision,
    SessionCounters,
    SessionOptions,
    SessionRecord,
    ToolCall,
    TriageDecision,
    TriageOutcome,
)

_DECISION = TypeAdapter(Decision)


class TestDecisions:
    def test_triage_decision_coerced_to_enum(self) -> None:
        assert TriageDecision(decision="maybe", reason="r").decision is TriageOutcome.MAYBE

    def test_triage_rejects_unknown_decision(self) -> None:
        with pytest.raises(ValidationError):
            TriageDecision(decision="perhaps", reason="r")

    def test_full_evaluation_requires_reason(self) -> None:
        with pytest.raises(ValidationError):
            FullEvaluationDecision(accept=True)  # type: ignore[call-arg]

    def test_score_label_derived(self) -> None:
        d = ScoreDecision(value=4, reason="Relevant headline")
        assert d.label == "Good match"
        assert d.model_dump()["label"] == "Good match"

    def test_score_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            ScoreDecision(value=6, reason="r")
        with pytest.raises(ValidationError):
            ScoreDecision(value=-1, reason="r")

    def test_fail_open_default_false(self) -> None:
        assert BinaryFilterDecision(download=True).fail_open is False

    def test_decisions_are_frozen(self) -> None:
        d = TriageDecision(decision="keep", reason="r")
        with pytest.raises(ValidationError):
            d.reason = "changed"  # type: ignore[misc]

    def test_discriminated_union(self) -> None:
        parsed = _DECISION.validate_python({"kind": "triage", "decision": "reject", "reason": "x"})
        assert isinstance(parsed, TriageDecision)
        assert parsed.decision is TriageOutcome.REJECT
        parsed = _DECISION.validate_python({"kind": "score", "value": 2, "reason": "x"})
        assert isinstance(parsed, ScoreDecision)

    def test_label_table(self) -> None:
        assert SCORE_LABELS == {
            0: "Irrelevant",
            1: "Low interest",
            2: "Some interest",
            3: "Moderate interest",
            4: "Good match",
            5: "Strong match",
        }


class TestToolCall:
    def test_defaults_empty_input(self) -> None:
        call = ToolCall(name="job_evaluation", id="t1")
        assert call.input == {}


class TestCursor:
    def test_defaults(self) -> None:
        c = Cursor()
        assert (c.current_page, c.start_page, c.target_page_count) == (1, 1, 1)
        assert c.pages_scraped == 1

    def test_current_before_start_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not be before"):
            Cursor(current_page=2, start_page=3)

    def test_pages_scraped(self) -> None:
        assert Cursor(current_page=5, start_page=3, target_page_count=4).pages_scraped == 3


class TestSessionOptions:
    def test_formats_deduplicated_in_order(self) -> None:
        opts = SessionOptions(formats=["xlsx", "CSV", "xlsx", " csv ", "md"])
        assert opts.formats == ["xlsx", "csv", "md"]

    def test_page_count_positive(self) -> None:
        with pytest.raises(ValidationError):
            SessionOptions(target_page_count=0)


class TestSessionRecord:
    def test_default_is_idle(self) -> None:
        r = SessionRecord()
        assert r.active is False
        assert r.mode is Domain.JOBS
        assert r.buffer == []
        assert r.counters == SessionCounters()

    def test_counters_for_domain(self) -> None:
        counters = SessionCounters(people={"ai_evaluated": 2})
        assert counters.for_domain(Domain.PEOPLE).ai_evaluated == 2
        assert counters.for_domain(Domain.JOBS).ai_evaluated == 0
