"""Core data models: records, decisions, tool calls, and the persisted session."""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

SESSION_SCHEMA_VERSION = 1

SCORE_LABELS: dict[int, str] = {
    0: "Irrelevant",
    1: "Low interest",
    2: "Some interest",
    3: "Moderate interest",
    4: "Good match",
    5: "Strong match",
}


class Domain(str, Enum):
    """Evaluation domain. Each domain owns its own conversation and counters."""

    JOBS = "jobs"
    PEOPLE = "people"


class Stage(str, Enum):
    CARD = "card"
    FULL = "full"


class ProviderKind(str, Enum):
    """Closed set of supported LLM wire protocols."""

    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


class TriageOutcome(str, Enum):
    REJECT = "reject"
    KEEP = "keep"
    MAYBE = "maybe"


class CounterName(str, Enum):
    RECORDS_PROCESSED = "records_processed"
    AI_EVALUATED = "ai_evaluated"
    AI_ACCEPTED = "ai_accepted"


# ---------------------------------------------------------------------------
# LLM bridge types
# ---------------------------------------------------------------------------


class ToolCall(BaseModel):
    """A normalized tool invocation parsed out of a provider response."""

    model_config = ConfigDict(frozen=True)

    name: str
    id: str
    input: dict[str, Any] = Field(default_factory=dict)


class UserTurn(BaseModel):
    """Plain user message: criteria or record text."""

    model_config = ConfigDict(frozen=True)

    text: str


class ToolCallTurn(BaseModel):
    """Assistant turn that invoked a decision tool."""

    model_config = ConfigDict(frozen=True)

    call: ToolCall


class ToolResultTurn(BaseModel):
    """User-side acknowledgement paired with the preceding tool call."""

    model_config = ConfigDict(frozen=True)

    tool_id: str
    content: str


Turn = UserTurn | ToolCallTurn | ToolResultTurn


class ModelInfo(BaseModel):
    """One selectable model from a provider's catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class BinaryFilterDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["binary_filter"] = "binary_filter"
    download: bool
    reason: str = ""
    fail_open: bool = False


class TriageDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["triage"] = "triage"
    decision: TriageOutcome
    reason: str
    fail_open: bool = False


class FullEvaluationDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["full_evaluation"] = "full_evaluation"
    accept: bool
    reason: str
    fail_open: bool = False


class ScoreDecision(BaseModel):
    """Graded 0-5 relevance. The label is derived from the fixed table."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["score"] = "score"
    value: int = Field(ge=0, le=5)
    reason: str
    fail_open: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def label(self) -> str:
        return SCORE_LABELS[self.value]


Decision = Annotated[
    BinaryFilterDecision | TriageDecision | FullEvaluationDecision | ScoreDecision,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Cursor(BaseModel):
    """Pagination cursor of the active session."""

    current_page: int = Field(default=1, ge=1)
    start_page: int = Field(default=1, ge=1)
    target_page_count: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def current_not_before_start(self) -> "Cursor":
        if self.current_page < self.start_page:
            msg = (
                f"current_page ({self.current_page}) must not be before "
                f"start_page ({self.start_page})"
            )
            raise ValueError(msg)
        return self

    @property
    def pages_scraped(self) -> int:
        """Pages completed or in progress, counting the current one."""
        return self.current_page - self.start_page + 1


class Toggles(BaseModel):
    ai_enabled: bool = False
    full_ai_enabled: bool = False
    people_ai_enabled: bool = False
    people_full_ai_enabled: bool = False


class PageProgress(BaseModel):
    """Position inside the current page, so a restart resumes mid-page."""

    item_index: int = Field(default=0, ge=0)
    item_ids: list[str] = Field(default_factory=list)


class DomainCounters(BaseModel):
    records_processed: int = Field(default=0, ge=0)
    ai_evaluated: int = Field(default=0, ge=0)
    ai_accepted: int = Field(default=0, ge=0)


class SessionCounters(BaseModel):
    jobs: DomainCounters = Field(default_factory=DomainCounters)
    people: DomainCounters = Field(default_factory=DomainCounters)

    def for_domain(self, domain: Domain) -> DomainCounters:
        return self.jobs if domain is Domain.JOBS else self.people


def _dedupe_formats(v: list[str]) -> list[str]:
    seen: list[str] = []
    for fmt in v:
        fmt = fmt.strip().lower()
        if fmt and fmt not in seen:
            seen.append(fmt)
    return seen


class SessionOptions(BaseModel):
    """Everything the user chooses when starting a session."""

    mode: Domain = Domain.JOBS
    target_page_count: int = Field(default=1, ge=1)
    start_page: int = Field(default=1, ge=1)
    search_locator: str = ""
    formats: list[str] = Field(default_factory=lambda: ["xlsx"])
    include_viewed: bool = True
    toggles: Toggles = Field(default_factory=Toggles)

    @field_validator("formats")
    @classmethod
    def formats_unique(cls, v: list[str]) -> list[str]:
        return _dedupe_formats(v)


class SessionRecord(BaseModel):
    """The whole persisted session, validated as one unit on load."""

    version: int = SESSION_SCHEMA_VERSION
    active: bool = False
    mode: Domain = Domain.JOBS
    cursor: Cursor = Field(default_factory=Cursor)
    search_locator: str = ""
    formats: list[str] = Field(default_factory=lambda: ["xlsx"])
    include_viewed: bool = True
    toggles: Toggles = Field(default_factory=Toggles)
    page: PageProgress = Field(default_factory=PageProgress)
    buffer: list[dict[str, Any]] = Field(default_factory=list)
    counters: SessionCounters = Field(default_factory=SessionCounters)

    @field_validator("formats")
    @classmethod
    def formats_unique(cls, v: list[str]) -> list[str]:
        return _dedupe_formats(v)
