"""Configuration models and YAML loader for the triage engine."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from triage.core.schemas import Domain, ProviderKind, SessionOptions, Toggles

_DEFAULT_KEY_ENV: dict[ProviderKind, str] = {
    ProviderKind.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderKind.OPENROUTER: "OPENROUTER_API_KEY",
}


class DatabaseConfig(BaseModel):
    """Location of the SQLite file holding session and catalog state."""

    path: str = "data/session.db"


class ProviderConfig(BaseModel):
    """Which LLM backend to talk to, and how to authenticate."""

    kind: ProviderKind = ProviderKind.ANTHROPIC
    model: str | None = None
    base_url: str | None = None
    api_key_env: str | None = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    @property
    def key_env_var(self) -> str:
        return self.api_key_env or _DEFAULT_KEY_ENV[self.kind]

    def api_key(self) -> str:
        """Read the API key from the environment. Empty string when unset."""
        return os.environ.get(self.key_env_var, "").strip()


class CriteriaConfig(BaseModel):
    """Free-form natural-language criteria, one per domain."""

    jobs: str = ""
    people: str = ""

    @field_validator("jobs", "people")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    def for_domain(self, domain: Domain) -> str:
        return self.jobs if domain is Domain.JOBS else self.people


class EvaluationConfig(BaseModel):
    """Timeouts and output budgets for each evaluation protocol."""

    triage_timeout_s: float = Field(default=30.0, gt=0)
    full_timeout_s: float = Field(default=60.0, gt=0)
    filter_max_tokens: int = Field(default=100, ge=16)
    triage_max_tokens: int = Field(default=200, ge=16)
    full_max_tokens: int = Field(default=300, ge=16)
    score_max_tokens: int = Field(default=200, ge=16)
    people_min_score: int = Field(default=3, ge=0, le=5)

    @model_validator(mode="after")
    def full_timeout_not_shorter(self) -> "EvaluationConfig":
        if self.full_timeout_s < self.triage_timeout_s:
            msg = "full_timeout_s must be >= triage_timeout_s"
            raise ValueError(msg)
        return self


class SessionDefaults(BaseModel):
    """Defaults applied to new sessions when the CLI does not override them."""

    formats: list[str] = Field(default_factory=lambda: ["xlsx"])
    include_viewed: bool = True
    toggles: Toggles = Field(default_factory=Toggles)

    def to_options(self, **overrides: Any) -> SessionOptions:
        data: dict[str, Any] = {
            "formats": list(self.formats),
            "include_viewed": self.include_viewed,
            "toggles": self.toggles.model_dump(),
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return SessionOptions.model_validate(data)


class CatalogConfig(BaseModel):
    """Model catalog cache lifetime."""

    ttl_hours: float = Field(default=24.0, ge=0)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    criteria: CriteriaConfig = Field(default_factory=CriteriaConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    session: SessionDefaults = Field(default_factory=SessionDefaults)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
