"""Abstract base class for record sources."""

from abc import ABC, abstractmethod
from typing import Any

from triage.core.schemas import Domain


class RecordSource(ABC):
    """One page of records, as the orchestrator sees it.

    Card text is what the model sees at triage time; the full record is
    what ends up in the session buffer.
    """

    @property
    @abstractmethod
    def domain(self) -> Domain:
        """Which domain this source yields records for."""

    @abstractmethod
    async def list_item_ids(self) -> list[str]:
        """Item ids on the current page, in display order."""

    @abstractmethod
    async def card_text(self, item_id: str) -> str:
        """Markdown summary of the card (title, company, location, ...)."""

    @abstractmethod
    async def fetch_full(self, item_id: str) -> dict[str, Any]:
        """The complete record object for output."""

    @abstractmethod
    def full_text(self, record: dict[str, Any]) -> str:
        """Markdown rendering of a full record for stage-2 evaluation."""

    @abstractmethod
    async def is_viewed(self, item_id: str) -> bool: ...

    @abstractmethod
    async def has_next_page(self) -> bool: ...
