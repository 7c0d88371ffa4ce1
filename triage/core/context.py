"""Evaluation context: the explicit bundle every decision-engine call receives.

Holds the settings, the provider adapter, the HTTP client, and the
per-domain conversations. One context lives for one process (one page run).
"""

import logging
from types import TracebackType

import httpx

from triage.core.config import Settings
from triage.core.schemas import Domain
from triage.llm import get_adapter
from triage.llm.base import ProviderAdapter
from triage.pipeline.conversation import ConversationManager

logger = logging.getLogger(__name__)


class EvaluationContext:
    """Async context manager owning the HTTP client used for provider calls.

    Usage::

        async with EvaluationContext(settings) as ctx:
            decision = await evaluate(ctx, card_markdown)

    Passing ``client`` lets tests inject an ``httpx.AsyncClient`` backed by a
    mock transport; an injected client is not closed on exit.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
    ) -> None:
        self.settings = settings
        self.adapter: ProviderAdapter = get_adapter(settings.provider.kind)
        self.conversations = ConversationManager()
        self._api_key = api_key if api_key is not None else settings.provider.api_key()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def model(self) -> str:
        return self.settings.provider.model or self.adapter.default_model

    @property
    def base_url(self) -> str | None:
        return self.settings.provider.base_url

    def criteria(self, domain: Domain) -> str:
        return self.settings.criteria.for_domain(domain)

    def is_configured(self, domain: Domain) -> bool:
        """True when both an API key and criteria for the domain are present."""
        return bool(self._api_key and self.criteria(domain))

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "EvaluationContext":
        logger.debug(
            "Evaluation context: provider=%s model=%s jobs_configured=%s people_configured=%s",
            self.adapter.kind.value,
            self.model,
            self.is_configured(Domain.JOBS),
            self.is_configured(Domain.PEOPLE),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
