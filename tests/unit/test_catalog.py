"""Tests for the model catalog cache."""

import json
from datetime import datetime, timedelta

import httpx
import pytest

from triage.core.config import Settings
from triage.core.context import EvaluationContext
from triage.core.db import get_value, init_db, set_value
from triage.llm.catalog import CATALOG_NAMESPACE, list_models

_MODELS_BODY = {
    "data": [
        {"id": "claude-sonnet-4-5-20250929", "display_name": "Claude Sonnet 4.5"},
        {"id": "claude-haiku-4-5-20251001", "display_name": "Claude Haiku 4.5"},
    ],
}


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "catalog.db")


def _context(handler, api_key: str = "sk-test", ttl_hours: float = 24) -> EvaluationContext:  # type: ignore[no-untyped-def]
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    settings = Settings(catalog={"ttl_hours": ttl_hours})
    return EvaluationContext(settings, client=client, api_key=api_key)


def _seed_cache(db, fetched_at: datetime, models: list[dict[str, str]]) -> None:  # type: ignore[no-untyped-def]
    payload = {"fetched_at": fetched_at.isoformat(), "models": models}
    set_value(db, CATALOG_NAMESPACE, "anthropic", json.dumps(payload))


class TestListModels:
    async def test_fetch_and_cache(self, db) -> None:  # type: ignore[no-untyped-def]
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=_MODELS_BODY)

        ctx = _context(handler)
        models = await list_models(ctx, db)
        assert [m.id for m in models] == ["claude-sonnet-4-5-20250929", "claude-haiku-4-5-20251001"]
        assert str(calls[0].url) == "https://api.anthropic.com/v1/models"
        assert calls[0].headers["x-api-key"] == "sk-test"

        again = await list_models(ctx, db)
        assert again == models
        assert len(calls) == 1
        assert get_value(db, CATALOG_NAMESPACE, "anthropic") is not None

    async def test_refresh_bypasses_cache(self, db) -> None:  # type: ignore[no-untyped-def]
        _seed_cache(db, datetime.now(), [{"id": "old", "name": "Old"}])
        ctx = _context(lambda r: httpx.Response(200, json=_MODELS_BODY))
        models = await list_models(ctx, db, refresh=True)
        assert models[0].id == "claude-sonnet-4-5-20250929"

    async def test_expired_cache_refetched(self, db) -> None:  # type: ignore[no-untyped-def]
        _seed_cache(db, datetime.now() - timedelta(hours=48), [{"id": "old", "name": "Old"}])
        ctx = _context(lambda r: httpx.Response(200, json=_MODELS_BODY))
        models = await list_models(ctx, db)
        assert len(models) == 2

    async def test_failure_falls_back_to_stale_cache(self, db) -> None:  # type: ignore[no-untyped-def]
        _seed_cache(db, datetime.now() - timedelta(hours=48), [{"id": "old", "name": "Old"}])
        ctx = _context(lambda r: httpx.Response(503, text="unavailable"))
        models = await list_models(ctx, db)
        assert [m.id for m in models] == ["old"]

    async def test_failure_without_cache_is_empty(self, db) -> None:  # type: ignore[no-untyped-def]
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await list_models(_context(handler), db) == []

    async def test_no_api_key_uses_cache_only(self, db) -> None:  # type: ignore[no-untyped-def]
        def handler(request: httpx.Request) -> httpx.Response:
            pytest.fail("no request expected without an API key")

        assert await list_models(_context(handler, api_key=""), db) == []

    async def test_malformed_cache_ignored(self, db) -> None:  # type: ignore[no-untyped-def]
        set_value(db, CATALOG_NAMESPACE, "anthropic", "{garbage")
        ctx = _context(lambda r: httpx.Response(200, json=_MODELS_BODY))
        models = await list_models(ctx, db)
        assert len(models) == 2
