"""Model catalog: list the provider's selectable models, cached in SQLite.

The cache is per provider kind and expires after ``catalog.ttl_hours``. A
failed fetch falls back to whatever is cached (stale or not), then to an
empty list; catalog problems never stop an evaluation run.
"""

import json
import logging
import sqlite3
from datetime import datetime, timedelta

from pydantic import TypeAdapter, ValidationError

from triage.core.context import EvaluationContext
from triage.core.db import get_value, set_value
from triage.core.schemas import ModelInfo
from triage.llm.transport import TransportError, get_json

logger = logging.getLogger(__name__)

CATALOG_NAMESPACE = "catalog"
CATALOG_TIMEOUT_S = 15.0

_MODEL_LIST = TypeAdapter(list[ModelInfo])


def _cache_key(ctx: EvaluationContext) -> str:
    return ctx.adapter.kind.value


def _read_cache(conn: sqlite3.Connection, key: str) -> tuple[list[ModelInfo], datetime] | None:
    raw = get_value(conn, CATALOG_NAMESPACE, key)
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
        models = _MODEL_LIST.validate_python(payload["models"])
        fetched_at = datetime.fromisoformat(payload["fetched_at"])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, ValidationError) as e:
        logger.warning("Ignoring malformed model catalog cache for '%s': %s", key, e)
        return None
    return models, fetched_at


def _write_cache(conn: sqlite3.Connection, key: str, models: list[ModelInfo]) -> None:
    payload = {
        "fetched_at": datetime.now().isoformat(),
        "models": [m.model_dump() for m in models],
    }
    set_value(conn, CATALOG_NAMESPACE, key, json.dumps(payload))


async def fetch_models(ctx: EvaluationContext) -> list[ModelInfo]:
    """Fetch the catalog from the provider, bypassing the cache.

    Raises:
        TransportError: On network failure, timeout, non-200, or bad JSON.
    """
    adapter = ctx.adapter
    response = await get_json(
        ctx.client,
        adapter.models_url(ctx.base_url),
        adapter.auth_header(ctx.api_key),
        CATALOG_TIMEOUT_S,
    )
    if response.status_code != 200:
        msg = f"API error {response.status_code}"
        raise TransportError(msg)
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Parse error: {e}"
        raise TransportError(msg) from e
    return adapter.parse_models(data)


async def list_models(
    ctx: EvaluationContext,
    conn: sqlite3.Connection,
    *,
    refresh: bool = False,
) -> list[ModelInfo]:
    """Return the provider's models, serving from cache while it is fresh."""
    key = _cache_key(ctx)
    cached = _read_cache(conn, key)
    ttl = timedelta(hours=ctx.settings.catalog.ttl_hours)

    if cached is not None and not refresh:
        models, fetched_at = cached
        if datetime.now() - fetched_at < ttl:
            logger.debug("Model catalog for '%s' served from cache (%d models)", key, len(models))
            return models

    if not ctx.api_key:
        logger.warning("No API key for '%s', cannot fetch model catalog", key)
        return cached[0] if cached is not None else []

    try:
        models = await fetch_models(ctx)
    except TransportError as e:
        logger.warning("Model catalog fetch failed for '%s' (%s)", key, e.reason)
        if cached is not None:
            logger.info("Using cached catalog from %s", cached[1].isoformat())
            return cached[0]
        return []

    _write_cache(conn, key, models)
    logger.info("Fetched %d models for '%s'", len(models), key)
    return models
