"""Record source backed by a JSONL page dump.

Each line is one item::

    {"id": "4012", "card": "**Warehouse Associate** ...", "full": "...",
     "record": {"title": "..."}, "viewed": false}

``full`` (Markdown) and ``record`` (output object) are optional; missing
values are derived from each other and from the card.
"""

import json
import logging
from pathlib import Path
from typing import Any

from triage.core.schemas import Domain
from triage.platforms.base import RecordSource

logger = logging.getLogger(__name__)


class JsonlRecordSource(RecordSource):
    """One page of records read from a JSONL file."""

    def __init__(self, path: str | Path, domain: Domain, *, has_next: bool = True) -> None:
        self._path = Path(path)
        self._domain = domain
        self._has_next = has_next
        self._items: dict[str, dict[str, Any]] | None = None

    @property
    def domain(self) -> Domain:
        return self._domain

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._items is not None:
            return self._items
        if not self._path.exists():
            msg = f"Records file not found: {self._path}"
            raise FileNotFoundError(msg)

        items: dict[str, dict[str, Any]] = {}
        for lineno, line in enumerate(self._path.read_text(encoding="utf-8").splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("%s:%d: skipping malformed line (%s)", self._path.name, lineno, e)
                continue
            if not isinstance(item, dict) or not item.get("id") or not item.get("card"):
                logger.warning("%s:%d: skipping line without id/card", self._path.name, lineno)
                continue
            item_id = str(item["id"])
            if item_id in items:
                logger.warning("%s:%d: duplicate id '%s' ignored", self._path.name, lineno, item_id)
                continue
            items[item_id] = item

        logger.info("Loaded %d records from %s", len(items), self._path)
        self._items = items
        return items

    def _item(self, item_id: str) -> dict[str, Any]:
        items = self._load()
        if item_id not in items:
            msg = f"Unknown item id '{item_id}'"
            raise KeyError(msg)
        return items[item_id]

    async def list_item_ids(self) -> list[str]:
        return list(self._load())

    async def card_text(self, item_id: str) -> str:
        return str(self._item(item_id)["card"])

    async def fetch_full(self, item_id: str) -> dict[str, Any]:
        item = self._item(item_id)
        record = item.get("record")
        if isinstance(record, dict):
            result = dict(record)
        else:
            result = {"card": item["card"]}
        result.setdefault("id", item_id)
        if item.get("full"):
            result.setdefault("full_text", str(item["full"]))
        return result

    def full_text(self, record: dict[str, Any]) -> str:
        if record.get("full_text"):
            return str(record["full_text"])
        return "\n".join(f"**{k}:** {v}" for k, v in record.items() if k != "id")

    async def is_viewed(self, item_id: str) -> bool:
        return bool(self._item(item_id).get("viewed", False))

    async def has_next_page(self) -> bool:
        return self._has_next
