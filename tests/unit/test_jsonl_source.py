"""Tests for the JSONL record source."""

import json
from pathlib import Path

import pytest

from triage.core.schemas import Domain
from triage.platforms.jsonl import JsonlRecordSource

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


class TestJsonlRecordSource:
    async def test_lists_ids_in_order(self) -> None:
        source = JsonlRecordSource(FIXTURES_DIR / "jobs_page.jsonl", Domain.JOBS)
        assert await source.list_item_ids() == ["4011", "4012", "4013"]
        assert source.domain is Domain.JOBS

    async def test_card_and_viewed(self) -> None:
        source = JsonlRecordSource(FIXTURES_DIR / "jobs_page.jsonl", Domain.JOBS)
        assert (await source.card_text("4012")).startswith("**Warehouse Associate**")
        assert await source.is_viewed("4013") is True
        assert await source.is_viewed("4011") is False

    async def test_fetch_full_merges_record(self) -> None:
        source = JsonlRecordSource(FIXTURES_DIR / "jobs_page.jsonl", Domain.JOBS)
        record = await source.fetch_full("4011")
        assert record["title"] == "Backend Engineer (Python)"
        assert record["id"] == "4011"
        assert "FastAPI" in source.full_text(record)

    async def test_full_text_without_markdown(self) -> None:
        source = JsonlRecordSource(FIXTURES_DIR / "jobs_page.jsonl", Domain.JOBS)
        record = await source.fetch_full("4012")
        text = source.full_text(record)
        assert "**title:** Warehouse Associate" in text

    async def test_skips_bad_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "page.jsonl"
        path.write_text(
            "\n".join([
                json.dumps({"id": "1", "card": "A"}),
                "{not json",
                json.dumps({"id": "2"}),
                json.dumps({"id": "1", "card": "duplicate"}),
                "",
                json.dumps({"id": 3, "card": "C"}),
            ]),
        )
        source = JsonlRecordSource(path, Domain.PEOPLE)
        assert await source.list_item_ids() == ["1", "3"]
        assert await source.card_text("1") == "A"

    async def test_missing_file(self, tmp_path: Path) -> None:
        source = JsonlRecordSource(tmp_path / "nope.jsonl", Domain.JOBS)
        with pytest.raises(FileNotFoundError, match="Records file not found"):
            await source.list_item_ids()

    async def test_unknown_id(self) -> None:
        source = JsonlRecordSource(FIXTURES_DIR / "jobs_page.jsonl", Domain.JOBS)
        with pytest.raises(KeyError):
            await source.card_text("9999")

    async def test_has_next_page(self) -> None:
        path = FIXTURES_DIR / "jobs_page.jsonl"
        assert await JsonlRecordSource(path, Domain.JOBS).has_next_page() is True
        assert await JsonlRecordSource(path, Domain.JOBS, has_next=False).has_next_page() is False
