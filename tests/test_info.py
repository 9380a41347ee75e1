"""Tests for the knowledge-base lookup tool."""

from __future__ import annotations

import pytest

from src.tools.info import InfoLookup, split_into_sections

SAMPLE = """# Knowledge base

### Project 1 - Booking platform
A web platform for booking dental appointments.

---

### Project 2 - Data pipeline
Nightly ingestion of sales data into a warehouse.

---

### Rates
Hourly rate is 150 BRL. Fixed-price projects are quoted per scope.
"""


@pytest.fixture
def lookup():
    return InfoLookup(split_into_sections(SAMPLE))


class TestSplitIntoSections:
    def test_headings_and_bodies(self):
        sections = split_into_sections(SAMPLE)
        assert [s["heading"] for s in sections] == [
            "Project 1 - Booking platform",
            "Project 2 - Data pipeline",
            "Rates",
        ]

    def test_separators_are_stripped_from_bodies(self):
        sections = split_into_sections(SAMPLE)
        assert sections[0]["body"] == "A web platform for booking dental appointments."
        assert all("---" not in s["body"] for s in sections)

    def test_no_headings_means_no_sections(self):
        assert split_into_sections("just text") == []


class TestSearch:
    def test_heading_match_ranks_first(self, lookup):
        results = lookup.search("project 1")
        assert results[0]["heading"] == "Project 1 - Booking platform"

    def test_body_match_is_found(self, lookup):
        results = lookup.search("hourly rate")
        assert [s["heading"] for s in results] == ["Rates"]

    def test_short_words_are_ignored(self, lookup):
        assert lookup.search("a an of") == []


class TestLookupInfoTool:
    @pytest.mark.asyncio
    async def test_returns_matching_sections(self, lookup):
        result = await lookup.capability().execute({"subject": "data pipeline"})
        assert result.startswith("Information about 'data pipeline':")
        assert "**Project 2 - Data pipeline**" in result
        assert "Nightly ingestion" in result

    @pytest.mark.asyncio
    async def test_no_match_lists_available_topics(self, lookup):
        result = await lookup.capability().execute({"subject": "weather"})
        assert result.startswith("No information found about 'weather'.")
        assert "Rates" in result

    @pytest.mark.asyncio
    async def test_empty_knowledge_base(self):
        result = await InfoLookup([]).capability().execute({"subject": "anything"})
        assert result == "❌ The knowledge base is currently unavailable."

    @pytest.mark.asyncio
    async def test_missing_subject_is_soft_failure(self, lookup):
        result = await lookup.capability().execute({})
        assert result.startswith("❌ Invalid arguments for lookup_info")

    def test_bundled_knowledge_base_loads(self):
        assert InfoLookup().search("project 1")
