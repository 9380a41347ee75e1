"""Tests for the system prompt template and tool manifest."""

from __future__ import annotations

from datetime import UTC, datetime

from src.prompts import (
    DATETIME_PLACEHOLDER,
    describe_now,
    get_system_prompt,
    load_prompt_template,
    load_tool_manifest,
    resolve,
)


class TestResolve:
    def test_replaces_placeholder(self):
        assert resolve("Date: $dateTime.", "Monday") == "Date: Monday."

    def test_replaces_every_occurrence(self):
        assert resolve("$dateTime / $dateTime", "X") == "X / X"

    def test_is_idempotent(self):
        once = resolve("Now: $dateTime", "10:00")
        assert resolve(once, "11:00") == once

    def test_template_without_placeholder_is_unchanged(self):
        assert resolve("static", "ignored") == "static"


class TestDescribeNow:
    def test_renders_portuguese_sao_paulo_time(self):
        # 17:05 UTC is 14:05 in São Paulo (UTC-3)
        now = datetime(2026, 10, 19, 17, 5, tzinfo=UTC)
        text = describe_now(now)
        assert text == (
            "Hoje é segunda-feira, dia 19 de outubro de 2026, "
            "horário atual: 14:05, aqui em São Paulo."
        )

    def test_uses_local_date_across_midnight(self):
        # 01:30 UTC on the 20th is still the 19th in São Paulo
        now = datetime(2026, 10, 20, 1, 30, tzinfo=UTC)
        assert "dia 19 de outubro" in describe_now(now)

    def test_naive_datetime_is_read_as_sao_paulo_time(self):
        # The host timezone must not shift the rendered clock
        text = describe_now(datetime(2026, 10, 19, 14, 5))
        assert "horário atual: 14:05" in text
        assert "dia 19 de outubro" in text

    def test_custom_timezone_and_label(self):
        now = datetime(2026, 10, 19, 17, 5, tzinfo=UTC)
        text = describe_now(now, timezone="Europe/Lisbon", locale="pt_PT", location="Lisboa")
        assert "18:05" in text
        assert text.endswith("aqui em Lisboa.")


class TestTemplateFiles:
    def test_template_has_placeholder(self):
        assert DATETIME_PLACEHOLDER in load_prompt_template()

    def test_system_prompt_has_no_placeholder_left(self):
        prompt = get_system_prompt(datetime(2026, 10, 19, 17, 5, tzinfo=UTC))
        assert DATETIME_PLACEHOLDER not in prompt
        assert "Hoje é segunda-feira" in prompt

    def test_manifest_lists_the_five_tools(self):
        names = [tool["name"] for tool in load_tool_manifest()]
        assert names == [
            "lookup_info",
            "schedule_event",
            "list_upcoming_events",
            "find_available_slots",
            "cancel_event",
        ]

    def test_manifest_entries_are_function_tools(self):
        for tool in load_tool_manifest():
            assert tool["type"] == "function"
            assert tool["parameters"]["type"] == "object"

    def test_manifest_is_loaded_once(self):
        assert load_tool_manifest() is load_tool_manifest()
