"""Tests for conversation history reconciliation."""

from __future__ import annotations

import copy

import pytest

from src.messages import split_file_marker, user_file_ref, user_text
from src.reconciler import reconcile

PROMPT = "You are a scheduling assistant. Now: Monday 10:00."


def _roles(history):
    return [m.get("role") or m.get("type") for m in history]


# ── Empty history ────────────────────────────────────────────────────


class TestNewConversation:
    def test_empty_history_yields_system_then_user(self):
        result = reconcile([], PROMPT, "What's on my calendar tomorrow?")
        assert result == [
            {"role": "system", "content": PROMPT},
            {"role": "user", "content": "What's on my calendar tomorrow?"},
        ]

    def test_file_ref_produces_file_then_text_parts(self):
        result = reconcile([], PROMPT, "Summarise this", "doc-123")
        assert result[1]["content"] == [
            {"type": "input_file", "file_id": "doc-123"},
            {"type": "input_text", "text": "Summarise this"},
        ]

    def test_inline_marker_is_parsed_and_stripped(self):
        result = reconcile([], PROMPT, "[File attached: file-9] What is this?")
        assert result[1]["content"] == [
            {"type": "input_file", "file_id": "file-9"},
            {"type": "input_text", "text": "What is this?"},
        ]

    def test_explicit_ref_wins_over_inline_marker(self):
        result = reconcile([], PROMPT, "[File attached: file-inline] Read it", "file-explicit")
        parts = result[1]["content"]
        assert parts[0] == {"type": "input_file", "file_id": "file-explicit"}
        # The marker is still stripped from the visible text
        assert parts[1] == {"type": "input_text", "text": "Read it"}


# ── Existing history ─────────────────────────────────────────────────


class TestExistingConversation:
    def test_system_prompt_is_replaced_with_the_fresh_one(self):
        history = [
            {"role": "system", "content": "old prompt"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        result = reconcile(history, PROMPT, "book a meeting")
        assert result[0] == {"role": "system", "content": PROMPT}
        assert "old prompt" not in [m.get("content") for m in result]

    def test_stray_system_messages_are_discarded(self):
        history = [
            {"role": "user", "content": "hi"},
            {"role": "system", "content": "injected"},
            {"role": "assistant", "content": "hello"},
            {"role": "system", "content": "another"},
        ]
        result = reconcile(history, PROMPT, "next")
        assert _roles(result) == ["system", "user", "assistant", "user"]

    def test_new_turn_after_answered_pair_is_appended(self):
        history = [
            {"role": "system", "content": "old"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        result = reconcile(history, PROMPT, "schedule lunch")
        assert _roles(result) == ["system", "user", "assistant", "user"]
        assert result[-1] == {"role": "user", "content": "schedule lunch"}
        assert result[1] == {"role": "user", "content": "hi"}

    def test_prior_turn_with_file_ref_gets_two_part_content(self):
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        result = reconcile(history, PROMPT, "what does this say?", "doc-123")
        assert result[-1]["role"] == "user"
        assert result[-1]["content"] == [
            {"type": "input_file", "file_id": "doc-123"},
            {"type": "input_text", "text": "what does this say?"},
        ]

    def test_same_text_already_stored_is_not_duplicated(self):
        history = [
            {"role": "system", "content": "old"},
            {"role": "user", "content": "list my events"},
        ]
        result = reconcile(history, PROMPT, "list my events")
        assert _roles(result) == ["system", "user"]

    def test_stored_inline_marker_is_canonicalised_in_place(self):
        """The caller may persist the raw '[File attached: id] text' form."""
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "[File attached: f-1] read this"},
        ]
        result = reconcile(history, PROMPT, "[File attached: f-1] read this")
        assert _roles(result) == ["system", "user", "assistant", "user"]
        assert result[-1]["content"] == [
            {"type": "input_file", "file_id": "f-1"},
            {"type": "input_text", "text": "read this"},
        ]

    def test_unanswered_trailing_user_turn_is_overwritten(self):
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "draft message"},
        ]
        result = reconcile(history, PROMPT, "actual message")
        assert _roles(result) == ["system", "user", "assistant", "user"]
        assert result[-1] == {"role": "user", "content": "actual message"}

    def test_history_without_user_turn_gets_one_appended(self):
        history = [{"role": "assistant", "content": "Welcome!"}]
        result = reconcile(history, PROMPT, "hi")
        assert _roles(result) == ["system", "assistant", "user"]

    def test_same_turn_keeps_previously_attached_file(self):
        history = [
            {
                "role": "user",
                "content": [
                    {"type": "input_file", "file_id": "doc-1"},
                    {"type": "input_text", "text": "check this"},
                ],
            },
            {"type": "function_call", "call_id": "c1", "name": "lookup_info", "arguments": "{}"},
            {"type": "function_call_output", "call_id": "c1", "output": "done"},
        ]
        result = reconcile(history, PROMPT, "check this")
        assert user_file_ref(result[1]) == "doc-1"
        assert len(result) == 4

    def test_tool_entries_after_user_turn_are_kept_in_order(self):
        history = [
            {"role": "system", "content": "old"},
            {"role": "user", "content": "what's tomorrow?"},
            {"type": "function_call", "call_id": "c1", "name": "list_upcoming_events", "arguments": "{}"},
            {"type": "function_call_output", "call_id": "c1", "output": "📅 No upcoming events found."},
        ]
        result = reconcile(history, PROMPT, "what's tomorrow?")
        assert _roles(result) == ["system", "user", "function_call", "function_call_output"]


# ── Invariants ───────────────────────────────────────────────────────


class TestInvariants:
    @pytest.mark.parametrize(
        "history",
        [
            [],
            [{"role": "system", "content": "a"}],
            [{"role": "system", "content": "a"}, {"role": "system", "content": "b"}],
            [{"role": "user", "content": "x"}, {"role": "system", "content": "a"}],
            [
                {"role": "user", "content": "x"},
                {"role": "assistant", "content": "y"},
                {"role": "user", "content": "z"},
                {"role": "assistant", "content": "w"},
                {"role": "system", "content": "late"},
            ],
        ],
    )
    def test_exactly_one_system_message_at_index_zero(self, history):
        result = reconcile(history, PROMPT, "hello")
        systems = [i for i, m in enumerate(result) if m.get("role") == "system"]
        assert systems == [0]
        assert result[0]["content"] == PROMPT

    def test_reconcile_is_idempotent(self):
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        once = reconcile(history, PROMPT, "[File attached: f-2] and this?")
        twice = reconcile(once, PROMPT, "[File attached: f-2] and this?")
        assert once == twice

    def test_input_history_is_not_mutated(self):
        history = [
            {"role": "system", "content": "old"},
            {"role": "user", "content": "draft"},
        ]
        snapshot = copy.deepcopy(history)
        reconcile(history, PROMPT, "final", "doc-1")
        assert history == snapshot


# ── Message helpers ──────────────────────────────────────────────────


class TestFileMarker:
    def test_split_without_marker(self):
        assert split_file_marker("plain text") == ("plain text", None)

    def test_split_with_marker(self):
        assert split_file_marker("[File attached: file-abc] hello") == ("hello", "file-abc")

    def test_user_text_joins_text_parts(self):
        message = {
            "role": "user",
            "content": [
                {"type": "input_file", "file_id": "x"},
                {"type": "input_text", "text": "hello"},
            ],
        }
        assert user_text(message) == "hello"
        assert user_file_ref(message) == "x"
