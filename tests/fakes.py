"""Fakes for the completion service and tool capabilities."""

from __future__ import annotations

from types import SimpleNamespace


def text_item(text: str):
    """A ``message`` output item with one ``output_text`` part."""
    return SimpleNamespace(
        type="message",
        content=[SimpleNamespace(type="output_text", text=text)],
    )


def call_item(name: str, arguments: str = "{}", call_id: str = "call_1"):
    """A ``function_call`` output item."""
    return SimpleNamespace(
        type="function_call", call_id=call_id, name=name, arguments=arguments,
    )


def reasoning_item(item_id: str = "rs_1"):
    return SimpleNamespace(type="reasoning", id=item_id, summary=[])


def response(*items):
    return SimpleNamespace(output=list(items))


class FakeCapability:
    """Capability stub that records calls and returns a fixed result (or raises)."""

    def __init__(self, name: str, result: str = "ok", error: Exception | None = None):
        self.name = name
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def execute(self, args):
        self.calls.append(dict(args))
        if self.error is not None:
            raise self.error
        return self.result
