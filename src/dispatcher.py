"""Classify completion output items and execute the tool calls they request.

Output item shapes handled (Responses API):

  - ``message``        — assistant text; ends the turn
  - ``reasoning``      — logged only, never replayed into the history
  - ``function_call``  — appended to the history, executed through the
                         ``ToolRegistry``, result appended right after it

Anything else ends the turn as *unsupported*.  Tool calls run one after
another in the order the model emitted them.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from src.messages import History, Message, assistant_message, function_call, function_call_output
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

FAILURE_MARKER = "❌"


class LoopOutcome(str, Enum):
    """Why the agent loop stopped."""

    ANSWERED = "answered"
    UNSUPPORTED = "unsupported"
    EXHAUSTED = "exhausted"


class ToolArgumentsError(ValueError):
    """Raised when a function call carries arguments that are not valid JSON.

    ``history`` holds the working history up to and including the offending
    invocation, so callers can inspect what the model asked for.
    """

    def __init__(self, name: str, call_id: str, raw: str, history: History):
        self.name = name
        self.call_id = call_id
        self.raw = raw
        self.history = history
        super().__init__(f"Malformed arguments for tool {name} (call {call_id}): {raw!r}")


@runtime_checkable
class Capability(Protocol):
    """A registered tool: a name plus an async ``execute(args) -> str``."""

    name: str

    async def execute(self, args: Mapping[str, Any]) -> str: ...


def not_implemented_message(name: str) -> str:
    return f"ERROR: tool {name} not implemented."


class ToolRegistry:
    """Static name → capability map used by the dispatcher."""

    def __init__(self, capabilities: Iterable[Capability] = ()) -> None:
        self._capabilities: dict[str, Capability] = {}
        for capability in capabilities:
            self.register(capability)

    def register(self, capability: Capability) -> None:
        if capability.name in self._capabilities:
            raise ValueError(f"Tool {capability.name!r} is already registered")
        self._capabilities[capability.name] = capability

    def get(self, name: str) -> Capability | None:
        return self._capabilities.get(name)

    def names(self) -> list[str]:
        return list(self._capabilities)

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    async def dispatch(self, name: str, args: Mapping[str, Any]) -> str:
        """Run tool *name* and return its result string.

        Never raises: unknown tools yield ``ERROR: tool <name> not
        implemented.`` and exceptions escaping a capability become a
        ``❌`` failure string the model can react to.
        """
        capability = self.get(name)
        if capability is None:
            logger.warning("Unhandled tool requested: %s", name)
            return not_implemented_message(name)

        t0 = time.perf_counter()
        try:
            result = await capability.execute(args)
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "tools", name, error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.exception("Tool %s failed", name)
            return f"{FAILURE_MARKER} Error running {name}: {exc}"

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("tools", name, latency_ms=elapsed)
        return str(result)


@dataclass
class StepResult:
    """Outcome of classifying one completion response."""

    history: History
    outcome: LoopOutcome | None = None
    reasoning: list[Any] = field(default_factory=list)
    tool_calls: int = 0

    @property
    def done(self) -> bool:
        return self.outcome is not None


def _field(item: Any, name: str, default: Any = None) -> Any:
    """Read *name* from an SDK model or a plain dict."""
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def _preview(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


async def classify_response(
    history: Sequence[Message],
    output: Iterable[Any],
    registry: ToolRegistry,
) -> StepResult:
    """Fold one response's output items into a new history.

    Args:
        history: Working history sent with the request.  Not modified.
        output: The response's output items, in emitted order.
        registry: Tools available for ``function_call`` items.

    Raises:
        ToolArgumentsError: A function call's arguments are not valid JSON.
    """
    working: History = list(history)
    answered = False
    unsupported = False
    reasoning: list[Any] = []
    tool_calls = 0

    for item in output:
        item_type = _field(item, "type")

        if item_type == "message":
            for part in _field(item, "content", None) or []:
                logger.debug("Processing content type: %s", _field(part, "type"))
                if _field(part, "type") == "output_text":
                    text = _field(part, "text", "")
                    logger.debug("Assistant response: %s", _preview(text))
                    working.append(assistant_message(text))
                    answered = True

        elif item_type == "reasoning":
            logger.debug("Reasoning item: %s", _field(item, "id"))
            reasoning.append(item)

        elif item_type == "function_call":
            name = _field(item, "name")
            call_id = _field(item, "call_id")
            raw_args = _field(item, "arguments") or ""
            working.append(function_call(call_id, name, raw_args))
            tool_calls += 1
            logger.debug("Function call %s (%s): %s", name, call_id, raw_args)

            try:
                args = json.loads(raw_args)
            except json.JSONDecodeError as exc:
                raise ToolArgumentsError(name, call_id, raw_args, list(working)) from exc

            result = await registry.dispatch(name, args)
            logger.debug("Tool %s result: %s", name, _preview(result, 200))
            working.append(function_call_output(call_id, result))

        else:
            logger.warning("Unhandled output item type: %s", item_type)
            unsupported = True

    outcome = None
    if answered:
        outcome = LoopOutcome.ANSWERED
    elif unsupported:
        outcome = LoopOutcome.UNSUPPORTED
    return StepResult(history=working, outcome=outcome, reasoning=reasoning, tool_calls=tool_calls)
