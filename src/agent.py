"""LangGraph agent loop for the agenda assistant.

Architecture:
  One turn is a small LangGraph ``StateGraph`` with three nodes:

    1. **reconcile** — re-renders the system prompt (fresh timestamp) and
                       merges the user's turn into the history
    2. **complete**  — one Responses API call with the full history and the
                       static tool manifest
    3. **classify**  — folds the response into the history: assistant text,
                       reasoning (logged only) and tool calls, which are
                       executed through the ``ToolRegistry``

  Routing:
    reconcile → complete → classify → (outcome set?) → END
                                    → (otherwise)    → reconcile (loop)

  The loop stops when the model answers with text (``answered``), emits an
  item type we do not understand (``unsupported``), or after
  ``max_iterations`` completion calls (``exhausted``).  The last two are
  degraded outcomes: the history is returned as-is, without an error.

  Memory:
    There is no checkpointer.  The caller owns the history between turns and
    gets a new list back; the list passed in is never modified.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from langgraph.graph import END, StateGraph
from openai import AsyncOpenAI
from typing_extensions import TypedDict

from src.config import MAX_AGENT_ITERATIONS, MODEL_NAME, OPENAI_API_KEY, REASONING_EFFORT
from src.dispatcher import LoopOutcome, ToolRegistry, classify_response
from src.messages import History, Message
from src.prompts import describe_now, load_prompt_template, load_tool_manifest, resolve
from src.reconciler import reconcile
from src.services.google_calendar import GoogleCalendarClient
from src.services.metrics import metrics
from src.tools.calendar import CalendarTools
from src.tools.info import InfoLookup

logger = logging.getLogger(__name__)

# Graph steps per loop iteration (reconcile, complete, classify)
_STEPS_PER_ITERATION = 3


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict):
    """The state that flows through the graph.

    Every channel is overwritten by the node that updates it; nodes return
    new lists rather than appending in place.
    """

    history: list[Message]
    user_text: str
    file_ref: str | None
    output: list[Any]
    iterations: int
    reasoning_items: int
    outcome: LoopOutcome | None


@dataclass
class AgentResult:
    """What one call to ``AgentEngine.run`` hands back to the caller."""

    history: History
    outcome: LoopOutcome
    iterations: int
    reasoning_items: int = 0

    @property
    def reply(self) -> str | None:
        """The assistant's final text, or ``None`` when the model never answered."""
        if self.outcome is not LoopOutcome.ANSWERED:
            return None
        for message in reversed(self.history):
            if message.get("role") == "assistant":
                return message.get("content")
        return None


# ── Nodes ────────────────────────────────────────────────────────────


def _make_reconcile_node(template: str, now_info: Callable[[], str]):
    def reconcile_node(state: AgentState) -> dict:
        """Refresh the system prompt and merge the user's turn."""
        system_prompt = resolve(template, now_info())
        history = reconcile(
            state["history"], system_prompt, state["user_text"], state.get("file_ref"),
        )
        return {"history": history}

    return reconcile_node


def _make_complete_node(
    client: AsyncOpenAI,
    *,
    model: str,
    reasoning_effort: str,
    tools: Sequence[dict[str, Any]],
    max_iterations: int,
):
    tool_list = list(tools)

    async def complete_node(state: AgentState) -> dict:
        """Send the full history to the completion service."""
        iteration = state["iterations"] + 1
        logger.debug(
            "Agent loop iteration %d/%d — %d history entries",
            iteration, max_iterations, len(state["history"]),
        )
        t0 = time.perf_counter()
        try:
            response = await client.responses.create(
                model=model,
                tools=tool_list,
                input=state["history"],
                reasoning={"effort": reasoning_effort},
            )
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "openai", "responses.create",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.error("Completion request failed on iteration %d: %s", iteration, exc)
            raise

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("openai", "responses.create", latency_ms=elapsed)
        output = list(response.output or [])
        logger.debug(
            "Completion returned %d item(s) in %.0fms: %s",
            len(output), elapsed, [getattr(item, "type", None) for item in output],
        )
        return {"output": output, "iterations": iteration}

    return complete_node


def _make_classify_node(registry: ToolRegistry, max_iterations: int):
    async def classify_node(state: AgentState) -> dict:
        """Fold the response into the history and decide whether to stop."""
        step = await classify_response(state["history"], state["output"], registry)
        outcome = step.outcome
        if outcome is None and state["iterations"] >= max_iterations:
            outcome = LoopOutcome.EXHAUSTED
        return {
            "history": step.history,
            "output": [],
            "outcome": outcome,
            "reasoning_items": state["reasoning_items"] + len(step.reasoning),
        }

    return classify_node


# ── Conditional edge ─────────────────────────────────────────────────


def should_continue(state: AgentState) -> str:
    """Loop back for another completion unless the turn has an outcome."""
    if state.get("outcome"):
        return END
    return "reconcile"


# ── Graph assembly ───────────────────────────────────────────────────


def create_agent_graph(
    client: AsyncOpenAI,
    registry: ToolRegistry,
    *,
    model: str = MODEL_NAME,
    reasoning_effort: str = REASONING_EFFORT,
    max_iterations: int = MAX_AGENT_ITERATIONS,
    template: str | None = None,
    tools: Sequence[dict[str, Any]] | None = None,
    now_info: Callable[[], str] = describe_now,
):
    """Build and compile the agent loop graph."""
    graph = StateGraph(AgentState)

    graph.add_node("reconcile", _make_reconcile_node(template or load_prompt_template(), now_info))
    graph.add_node(
        "complete",
        _make_complete_node(
            client,
            model=model,
            reasoning_effort=reasoning_effort,
            tools=tools if tools is not None else load_tool_manifest(),
            max_iterations=max_iterations,
        ),
    )
    graph.add_node("classify", _make_classify_node(registry, max_iterations))

    graph.set_entry_point("reconcile")
    graph.add_edge("reconcile", "complete")
    graph.add_edge("complete", "classify")
    graph.add_conditional_edges("classify", should_continue, {"reconcile": "reconcile", END: END})

    return graph.compile()


class AgentEngine:
    """Runs one user turn through the agent loop.

    A single engine can serve many turns; it holds no per-conversation
    state.  The completion client and tool registry are injected so tests
    can substitute fakes.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        registry: ToolRegistry,
        *,
        model: str = MODEL_NAME,
        reasoning_effort: str = REASONING_EFFORT,
        max_iterations: int = MAX_AGENT_ITERATIONS,
        template: str | None = None,
        tools: Sequence[dict[str, Any]] | None = None,
        now_info: Callable[[], str] = describe_now,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.max_iterations = max_iterations
        self._graph = create_agent_graph(
            client,
            registry,
            model=model,
            reasoning_effort=reasoning_effort,
            max_iterations=max_iterations,
            template=template,
            tools=tools,
            now_info=now_info,
        )

    async def run(
        self,
        user_text: str,
        history: Sequence[Message] = (),
        file_ref: str | None = None,
    ) -> AgentResult:
        """Process one user turn and return the augmented history.

        Raises:
            ToolArgumentsError: The model sent tool arguments that are not JSON.
            Exception: Any completion-service error, unchanged.
        """
        logger.debug("Starting turn (%d prior entries): %.100s", len(history), user_text)
        state = await self._graph.ainvoke(
            {
                "history": list(history),
                "user_text": user_text,
                "file_ref": file_ref,
                "output": [],
                "iterations": 0,
                "reasoning_items": 0,
                "outcome": None,
            },
            config={"recursion_limit": self.max_iterations * _STEPS_PER_ITERATION + 2},
        )

        result = AgentResult(
            history=state["history"],
            outcome=LoopOutcome(state["outcome"]),
            iterations=state["iterations"],
            reasoning_items=state["reasoning_items"],
        )
        if result.outcome is LoopOutcome.ANSWERED:
            logger.info("Turn answered after %d iteration(s)", result.iterations)
        else:
            logger.warning(
                "Turn ended without an answer (%s) after %d iteration(s)",
                result.outcome.value, result.iterations,
            )
        metrics.record_loop_outcome(result.outcome.value, result.iterations)
        return result


def build_tool_registry(calendar_client: GoogleCalendarClient) -> ToolRegistry:
    """Register every tool listed in the manifest."""
    registry = ToolRegistry(CalendarTools(calendar_client).capabilities())
    registry.register(InfoLookup().capability())
    return registry


def create_agent_engine(calendar_client: GoogleCalendarClient | None = None) -> AgentEngine:
    """Build an engine wired to OpenAI and Google Calendar from ``src.config``."""
    client = AsyncOpenAI(api_key=OPENAI_API_KEY)
    registry = build_tool_registry(calendar_client or GoogleCalendarClient())
    logger.debug(
        "Agent engine ready — model: %s, tools: %s, max iterations: %d",
        MODEL_NAME, registry.names(), MAX_AGENT_ITERATIONS,
    )
    return AgentEngine(client, registry)
