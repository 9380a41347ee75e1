"""Agenda Assistant — an LLM agent that manages a Google Calendar on the user's behalf.

Architecture Overview
=====================

Each user turn runs through a small **LangGraph** loop (``src/agent.py``):

1. **reconcile** — renders the system prompt with the current São Paulo date
   and time, and merges the user's message (plus an optional uploaded-file
   reference) into the conversation history.
2. **complete** — calls the OpenAI Responses API with the full history and
   the static tool manifest.
3. **classify** — appends assistant text, executes requested tool calls and
   appends their results; reasoning items are only logged.

Routing: reconcile → complete → classify → (answered / unsupported /
iteration cap?) → END, otherwise back to reconcile.

Key Design Decisions
--------------------
- **Bounded loop**: at most ``MAX_AGENT_ITERATIONS`` completion calls per
  turn (default 3).  The result reports *why* the loop stopped
  (``answered``, ``unsupported`` or ``exhausted``).
- **Caller-owned history**: no checkpointer; ``AgentEngine.run`` takes a
  history value and returns a new one.
- **Soft tool failures**: unknown tools and provider errors become result
  strings the model can react to.  Only malformed tool-argument JSON and
  completion-service errors propagate.
- **Injected clients**: the OpenAI client and the tool registry are passed
  in, so tests run against fakes.

Package Structure
-----------------
- ``src/agent.py`` — LangGraph loop and ``AgentEngine``
- ``src/reconciler.py`` — history / user-turn reconciliation
- ``src/dispatcher.py`` — output classification and ``ToolRegistry``
- ``src/messages.py`` — history entry builders
- ``src/prompts.py`` — system prompt template and tool manifest
- ``src/config.py`` — centralized configuration from environment variables
- ``src/main.py`` — CLI chat interface
- ``src/services/`` — Google Calendar client and metrics
- ``src/tools/`` — calendar and knowledge-base tools
- ``src/resources/`` — prompt template, tool manifest, knowledge base
"""
