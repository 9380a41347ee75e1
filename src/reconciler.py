"""Merge a new user turn into an existing conversation history.

``reconcile`` is a pure function: it never mutates the history it is given
and always returns a new list where

  - the freshly rendered system prompt is the only ``system`` entry and
    sits at index 0, and
  - the latest user turn appears exactly once, in canonical form (plain
    string, or ``[input_file, input_text]`` parts when a file is attached).

It runs at the top of every loop iteration, so it must be idempotent for
the same ``user_text``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from src.messages import (
    History,
    Message,
    role_of,
    split_file_marker,
    system_message,
    user_file_ref,
    user_message,
    user_text,
)

logger = logging.getLogger(__name__)


def _last_user_index(history: Sequence[Message]) -> int | None:
    for index in range(len(history) - 1, -1, -1):
        if role_of(history[index]) == "user":
            return index
    return None


def reconcile(
    history: Sequence[Message],
    system_prompt: str,
    text: str,
    file_ref: str | None = None,
) -> History:
    """Return a new history with a current system prompt and the user turn.

    Args:
        history: Prior entries, possibly empty.  Not modified.
        system_prompt: Resolved instruction text for this iteration.
        text: The user's message; may carry an inline ``[File attached: id]``
            marker, which is stripped from the stored text.
        file_ref: Explicit file id.  Takes precedence over an inline marker.
    """
    visible, inline_ref = split_file_marker(text)
    ref = file_ref or inline_ref

    if not history:
        logger.debug("New conversation: system prompt + first user turn")
        return [system_message(system_prompt), user_message(visible, ref)]

    dropped = sum(1 for m in history if role_of(m) == "system")
    rebuilt: History = [system_message(system_prompt)]
    rebuilt.extend(dict(m) for m in history if role_of(m) != "system")
    if dropped > 1:
        logger.debug("Discarded %d stale system messages", dropped)

    index = _last_user_index(rebuilt)
    if index is None:
        rebuilt.append(user_message(visible, ref))
        return rebuilt

    last_user = rebuilt[index]
    if user_text(last_user) == visible:
        # Same turn: normalise in place, keeping a previously attached file
        rebuilt[index] = user_message(visible, ref or user_file_ref(last_user))
    elif index == len(rebuilt) - 1:
        # Unanswered trailing turn is superseded by the new text
        rebuilt[index] = user_message(visible, ref)
    else:
        rebuilt.append(user_message(visible, ref))

    logger.debug("Reconciled history with %d entries", len(rebuilt))
    return rebuilt
