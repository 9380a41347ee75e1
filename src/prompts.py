"""System prompt template and tool manifest for the agenda assistant.

Both files live in ``src/resources`` and are read once per process.  The
template carries a single ``$dateTime`` placeholder that is re-rendered on
every loop iteration so the model always sees the current wall-clock time.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from babel.dates import format_datetime

from src.config import LOCALE, LOCATION_LABEL, TIMEZONE

logger = logging.getLogger(__name__)

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"

DATETIME_PLACEHOLDER = "$dateTime"


@lru_cache(maxsize=1)
def load_prompt_template() -> str:
    """Read the raw system prompt template."""
    return (RESOURCES_DIR / "system_prompt.txt").read_text(encoding="utf-8")


@lru_cache(maxsize=1)
def load_tool_manifest() -> tuple[dict[str, Any], ...]:
    """Read the static tool manifest sent with every completion request.

    Returned as a tuple so the cached value cannot be mutated in place.
    """
    tools = json.loads((RESOURCES_DIR / "tools.json").read_text(encoding="utf-8"))
    logger.debug("Loaded tool manifest with %d tools", len(tools))
    return tuple(tools)


def describe_now(
    now: datetime | None = None,
    *,
    timezone: str = TIMEZONE,
    locale: str = LOCALE,
    location: str = LOCATION_LABEL,
) -> str:
    """Render the current date and time as a sentence in the configured locale.

    Example (``pt_BR``, ``America/Sao_Paulo``):
        Hoje é segunda-feira, dia 19 de outubro de 2026, horário atual: 14:05, aqui em São Paulo.
    """
    tz = ZoneInfo(timezone)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        # Naive values are wall-clock time in the configured timezone
        now = now.replace(tzinfo=tz)
    local = now.astimezone(tz)

    week_day = format_datetime(local, "EEEE", tzinfo=tz, locale=locale)
    month = format_datetime(local, "MMMM", tzinfo=tz, locale=locale)
    clock = format_datetime(local, "HH:mm", tzinfo=tz, locale=locale)
    return (
        f"Hoje é {week_day}, dia {local.day} de {month} de {local.year}, "
        f"horário atual: {clock}, aqui em {location}."
    )


def resolve(template: str, now_info: str) -> str:
    """Substitute the date/time placeholder in *template* with *now_info*."""
    return template.replace(DATETIME_PLACEHOLDER, now_info or "")


def get_system_prompt(now: datetime | None = None) -> str:
    """Build the complete system prompt with the current date injected."""
    return resolve(load_prompt_template(), describe_now(now))
