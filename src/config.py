"""Centralized configuration for the agenda assistant engine.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/agenda-agent/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 — lazy import to avoid boto3 dep in tests

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/agenda-agent/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /agenda-agent/{name} (AWS)."
    )


def _optional_secret(name: str) -> str:
    """Like ``_require_env`` but returns an empty string when unset."""
    try:
        return _require_env(name)
    except OSError:
        return ""


# ── Completion service ──────────────────────────────────────────────
OPENAI_API_KEY: str = _require_env("OPENAI_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "gpt-5")
REASONING_EFFORT: str = os.getenv("REASONING_EFFORT", "minimal")

# Upper bound on completion calls per turn
MAX_AGENT_ITERATIONS: int = int(os.getenv("MAX_AGENT_ITERATIONS", "3"))

# ── Locale / timezone for the system prompt and calendar output ─────
TIMEZONE: str = os.getenv("TIMEZONE", "America/Sao_Paulo")
LOCALE: str = os.getenv("LOCALE", "pt_BR")
LOCATION_LABEL: str = os.getenv("LOCATION_LABEL", "São Paulo")

# ── Google Calendar ─────────────────────────────────────────────────
GOOGLE_CLIENT_ID: str = _optional_secret("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str = _optional_secret("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN: str = _optional_secret("GOOGLE_REFRESH_TOKEN")
GOOGLE_CALENDAR_ID: str = os.getenv("GOOGLE_CALENDAR_ID", "primary")
GOOGLE_CALENDAR_BASE_URL: str = os.getenv(
    "GOOGLE_CALENDAR_BASE_URL", "https://www.googleapis.com/calendar/v3",
)
GOOGLE_TOKEN_URL: str = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")

WORKING_HOURS_START: str = os.getenv("WORKING_HOURS_START", "09:00")
WORKING_HOURS_END: str = os.getenv("WORKING_HOURS_END", "18:00")
