"""Knowledge-base lookup tool.

Loads ``resources/knowledge_base.md`` once, splits it into ``###`` sections
and scores each section by keyword overlap with the requested subject.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from src.tools.base import ToolArgs, ToolCapability

logger = logging.getLogger(__name__)

_KB_PATH = Path(__file__).resolve().parent.parent / "resources" / "knowledge_base.md"

MAX_SECTIONS = 3


class LookupInfoArgs(ToolArgs):
    subject: str


def _load_knowledge_base(path: Path = _KB_PATH) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error("Knowledge base not found at %s", path)
        return ""


def split_into_sections(content: str) -> list[dict[str, str]]:
    """Split the markdown knowledge base into heading/body sections.

    Returns a list of dicts like:
      {"heading": "Project 1 — Booking platform", "body": "A web platform..."}
    """
    sections: list[dict[str, str]] = []
    parts = re.split(r"###\s+(.+?)(?=\n)", content)

    # parts[0] is the preamble, then alternating heading/body pairs
    for i in range(1, len(parts), 2):
        heading = parts[i].strip()
        body = parts[i + 1].strip() if i + 1 < len(parts) else ""
        body = re.sub(r"\n---.*$", "", body, flags=re.DOTALL).strip()
        sections.append({"heading": heading, "body": body})
    return sections


def _tokenize(text: str) -> set[str]:
    return set(re.findall(r"\w+", text.lower()))


class InfoLookup:
    """``lookup_info`` capability over a static set of sections."""

    def __init__(self, sections: list[dict[str, str]] | None = None) -> None:
        if sections is None:
            sections = split_into_sections(_load_knowledge_base())
        self._sections = sections

    def search(self, subject: str) -> list[dict[str, str]]:
        """Return up to ``MAX_SECTIONS`` sections ranked by keyword overlap."""
        words = {w for w in _tokenize(subject) if len(w) > 2 or w.isdigit()}
        scored: list[tuple[int, int, dict[str, str]]] = []
        for position, section in enumerate(self._sections):
            heading_words = _tokenize(section["heading"])
            body_words = _tokenize(section["body"])
            score = sum(1 for w in words if w in body_words)
            # Heading hits weigh more than body hits
            score += 2 * sum(1 for w in words if w in heading_words)
            if score:
                scored.append((-score, position, section))
        scored.sort()
        return [section for _, _, section in scored[:MAX_SECTIONS]]

    async def lookup_info(self, args: LookupInfoArgs) -> str:
        if not self._sections:
            return "❌ The knowledge base is currently unavailable."

        matches = self.search(args.subject)
        if not matches:
            return (
                f"No information found about '{args.subject}'. "
                "Available topics: " + ", ".join(s["heading"] for s in self._sections) + "."
            )

        lines = [f"Information about '{args.subject}':\n"]
        for section in matches:
            lines.append(f"**{section['heading']}**")
            lines.append(section["body"])
            lines.append("")
        return "\n".join(lines)

    def capability(self) -> ToolCapability:
        return ToolCapability("lookup_info", LookupInfoArgs, self.lookup_info)
