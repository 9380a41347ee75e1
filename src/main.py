"""CLI entry point for the agenda assistant.

A terminal chat for development and testing.  The CLI owns the
conversation history: it passes it to the engine on every turn and keeps
the history the engine hands back.

Usage:
    python -m src.main            # normal mode (quiet)
    python -m src.main --debug    # debug mode (shows loop iterations and API calls)

Chat commands:
    new                     start a new conversation
    quit                    exit
    /file <file-id> <text>  send <text> with an uploaded file attached
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from src.agent import create_agent_engine
from src.dispatcher import LoopOutcome
from src.messages import History
from src.services.google_calendar import GoogleCalendarClient

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


def parse_command(line: str) -> tuple[str, str | None]:
    """Split ``/file <id> <text>`` into text and file id; other input passes through."""
    if not line.startswith("/file "):
        return line, None
    _, _, rest = line.partition(" ")
    file_id, _, text = rest.strip().partition(" ")
    return text.strip(), file_id or None


async def _chat() -> None:
    calendar_client = GoogleCalendarClient()
    engine = create_agent_engine(calendar_client)
    history: History = []

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye!")
                break

            if user_input.lower() == "new":
                history = []
                print("\n>> New conversation started.\n")
                continue

            text, file_id = parse_command(user_input)
            try:
                result = await engine.run(text, history, file_id)
            except Exception as e:
                logger.exception("Error processing message")
                print(f"\nAna: I'm sorry, something went wrong: {e}")
                print("     Please try again or type 'new' to start a fresh conversation.\n")
                continue

            history = result.history
            if result.reply is not None:
                print(f"\nAna: {result.reply}\n")
            elif result.outcome is LoopOutcome.EXHAUSTED:
                print(
                    f"\nAna: I ran out of steps ({result.iterations}) before finishing. "
                    "Send a follow-up and I'll continue.\n"
                )
            else:
                print("\nAna: I received a response I can't display. Please try again.\n")
    finally:
        await calendar_client.aclose()


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Agenda assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Agenda Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new conversation,")
    print("            '/file <id> <message>' to attach an uploaded file.")
    print("=" * 60 + "\n")

    asyncio.run(_chat())


if __name__ == "__main__":
    main()
