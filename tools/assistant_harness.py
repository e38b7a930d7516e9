"""Command-line harness for exercising the pet care assistant over HTTP."""
from __future__ import annotations

import argparse
import asyncio
import os
import sys

from pawsquare.constants import ASSISTANT_FUNCTION_PATH
from pawsquare.schemas import ChatMessage
from pawsquare.services import AssistantChatSession, AssistantErrorKind, AssistantRequestError


class _TerminalPrinter:
    """Prints only the newly streamed suffix of the assistant reply."""

    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, messages: list[ChatMessage]) -> None:
        if not messages or messages[-1].role != "assistant":
            return
        content = messages[-1].content
        sys.stdout.write(content[self._printed:])
        sys.stdout.flush()
        self._printed = len(content)


def _resolve_token(raw: str | None) -> str:
    token = raw or os.getenv("PAWSQUARE_ACCESS_TOKEN")
    if not token:
        raise SystemExit("Pass --token or set PAWSQUARE_ACCESS_TOKEN to a signed-in user's access token.")
    return token


async def _run_chat(args: argparse.Namespace) -> int:
    endpoint = f"{args.base_url.rstrip('/')}{ASSISTANT_FUNCTION_PATH}"
    session = AssistantChatSession(
        endpoint=endpoint,
        access_token=_resolve_token(args.token),
        timeout=args.timeout,
        on_update=_TerminalPrinter(),
    )
    try:
        await session.send(args.message)
    except AssistantRequestError as exc:
        print(f"\nAssistant call failed ({exc.kind.value}): {exc.message}", file=sys.stderr)
        return 3 if exc.kind is AssistantErrorKind.RATE_LIMITED else 2
    print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Developer harness for the pet care assistant.")
    parser.add_argument("message", help="Prompt to send to the assistant.")
    parser.add_argument(
        "--base-url",
        default=os.getenv("PAWSQUARE_BASE_URL", "http://localhost:8000"),
        help="Backend base URL (default: %(default)s).",
    )
    parser.add_argument("--token", help="Bearer token; defaults to $PAWSQUARE_ACCESS_TOKEN.")
    parser.add_argument("--timeout", type=float, default=60.0, help="Request timeout in seconds (default: %(default)s).")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return asyncio.run(_run_chat(args))


if __name__ == "__main__":
    raise SystemExit(main())
