#!/usr/bin/env python3
"""Talking Bookshelf CLI."""

import argparse
import logging
import sys

from config.settings import Settings
from errors import BookshelfError


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )


def serve(settings: Settings):
    """
    Run the HTTP API with uvicorn.

    Client addresses are taken from X-Forwarded-For when the peer is one of
    FORWARDED_ALLOW_IPS, so rate limiting sees the real client behind a proxy.
    """
    import uvicorn
    from app import create_app

    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )


def ask(settings: Settings, question: str, book_id, language: str) -> int:
    """Run a single chat turn and print the reply."""
    from orchestrator import BookshelfOrchestrator

    orchestrator = BookshelfOrchestrator.from_settings(settings)
    try:
        reply = orchestrator.chat(question, source="cli", book_id=book_id, language=language)
    except BookshelfError as e:
        print(f"Error [{e.code.value}]: {e.message}", file=sys.stderr)
        return 1

    print("\n" + "=" * 60)
    print(f"[{reply.emotion.value}]")
    print("=" * 60 + "\n")
    print(reply.response)
    if reply.suggestions:
        print("\nSuggestions:")
        for suggestion in reply.suggestions:
            print(f"  - {suggestion}")
    print()
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Talking Bookshelf - chat with a bookshelf about its owner's books"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, help="Bind address (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port (default: PORT or 8080)")

    ask_parser = subparsers.add_parser("ask", help="Ask the bookshelf one question")
    ask_parser.add_argument(
        "--question",
        "-q",
        type=str,
        required=True,
        help="Question for the bookshelf"
    )
    ask_parser.add_argument("--book-id", type=str, help="Pin a book for this question")
    ask_parser.add_argument(
        "--language",
        "-l",
        type=str,
        choices=["ja", "en"],
        default="en",
        help="Reply language (default: en)"
    )

    args = parser.parse_args()
    configure_logging(args.verbose)

    overrides = {"verbose": args.verbose}
    if args.command == "serve":
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
    settings = Settings(**overrides)

    if args.command == "serve":
        serve(settings)
    else:
        sys.exit(ask(settings, args.question, args.book_id, args.language))


if __name__ == "__main__":
    main()
