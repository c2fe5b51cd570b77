#!/usr/bin/env python3
"""Dash assistant CLI."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from config.settings import Settings
from memory.conversation_store import ConversationNotFoundError
from orchestrator import DashOrchestrator, ConversationUnavailableError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dash - conversational assistant for teachers, principals and parents"
    )
    parser.add_argument(
        "--message",
        "-m",
        type=str,
        help="Message to send to Dash"
    )
    parser.add_argument(
        "--conversation",
        "-c",
        type=str,
        help="Conversation ID to continue (default: current conversation)"
    )
    parser.add_argument(
        "--new",
        action="store_true",
        help="Start a new conversation before sending"
    )
    parser.add_argument(
        "--title",
        type=str,
        help="Title for a new conversation"
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List stored conversations"
    )
    parser.add_argument(
        "--export",
        type=str,
        metavar="CONVERSATION_ID",
        help="Print a conversation as plain text"
    )
    parser.add_argument(
        "--role",
        type=str,
        choices=["teacher", "principal", "parent"],
        help="Role of the user, used to adapt tone"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to the SQLite database"
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Wait for the full reply instead of streaming it"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    return parser


async def run(args) -> int:
    settings = Settings(db_path=args.db_path, verbose=args.verbose)
    orchestrator = DashOrchestrator(settings=settings, user_role=args.role)
    await orchestrator.initialize()

    try:
        if args.list:
            for conversation in await orchestrator.store.get_all_conversations():
                updated = datetime.fromtimestamp(conversation.updated_at / 1000)
                print(f"{conversation.id}  {updated:%Y-%m-%d %H:%M}  {conversation.title} "
                      f"({len(conversation.messages)} messages)")
            return 0

        if args.export:
            print(await orchestrator.store.export_conversation(args.export))
            return 0

        if not args.message:
            print("Nothing to do: pass --message, --list or --export", file=sys.stderr)
            return 2

        conversation_id = args.conversation
        if args.new:
            conversation_id = await orchestrator.store.start_new_conversation(args.title)

        if args.no_stream:
            reply = await orchestrator.send_message(args.message, conversation_id)
            print(reply.content)
        else:
            streamed = []

            def on_chunk(text: str):
                streamed.append(text)
                print(text, end="", flush=True)

            reply = await orchestrator.send_message(args.message, conversation_id, on_chunk=on_chunk)
            if streamed:
                print()
            else:
                # Fallback replies never stream
                print(reply.content)
        return 0
    finally:
        await orchestrator.close()


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        sys.exit(asyncio.run(run(args)))
    except (ConversationNotFoundError, ConversationUnavailableError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
