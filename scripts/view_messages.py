#!/usr/bin/env python3
"""
Print stored chat messages, newest first.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from advice_rag.core.messages import MessageStore


def _preview(text, limit):
    if not text:
        return "-"
    text = text.replace("\n", " ")
    return text[:limit] + "..." if len(text) > limit else text


def main():
    parser = argparse.ArgumentParser(description="View stored chat messages")
    parser.add_argument("--limit", "-n", type=int, default=20, help="Number of messages to show (default 20)")
    parser.add_argument("--full", action="store_true", help="Print full responses instead of previews")
    parser.add_argument("--json", action="store_true", help="Print messages as JSON")
    args = parser.parse_args()

    messages = MessageStore().list_messages(limit=args.limit)

    if args.json:
        print(json.dumps([m.to_dict() for m in messages], indent=2))
        return

    if not messages:
        print("No messages stored.")
        return

    limit = None if args.full else 120
    for message in messages:
        feedback = {True: "👍", False: "👎", None: "-"}[message.thumbs_up]
        entries = len((message.metadata or {}).get("displayEntries", []))
        print(f"#{message.id}  {message.created_at}  feedback: {feedback}")
        print(f"  Query:   {message.query}")
        if limit is None:
            print(f"  Stage 1: {message.stage1_response or '-'}")
            print(f"  Final:   {message.final_response or '-'}")
        else:
            print(f"  Stage 1: {_preview(message.stage1_response, limit)}")
            print(f"  Final:   {_preview(message.final_response, limit)}")
        print(f"  Display entries: {entries}")
        if message.feedback:
            print(f"  Comment: {message.feedback}")
        print()


if __name__ == "__main__":
    main()
