#!/usr/bin/env python3
"""
Push a session summary to the coach relay.

Same call the mobile app makes after a practice session, for seeding a
player's vector store or checking a deployment by hand.

Usage:
    python scripts/push_session.py session.json --token "$ACCESS_TOKEN"
    python scripts/push_session.py session.json --server https://relay.example.com
"""
import argparse
import json
import os
import sys

import requests


def push_session(server: str, token: str, session: dict, timeout: float = 120.0) -> dict:
    """POST one session to ``<server>/ingest`` and return the JSON reply."""
    response = requests.post(
        f"{server.rstrip('/')}/ingest",
        json=session,
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
    )
    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text}
    if not response.ok:
        raise RuntimeError(f"HTTP {response.status_code}: {body.get('error', body)}")
    return body


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Upload a session summary to the coach relay")
    parser.add_argument("session_file", help="Path to a JSON session summary")
    parser.add_argument(
        "--server",
        default=os.getenv("COACH_SERVER_URL", "http://localhost:5050"),
        help="Relay base URL (default: $COACH_SERVER_URL or http://localhost:5050)",
    )
    parser.add_argument(
        "--token",
        default=os.getenv("COACH_ACCESS_TOKEN"),
        help="Bearer token for the player (default: $COACH_ACCESS_TOKEN)",
    )
    args = parser.parse_args(argv)

    if not args.token:
        parser.error("an access token is required (--token or COACH_ACCESS_TOKEN)")

    with open(args.session_file, encoding="utf-8") as f:
        session = json.load(f)

    try:
        result = push_session(args.server, args.token, session)
    except (requests.RequestException, RuntimeError) as e:
        print(f"Upload failed: {e}", file=sys.stderr)
        return 1

    print(result.get("message", "Session uploaded"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
