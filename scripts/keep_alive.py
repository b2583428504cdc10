#!/usr/bin/env python3
"""
Periodically ping the service health endpoint so hosted instances stay warm.
"""

import argparse
import sys
import time

import requests

DEFAULT_URL = "http://localhost:8000/health"


def ping(url: str, timeout: float = 10.0) -> bool:
    """Request the health endpoint once. True when it answers 200."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        print(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] ✗ {url} unreachable: {e}")
        return False

    ok = response.status_code == 200
    mark = "✓" if ok else "✗"
    print(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] {mark} {url} -> {response.status_code}")
    return ok


def main():
    parser = argparse.ArgumentParser(description="Keep the advice service awake")
    parser.add_argument("--url", default=DEFAULT_URL, help=f"Health URL to ping (default {DEFAULT_URL})")
    parser.add_argument("--interval", type=float, default=600, help="Seconds between pings (default 600)")
    parser.add_argument("--once", action="store_true", help="Ping once and exit with its status")
    args = parser.parse_args()

    if args.once:
        sys.exit(0 if ping(args.url) else 1)

    try:
        while True:
            ping(args.url)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        print("Stopped.")


if __name__ == "__main__":
    main()
