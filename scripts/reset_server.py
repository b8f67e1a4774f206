#!/usr/bin/env python3
"""Remove every defect and user from a running defect tracker over HTTP.

Defects are deleted before users because defects reference users.

Usage:
    python scripts/reset_server.py --base-url http://localhost:9999
"""
from __future__ import annotations

import argparse
import sys
from typing import Any

import requests


# The order matters: defects hold references into users.
REPOSITORIES = ("defect", "user")


class ResetError(RuntimeError):
    pass


def _item_hrefs(body: dict[str, Any], repo: str) -> list[str]:
    items = (body.get("_embedded") or {}).get(repo) or []
    return [item["_links"]["self"]["href"] for item in items]


def reset_server(base_url: str, session: Any = None, timeout: float = 30) -> dict[str, int]:
    """Delete every item of every repository and return per-repository counts."""
    http = session or requests.Session()
    base_url = base_url.rstrip("/")
    removed: dict[str, int] = {}

    for repo in REPOSITORIES:
        resp = http.get(f"{base_url}/{repo}", timeout=timeout)
        if resp.status_code != 200:
            raise ResetError(f"Cannot get /{repo} repository (HTTP {resp.status_code})")

        hrefs = _item_hrefs(resp.json(), repo)
        for href in hrefs:
            delete_resp = http.delete(href, timeout=timeout)
            if delete_resp.status_code != 204:
                raise ResetError(f"Could not delete {href} (HTTP {delete_resp.status_code})")
        removed[repo] = len(hrefs)

    return removed


def main() -> None:
    parser = argparse.ArgumentParser(description="Reset a defect tracker server")
    parser.add_argument("--base-url", default="http://localhost:9999", help="Server base URL")
    args = parser.parse_args()

    try:
        removed = reset_server(args.base_url)
    except (ResetError, requests.RequestException) as exc:
        print(f"Reset failed: {exc}", file=sys.stderr)
        sys.exit(1)

    for repo in REPOSITORIES:
        print(f"{repo}: removed {removed[repo]}")


if __name__ == "__main__":
    main()
