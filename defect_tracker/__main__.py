from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

from defect_tracker import config


logger = logging.getLogger("defect_tracker.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Defect tracker service")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.server_host(), help="Interface to bind")
    serve.add_argument("--port", type=int, default=config.server_port(), help="Port to listen on")

    subparsers.add_parser("reset", help="Delete every defect and then every user")
    return parser.parse_args(argv)


def _serve(host: str, port: int) -> None:
    import uvicorn

    from defect_tracker.main import app

    logger.info("Starting defect tracker API on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level().lower())


def _reset() -> None:
    from defect_tracker.store import STORE

    removed = STORE.reset_all()
    logger.info("Removed %d defects and %d users", removed["defect"], removed["user"])


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(level=config.log_level(), format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if args.command == "reset":
        _reset()
        return
    if args.command in (None, "serve"):
        host = getattr(args, "host", config.server_host())
        port = getattr(args, "port", config.server_port())
        _serve(host, port)
        return
    raise SystemExit(f"Unknown command: {args.command}")


if __name__ == "__main__":
    main()
