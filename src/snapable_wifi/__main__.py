"""Serve the Wi-Fi channel API: ``python -m snapable_wifi``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapable-wifi",
        description="Expose the com.snapable.wifi method channel over HTTP.",
    )
    parser.add_argument("--config", type=Path, default=Path("data/config.json"), help="Path to the JSON config file")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: %(default)s)")
    parser.add_argument("--port", type=int, default=8787, help="Port to listen on (default: %(default)s)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=("debug", "info", "warning", "error"),
        help="Logging verbosity (default: %(default)s)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from .app import create_app

    app = create_app(args.config)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


if __name__ == "__main__":  # pragma: no cover - module behaviour
    raise SystemExit(main())
