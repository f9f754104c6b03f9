"""Run the repo-drive server with explicit args (avoids shell interpolation)."""
from __future__ import annotations

import argparse

import uvicorn

from .main import create_app
from .settings import DriveSettings


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="repo-drive")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=3000)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    app = create_app(DriveSettings.from_env())
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
