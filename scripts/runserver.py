#!/usr/bin/env python
"""Container entrypoint: migrate (unless disabled) and serve the API with uvicorn."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import uvicorn

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from workdesk.config import get_settings  # noqa: E402
from workdesk.migration_runner import run_migrations_once  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    parser.add_argument("--skip-migrations", action="store_true")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    if settings.run_migrations_on_startup and not args.skip_migrations:
        print("[runserver] Applying migrations...", flush=True)
        try:
            run_migrations_once()
        except Exception as exc:
            print(f"[runserver] migration failed: {exc}", file=sys.stderr)
            return 1

    print(f"[runserver] Serving {settings.app_name} on {args.host}:{args.port}", flush=True)
    uvicorn.run(
        "workdesk.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
