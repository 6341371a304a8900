#!/usr/bin/env python3
"""
Run the OTA update server under uvicorn.

Usage:
    python3 web_server.py                          # 127.0.0.1:8000
    python3 web_server.py --reload                 # development
    python3 web_server.py --host 0.0.0.0 --workers 4 --proxy-headers
    python3 web_server.py --create-tables          # local SQLite, no Alembic

Environment Variables:
    OTA_DB_URL: Database URL (backend/.env is read when present)
    OTA_ENV: production | development
    OTA_LOG_LEVEL: Log level, also passed to uvicorn
    OTA_DEFAULT_CHANNEL: Fallback channel name (default: production)
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv


REPO_ROOT = Path(__file__).parent
APP_PATH = "backend.src.main:app"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the OTA update server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Migrations: run 'alembic upgrade head' from backend/ before "
               "the first start against PostgreSQL.",
    )
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (default: 127.0.0.1; 0.0.0.0 for all interfaces)")
    parser.add_argument("--port", type=int, default=8000,
                        help="Bind port (default: 8000)")
    parser.add_argument("--workers", type=int, default=1,
                        help="Worker processes (ignored with --reload)")
    parser.add_argument("--reload", action="store_true",
                        help="Restart on code changes (development only)")
    parser.add_argument("--proxy-headers", action="store_true",
                        help="Trust X-Forwarded-* headers from a reverse proxy")
    parser.add_argument("--create-tables", action="store_true",
                        help="Create missing tables before starting (SQLite/local use)")
    return parser


def main() -> None:
    args = build_parser().parse_args()

    if str(REPO_ROOT) not in sys.path:
        sys.path.insert(0, str(REPO_ROOT))

    # Explicit environment variables win over backend/.env
    load_dotenv(REPO_ROOT / "backend" / ".env", override=False)

    if args.create_tables:
        from backend.src.db.database import init_db
        init_db()
        print("Tables created")

    import uvicorn

    print(f"\nOTA update server on http://{args.host}:{args.port}")
    print(f"  Docs:   http://{args.host}:{args.port}/docs")
    print(f"  Health: http://{args.host}:{args.port}/health")
    print("Press CTRL+C to stop\n")

    try:
        uvicorn.run(
            APP_PATH,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=None if args.reload else args.workers,
            proxy_headers=args.proxy_headers,
            log_level=os.environ.get("OTA_LOG_LEVEL", "info").lower(),
        )
    except KeyboardInterrupt:
        print("\nServer stopped")
        sys.exit(0)


if __name__ == "__main__":
    main()
