#!/usr/bin/env python3
"""
authgate -- authentication and admission-control gateway.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 8080
  python main.py --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY    Token signing key, at least 32 characters. Required unless DEBUG=true.
  DEBUG         true = dev mode (auto-generated key, error detail in 500 bodies).
  ENVIRONMENT   development | local | test | anything else (= Secure cookies).
"""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Serve the authgate API.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    parser.add_argument(
        "--proxy-headers",
        action="store_true",
        help="Trust X-Forwarded-For so admission sees the real client address behind a proxy",
    )
    args = parser.parse_args()

    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        proxy_headers=args.proxy_headers,
    )


if __name__ == "__main__":
    main()
