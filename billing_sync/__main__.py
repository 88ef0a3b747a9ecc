"""Run the billing service with uvicorn: ``python -m billing_sync``."""

import argparse
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="billing-sync",
        description="Stripe subscription sync, verification and billing callables",
    )
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"), help="Bind address (default: 0.0.0.0)")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Bind port; Cloud Run sets PORT (default: 8080)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="json for Cloud Logging, console for local runs (default: json)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/billing.yaml"),
        help="Path to billing.yaml (default: config/billing.yaml)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Auto-reload on code changes (development only)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Parse arguments, export them for the app factory and start uvicorn."""
    args = build_parser().parse_args(argv)

    if not Path(args.config).exists():
        print(f"Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(2)

    # The app factory reads these when uvicorn imports billing_sync.main
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    if args.log_format == "console":
        print(f"billing-sync on {args.host}:{args.port} (config: {args.config}, log level: {args.log_level})")
        if not os.getenv("STRIPE_SECRET_KEY"):
            print("warning: STRIPE_SECRET_KEY is not set; Stripe calls will fail", file=sys.stderr)

    try:
        uvicorn.run(
            "billing_sync.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware writes access logs
        )
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
