"""
Roomrelay CLI

Command-line interface for running the relay server.
"""

import argparse
import logging
import sys

logger = logging.getLogger("roomrelay.cli")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(name)s] %(message)s"
    )


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the relay server."""
    import uvicorn

    from roomrelay.config import RelayConfig
    from roomrelay.serve import create_app

    configure_logging(args.log_level)

    config = RelayConfig.from_env()
    if args.projects_file:
        config = config.model_copy(update={"projects_file": args.projects_file})
    if not config.jwt_secret:
        print("Error: JWT_SECRET is not set", file=sys.stderr)
        return 1

    app = create_app(config)

    print(f"Starting roomrelay on http://{args.host}:{args.port}")
    print(f"  Model: {config.model}")
    print(f"  Trigger: {config.trigger}")
    print(f"  Projects: {config.projects_file or '(none)'}")
    print()

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower()
    )
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Print version information."""
    from roomrelay import __version__
    print(f"roomrelay {__version__}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roomrelay",
        description="Real-time project rooms with an AI code generator"
    )
    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version and exit"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the relay server"
    )
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p",
        type=int,
        default=3001,
        help="Port to listen on (default: 3001)"
    )
    serve_parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)"
    )
    serve_parser.add_argument(
        "--projects-file",
        default=None,
        help="JSON file of known projects (default: $ROOMRELAY_PROJECTS_FILE)"
    )
    serve_parser.set_defaults(func=cmd_serve)

    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        return cmd_version(args)

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
