"""CLI entry point for api-invoker.

Calls one read-only API endpoint and prints the result as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from api_invoker.api import ApiClient
    from api_invoker.errors import ApiError


@dataclass
class CallArgs:
    """Parsed arguments for one API call."""

    command: str
    config: Path | None = None
    verbose: int = 0
    implementation: str | None = None
    params: dict[str, str] = field(default_factory=dict)
    api_key: int | None = None
    client_id: str | None = None
    developer: str | None = None
    start: int | None = None
    end: int | None = None
    pretty: bool = True


def non_negative_int(value: str) -> int:
    """Argparse type for integers >= 0."""
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not an integer")
    if result < 0:
        raise argparse.ArgumentTypeError(f"'{value}' must be >= 0")
    return result


def parse_key_value(value: str) -> tuple[str, str]:
    """Argparse type for KEY=VALUE."""
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"'{value}' is not in KEY=VALUE form")
    return key, val


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per API."""
    parser = argparse.ArgumentParser(
        prog="api-invoker",
        description="Command line interface for the remote management API.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML client configuration (default: API_* environment variables)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbose output (repeat for more)",
    )
    parser.add_argument(
        "--implementation",
        type=str,
        default=None,
        metavar="NAME",
        help="Use a specific registered implementation (e.g. v2, v3)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="API name")

    echo_parser = subparsers.add_parser("echo", help="Echo query parameters (unauthenticated)")
    echo_parser.add_argument(
        "--param",
        type=parse_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Parameter to echo (can be repeated)",
    )

    service_parser = subparsers.add_parser("get-service", help="Get a service")
    service_parser.add_argument("api_key", type=non_negative_int, help="Service API key")

    service_list_parser = subparsers.add_parser("get-service-list", help="List services")
    _add_range_arguments(service_list_parser)

    client_parser = subparsers.add_parser("get-client", help="Get a client")
    client_parser.add_argument("client_id", type=str, help="Client ID or client ID alias")

    client_list_parser = subparsers.add_parser("get-client-list", help="List clients")
    client_list_parser.add_argument("--developer", type=str, default=None, help="Filter by developer")
    _add_range_arguments(client_list_parser)

    configuration_parser = subparsers.add_parser(
        "get-service-configuration", help="Get the service's discovery document"
    )
    configuration_parser.add_argument(
        "--no-pretty",
        dest="pretty",
        action="store_false",
        help="Request compact JSON",
    )

    return parser


def _add_range_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", type=non_negative_int, default=None, help="Start index (inclusive)")
    parser.add_argument("--end", type=non_negative_int, default=None, help="End index (exclusive)")


def parse_args(args: list[str] | None = None) -> CallArgs:
    """Parse command-line arguments.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    namespace = build_parser().parse_args(args)

    return CallArgs(
        command=namespace.command,
        config=namespace.config,
        verbose=namespace.verbose,
        implementation=namespace.implementation,
        params=dict(getattr(namespace, "param", None) or []),
        api_key=getattr(namespace, "api_key", None),
        client_id=getattr(namespace, "client_id", None),
        developer=getattr(namespace, "developer", None),
        start=getattr(namespace, "start", None),
        end=getattr(namespace, "end", None),
        pretty=getattr(namespace, "pretty", True),
    )


def main() -> int:
    """Main entry point."""
    try:
        return run(parse_args())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def run(args: CallArgs) -> int:
    from api_invoker.config_loader import (
        ConfigError,
        configuration_from_env,
        load_configuration,
        validate_configuration,
    )
    from api_invoker.errors import ApiError
    from api_invoker.factory import create_api

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.config is not None:
            configuration = load_configuration(args.config)
        else:
            configuration = configuration_from_env()
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    validation = validate_configuration(configuration)
    for warning in validation.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if not validation.is_valid:
        for error in validation.errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        api = create_api(configuration, name=args.implementation)
        if api is None:
            print(
                f"Error: no implementation accepts API version {configuration.api_version.value}",
                file=sys.stderr,
            )
            return 1
        result = execute(api, args)
    except ApiError as e:
        report_error(e)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_result(result))
    return 0


def execute(api: ApiClient, args: CallArgs) -> Any:
    """Dispatch args.command to the matching ApiClient method."""
    if args.command == "echo":
        return api.echo(args.params)
    elif args.command == "get-service":
        return api.get_service(args.api_key)
    elif args.command == "get-service-list":
        return api.get_service_list(args.start, args.end)
    elif args.command == "get-client":
        return api.get_client(args.client_id)
    elif args.command == "get-client-list":
        return api.get_client_list(args.developer, args.start, args.end)
    elif args.command == "get-service-configuration":
        return api.get_service_configuration(pretty=args.pretty)
    raise ValueError(f"Unknown command: {args.command}")


def format_result(result: Any) -> str:
    """Render an API result for stdout."""
    if result is None:
        return "null"
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True, exclude_none=True, indent=2)
    return json.dumps(result, indent=2, ensure_ascii=False)


def report_error(error: ApiError) -> None:
    """Print an ApiError with its HTTP context to stderr."""
    print(f"Error: {error}", file=sys.stderr)
    if error.status_code:
        print(f"  Status: {error.status_code} {error.status_message or ''}".rstrip(), file=sys.stderr)
    if error.response_body:
        print(f"  Body: {error.response_body}", file=sys.stderr)
    if error.__cause__ is not None:
        print(f"  Cause: {error.__cause__!r}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
