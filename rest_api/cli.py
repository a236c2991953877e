"""CLI entry point for rest-api.

Performs a single request and prints the response body, or lists the
targets defined in a clients file.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rest_api.models import ClientConfig

DEFAULT_SERVER = "localhost"
DEFAULT_PORT = 8474
DEFAULT_TIMEOUT = 30.0


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def parse_header(value: str) -> tuple[str, str]:
    """Parse a 'Name: value' header argument.

    Raises:
        argparse.ArgumentTypeError: If there is no ':' or the name is empty.
    """
    if ":" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid header '{value}'. Expected 'Name: value' (e.g., 'Accept: application/json')"
        )
    name, header_value = value.split(":", 1)
    name = name.strip()
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid header '{value}'. Header name cannot be empty.")
    return name, header_value.strip()


@dataclass
class RequestArgs:
    """Parsed arguments for request mode."""

    method: str
    path: str
    url: str | None
    server: str
    port: int
    config: Path | None
    target: str | None
    headers: list[tuple[str, str]] = field(default_factory=list)
    user: str | None = None
    password: str | None = None
    insecure: bool = False
    timeout: float | None = None
    debug: bool = False
    data: str | None = None


@dataclass
class ListTargetsArgs:
    """Parsed arguments for list-targets mode."""

    config: Path


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with request and list-targets subcommands."""
    parser = argparse.ArgumentParser(
        prog="rest-api",
        description="Minimal REST client: perform one HTTP call and print the response body.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Mode")

    request_parser = subparsers.add_parser("request", help="Perform a single HTTP request")
    request_parser.add_argument(
        "--method",
        type=str.upper,
        default="GET",
        help="HTTP method (default: GET)",
    )
    request_parser.add_argument(
        "--path",
        type=str,
        default="/",
        help="Endpoint path appended verbatim to the base URL (default: /)",
    )

    destination = request_parser.add_mutually_exclusive_group()
    destination.add_argument(
        "--url",
        type=str,
        help="Base URL, e.g. http://localhost:8474",
    )
    destination.add_argument(
        "--config",
        type=Path,
        help="Clients YAML file; requires --target",
    )
    request_parser.add_argument(
        "--target",
        type=str,
        help="Target name in the clients file",
    )
    request_parser.add_argument(
        "--server",
        type=str,
        default=DEFAULT_SERVER,
        help=f"Server IP or FQDN when no --url/--config is given (default: {DEFAULT_SERVER})",
    )
    request_parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Server port when no --url/--config is given (default: {DEFAULT_PORT})",
    )
    request_parser.add_argument(
        "--header",
        dest="headers",
        type=parse_header,
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Request header (can be repeated)",
    )
    request_parser.add_argument("--user", type=str, help="Basic auth username")
    request_parser.add_argument("--password", type=str, help="Basic auth password")
    request_parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification",
    )
    request_parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT:g}, or the config value)",
    )
    request_parser.add_argument(
        "--data",
        type=str,
        help="Request body, sent as-is (set Content-Type with --header)",
    )
    request_parser.add_argument(
        "--debug",
        action="store_true",
        help="Log request and response traces to stderr",
    )

    list_parser = subparsers.add_parser("list-targets", help="List targets in a clients file")
    list_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Clients YAML file",
    )

    return parser


def parse_args(args: list[str] | None = None) -> RequestArgs | ListTargetsArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "list-targets":
        return ListTargetsArgs(config=namespace.config)

    if namespace.config is not None and not namespace.target:
        parser.error("--config requires --target")
    if namespace.target and namespace.config is None:
        parser.error("--target requires --config")

    return RequestArgs(
        method=namespace.method,
        path=namespace.path,
        url=namespace.url,
        server=namespace.server,
        port=namespace.port,
        config=namespace.config,
        target=namespace.target,
        headers=namespace.headers,
        user=namespace.user,
        password=namespace.password,
        insecure=namespace.insecure,
        timeout=namespace.timeout,
        debug=namespace.debug,
        data=namespace.data,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)
        if isinstance(parsed, ListTargetsArgs):
            return run_list_targets(parsed)
        return run_request(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def build_client_config(args: RequestArgs) -> ClientConfig:
    """Build connection settings from the config file and flag overrides.

    Raises:
        ConfigError: If the clients file cannot be loaded or lacks the target.
    """
    from rest_api.config_loader import get_client_config, load_clients_file
    from rest_api.models import ClientConfig

    if args.config is not None:
        base = get_client_config(load_clients_file(args.config), args.target or "")
    else:
        base = ClientConfig(
            base_url=args.url or f"http://{args.server}:{args.port}",
            timeout=DEFAULT_TIMEOUT,
        )

    headers = dict(base.headers)
    for name, value in args.headers:
        headers[name] = value

    return ClientConfig.model_validate(
        {
            **base.model_dump(),
            "headers": headers,
            "user": args.user if args.user is not None else base.user,
            "password": args.password if args.password is not None else base.password,
            "ignore_ssl": args.insecure or base.ignore_ssl,
            "timeout": args.timeout if args.timeout is not None else base.timeout,
            "debug": args.debug or base.debug,
        }
    )


def run_request(args: RequestArgs) -> int:
    """Run request mode: print the body on stdout, errors on stderr."""
    from rest_api.client import Client
    from rest_api.config_loader import ConfigError
    from rest_api.errors import ResponseStatusError, RestAPIError
    from rest_api.models import RestAPI

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = build_client_config(args)
    except (ConfigError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    payload = args.data.encode("utf-8") if args.data is not None else None
    api = RestAPI(args.method, args.path, request=payload)

    try:
        Client(config).execute(api)
    except ResponseStatusError as e:
        _print_body(api.raw_response)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except RestAPIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_body(api.raw_response)
    return 0


def run_list_targets(args: ListTargetsArgs) -> int:
    """Run list-targets mode."""
    from rest_api.config_loader import ConfigError, load_clients_file

    try:
        clients = load_clients_file(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    for name, target in clients.targets.items():
        print(f"{name}\t{target.base_url}")
    return 0


def _print_body(body: bytes) -> None:
    if body:
        print(body.decode("utf-8", errors="replace"))


if __name__ == "__main__":
    sys.exit(main())
