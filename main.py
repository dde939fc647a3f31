"""Command-line interface for the agency registry service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from agency_service.config import ServiceSettings, load_settings
from agency_service.registration import RegistrationProviderError, RegistrationStatusProvider

logger = logging.getLogger("agencies.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Agency registry service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: from configuration, 8080)",
    )
    serve_parser.add_argument("--config", default=None, help="Path to a YAML configuration file")

    check_parser = subparsers.add_parser(
        "check-status", help="Query the registration API for a single tax ID"
    )
    check_parser.add_argument("tax_id", help="Tax ID (CNPJ) to look up")
    check_parser.add_argument("--config", default=None, help="Path to a YAML configuration file")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "check-status"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(config: str | None) -> ServiceSettings:
    config_path = Path(config).expanduser().resolve(strict=False) if config else None
    return load_settings(config_path)


def _serve(settings: ServiceSettings, *, host: str | None, port: int | None) -> None:
    from agency_service.api import build_service, create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    provider = RegistrationStatusProvider(settings.registration)
    logger.info("Starting agency API on http://%s:%s", bind_host, bind_port)
    logger.info("Registration API: %s", provider.base_url)

    app = create_app(service=build_service(settings, provider=provider))
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


def _check_status(settings: ServiceSettings, tax_id: str) -> int:
    provider = RegistrationStatusProvider(settings.registration)
    try:
        status = provider.lookup(tax_id)
    except (RegistrationProviderError, ValueError) as exc:
        print(f"Failed to query registration status: {exc}")
        return 1

    if status is None:
        print(f"No registration found for tax ID {tax_id}.")
        return 1

    print(f"Tax ID:     {status.tax_id}")
    print(f"Name:       {status.name or '<unknown>'}")
    print(f"Legal name: {status.legal_name or '<unknown>'}")
    print(f"Status:     {status.status.value}")
    return 0 if status.is_active else 2


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = _load_settings(args.config)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "check-status":
        return _check_status(settings, args.tax_id)

    _serve(settings, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
