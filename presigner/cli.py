"""Command-line interface for the presigner.

Provides argument parsing and main entry point for presigning object URLs
from the command line.
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from presigner.config import ConfigError, load_providers
from presigner.models import MAX_PRESIGNED_EXPIRY, PresignResult, ProviderConfig
from presigner.reporters import ConsoleReporter, JsonReporter, Reporter
from presigner.runner import PresignRunner, PresignSpec
from presigner.signable_body import (
    BytesBody,
    PrecomputedSha256,
    SignableBody,
    StreamingUnsignedPayload,
    UnsignedPayload,
)


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def on_presign_start(self, provider_name: str, object_key: str) -> None:
        for reporter in self._reporters:
            reporter.on_presign_start(provider_name, object_key)

    def on_presign_complete(self, result: PresignResult) -> None:
        for reporter in self._reporters:
            reporter.on_presign_complete(result)

    def on_run_complete(self, results: dict) -> None:
        for reporter in self._reporters:
            reporter.on_run_complete(results)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="presigner",
        description="Generate presigned S3 URLs for S3-compatible providers",
    )

    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)",
    )

    parser.add_argument(
        "-p", "--providers",
        metavar="LIST",
        help="Comma-separated list of provider keys to presign for",
    )

    parser.add_argument(
        "-k", "--key",
        help="Object key to presign",
    )

    parser.add_argument(
        "-m", "--method",
        default="GET",
        type=str.upper,
        help="HTTP method of the presigned request (default: GET)",
    )

    parser.add_argument(
        "-e", "--expires",
        metavar="SECONDS",
        type=int,
        help="Validity window in seconds (default: provider setting)",
    )

    parser.add_argument(
        "--start-time",
        metavar="ISO8601",
        help="Start of the validity window (default: now)",
    )

    parser.add_argument(
        "-H", "--header",
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Header the caller will send; it is signed. May be repeated",
    )

    payload = parser.add_mutually_exclusive_group()
    payload.add_argument(
        "--payload-file",
        metavar="PATH",
        help="Sign the SHA-256 of this file's contents",
    )
    payload.add_argument(
        "--payload-sha256",
        metavar="HEX",
        help="Sign this precomputed SHA-256 payload hash",
    )
    payload.add_argument(
        "--streaming",
        action="store_true",
        help="Sign for a streaming payload of unknown length",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Show only the summary table",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        List of configured reporters
    """
    reporters: list[Reporter] = [ConsoleReporter(quiet=args.quiet)]

    if args.json_output:
        reporters.append(JsonReporter(output_path=args.json_output))

    return reporters


def filter_providers(
    providers: dict[str, ProviderConfig],
    filter_str: str,
) -> dict[str, ProviderConfig]:
    """Filter providers by comma-separated key list.

    Args:
        providers: All available providers
        filter_str: Comma-separated list of keys to include

    Returns:
        Filtered dictionary of providers
    """
    keys = [k.strip() for k in filter_str.split(",")]
    return {k: v for k, v in providers.items() if k in keys}


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )


def parse_start_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 start time. Naive times are taken as UTC.

    Raises:
        ValueError: If the value is not a valid ISO 8601 timestamp.
    """
    if value is None:
        return None

    # fromisoformat does not accept a trailing "Z" before Python 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_headers(values: list[str]) -> dict[str, str]:
    """Parse repeated NAME:VALUE header arguments.

    Raises:
        ValueError: If a value has no colon or an empty name.
    """
    headers: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid header {item!r}, expected NAME:VALUE")
        headers[name.strip()] = value.strip()
    return headers


def build_payload(args: argparse.Namespace) -> SignableBody:
    """Choose the signable body from the payload arguments.

    Raises:
        OSError: If the payload file cannot be read.
        ValueError: If the precomputed digest is malformed.
    """
    if args.payload_file:
        return BytesBody(Path(args.payload_file).read_bytes())
    if args.payload_sha256:
        return PrecomputedSha256(args.payload_sha256.lower())
    if args.streaming:
        return StreamingUnsignedPayload()
    return UnsignedPayload()


def build_spec(args: argparse.Namespace) -> PresignSpec:
    """Build the presign spec from parsed arguments.

    Raises:
        ValueError: If any argument is malformed.
        OSError: If the payload file cannot be read.
    """
    expires = None
    if args.expires is not None:
        expires = timedelta(seconds=args.expires)
        if not timedelta(0) < expires <= MAX_PRESIGNED_EXPIRY:
            raise ValueError(
                f"--expires must be between 1 and "
                f"{int(MAX_PRESIGNED_EXPIRY.total_seconds())} seconds"
            )

    return PresignSpec(
        object_key=args.key,
        method=args.method,
        expires=expires,
        start_time=parse_start_time(args.start_time),
        payload=build_payload(args),
        headers=parse_headers(args.header),
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for presign failures, 2 for errors
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    if not args.key:
        print("An object key is required (-k/--key)", file=sys.stderr)
        return 2

    # Load configuration
    try:
        providers = load_providers(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    # Filter providers if requested
    if args.providers:
        providers = filter_providers(providers, args.providers)
        if not providers:
            print("No matching providers found", file=sys.stderr)
            return 2

    try:
        spec = build_spec(args)
    except (ValueError, OSError) as e:
        print(f"Invalid arguments: {e}", file=sys.stderr)
        return 2

    # Create reporters
    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    runner = PresignRunner(providers, reporter=reporter)
    result = runner.run(spec)

    return 0 if result.all_ok else 1


if __name__ == "__main__":
    sys.exit(main())
