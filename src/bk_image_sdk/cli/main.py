"""Command-line interface for bk-image."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from pydantic import ValidationError

from bk_image_sdk.backends import ALLOWED_BACKENDS, build_backend
from bk_image_sdk.cli.clipboard import read_clipboard
from bk_image_sdk.cli.config import CLIConfig, ConfigError, load_cli_config
from bk_image_sdk.errors import ConfigurationError
from bk_image_sdk.models import UpdateOutcome, UpdateRequest

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

_SENSITIVE_FIELDS = (
    "authenticity_token",
    "token",
    "authorization",
    "cookie",
    "_buildkite_sess",
)


def _sdk_version() -> str:
    try:
        return pkg_version("bk-image-sdk")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bk-image")
    parser.add_argument(
        "--version",
        action="version",
        version=f"bk-image {_sdk_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ~/.bk_image/config.toml)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")

    version = sub.add_parser("version", help="Show CLI version")
    version.add_argument("--json", action="store_true", help="Print version details as JSON")

    update = sub.add_parser("update", help="Set the base image reference of a cluster queue")
    update.add_argument("org_slug", help="Organization slug, e.g. my-org")
    update.add_argument("cluster_id", help="Cluster id")
    update.add_argument("queue_id", help="Queue id")
    update.add_argument(
        "image_ref",
        nargs="?",
        default=None,
        help="Image reference, e.g. my-registry.com/my-image:latest (default: clipboard)",
    )
    update.add_argument(
        "--backend",
        choices=ALLOWED_BACKENDS,
        default=None,
        help="session: settings page form; graphql: API token (default from config)",
    )
    update.add_argument(
        "--clipboard",
        action="store_true",
        help="Use clipboard text as the image reference without asking",
    )
    update.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    update.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    update.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable debug logging",
    )
    return parser


def _configure_logging(*, verbose: bool, stderr) -> None:
    logger = logging.getLogger("bk_image_sdk")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)


def _sanitize_error_text(value: str) -> str:
    redacted = re.sub(r"(?i)(bearer\s+)(\S+)", r"\1[REDACTED]", value)
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field}\s*[=:]\s*)([^,;\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _confirm(prompt: str, *, stdin, stdout) -> bool:
    print(prompt, end=" ", file=stdout, flush=True)
    answer = stdin.readline()
    return answer.strip().lower() in {"y", "yes"}


def _resolve_image_reference(*, args, stdin, stdout, stderr) -> str | None:
    if args.image_ref is not None:
        return args.image_ref

    clipboard_text = read_clipboard()
    if not clipboard_text:
        if args.clipboard:
            message = "could not read from clipboard"
        else:
            message = "image reference is required"
        _print_error(stderr, "validation error", message, code=EXIT_FAILURE)
        return None

    if args.clipboard:
        print(f"Using clipboard text as image URL: {clipboard_text}", file=stdout)
        return clipboard_text

    print(f"Clipboard contains: {clipboard_text}", file=stdout)
    if _confirm("Use this as the image URL? [y/N]", stdin=stdin, stdout=stdout):
        return clipboard_text
    _print_error(
        stderr,
        "validation error",
        "please provide the image URL as the 4th argument",
        code=EXIT_FAILURE,
    )
    return None


def _print_outcome(outcome: UpdateOutcome, *, as_json: bool, stdout, stderr) -> int:
    code = EXIT_SUCCESS if outcome.succeeded else EXIT_FAILURE
    if as_json:
        print(json.dumps(outcome.model_dump(), sort_keys=True), file=stdout)
        return code
    if outcome.succeeded:
        print(f"updated: {outcome.message}", file=stdout)
        return code
    return _print_error(stderr, "update failed", outcome.message, code=code)


def _run_version(*, as_json: bool, stdout) -> int:
    if as_json:
        print(json.dumps({"cli": "bk-image", "sdk_version": _sdk_version()}), file=stdout)
    else:
        print(f"bk-image {_sdk_version()}", file=stdout)
    return EXIT_SUCCESS


def _run_update(*, args, config: CLIConfig, stdin, stdout, stderr) -> int:
    image_ref = _resolve_image_reference(args=args, stdin=stdin, stdout=stdout, stderr=stderr)
    if image_ref is None:
        return EXIT_FAILURE

    try:
        request = UpdateRequest(
            organization_slug=args.org_slug,
            cluster_id=args.cluster_id,
            queue_id=args.queue_id,
            image_reference=image_ref,
        )
    except ValidationError:
        return _print_error(
            stderr, "validation error", "image URL cannot be empty", code=EXIT_FAILURE
        )

    backend_name = args.backend or config.backend
    timeout = args.timeout if args.timeout is not None else config.timeout
    try:
        backend = build_backend(
            backend_name,
            web_base=config.web_base,
            graphql_url=config.graphql_url,
            timeout=timeout,
        )
    except ConfigurationError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_FAILURE)

    logger = logging.getLogger("bk_image_sdk")
    logger.info(
        "updating %s/%s/%s via %s backend",
        request.organization_slug,
        request.cluster_id,
        request.queue_id,
        backend.name,
    )
    outcome = backend.update_image_reference(request)
    return _print_outcome(outcome, as_json=args.json, stdout=stdout, stderr=stderr)


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin=sys.stdin,
    stdout=sys.stdout,
    stderr=sys.stderr,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help(file=stdout)
        return EXIT_FAILURE

    _configure_logging(verbose=args.verbose, stderr=stderr)

    if args.command == "version":
        return _run_version(as_json=args.json, stdout=stdout)

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_FAILURE)

    if args.command == "update":
        return _run_update(args=args, config=config, stdin=stdin, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
