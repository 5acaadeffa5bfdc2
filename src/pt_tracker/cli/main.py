"""Command-line interface for pt."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from pt_tracker.cli.config import (
    CLISettings,
    ConfigCorruptError,
    ConfigError,
    ConfigIOError,
    load_cli_settings,
    read_user_config,
)
from pt_tracker.cli.users import add_user, resolve_token
from pt_tracker.client import TrackerClient
from pt_tracker.errors import TokenValidationError, TrackerAuthError, TrackerUnavailableError

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_USAGE = 1
EXIT_NETWORK_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_CONFIG_ERROR = 4
EXIT_IO_ERROR = 5

ADD_USER_INSTRUCTIONS = (
    "Adding a new Pivotal Tracker user.\n"
    "Your API token can be found at the bottom of your profile page: "
    "https://www.pivotaltracker.com/profile"
)
API_TOKEN_LABEL = "API Token: "

_SENSITIVE_FIELDS = (
    "x-trackertoken",
    "api_token",
    "apitoken",
)

logger = logging.getLogger(__name__)


def _sdk_version() -> str:
    try:
        return pkg_version("pt-tracker")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> tuple[argparse.ArgumentParser, argparse.ArgumentParser]:
    parser = argparse.ArgumentParser(prog="pt", description="Pivotal Tracker profile manager")
    parser.add_argument(
        "--version",
        action="version",
        version=f"pt {_sdk_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the user config JSON (default: ~/.config/pt/config.json)",
    )
    parser.add_argument(
        "--tracker-base",
        default=None,
        help="Tracker API base URL override (default from PT_TRACKER_BASE)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Write debug logs to stderr",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Show CLI version")
    version.add_argument("--json", action="store_true", help="Print version details as JSON")

    # Help for add-user goes to stderr and exits non-zero, so argparse's own -h is off.
    add_user_parser = sub.add_parser(
        "add-user",
        help="Validate an API token and store it as the current user",
        add_help=False,
    )
    add_user_parser.add_argument(
        "-h",
        "--help",
        dest="show_help",
        action="store_true",
        help="Show this help message",
    )
    add_user_parser.add_argument(
        "--api-token",
        default=None,
        help="Tracker API token (prompted for when omitted)",
    )
    add_user_parser.add_argument(
        "-a",
        "--alias",
        default=None,
        help="Short nickname for this user",
    )

    users = sub.add_parser("users", help="List stored users")
    users.add_argument("--json", action="store_true", help="Print users as JSON")

    return parser, add_user_parser


def _configure_logging(verbose: bool, stderr) -> logging.Handler | None:
    if not verbose:
        return None
    handler = logging.StreamHandler(stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    package_logger = logging.getLogger("pt_tracker")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    return handler


def _release_logging(handler: logging.Handler | None) -> None:
    if handler is None:
        return
    package_logger = logging.getLogger("pt_tracker")
    package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


def _sanitize_error_text(value: str, *, secrets: Sequence[str] = ()) -> str:
    redacted = value
    for secret in secrets:
        if secret:
            redacted = redacted.replace(secret, "[REDACTED]")
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field}\s*[=:]\s*)([^,\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(
    stderr,
    prefix: str,
    message: str,
    *,
    code: int,
    secrets: Sequence[str] = (),
) -> int:
    print(f"{prefix}: {_sanitize_error_text(message, secrets=secrets)}", file=stderr)
    return code


def _prompt_api_token(*, stdin, stdout) -> str:
    print(ADD_USER_INSTRUCTIONS, file=stdout)
    print(API_TOKEN_LABEL, end="", file=stdout)
    stdout.flush()
    return stdin.readline()


def _run_version(*, as_json: bool, stdout) -> int:
    payload = {"cli": "pt", "version": _sdk_version()}
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"pt {payload['version']}", file=stdout)
    return EXIT_SUCCESS


def _run_add_user(*, args, settings: CLISettings, stdin, stdout, stderr) -> int:
    try:
        api_token = resolve_token(
            args.api_token,
            lambda: _prompt_api_token(stdin=stdin, stdout=stdout),
        )
    except TokenValidationError as exc:
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)

    client = TrackerClient(base_url=settings.tracker_base, timeout=settings.request_timeout)
    secrets = (api_token,)
    try:
        result = add_user(
            api_token=api_token,
            alias=args.alias,
            client=client,
            config_path=settings.config_path,
        )
    except TrackerAuthError as exc:
        return _print_error(stderr, "auth error", str(exc), code=EXIT_AUTH_ERROR, secrets=secrets)
    except TrackerUnavailableError as exc:
        return _print_error(
            stderr, "network error", str(exc), code=EXIT_NETWORK_ERROR, secrets=secrets
        )
    except ConfigCorruptError as exc:
        return _print_error(
            stderr,
            "config error",
            f"{exc} (fix or remove the file and retry)",
            code=EXIT_CONFIG_ERROR,
            secrets=secrets,
        )
    except ConfigIOError as exc:
        return _print_error(stderr, "io error", str(exc), code=EXIT_IO_ERROR, secrets=secrets)
    finally:
        client.close()

    print(
        f"Added User! Setting {result.user.name} ({result.user.username}) "
        "to be the current user.",
        file=stdout,
    )
    return EXIT_SUCCESS


def _run_users(*, args, settings: CLISettings, stdout, stderr) -> int:
    try:
        config = read_user_config(settings.config_path)
    except ConfigCorruptError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_CONFIG_ERROR)
    except ConfigIOError as exc:
        return _print_error(stderr, "io error", str(exc), code=EXIT_IO_ERROR)

    users = [] if config is None else config.users
    current_user_id = 0 if config is None else config.current_user_id

    if args.json:
        payload = [
            {
                "id": user.id,
                "name": user.name,
                "username": user.username,
                "alias": user.alias,
                "current": user.id == current_user_id,
            }
            for user in users
        ]
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    if not users:
        print("no users configured; run `pt add-user` to add one", file=stdout)
        return EXIT_SUCCESS

    for user in users:
        marker = "*" if user.id == current_user_id else " "
        alias = f" [{user.alias}]" if user.alias else ""
        print(f"{marker} {user.id}  {user.name} ({user.username}){alias}", file=stdout)
    return EXIT_SUCCESS


def _dispatch(args, add_user_parser, *, stdin, stdout, stderr) -> int:
    logger.debug("running command %s", args.command)

    if args.command == "version":
        return _run_version(as_json=args.json, stdout=stdout)

    if args.command == "add-user" and args.show_help:
        print(add_user_parser.format_help(), file=stderr, end="")
        return EXIT_USAGE

    try:
        settings = load_cli_settings(config_path=args.config, tracker_base=args.tracker_base)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_CONFIG_ERROR)

    if args.command == "add-user":
        return _run_add_user(
            args=args,
            settings=settings,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
        )

    if args.command == "users":
        return _run_users(args=args, settings=settings, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin=sys.stdin,
    stdout=sys.stdout,
    stderr=sys.stderr,
) -> int:
    parser, add_user_parser = _build_parser()
    args = parser.parse_args(argv)
    handler = _configure_logging(args.verbose, stderr)
    try:
        return _dispatch(args, add_user_parser, stdin=stdin, stdout=stdout, stderr=stderr)
    finally:
        _release_logging(handler)


def entrypoint() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    entrypoint()
