"""Command line access to the nuPortal API.

Usage:
    python -m nuportal.cli request /rs/2014/federations
    python -m nuportal.cli request /rs/2014/federations/BDV/clubs --query q=foo
    python -m nuportal.cli token
    python -m nuportal.cli status
    python -m nuportal.cli init-db
"""

import argparse
import json
import logging
import sys
from typing import Optional

from nuportal.clients import ApiClient
from nuportal.config import Settings
from nuportal.errors import NuPortalError
from nuportal.storage import TokenStore
from nuportal.utils import setup_logging

logger = logging.getLogger(__name__)


def _parse_pairs(pairs: Optional[list[str]]) -> dict:
    """Turn ``["k=v", ...]`` into a dict."""
    result = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        result[key] = value
    return result


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


def cmd_request(args, settings: Settings) -> int:
    with ApiClient.from_settings(settings) as client:
        data = client.call(
            args.path,
            method=args.method,
            query=_parse_pairs(args.query),
            body=_parse_pairs(args.data),
            headers=_parse_pairs(args.header),
            authenticated=not args.anonymous,
        )
    print(json.dumps(data, indent=2, ensure_ascii=False))
    return 0


def cmd_token(args, settings: Settings) -> int:
    with ApiClient.from_settings(settings) as client:
        token = client.authenticator.get_bearer_token()
    print(f"Valid access token: {_mask(token)}")
    return 0


def cmd_status(args, settings: Settings) -> int:
    with TokenStore.from_settings(settings.store) as store:
        records = store.list_records(settings.api.federation)
    if not records:
        print(f"No tokens stored for {settings.api.federation}")
    for record in records:
        print(f"{record.kind.value:<8} {record.last_update.isoformat()}")
    return 0


def cmd_init_db(args, settings: Settings) -> int:
    with TokenStore.from_settings(settings.store) as store:
        store.ensure_schema()
    print("Token table ready")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nuportal",
        description="Access the nuPortal REST API",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="dotenv file with NUPORTAL_* settings (default: .env)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    request = subparsers.add_parser("request", help="Call an API endpoint")
    request.add_argument("path", help="Endpoint path, e.g. /rs/2014/federations")
    request.add_argument(
        "--method",
        choices=["GET", "POST", "PUT", "PATCH", "DELETE"],
        default="GET",
    )
    request.add_argument("--query", action="append", metavar="KEY=VALUE")
    request.add_argument("--data", action="append", metavar="KEY=VALUE")
    request.add_argument("--header", action="append", metavar="NAME=VALUE")
    request.add_argument(
        "--anonymous",
        action="store_true",
        help="Do not send an Authorization header",
    )
    request.set_defaults(handler=cmd_request)

    token = subparsers.add_parser("token", help="Ensure a valid access token exists")
    token.set_defaults(handler=cmd_token)

    status = subparsers.add_parser("status", help="Show stored tokens")
    status.set_defaults(handler=cmd_status)

    init_db = subparsers.add_parser("init-db", help="Create the token table")
    init_db.set_defaults(handler=cmd_init_db)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, json_format=args.json_logs)

    try:
        settings = Settings.from_env(args.env_file)
        return args.handler(args, settings)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except (NuPortalError, ValueError) as e:
        logger.error(f"Command failed: {e}", exc_info=args.log_level == "DEBUG")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
