"""Command line entry point of the GitHub client.

Issues a single API call through the full request pipeline and prints the
decoded JSON, or shows the current rate limit quotas.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from typing import List, Optional

from .api.errors import GitHubAPIError
from .client import GitHub
from .config import GitHubConfig

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-client",
        description="Call the GitHub REST API with rate limit handling, retries and pagination"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase log output (-v for INFO, -vv for DEBUG)"
    )
    parser.add_argument(
        "--fail-on-rate-limit",
        action="store_true",
        help="Fail immediately instead of waiting when the rate limit is exhausted"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    get_parser = subparsers.add_parser("get", help="GET an API path and print the JSON result")
    get_parser.add_argument("path", help="API path, e.g. /repos/octocat/Hello-World")
    get_parser.add_argument(
        "--paginate",
        action="store_true",
        help="Follow Link headers and print every item of a paginated collection"
    )
    get_parser.add_argument(
        "--per-page",
        type=int,
        default=None,
        help="Page size hint for --paginate (default: GITHUB_PER_PAGE or 100)"
    )
    get_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Stop after this many items with --paginate"
    )
    get_parser.add_argument(
        "--preview",
        action="append",
        default=[],
        help="Enable an API preview media type (repeatable)"
    )

    subparsers.add_parser("rate-limit", help="Show the current rate limit of every category")
    return parser


def run_get(client: GitHub, args: argparse.Namespace) -> None:
    request = client.new_request().with_url_path(args.path)
    for preview in args.preview:
        request.with_preview(preview)

    if not args.paginate:
        print(json.dumps(request.fetch(), indent=2))
        return

    items = []
    for item in request.list(page_size=args.per_page or client.config.per_page):
        items.append(item)
        if args.limit is not None and len(items) >= args.limit:
            break
    logger.info(f"Collected {len(items)} items from {args.path}")
    print(json.dumps(items, indent=2))


def run_rate_limit(client: GitHub) -> None:
    records = client.get_rate_limit()
    print(json.dumps({name: asdict(record) for name, record in sorted(records.items())}, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point of the command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG if args.verbose > 1 else logging.INFO)

    try:
        config = GitHubConfig.from_env()
        if args.fail_on_rate_limit:
            config = replace(config, rate_limit_policy="fail")
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        with GitHub(config) as client:
            if args.command == "get":
                run_get(client, args)
            elif args.command == "rate-limit":
                run_rate_limit(client)
    except GitHubAPIError as e:
        logger.error(f"GitHub API error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
