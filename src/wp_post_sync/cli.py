"""Command-line entry point for wp-post-sync.

Usage:
    wp-post-sync sync [--limit N] [common options]
    wp-post-sync posts list [--status S] [--per-page N] [--page N]
    wp-post-sync posts get ID
    wp-post-sync posts create --title T (--content C | --content-file F)
                              [--status S]
    wp-post-sync posts delete ID [--trash]

Common options: --cache-path P --url U --token T --insecure --debug --json
"""

import argparse
import json
import logging
import signal
import sys
import threading
from enum import IntEnum

import requests
import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, MissingConfigError, load_config
from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .core import WordPressClient
from .errors import CacheLockError, SyncError, WordPressApiError
from .logger import setup_logging
from .sync import create_post, delete_post, synchronize
from .sync.models import Post

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGUMENTS = 1
    MISSING_CONFIGURATION = 2
    API_ERROR = 3
    CACHE_LOCKED = 4
    UNHANDLED = 99


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with our exit code."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(
            ExitCode.INVALID_ARGUMENTS, f"{self.prog}: error: {message}\n"
        )


def _common_options() -> argparse.ArgumentParser:
    common = _ArgumentParser(add_help=False)
    common.add_argument(
        "--cache-path",
        help="Local cache root (overrides WP_CACHE_PATH and config files)",
    )
    common.add_argument(
        "--url",
        help="WordPress REST base URL (overrides WP_BASE_URL)",
    )
    common.add_argument(
        "--token",
        help="Bearer token (overrides WP_BEARER_TOKEN)"
        " (visible in process list -- prefer WP_BEARER_TOKEN env var)",
    )
    common.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    common.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    common.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="wp-post-sync",
        description="Synchronize a local cache of WordPress posts with the site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync using .env / config.yml settings
  wp-post-sync sync

  # Sync the 50 newest published and draft posts into ./posts-cache
  wp-post-sync sync --cache-path ./posts-cache --limit 50

  # Machine-readable report
  wp-post-sync sync --json

  # Create a draft from a file; it is cached right away
  wp-post-sync posts create --title "Release notes" --content-file notes.html

Press Ctrl-C once to stop a sync after the current post; twice to abort.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"wp-post-sync version {__version__}",
    )
    common = _common_options()

    subparsers = parser.add_subparsers(dest="command", required=True)
    sync_parser = subparsers.add_parser(
        "sync", parents=[common], help="Run one synchronization pass"
    )
    sync_parser.add_argument(
        "--limit",
        type=int,
        help="Posts fetched per status (overrides WP_SYNC_LIMIT)",
    )
    sync_parser.set_defaults(handler=run_sync)

    posts_parser = subparsers.add_parser("posts", help="Manage posts")
    posts = posts_parser.add_subparsers(dest="posts_command", required=True)

    list_parser = posts.add_parser(
        "list", parents=[common], help="List posts, newest first"
    )
    list_parser.add_argument("--status", help="Only posts with this status")
    list_parser.add_argument("--per-page", type=int, default=10)
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.set_defaults(handler=run_posts_list)

    get_parser = posts.add_parser("get", parents=[common], help="Show one post")
    get_parser.add_argument("post_id", type=int)
    get_parser.set_defaults(handler=run_posts_get)

    create_parser = posts.add_parser(
        "create", parents=[common], help="Create a post and cache it"
    )
    create_parser.add_argument("--title", required=True)
    content = create_parser.add_mutually_exclusive_group(required=True)
    content.add_argument("--content", help="Post body")
    content.add_argument("--content-file", help="Read the post body from a file")
    create_parser.add_argument("--status", default="draft")
    create_parser.set_defaults(handler=run_posts_create)

    delete_parser = posts.add_parser(
        "delete", parents=[common], help="Delete a post and its cached files"
    )
    delete_parser.add_argument("post_id", type=int)
    delete_parser.add_argument(
        "--trash",
        action="store_true",
        help="Move the post to the trash instead of deleting it permanently",
    )
    delete_parser.set_defaults(handler=run_posts_delete)
    return parser


def _install_cancel_handler(cancel: threading.Event):
    """Make the first Ctrl-C request cancellation and the second abort.

    Returns the previous SIGINT handler.
    """

    def _handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        cancel.set()
        print(
            "\nCancelling after the current post (Ctrl-C again to abort)...",
            file=sys.stderr,
        )

    return signal.signal(signal.SIGINT, _handler)


def _configure(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    config = load_config(
        url=args.url,
        token=args.token,
        cache_path=args.cache_path,
        sync_limit=getattr(args, "limit", None),
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=to_fallbacks(unified),
    )

    setup_logging(
        debug=config.debug,
        log_file=unified.logging.file,
        debug_format=unified.logging.format,
        level=unified.logging.level,
    )
    return config


def _print_post(post: Post, as_json: bool) -> None:
    if as_json:
        print(post.model_dump_json(exclude_none=True, indent=2))
        return
    print(f"ID: {post.id}")
    print(f"Status: {post.status or ''}")
    print(f"Title: {post.title.raw if post.title else ''}")
    print(f"Link: {post.link or ''}")
    print("--- CONTENT ---")
    print(post.body)


def run_sync(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _configure(args, unified)
    logger.debug(
        "Syncing %s into %s (limit %d)",
        config.base_url,
        config.cache_path,
        config.sync_limit,
    )

    cancel = threading.Event()
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = _install_cancel_handler(cancel)

    try:
        report = synchronize(
            config.cache_path,
            config.sync_limit,
            cancel,
            client=WordPressClient(config),
            statuses=unified.sync.statuses,
            lock_timeout=unified.sync.lock_timeout,
        )
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(report.summary())
    return ExitCode.SUCCESS


def run_posts_list(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _configure(args, unified)
    per_page = min(max(args.per_page, 1), 100)
    page = max(args.page, 1)

    posts = WordPressClient(config).list_posts(
        status=args.status, per_page=per_page, page=page
    )

    if args.json:
        payload = [p.model_dump(mode="json", exclude_none=True) for p in posts]
        print(json.dumps(payload, indent=2))
    else:
        for post in posts:
            title = post.title.raw if post.title else ""
            print(f"{post.id}\t{post.status or ''}\t{(title or '')[:80]}")
    return ExitCode.SUCCESS


def run_posts_get(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _configure(args, unified)
    _print_post(WordPressClient(config).get_post(args.post_id), args.json)
    return ExitCode.SUCCESS


def run_posts_create(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    if args.content_file is not None:
        try:
            with open(args.content_file, encoding="utf-8") as fh:
                content = fh.read()
        except OSError as e:
            raise ValueError(f"Cannot read content file: {e}") from e
    else:
        content = args.content

    config = _configure(args, unified)
    snapshot = create_post(
        WordPressClient(config),
        config.cache_path,
        title=args.title,
        content=content,
        status=args.status,
        lock_timeout=unified.sync.lock_timeout,
    )
    _print_post(snapshot.post, args.json)
    return ExitCode.SUCCESS


def run_posts_delete(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _configure(args, unified)
    result = delete_post(
        WordPressClient(config),
        config.cache_path,
        args.post_id,
        force=not args.trash,
        lock_timeout=unified.sync.lock_timeout,
    )
    if args.json:
        print(json.dumps(result, indent=2))
    elif args.trash:
        print(f"Moved post {args.post_id} to the trash")
    else:
        print(f"Deleted post {args.post_id}")
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Entry point that maps failures to exit codes."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    try:
        unified = build_config(load_hierarchical_config())
    except (OSError, yaml.YAMLError) as e:
        print(f"Error: cannot read config file: {e}", file=sys.stderr)
        return ExitCode.MISSING_CONFIGURATION
    except ValueError as e:
        print(f"Error: invalid config file: {e}", file=sys.stderr)
        return ExitCode.INVALID_ARGUMENTS

    try:
        return args.handler(args, unified)
    except MissingConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.MISSING_CONFIGURATION
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.INVALID_ARGUMENTS
    except CacheLockError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.CACHE_LOCKED
    except SyncError as e:
        logger.debug("Sync failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.API_ERROR
    except (WordPressApiError, requests.RequestException) as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.API_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return ExitCode.UNHANDLED
    except Exception as e:
        logger.exception("Unhandled error")
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.UNHANDLED


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
