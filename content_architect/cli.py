"""
Content Architect CLI

Usage:
    python -m content_architect.cli generate "home composting" --identity alice
    python -m content_architect.cli apply aca_generated_alice_1760000000 --target 0
    python -m content_architect.cli outline "home composting"
    python -m content_architect.cli prompt

Settings come from ``ACA_*`` environment variables, or a JSON file passed
with ``--settings``. Generated jobs are cached in a JSON file (``cache_path``,
default ``data/job_cache.json``) so ``apply`` can run in a later process.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from content_architect.composer import DEFAULT_CONTENT_PROMPT, FORMATTING_REQUIREMENTS
from content_architect.config import BASE_DIR, ArchitectConfig
from content_architect.errors import ArchitectError
from content_architect.keywords import derive_keywords
from content_architect.outline import OutlineGenerator
from content_architect.service import ArchitectService
from content_architect.text_providers import build_text_generator

logger = logging.getLogger("content_architect.cli")

DEFAULT_CACHE_PATH = BASE_DIR / "data" / "job_cache.json"


def _load_config(args: argparse.Namespace) -> ArchitectConfig:
    if args.settings:
        config = ArchitectConfig.from_file(Path(args.settings))
    else:
        config = ArchitectConfig.from_env()
    if not config.cache_path:
        config = dataclasses.replace(config, cache_path=str(DEFAULT_CACHE_PATH))
    return config


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _run_generate(args: argparse.Namespace) -> int:
    service = ArchitectService(_load_config(args))
    result = await service.start_generation(args.topic, args.identity)

    if args.json:
        _print_json(result)
    elif result["success"]:
        data = result["data"]
        print(f"Title:   {data['title']}")
        print(f"Slug:    {data['slug']}")
        print(f"Token:   {result['token']}")
        print(f"Outline: {len(data['outline'])} sections")
        print(f"Links:   {data['internal_links_added']} internal, {data['external_links_added']} external")
        print(f"Images:  {len(data['content_images'])} in body, featured={'yes' if data['featured_image'] else 'no'}")
        print(f"Excerpt: {data['excerpt']}")
    for error in result["errors"]:
        print(f"  ! {error}", file=sys.stderr)
    return 0 if result["success"] else 1


async def _run_apply(args: argparse.Namespace) -> int:
    service = ArchitectService(_load_config(args))
    result = await service.apply_generation(args.token, args.target)
    if args.json:
        _print_json(result)
    elif result["success"]:
        print(result["message"])
        if result.get("post_id"):
            print(f"Post {result['post_id']}: {result.get('link', '')}")
    for error in result["errors"]:
        print(f"  ! {error}", file=sys.stderr)
    return 0 if result["success"] else 1


async def _run_outline(args: argparse.Namespace) -> int:
    config = _load_config(args)
    derived = derive_keywords(args.topic)
    result = await OutlineGenerator(build_text_generator(config)).generate(derived.title, derived.keywords)
    if not result.ok:
        print(f"Outline failed: {result.error.describe()}", file=sys.stderr)
        return 1
    _print_json({"title": derived.title, "outline": result.value})
    return 0


async def _run_prompt(args: argparse.Namespace) -> int:
    print(DEFAULT_CONTENT_PROMPT)
    if args.full:
        print(FORMATTING_REQUIREMENTS)
    return 0


def _build_cli_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI interface."""
    parser = argparse.ArgumentParser(
        prog="content_architect",
        description="Generate publish-ready articles from a topic: outline, body, "
                    "links and images.",
    )
    parser.add_argument("--settings", help="JSON settings file (default: ACA_* environment variables)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    generate_parser = subparsers.add_parser("generate", help="Generate an article and cache it")
    generate_parser.add_argument("topic", help="Article topic")
    generate_parser.add_argument("--identity", default="anonymous", help="Identity recorded in the token")
    generate_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    apply_parser = subparsers.add_parser("apply", help="Publish a cached article to WordPress")
    apply_parser.add_argument("token", help="Token printed by 'generate'")
    apply_parser.add_argument(
        "--target", type=int, default=0,
        help="Post ID to update; 0 creates a new post (default: 0)",
    )
    apply_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    outline_parser = subparsers.add_parser("outline", help="Generate only the outline for a topic")
    outline_parser.add_argument("topic", help="Article topic")

    prompt_parser = subparsers.add_parser("prompt", help="Print the built-in content prompt")
    prompt_parser.add_argument("--full", action="store_true", help="Include the formatting requirements block")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = _build_cli_parser()
    args = parser.parse_args(argv)

    logging.getLogger("content_architect").setLevel(logging.DEBUG if args.verbose else logging.INFO)

    command_map = {
        "generate": _run_generate,
        "apply": _run_apply,
        "outline": _run_outline,
        "prompt": _run_prompt,
    }
    handler = command_map.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return asyncio.run(handler(args))
    except ArchitectError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc.describe()}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
