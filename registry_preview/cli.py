"""Command-line front end: resolve, flatten, preview and merge styles."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from registry_preview.config import ResolverSettings
from registry_preview.logging_config import configure_logging
from registry_preview.models.components import parse_identifier
from registry_preview.resolution.flatten import flatten
from registry_preview.service import PreviewService
from registry_preview.storage.errors import (ResolutionCancelledError,
                                             ServiceUnavailableError)
from registry_preview.styles.conflicts import ConflictPolicy
from registry_preview.styles.merger import StyleMerger

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NOT_FOUND = 2
EXIT_UNAVAILABLE = 3

ServiceFactory = Callable[[], PreviewService]


def build_arg_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(
        prog="registry-preview",
        description=(
            "Registry Preview CLI: resolve registry component dependencies "
            "and assemble preview sandboxes."
        ),
    )
    subcommands = argument_parser.add_subparsers(dest="command", required=True)

    resolve_command = subcommands.add_parser(
        "resolve", help="Print the resolved dependency tree as JSON."
    )
    resolve_command.add_argument("identifier", help="Component identifier author/slug.")
    resolve_command.add_argument("--max-depth", type=int, default=None)

    flatten_command = subcommands.add_parser(
        "flatten", help="Print the flattened dependency identifiers."
    )
    flatten_command.add_argument("identifier", help="Component identifier author/slug.")
    flatten_command.add_argument("--max-depth", type=int, default=None)
    flatten_command.add_argument(
        "--include-root",
        action="store_true",
        help="Keep the requested component in the output.",
    )

    preview_command = subcommands.add_parser(
        "preview", help="Assemble the sandbox file map for a component."
    )
    preview_command.add_argument("identifier", help="Component identifier author/slug.")
    preview_command.add_argument("--max-depth", type=int, default=None)
    preview_command.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write the files below this directory instead of printing JSON.",
    )

    merge_command = subcommands.add_parser(
        "merge-styles", help="Merge Tailwind config and global CSS files."
    )
    merge_command.add_argument("--tailwind", type=Path, nargs="*", default=[])
    merge_command.add_argument("--css", type=Path, nargs="*", default=[])
    merge_command.add_argument(
        "--policy",
        choices=[policy.value for policy in ConflictPolicy],
        default=None,
        help="Conflict policy (defaults to STYLE_CONFLICT_POLICY).",
    )
    return argument_parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _write_files(output_dir: Path, files: dict) -> None:
    root = output_dir.resolve()
    for path, content in files.items():
        target = (root / path.lstrip("/")).resolve()
        if root not in target.parents:
            raise ValueError(f"Refusing to write outside {root}: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")


def _merge_styles(args: argparse.Namespace) -> int:
    policy = (
        ConflictPolicy.parse(args.policy)
        if args.policy
        else ResolverSettings.from_env().conflict_policy
    )
    try:
        configs = [path.read_text(encoding="utf-8") for path in args.tailwind]
        stylesheets = [path.read_text(encoding="utf-8") for path in args.css]
    except OSError as error:
        print(f"Error: {error}", file=sys.stderr)
        return EXIT_USAGE
    merger = StyleMerger(conflict_policy=policy)
    _print_json(
        {
            "tailwindConfig": merger.merge_tailwind(
                [text for text in configs if text.strip()]
            ),
            "globalCss": merger.merge_css(
                [text for text in stylesheets if text.strip()]
            ),
        }
    )
    return EXIT_OK


def _run(args: argparse.Namespace, service_factory: ServiceFactory) -> int:
    if args.command == "merge-styles":
        return _merge_styles(args)

    if parse_identifier(args.identifier) is None:
        print(
            f"Error: '{args.identifier}' is not an author/slug identifier.",
            file=sys.stderr,
        )
        return EXIT_USAGE

    service = service_factory()
    if args.command == "resolve":
        root = service.resolve(args.identifier, max_depth=args.max_depth)
        if root is None:
            print(f"Error: {args.identifier} could not be resolved.", file=sys.stderr)
            return EXIT_NOT_FOUND
        _print_json(root.to_dict())
        return EXIT_OK

    if args.command == "flatten":
        root = service.resolve(args.identifier, max_depth=args.max_depth)
        if root is None:
            print(f"Error: {args.identifier} could not be resolved.", file=sys.stderr)
            return EXIT_NOT_FOUND
        _print_json(list(flatten(root, exclude_root=not args.include_root)))
        return EXIT_OK

    bundle = service.build_preview(args.identifier, max_depth=args.max_depth)
    if bundle.root is None:
        print(f"Error: {args.identifier} could not be resolved.", file=sys.stderr)
        return EXIT_NOT_FOUND
    if args.output_dir is not None:
        _write_files(args.output_dir, bundle.files)
        logger.info("Wrote %d files to %s", len(bundle.files), args.output_dir)
    else:
        _print_json(bundle.files)
    return EXIT_OK


def main(
    argv: Optional[Sequence[str]] = None,
    service_factory: ServiceFactory = PreviewService.from_env,
) -> int:
    configure_logging()
    argument_parser = build_arg_parser()
    try:
        parsed_args = argument_parser.parse_args(argv)
    except SystemExit as exc:
        return EXIT_OK if exc.code in (0, None) else EXIT_USAGE

    try:
        return _run(parsed_args, service_factory)
    except (ServiceUnavailableError, ResolutionCancelledError) as error:
        logger.error("Preview backend unavailable: %s", error)
        print(f"Error: {error}", file=sys.stderr)
        return EXIT_UNAVAILABLE


if __name__ == "__main__":
    sys.exit(main())
