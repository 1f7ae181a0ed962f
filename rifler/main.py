from __future__ import annotations

import os
import sys
import argparse
import logging
from typing import List, Optional

from rifler.config_loader import load_config
from rifler.core.errors import RiflerError
from rifler.core.replace.models import ReplaceAllRequest
from rifler.core.replace.service import ReplaceService
from rifler.core.scope import SearchScope, find_workspace_modules
from rifler.core.search.models import SearchOptions, SearchRequest
from rifler.core.search.service import SearchService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_INVALID_REQUEST = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rifler", description="Search and replace text inside a workspace.")
    parser.add_argument("--config", help="Path to config YAML (overrides RIFLER_CONFIG_FILE).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", action="append", default=[], help="Workspace root (repeatable). Defaults to config, then CWD.")
    common.add_argument("--scope", choices=[s.value for s in SearchScope], default=SearchScope.PROJECT.value)
    common.add_argument("--path", dest="scope_path", help="Target for module/directory/file scope.")
    common.add_argument("--regex", action="store_true", help="Treat the query as a regular expression.")
    common.add_argument("--case", action="store_true", help="Match case.")
    common.add_argument("--word", action="store_true", help="Whole word only.")
    common.add_argument("--mask", default="", help="File mask, e.g. '*.py, !test_*'.")
    common.add_argument("--no-smart-excludes", action="store_true", help="Also search build/dependency/VCS directories.")

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", parents=[common], help="Print matches.")
    search.add_argument("query")
    search.add_argument("--max-results", type=int, default=None)

    replace_all = sub.add_parser("replace-all", parents=[common], help="Replace every match in scope.")
    replace_all.add_argument("query")
    replace_all.add_argument("replacement")

    modules = sub.add_parser("modules", parents=[common], help="List module-scope candidates.")
    modules.add_argument("--depth", type=int, default=2)
    return parser


def _build_service(args: argparse.Namespace) -> SearchService:
    if args.config:
        os.environ["RIFLER_CONFIG_FILE"] = args.config
    config = load_config()
    if config["status"] == "ERROR":
        # Rejected config data is never used, even partially
        logger.warning(f"Config not loaded, using defaults: {config['error']}")
        data = {}
    else:
        data = config.get("data") or {}
    if args.no_smart_excludes:
        data.setdefault("search", {})["smart_excludes"] = False

    roots = args.root or config.get("workspace_roots") or [os.getcwd()]
    return SearchService(roots, data)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    service = _build_service(args)
    options = SearchOptions(
        match_case=args.case,
        whole_word=args.word,
        use_regex=args.regex,
        file_mask=args.mask,
    )

    if args.command == "modules":
        for module in find_workspace_modules(service.guard.roots, max_depth=args.depth):
            print(f"{module.name}\t{module.path}")
        return EXIT_OK

    try:
        if args.command == "search":
            response = service.search(SearchRequest(
                query=args.query,
                scope=args.scope,
                scope_path=args.scope_path,
                options=options,
                max_results=args.max_results,
            ))
            for r in response:
                print(f"{r.relative_path}:{r.line + 1}:{r.character + 1}: {r.preview}")
            print(f"{response.count_label} result(s)")
            return EXIT_OK

        outcome = ReplaceService(service).replace_all(ReplaceAllRequest(
            query=args.query,
            replacement=args.replacement,
            scope=args.scope,
            scope_path=args.scope_path,
            options=options,
        ))
        print(f"Replaced {outcome.replacements} occurrence(s) in {len(outcome.succeeded)} file(s).")
        for failure in outcome.failed:
            print(f"FAILED: {failure.path}: {failure.error}", file=sys.stderr)
        return EXIT_OK if outcome.ok else EXIT_PARTIAL_FAILURE

    except RiflerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_INVALID_REQUEST


if __name__ == "__main__":
    raise SystemExit(main())
