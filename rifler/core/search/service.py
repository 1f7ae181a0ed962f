import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from rifler.core.file_mask import load_file_mask
from rifler.core.limiter import ConcurrencyLimiter
from rifler.core.matcher import build_pattern, search_in_content
from rifler.core.scope import ScopeResolver, ScopeRoot
from rifler.core.search.aggregator import ResultAggregator
from rifler.core.search.models import SearchOptions, SearchRequest, SearchResponse
from rifler.core.security.path_guard import PathGuard, looks_like_uri, uri_to_path
from rifler.core.settings import SearchSettings
from rifler.core.traversal import TraversalEngine, TraversalOptions

logger = logging.getLogger(__name__)


class SearchService:
    """
    Entry point for workspace search.

    The limiter is the only state that outlives a call; pass the same instance
    to every service a caller owns so they share one admission gate.
    """

    def __init__(self, workspace_roots: Iterable[str], config: Optional[Dict[str, Any]] = None,
                 limiter: Optional[ConcurrencyLimiter] = None):
        self.settings = SearchSettings.from_config(config)
        self.guard = PathGuard(workspace_roots)
        self.resolver = ScopeResolver(self.guard)
        self.limiter = limiter or ConcurrencyLimiter(self.settings.max_concurrency)

    def is_searchable_query(self, query: str) -> bool:
        return bool(query and query.strip()) and len(query) >= self.settings.min_query_length

    def prepare(self, query: str, scope, scope_path: Optional[str],
                options: SearchOptions) -> Tuple[Pattern, List[ScopeRoot], TraversalEngine]:
        """
        Everything that can fail does so here, before any directory is listed:
        pattern syntax first, then scope validation.
        """
        pattern = build_pattern(query, options, reject_unsafe=self.settings.reject_unsafe_regex)
        file_mask = load_file_mask(options.file_mask)
        roots = self.resolver.resolve(scope, scope_path)
        engine = TraversalEngine(self.limiter, TraversalOptions.from_settings(self.settings, file_mask))
        return pattern, roots, engine

    async def search_async(self, request: SearchRequest) -> SearchResponse:
        if not self.is_searchable_query(request.query):
            return SearchResponse(generation=request.generation)

        pattern, roots, engine = self.prepare(request.query, request.scope, request.scope_path, request.options)

        cap = request.max_results if request.max_results is not None else self.settings.max_results
        aggregator = ResultAggregator(cap)

        def on_file(path: str, content: str) -> None:
            remaining = aggregator.remaining
            if remaining <= 0:
                return
            aggregator.add(search_in_content(
                content,
                pattern,
                path,
                self.guard.relative_to_workspace(path),
                limit=remaining,
                preview_max_chars=self.settings.preview_max_chars,
            ))

        await engine.walk(roots, on_file, should_stop=lambda: aggregator.is_full)

        exclude_path = request.exclude_path
        if exclude_path and looks_like_uri(exclude_path):
            exclude_path = uri_to_path(exclude_path)

        response = aggregator.finalize(roots, exclude_path=exclude_path, generation=request.generation)
        logger.debug(f"Search {request.query!r} in {len(roots)} root(s): {response.count_label} result(s)")
        return response

    def search(self, request: SearchRequest) -> SearchResponse:
        """
        Blocking wrapper around search_async() for callers without an event loop.
        """
        return asyncio.run(self.search_async(request))
