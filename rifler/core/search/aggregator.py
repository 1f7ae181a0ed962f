import os
import logging
from typing import List, Optional

from rifler.core.scope import ScopeRoot
from rifler.core.search.models import SearchResponse, SearchResult

logger = logging.getLogger(__name__)


def _within(path: str, root: ScopeRoot) -> bool:
    if root.is_file:
        return path == root.path
    rel = os.path.relpath(path, root.path)
    return rel != os.pardir and not rel.startswith(os.pardir + os.sep) and not os.path.isabs(rel)


class ResultAggregator:
    """
    Append-only collection of matches from concurrently scanned files.

    Files may finish in any order, so results are grouped by discovery order
    across files and by line/character within a file. A file already in flight
    when the cap is reached may push the raw count past it; finalize() trims.
    """

    def __init__(self, max_results: int):
        self.max_results = max(1, int(max_results))
        self._results: List[SearchResult] = []

    def __len__(self) -> int:
        return len(self._results)

    @property
    def is_full(self) -> bool:
        return len(self._results) >= self.max_results

    @property
    def remaining(self) -> int:
        return max(0, self.max_results - len(self._results))

    def add(self, file_results: List[SearchResult]) -> None:
        if file_results:
            self._results.extend(sorted(file_results, key=lambda r: (r.line, r.character)))

    def finalize(self, roots: List[ScopeRoot], exclude_path: Optional[str] = None,
                 generation: Optional[int] = None) -> SearchResponse:
        limit_reached = len(self._results) >= self.max_results
        if len(self._results) > self.max_results:
            logger.debug(f"Trimming {len(self._results) - self.max_results} results past the cap")
        results = self._results[:self.max_results]

        # Every result must belong to a validated scope root
        if roots:
            results = [r for r in results if any(_within(os.path.normpath(r.path), root) for root in roots)]

        if exclude_path:
            excluded = os.path.normpath(os.path.realpath(exclude_path))
            results = [r for r in results if os.path.normpath(r.path) != excluded]

        return SearchResponse(results=results, limit_reached=limit_reached, generation=generation)
