import itertools
from dataclasses import replace
from typing import Optional

from rifler.core.search.models import SearchRequest, SearchResponse
from rifler.core.search.service import SearchService


class SearchSession:
    """
    Caller-side bookkeeping for superseded searches.

    The engine does not cancel anything. Each request issued through a session is
    stamped with a strictly increasing generation; a response is only current if
    no newer request has been issued since, and stale responses should be dropped.
    """

    def __init__(self, service: SearchService):
        self.service = service
        self._counter = itertools.count(1)
        self._latest: Optional[int] = None

    @property
    def latest_generation(self) -> Optional[int]:
        return self._latest

    def next_generation(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    def stamp(self, request: SearchRequest) -> SearchRequest:
        return replace(request, generation=self.next_generation())

    def is_current(self, response: SearchResponse) -> bool:
        return response.generation is not None and response.generation == self._latest

    async def search_async(self, request: SearchRequest) -> SearchResponse:
        return await self.service.search_async(self.stamp(request))

    def search(self, request: SearchRequest) -> SearchResponse:
        return self.service.search(self.stamp(request))
