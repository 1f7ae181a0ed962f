from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from rifler.core.scope import SearchScope
from rifler.core.search.models import SearchOptions


class ReplaceState(str, Enum):
    VALIDATING = "validating"
    READING = "reading"
    PATCHING = "patching"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ReplaceOneRequest:
    """Coordinates must come from a SearchResult; the span's text is not re-checked."""
    target: str  # file:// URI or path
    line: int
    character: int
    length: int
    replacement: str


@dataclass
class ReplaceAllRequest:
    query: str
    replacement: str
    scope: Union[SearchScope, str] = SearchScope.PROJECT
    scope_path: Optional[str] = None
    options: SearchOptions = field(default_factory=SearchOptions)


@dataclass
class ReplaceFailure:
    path: str
    error: str


@dataclass
class BatchOutcome:
    succeeded: List[str] = field(default_factory=list)
    failed: List[ReplaceFailure] = field(default_factory=list)
    replacements: int = 0

    @property
    def failed_paths(self) -> List[str]:
        return [f.path for f in self.failed]

    @property
    def ok(self) -> bool:
        return not self.failed
