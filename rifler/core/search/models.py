from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from rifler.core.scope import SearchScope
from rifler.core.security.path_guard import path_to_uri, uri_to_path


@dataclass(frozen=True)
class SearchOptions:
    match_case: bool = False
    whole_word: bool = False
    use_regex: bool = False
    file_mask: str = ""  # e.g. "*.py, *.md, !*_test.py"


@dataclass
class SearchRequest:
    query: str
    scope: Union[SearchScope, str] = SearchScope.PROJECT
    scope_path: Optional[str] = None
    options: SearchOptions = field(default_factory=SearchOptions)
    max_results: Optional[int] = None  # None -> configured cap
    generation: Optional[int] = None
    exclude_path: Optional[str] = None  # e.g. the caller's active file


@dataclass(frozen=True)
class PreviewRange:
    start: int
    end: int


@dataclass
class SearchResult:
    """
    A single match. `line` and `character` are 0-based offsets into the source file;
    `preview_match_range` is relative to `preview`, which may be trimmed.
    """
    uri: str
    file_name: str
    relative_path: str
    line: int
    character: int
    length: int
    preview: str
    preview_match_range: PreviewRange

    @classmethod
    def for_file(cls, file_path: str, **kwargs) -> "SearchResult":
        return cls(uri=path_to_uri(file_path), **kwargs)

    @property
    def path(self) -> str:
        return uri_to_path(self.uri)

    def to_dict(self) -> Dict[str, Any]:
        # Shape consumed by the presentation layer
        return {
            "uri": self.uri,
            "fileName": self.file_name,
            "relativePath": self.relative_path,
            "line": self.line,
            "character": self.character,
            "length": self.length,
            "preview": self.preview,
            "previewMatchRange": {
                "start": self.preview_match_range.start,
                "end": self.preview_match_range.end,
            },
        }


@dataclass
class SearchResponse:
    results: List[SearchResult] = field(default_factory=list)
    limit_reached: bool = False  # True means "at least len(results)"
    generation: Optional[int] = None

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[SearchResult]:
        return iter(self.results)

    def __getitem__(self, index):
        return self.results[index]

    @property
    def count_label(self) -> str:
        prefix = "at least " if self.limit_reached else ""
        return f"{prefix}{len(self.results)}"
