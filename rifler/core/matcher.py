import re
import os
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Pattern, Tuple

from rifler.core.errors import PatternSyntaxError
from rifler.core.search.models import PreviewRange, SearchOptions, SearchResult
from rifler.core.settings import DEFAULT_PREVIEW_MAX_CHARS

logger = logging.getLogger(__name__)

ELLIPSIS = "..."

# Shapes that commonly lead to catastrophic backtracking (nested or stacked quantifiers)
_DANGEROUS_SEQUENCES = [
    re.compile(r"(\([^)]*([*+]{1,})[^)]*\))+[+*]"),
    re.compile(r"([^\\]|^)\d+\s*[*+]{1,}"),
    re.compile(r"\[[^\]]*\][*+]{1,}\s*[?+*]{1,}"),
]


@dataclass(frozen=True)
class Match:
    line: int
    start: int
    end: int


def is_safe_regex(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error:
        return False
    return not any(seq.search(pattern) for seq in _DANGEROUS_SEQUENCES)


def build_pattern(query: str, options: SearchOptions, reject_unsafe: bool = False) -> Pattern:
    """
    Compiles query + options into a pattern. Raises PatternSyntaxError for an invalid
    regex so callers can fail before any file is touched.
    """
    if options.use_regex:
        source = query
        if reject_unsafe and not is_safe_regex(query):
            raise PatternSyntaxError(query, "pattern rejected as potentially unsafe (nested quantifiers)")
    else:
        source = re.escape(query)

    if options.whole_word:
        source = rf"\b(?:{source})\b"

    flags = 0 if options.match_case else re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise PatternSyntaxError(query, str(e)) from e


def split_lines(content: str) -> List[str]:
    lines = content.split("\n")
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def iter_line_matches(pattern: Pattern, line: str) -> Iterator[Tuple[int, int]]:
    """Non-overlapping, non-empty matches of `pattern` in one line."""
    pos = 0
    length = len(line)
    while pos <= length:
        m = pattern.search(line, pos)
        if m is None:
            return
        start, end = m.span()
        if end == start:
            # Zero-length match: step past it so the scan terminates
            pos = end + 1
            continue
        yield start, end
        pos = end


def scan_lines(lines: List[str], pattern: Pattern, limit: Optional[int] = None) -> List[Match]:
    matches: List[Match] = []
    for line_no, line in enumerate(lines):
        for start, end in iter_line_matches(pattern, line):
            if limit is not None and len(matches) >= limit:
                return matches
            matches.append(Match(line=line_no, start=start, end=end))
    return matches


def scan_content(content: str, pattern: Pattern, limit: Optional[int] = None) -> List[Match]:
    return scan_lines(split_lines(content), pattern, limit)


def build_preview(line: str, start: int, end: int, max_chars: int = DEFAULT_PREVIEW_MAX_CHARS) -> Tuple[str, PreviewRange]:
    """
    Trims surrounding whitespace (never into the match) and, for long lines, keeps a
    window centred on the match. Returns the preview and the match range inside it.
    """
    lead = len(line) - len(line.lstrip())
    trail = len(line.rstrip())
    lo = min(lead, start)
    hi = max(trail, end)
    window_lo, window_hi = lo, hi

    if hi - lo > max_chars:
        width = end - start
        if width >= max_chars:
            window_lo, window_hi = start, start + max_chars
        else:
            pad = (max_chars - width) // 2
            window_lo = max(lo, start - pad)
            window_hi = min(hi, window_lo + max_chars)
            window_lo = max(lo, window_hi - max_chars)

    prefix = ELLIPSIS if window_lo > lo else ""
    suffix = ELLIPSIS if window_hi < hi else ""
    preview = prefix + line[window_lo:window_hi] + suffix

    range_start = len(prefix) + start - window_lo
    range_end = len(prefix) + min(end, window_hi) - window_lo
    return preview, PreviewRange(range_start, range_end)


def search_in_content(
    content: str,
    pattern: Pattern,
    file_path: str,
    relative_path: str,
    limit: Optional[int] = None,
    preview_max_chars: int = DEFAULT_PREVIEW_MAX_CHARS,
) -> List[SearchResult]:
    lines = split_lines(content)
    file_name = os.path.basename(file_path)
    results = []
    for match in scan_lines(lines, pattern, limit):
        preview, preview_range = build_preview(lines[match.line], match.start, match.end, preview_max_chars)
        results.append(SearchResult.for_file(
            file_path,
            file_name=file_name,
            relative_path=relative_path,
            line=match.line,
            character=match.start,
            length=match.end - match.start,
            preview=preview,
            preview_match_range=preview_range,
        ))
    return results


def substitute_line(pattern: Pattern, line: str, replacement: str) -> Tuple[str, int]:
    """
    Replaces every match search would report on this line with the literal
    replacement text. Returns the new line and the number of replacements.
    """
    pieces = []
    last = 0
    count = 0
    for start, end in iter_line_matches(pattern, line):
        pieces.append(line[last:start])
        pieces.append(replacement)
        last = end
        count += 1
    if not count:
        return line, 0
    pieces.append(line[last:])
    return "".join(pieces), count
