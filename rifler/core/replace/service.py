import os
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Pattern, Union

from rifler.core.errors import (
    PathTraversalError,
    ReplaceWriteError,
    UnsafeUriError,
    ValidationError,
)
from rifler.core.matcher import scan_content, substitute_line
from rifler.core.replace.models import (
    BatchOutcome,
    ReplaceAllRequest,
    ReplaceFailure,
    ReplaceOneRequest,
    ReplaceState,
)
from rifler.core.search.service import SearchService
from rifler.core.security.path_guard import looks_like_uri, uri_to_path

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[], Union[None, Awaitable[Any]]]


def _read_file(path: str) -> str:
    # Strict decoding: rewriting a file we could only read lossily would corrupt it
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _write_file(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _split_eol(line: str):
    if line.endswith("\r"):
        return line[:-1], "\r"
    return line, ""


def patch_span(content: str, line: int, character: int, length: int, replacement: str) -> str:
    """Replaces exactly [character, character + length) on the given 0-based line."""
    lines = content.split("\n")
    if line >= len(lines):
        raise ValidationError(f"Line {line} is past the end of the file ({len(lines)} lines)")

    body, eol = _split_eol(lines[line])
    if character + length > len(body):
        raise ValidationError(
            f"Span {character}..{character + length} is outside line {line} (length {len(body)})"
        )
    lines[line] = body[:character] + replacement + body[character + length:] + eol
    return "\n".join(lines)


def substitute_content(content: str, pattern: Pattern, replacement: str):
    lines = content.split("\n")
    total = 0
    for i, raw in enumerate(lines):
        body, eol = _split_eol(raw)
        new_body, count = substitute_line(pattern, body, replacement)
        if count:
            lines[i] = new_body + eol
            total += count
    return "\n".join(lines), total


def _rewrite_file(path: str, pattern: Pattern, replacement: str) -> int:
    updated, count = substitute_content(_read_file(path), pattern, replacement)
    if count:
        _write_file(path, updated)
    return count


class ReplaceService:
    """
    Single-span and bulk replacement.

    Reuses the search service's guard, scope resolver and limiter so a replace
    walks exactly the files a search over the same request would report.
    """

    def __init__(self, search_service: SearchService):
        self.search_service = search_service
        self.guard = search_service.guard
        self.limiter = search_service.limiter

    def _transition(self, path: str, state: ReplaceState) -> None:
        logger.debug(f"replace {path}: {state.value}")

    def resolve_target(self, target: str) -> str:
        if not target or not target.strip():
            raise ValidationError("Replace target cannot be empty")
        target = target.strip()
        if looks_like_uri(target):
            if not self.guard.is_uri_safe(target):
                raise UnsafeUriError(f"Refusing to modify {target}: not a local file inside the workspace")
            return self.guard.resolve(uri_to_path(target))
        if not self.guard.is_within_workspace(target):
            raise PathTraversalError(f"Refusing to modify {target}: outside the workspace")
        return self.guard.resolve(target)

    async def replace_one_async(self, request: ReplaceOneRequest) -> None:
        self._transition(request.target, ReplaceState.VALIDATING)
        for name in ("line", "character", "length"):
            value = getattr(request, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                self._transition(request.target, ReplaceState.FAILED)
                raise ValidationError(f"'{name}' must be a non-negative integer, got {value!r}")
        try:
            path = self.resolve_target(request.target)
        except (ValidationError, UnsafeUriError, PathTraversalError):
            self._transition(request.target, ReplaceState.FAILED)
            raise

        try:
            self._transition(path, ReplaceState.READING)
            content = await self.limiter.run(lambda: asyncio.to_thread(_read_file, path))

            self._transition(path, ReplaceState.PATCHING)
            patched = patch_span(content, request.line, request.character, request.length, request.replacement)

            self._transition(path, ReplaceState.WRITING)
            await self.limiter.run(lambda: asyncio.to_thread(_write_file, path, patched))
        except ValidationError:
            self._transition(path, ReplaceState.FAILED)
            raise
        except (OSError, UnicodeDecodeError) as e:
            self._transition(path, ReplaceState.FAILED)
            logger.error(f"Could not replace text in {path}: {e}")
            raise ReplaceWriteError(path, str(e), e)

        self._transition(path, ReplaceState.DONE)

    async def _rewrite(self, path: str, pattern: Pattern, replacement: str, outcome: BatchOutcome) -> None:
        if not self.guard.is_within_workspace(path):
            outcome.failed.append(ReplaceFailure(path, "outside the workspace"))
            return

        try:
            count = await self.limiter.run(
                lambda: asyncio.to_thread(_rewrite_file, path, pattern, replacement)
            )
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Replace failed for {path}: {e}")
            outcome.failed.append(ReplaceFailure(path, str(e)))
            return

        outcome.succeeded.append(path)
        outcome.replacements += count

    async def replace_all_async(self, request: ReplaceAllRequest,
                                on_complete: Optional[CompletionCallback] = None) -> BatchOutcome:
        outcome = BatchOutcome()

        if self.search_service.is_searchable_query(request.query):
            pattern, roots, engine = self.search_service.prepare(
                request.query, request.scope, request.scope_path, request.options
            )

            # Keyed on path so a file reached twice is still rewritten once
            matched: Dict[str, None] = {}

            def on_file(path: str, content: str) -> None:
                if scan_content(content, pattern, limit=1):
                    matched[os.path.normpath(path)] = None

            await engine.walk(roots, on_file)
            await asyncio.gather(*(self._rewrite(p, pattern, request.replacement, outcome) for p in matched))

            logger.info(
                f"Replaced {outcome.replacements} occurrence(s) in {len(outcome.succeeded)} file(s); "
                f"{len(outcome.failed)} failed"
            )

        if on_complete is not None:
            result = on_complete()
            if inspect.isawaitable(result):
                await result
        return outcome

    def replace_one(self, request: ReplaceOneRequest) -> None:
        asyncio.run(self.replace_one_async(request))

    def replace_all(self, request: ReplaceAllRequest,
                    on_complete: Optional[CompletionCallback] = None) -> BatchOutcome:
        return asyncio.run(self.replace_all_async(request, on_complete))
