import os
import errno
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, List, Optional, Tuple

from rifler.core.file_mask import FileMask
from rifler.core.limiter import ConcurrencyLimiter
from rifler.core.scope import ScopeRoot
from rifler.core.settings import SearchSettings

logger = logging.getLogger(__name__)

FileHandler = Callable[[str, str], Optional[Awaitable[None]]]


@dataclass
class TraversalOptions:
    exclude_dirs: FrozenSet[str]
    binary_extensions: FrozenSet[str]
    smart_excludes: bool = True
    max_file_size_bytes: int = 1024 * 1024
    file_mask: FileMask = field(default_factory=FileMask)

    @classmethod
    def from_settings(cls, settings: SearchSettings, file_mask: Optional[FileMask] = None) -> "TraversalOptions":
        return cls(
            exclude_dirs=settings.exclude_dirs,
            binary_extensions=settings.binary_extensions,
            smart_excludes=settings.smart_excludes,
            max_file_size_bytes=settings.max_file_size_bytes,
            file_mask=file_mask or FileMask(),
        )


def _list_dir(dir_path: str) -> List[Tuple[str, str, bool, bool]]:
    entries = []
    with os.scandir(dir_path) as it:
        for entry in it:
            # Symlinks are never followed: they can point outside the workspace
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
            entries.append((entry.name, entry.path, is_dir, is_file))
    entries.sort(key=lambda e: e[0])
    return entries


def _read_text(path: str, max_size: int) -> Optional[str]:
    if os.path.getsize(path) > max_size:
        return None
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def _log_node_error(kind: str, path: str, error: OSError) -> None:
    if error.errno == errno.ENOENT:
        # Deleted while we were walking
        logger.debug(f"{kind} vanished during scan: {path}")
    else:
        logger.warning(f"Error reading {kind.lower()} {path}: {error}")


class TraversalEngine:
    """
    Walks scope roots and hands the text of every eligible file to a callback.

    Each directory listing and each file read is admitted through the shared
    limiter. Sibling directories and files are processed concurrently. An
    unreadable node is skipped; it never aborts the walk.
    """

    def __init__(self, limiter: ConcurrencyLimiter, options: TraversalOptions):
        self.limiter = limiter
        self.options = options

    def should_descend(self, dir_name: str) -> bool:
        if not self.options.smart_excludes:
            return True
        return dir_name not in self.options.exclude_dirs and not dir_name.startswith(".")

    def accepts_file(self, file_name: str) -> bool:
        ext = os.path.splitext(file_name)[1].lower()
        if ext in self.options.binary_extensions:
            return False
        return self.options.file_mask.matches(file_name)

    async def walk(self, roots: List[ScopeRoot], on_file: FileHandler,
                   should_stop: Callable[[], bool] = lambda: False) -> None:
        for root in roots:
            if should_stop():
                break
            if root.is_file:
                await self._visit_file(root.path, on_file, should_stop)
            else:
                await self._visit_dir(root.path, on_file, should_stop)

    async def _visit_dir(self, dir_path: str, on_file: FileHandler, should_stop: Callable[[], bool]) -> None:
        if should_stop():
            return
        try:
            entries = await self.limiter.run(lambda: asyncio.to_thread(_list_dir, dir_path))
        except OSError as e:
            _log_node_error("Directory", dir_path, e)
            return

        tasks = []
        for name, path, is_dir, is_file in entries:
            if should_stop():
                break
            if is_dir:
                if self.should_descend(name):
                    tasks.append(self._visit_dir(path, on_file, should_stop))
                else:
                    logger.debug(f"Excluded directory: {path}")
            elif is_file and self.accepts_file(name):
                tasks.append(self._visit_file(path, on_file, should_stop))

        if tasks:
            await asyncio.gather(*tasks)

    async def _visit_file(self, file_path: str, on_file: FileHandler, should_stop: Callable[[], bool]) -> None:
        if should_stop():
            return

        async def read_and_handle():
            content = await asyncio.to_thread(_read_text, file_path, self.options.max_file_size_bytes)
            if content is None:
                logger.debug(f"Skipping oversized file: {file_path}")
                return
            if should_stop():
                return
            outcome = on_file(file_path, content)
            if asyncio.iscoroutine(outcome):
                await outcome

        try:
            await self.limiter.run(read_and_handle)
        except OSError as e:
            _log_node_error("File", file_path, e)
