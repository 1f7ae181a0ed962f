import os
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Union

from rifler.core.errors import ValidationError
from rifler.core.security.path_guard import PathGuard
from rifler.core.settings import DEFAULT_EXCLUDE_DIRS

logger = logging.getLogger(__name__)

# Files whose presence marks a directory as a module
MODULE_INDICATORS = (
    "package.json",
    "tsconfig.json",
    "pyproject.toml",
    "setup.py",
    "Cargo.toml",
    "go.mod",
    "composer.json",
    "Gemfile",
    "requirements.txt",
    ".git",
)


class SearchScope(str, Enum):
    PROJECT = "project"
    MODULE = "module"
    DIRECTORY = "directory"
    FILE = "file"


@dataclass(frozen=True)
class ScopeRoot:
    path: str
    is_file: bool = False


@dataclass(frozen=True)
class WorkspaceModule:
    name: str
    path: str


def coerce_scope(scope: Union[SearchScope, str]) -> SearchScope:
    if isinstance(scope, SearchScope):
        return scope
    try:
        return SearchScope(str(scope).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown search scope: {scope!r}") from None


class ScopeResolver:
    """
    Turns a scope selector plus a raw path into the validated set of roots to walk.
    Nothing is narrowed on failure: any violation raises before traversal starts.
    """

    def __init__(self, guard: PathGuard):
        self.guard = guard

    def resolve(self, scope: Union[SearchScope, str], scope_path: Optional[str] = None) -> List[ScopeRoot]:
        scope = coerce_scope(scope)

        if scope is SearchScope.PROJECT:
            if not self.guard.roots:
                raise ValidationError("No workspace roots declared; nothing to search")
            return [ScopeRoot(root) for root in self.guard.roots]

        if scope_path is None or not scope_path.strip():
            raise ValidationError(f"A path is required for {scope.value} scope")

        if scope is SearchScope.MODULE:
            path = self.guard.validate_module_path(scope_path)
            if not os.path.isdir(path):
                raise ValidationError(f"Module path is not an existing directory: {scope_path}")
            return [ScopeRoot(path)]

        if scope is SearchScope.DIRECTORY:
            path = self.guard.validate_directory_path(scope_path)
            if os.path.isdir(path):
                return [ScopeRoot(path)]
            if os.path.isfile(path):
                return [ScopeRoot(path, is_file=True)]
            raise ValidationError(f"Directory does not exist: {scope_path}")

        path = self.guard.validate_file_path(scope_path)
        if not os.path.isfile(path):
            raise ValidationError(f"File does not exist: {scope_path}")
        return [ScopeRoot(path, is_file=True)]


def _has_module_indicator(dir_path: str) -> bool:
    try:
        with os.scandir(dir_path) as entries:
            return any(entry.name in MODULE_INDICATORS for entry in entries)
    except OSError:
        return False


def _find_modules_in(dir_path: str, modules: List[WorkspaceModule], max_depth: int, depth: int = 0) -> None:
    if depth >= max_depth:
        return
    try:
        with os.scandir(dir_path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {dir_path}: {e}")
        return

    for entry in entries:
        if not entry.is_dir(follow_symlinks=False):
            continue
        if entry.name.startswith(".") or entry.name in DEFAULT_EXCLUDE_DIRS:
            continue
        if _has_module_indicator(entry.path):
            modules.append(WorkspaceModule(name=entry.name, path=entry.path))
        elif depth < max_depth - 1:
            _find_modules_in(entry.path, modules, max_depth, depth + 1)


def find_workspace_modules(workspace_roots: Iterable[str], max_depth: int = 2) -> List[WorkspaceModule]:
    """
    Lists candidate targets for module scope: each workspace root that is itself a
    module, plus sub-directories (up to `max_depth` levels) holding a module indicator.
    """
    modules: List[WorkspaceModule] = []
    for root in workspace_roots:
        if _has_module_indicator(root):
            modules.append(WorkspaceModule(name=os.path.basename(os.path.normpath(root)), path=root))
        _find_modules_in(root, modules, max_depth)
    return modules
