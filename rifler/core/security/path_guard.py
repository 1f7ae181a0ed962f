"""
Workspace sandboxing.

Every path used by scope resolution or by a replace must stay inside one of the
declared workspace roots. All checks fail closed: anything that cannot be
proven to be inside a root is rejected.
"""
import os
import logging
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from rifler.core.errors import PathTraversalError, ValidationError

logger = logging.getLogger(__name__)

LOCAL_AUTHORITIES = ("", "localhost")


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.realpath(path))


def _has_traversal_token(path: str) -> bool:
    if "../" in path or "..\\" in path:
        return True
    return path.replace("\\", "/").rstrip("/").split("/")[-1] == ".."


def uri_to_path(uri: str) -> str:
    parsed = urlparse(uri)
    return url2pathname(parsed.path)


def path_to_uri(path: str) -> str:
    return Path(path).as_uri()


def looks_like_uri(target: str) -> bool:
    # Single-letter schemes are Windows drive letters, not URIs
    scheme = urlparse(target).scheme
    return len(scheme) > 1


class PathGuard:
    def __init__(self, workspace_roots: Iterable[str]):
        roots: List[str] = []
        for root in workspace_roots:
            if not root or not str(root).strip():
                continue
            normalized = _normalize(str(root).strip())
            if normalized not in roots:
                roots.append(normalized)
        # Nested roots are covered by their parent
        self.roots = [
            root for root in roots
            if not any(self._is_contained(self._relative(other, root)) for other in roots if other != root)
        ]
        if len(self.roots) < len(roots):
            logger.debug(f"Dropped {len(roots) - len(self.roots)} nested workspace root(s)")

    def resolve(self, path: str) -> str:
        if not os.path.isabs(path) and self.roots:
            path = os.path.join(self.roots[0], path)
        return _normalize(path)

    @staticmethod
    def _relative(root: str, target: str) -> Optional[str]:
        try:
            rel = os.path.relpath(target, root)
        except ValueError:
            # Different drives on Windows
            return None
        if rel == os.curdir:
            return ""
        return rel

    @staticmethod
    def _is_contained(rel: Optional[str]) -> bool:
        if not rel:
            return False
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return False
        return not os.path.isabs(rel)

    def is_within_workspace(self, path: str) -> bool:
        """
        True only if `path` resolves strictly below one of the workspace roots.
        The root itself does not count. Always False when no roots are declared.
        """
        if not self.roots or not path:
            return False
        target = self.resolve(path)
        return any(self._is_contained(self._relative(root, target)) for root in self.roots)

    def is_root(self, path: str) -> bool:
        if not self.roots or not path:
            return False
        return self.resolve(path) in self.roots

    def is_uri_safe(self, uri: str) -> bool:
        """Only local file:// URIs inside the workspace are safe."""
        if not uri or not isinstance(uri, str):
            return False
        try:
            parsed = urlparse(uri.strip())
        except ValueError:
            return False
        if parsed.scheme != "file" or parsed.netloc not in LOCAL_AUTHORITIES:
            return False
        return self.is_within_workspace(url2pathname(parsed.path))

    def containing_root(self, path: str) -> Optional[str]:
        target = self.resolve(path)
        for root in self.roots:
            rel = self._relative(root, target)
            if rel == "" or self._is_contained(rel):
                return root
        return None

    def relative_to_workspace(self, path: str) -> str:
        root = self.containing_root(path)
        if root is None:
            return os.path.basename(path)
        return os.path.relpath(self.resolve(path), root)

    def _validate(self, path: str, kind: str, allow_root: bool = False) -> str:
        if path is None or not str(path).strip():
            raise ValidationError(f"{kind} path cannot be empty")

        trimmed = str(path).strip()
        # Reject the textual attack before resolution, not only the resolved one
        if _has_traversal_token(trimmed):
            raise PathTraversalError(f"{kind} path contains path traversal (..)")

        if allow_root and self.is_root(trimmed):
            return self.resolve(trimmed)

        if not self.is_within_workspace(trimmed):
            logger.warning(f"Rejected {kind.lower()} path outside workspace: {trimmed}")
            raise PathTraversalError(
                f"{kind} path must be within workspace. Attempted path traversal detected."
            )
        return self.resolve(trimmed)

    def validate_directory_path(self, path: str) -> str:
        """Returns the normalized absolute path, or raises ValidationError / PathTraversalError."""
        return self._validate(path, "Directory")

    def validate_module_path(self, path: str) -> str:
        # A workspace root is itself a valid module
        return self._validate(path, "Module", allow_root=True)

    def validate_file_path(self, path: str) -> str:
        return self._validate(path, "File")
