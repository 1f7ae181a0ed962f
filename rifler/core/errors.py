from typing import Optional


class RiflerError(Exception):
    """Base class for every error the search/replace engine raises."""


class ValidationError(RiflerError):
    """Request is malformed (blank scope path, no workspace roots, bad offsets...)."""


class PatternSyntaxError(RiflerError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid regex: {reason}")
        self.pattern = pattern
        self.reason = reason


class PathTraversalError(RiflerError):
    """A path escapes the declared workspace roots."""


class UnsafeUriError(RiflerError):
    """A URI uses a non-file scheme or points outside the workspace."""


class ReplaceWriteError(RiflerError):
    def __init__(self, path: str, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"Could not update {path}: {reason}")
        self.path = path
        self.reason = reason
        self.__cause__ = cause
