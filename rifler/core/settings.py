from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

# Build output, dependency and VCS directories skipped while smart excludes are on
DEFAULT_EXCLUDE_DIRS = frozenset({
    "node_modules", ".git", "dist", "out", "__pycache__", ".venv", "venv",
    ".idea", ".vscode", "coverage", ".nyc_output", "build", ".next",
    ".nuxt", ".cache", "tmp", "temp", ".pytest_cache", ".tox",
})

BINARY_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".pdf", ".zip", ".tar", ".gz",
    ".exe", ".dll", ".so", ".dylib", ".woff", ".woff2", ".ttf", ".eot",
    ".mp3", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".svg",
    ".lock", ".bin", ".dat", ".db", ".sqlite", ".sqlite3",
})

DEFAULT_MAX_RESULTS = 10000
DEFAULT_MAX_CONCURRENCY = 100
DEFAULT_MAX_FILE_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_MIN_QUERY_LENGTH = 2
DEFAULT_PREVIEW_MAX_CHARS = 250


@dataclass
class SearchSettings:
    """
    Host-supplied tuning for search and replace.
    Built from the `search` section of the loaded config; anything missing keeps its default.
    """
    max_results: int = DEFAULT_MAX_RESULTS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    min_query_length: int = DEFAULT_MIN_QUERY_LENGTH
    preview_max_chars: int = DEFAULT_PREVIEW_MAX_CHARS
    smart_excludes: bool = True
    reject_unsafe_regex: bool = False
    exclude_dirs: FrozenSet[str] = field(default_factory=lambda: DEFAULT_EXCLUDE_DIRS)
    binary_extensions: FrozenSet[str] = field(default_factory=lambda: BINARY_EXTENSIONS)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "SearchSettings":
        config = config or {}
        # Accept either the full config or just its `search` section
        section = config.get("search", config)
        if not isinstance(section, dict):
            section = {}

        settings = cls()
        for key in ("max_results", "max_concurrency", "max_file_size_bytes",
                    "min_query_length", "preview_max_chars"):
            if key in section:
                setattr(settings, key, int(section[key]))
        for key in ("smart_excludes", "reject_unsafe_regex"):
            if key in section:
                setattr(settings, key, bool(section[key]))

        if "exclude_dirs" in section:
            settings.exclude_dirs = frozenset(section["exclude_dirs"])
        if "binary_extensions" in section:
            settings.binary_extensions = frozenset(
                e.lower() if e.startswith(".") else f".{e.lower()}"
                for e in section["binary_extensions"]
            )
        return settings
