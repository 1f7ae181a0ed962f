from typing import Dict, Any, List
import logging

logger = logging.getLogger(__name__)

POSITIVE_INT_FIELDS = (
    "max_results",
    "max_concurrency",
    "max_file_size_bytes",
    "min_query_length",
    "preview_max_chars",
)
BOOL_FIELDS = ("smart_excludes", "reject_unsafe_regex")
STRING_LIST_FIELDS = ("exclude_dirs", "binary_extensions")


class ConfigValidator:
    """
    Validates configuration structure and types.
    Returns a list of human-readable problems; empty means the config is usable.
    """

    @staticmethod
    def validate(config: Dict[str, Any]) -> List[str]:
        errors = []

        # 1. Top-Level Sections
        if "search" not in config:
            errors.append("Missing required section: 'search'")

        # 2. Search tuning
        search = config.get("search", {})
        if not isinstance(search, dict):
            errors.append("'search' must be a dictionary")
        else:
            for key in POSITIVE_INT_FIELDS:
                ConfigValidator._check_positive_int(search, key, errors)
            for key in BOOL_FIELDS:
                ConfigValidator._check_bool(search, key, errors)
            for key in STRING_LIST_FIELDS:
                ConfigValidator._check_string_list(search, key, errors, prefix="search")

        # 3. Workspace roots (optional; the host may pass roots directly)
        workspace = config.get("workspace", {})
        if workspace:
            if not isinstance(workspace, dict):
                errors.append("'workspace' must be a dictionary")
            else:
                ConfigValidator._check_string_list(workspace, "roots", errors, prefix="workspace")

        if errors:
            logger.error(f"Config Validation Failed: {errors}")
        else:
            logger.info("Config OK: search=%s", search)

        return errors

    @staticmethod
    def _check_bool(section: dict, key: str, errors: list):
        if key in section and not isinstance(section[key], bool):
            errors.append(f"Field '{key}' must be boolean, got {type(section[key]).__name__}")

    @staticmethod
    def _check_positive_int(section: dict, key: str, errors: list):
        if key not in section:
            return
        value = section[key]
        # bool is an int subclass; True is not a valid cap
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(f"Field '{key}' must be an integer, got {type(value).__name__}")
        elif value < 1:
            errors.append(f"Field '{key}' must be positive, got {value}")

    @staticmethod
    def _check_string_list(section: dict, key: str, errors: list, prefix: str):
        if key not in section:
            return
        value = section[key]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            errors.append(f"'{prefix}.{key}' must be a list of strings")
