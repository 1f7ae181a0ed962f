import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List
from rifler.core.config_validator import ConfigValidator

logger = logging.getLogger(__name__)


def load_config() -> Dict[str, Any]:
    """
    Loads configuration from YAML files and environment variables.
    Returns a dictionary with configuration and status metadata.
    """
    config_status = {
        "status": "OK",
        "error": None,
        "env": get_env(),
        "config_path": None,
        "workspace_roots": [],
        "data": {}
    }

    # --- 1. Read Overrides from ENV ---
    env_override_file = os.environ.get("RIFLER_CONFIG_FILE")
    env_override_dir = os.environ.get("RIFLER_CONFIG_DIR")

    env = config_status["env"]

    # --- 2. Determine Config Directory and Files ---
    if env_override_file:
        config_path = Path(env_override_file)
        config_dir = config_path.parent
        files_to_load = [config_path]
        config_status["config_path"] = str(config_path)
        config_status["source"] = "ENV_FILE (RIFLER_CONFIG_FILE)"
    elif env_override_dir:
        config_dir = Path(env_override_dir)
        files_to_load = [
            config_dir / "general.yaml",
            config_dir / f"{env.lower()}.yaml"
        ]
        config_status["source"] = "ENV_DIR (RIFLER_CONFIG_DIR)"
    else:
        project_root = Path(__file__).parent.parent
        config_dir = project_root / "config"
        files_to_load = [
            config_dir / "general.yaml",
            config_dir / f"{env.lower()}.yaml"
        ]
        config_status["source"] = "DEFAULT (repo/site-packages)"

    # --- 3. Load Configs ---
    loaded_config = {}
    files_found = 0

    try:
        for file_path in files_to_load:
            if file_path.exists():
                files_found += 1
                if not env_override_file:
                    config_status["config_path"] = str(file_path)

                with open(file_path, "r", encoding="utf-8") as f:
                    _merge(loaded_config, yaml.safe_load(f) or {})

        if files_found == 0:
            config_status["status"] = "ERROR"
            config_status["error"] = f"No config files found in {config_dir} (tried: {[str(f) for f in files_to_load]})"
            return config_status

        # --- 3b. Backward Compatibility ---
        # Top-level 'smart_excludes' moved under 'search'
        if "smart_excludes" in loaded_config:
            val = loaded_config.pop("smart_excludes")
            search = loaded_config.setdefault("search", {})
            if "smart_excludes" not in search:
                search["smart_excludes"] = val
                logger.warning("DEPRECATED: Top-level 'smart_excludes' found. Mapped to 'search.smart_excludes'.")
            else:
                logger.info("Ignoring top-level 'smart_excludes' because 'search.smart_excludes' is set.")

        # --- 3c. Validation ---
        validation_errors = ConfigValidator.validate(loaded_config)
        if validation_errors:
            config_status["status"] = "ERROR"
            config_status["error"] = "Invalid Configuration:\n" + "\n".join(validation_errors)
            logger.error(f"Config validation failed: {len(validation_errors)} error(s)")
            # Data is still returned for debugging the config
            config_status["data"] = loaded_config
            return config_status

        config_status["data"] = loaded_config

        # --- 4. Resolve Workspace Roots ---
        config_status["workspace_roots"] = _resolve_roots(
            (loaded_config.get("workspace") or {}).get("roots", []), config_dir
        )

        search = loaded_config.get("search", {})
        logger.info(
            f"Config Loaded: smart_excludes={search.get('smart_excludes')}, "
            f"max_results={search.get('max_results')}, roots={len(config_status['workspace_roots'])}"
        )

    except (OSError, yaml.YAMLError) as e:
        config_status["status"] = "ERROR"
        config_status["error"] = str(e)

    return config_status


def _merge(target: Dict[str, Any], overlay: Dict[str, Any]) -> None:
    # Sections from the env file extend rather than replace general.yaml sections
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _resolve_roots(raw_roots: List[str], config_dir: Path) -> List[str]:
    roots = []
    for raw in raw_roots or []:
        root = Path(raw).expanduser()
        if not root.is_absolute():
            root = config_dir / root
        roots.append(str(root.resolve()))
    return roots


def get_env() -> str:
    """
    Detects the current environment.
    Checks RIFLER_ENV, defaults to DEV.
    """
    return os.environ.get("RIFLER_ENV", "DEV").upper()
