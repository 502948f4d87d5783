# coach_autosave/config.py
# Description: Configuration management for the auto-save engine.
#
# Imports
import copy
import os
import sys
if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib
from pathlib import Path
from typing import Any, Dict, Optional
#
# Third-Party Imports
import toml
from loguru import logger
#
#######################################################################################################################
#
# Functions:

# --- Path to the user's configuration file ---
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "coach_autosave" / "config.toml"

# Environment override for the config location (used by tests and packaged builds)
CONFIG_PATH_ENV_VAR = "COACH_AUTOSAVE_CONFIG"

CONFIG_TOML_CONTENT = """
# Configuration for coach_autosave
# Located at: ~/.config/coach_autosave/config.toml

[AutoSave]
enabled = true                      # Master switch for auto-saving drafts
interval_ms = 15000                 # Save at most this often while the user keeps typing (15 seconds)
pause_delay_ms = 3000               # Save after this long without edits (3 seconds)
max_attempts = 3                    # Consecutive failed attempts before giving up until a manual retry
base_delay_ms = 2000                # First retry delay; doubled after every failure
min_length_session_notes = 10       # Minimum note length before drafts are saved
min_length_messages = 5             # Minimum message length before drafts are saved
min_length_sleep_diary = 5          # Minimum diary entry length before drafts are saved

[Drafts]
store_path = "~/.local/share/coach_autosave/drafts.json"

[Logging]
log_level = "INFO"
log_file = "~/.local/share/coach_autosave/logs/coach_autosave.log"
console = true
"""

try:
    DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)
except tomllib.TOMLDecodeError as e:
    logger.critical(f"FATAL: Could not parse internal CONFIG_TOML_CONTENT: {e}.")
    DEFAULT_CONFIG_FROM_TOML = {}


def get_config_path() -> Path:
    """Location of the user config file, honouring ``COACH_AUTOSAVE_CONFIG``."""
    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merges update_dict into base_dict."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def _get_typed_value(data_dict: Dict, key: str, default: Any, target_type: type = str) -> Any:
    """Helper to get value from dict and cast to type, with logging for type errors."""
    value = data_dict.get(key, default)
    if value is default and default is not None:
        return value
    if value is None:
        return None

    try:
        if target_type == bool:
            if isinstance(value, bool):
                return value
            return str(value).lower() in ['true', '1', 't', 'y', 'yes']
        if target_type == Path:
            return Path(value).expanduser() if value else default
        return target_type(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Config key '{key}' has value '{value}' which could not be converted to {target_type}. Using default: '{default}'. Error: {e}")
        return default


# --- Primary Configuration Loading Logic ---
_CONFIG_CACHE: Optional[Dict[str, Any]] = None


def load_config_and_ensure_existence(force_reload: bool = False) -> Dict[str, Any]:
    """
    Loads settings from the user's config.toml.
    If the file doesn't exist, it's created with default values from CONFIG_TOML_CONTENT.
    The embedded defaults are always used as the base the user file is merged onto.
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    config_path = get_config_path()
    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)

    if not config_path.exists():
        logger.info(f"Config file not found at {config_path}. Creating with default values.")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(CONFIG_TOML_CONTENT)
            logger.info(f"Created default config file at {config_path}")
        except OSError as e:
            logger.error(f"Could not create default config file {config_path}: {e}. Using internal defaults.")
    else:
        logger.info(f"Attempting to load config from: {config_path}")
        try:
            with open(config_path, "rb") as f:
                user_config_from_file = tomllib.load(f)
            loaded_config = deep_merge_dicts(loaded_config, user_config_from_file)
            logger.info(f"Successfully loaded and merged config from {config_path}")
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML config file {config_path}: {e}. Using internal defaults.")
        except OSError as e:
            logger.error(f"Could not read config file {config_path}: {e}. Using internal defaults.")

    _CONFIG_CACHE = loaded_config
    logger.debug(f"load_config_and_ensure_existence returning config with top-level keys: {list(loaded_config.keys())}")
    return _CONFIG_CACHE


def clear_config_cache() -> None:
    global _CONFIG_CACHE
    _CONFIG_CACHE = None


def save_setting_to_config(section: str, key: str, value: Any) -> bool:
    """
    Saves a specific setting to the user's TOML configuration file.

    Reads the current file, updates ``key`` within ``section`` (dotted names
    address nested tables) and writes the whole file back, then reloads the
    config cache.

    Args:
        section: The name of the TOML section (e.g., "AutoSave").
        key: The key within the section to update.
        value: The new value for the key.

    Returns:
        True if the setting was saved successfully, False otherwise.
    """
    config_path = get_config_path()
    logger.info(f"Attempting to save setting: [{section}].{key} = {repr(value)}")

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create config directory {config_path.parent}: {e}")
        return False

    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Corrupted config file at {config_path}. Cannot save. Please fix or delete it. Error: {e}")
            return False
        except OSError as e:
            logger.error(f"Unexpected error reading {config_path}: {e}")
            return False

    current_level = config_data
    try:
        for part in section.split('.'):
            current_level = current_level.setdefault(part, {})
        current_level[key] = value
    except (TypeError, AttributeError):
        logger.error(
            f"Configuration structure conflict. Could not set '{key}' in section '{section}' "
            f"because a part of the path is not a table/dictionary. Please check your config file."
        )
        return False

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            toml.dump(config_data, f)
        logger.success(f"Successfully saved setting to {config_path}")
    except (IOError, toml.TomlDecodeError) as e:
        logger.error(f"Failed to write updated config to {config_path}: {e}")
        return False

    load_config_and_ensure_existence(force_reload=True)
    return True


def get_setting(section: str, key: str, default: Any = None) -> Any:
    """Helper to get a specific setting from the loaded configuration."""
    config = load_config_and_ensure_existence()
    section_data = config.get(section)
    if isinstance(section_data, dict):
        return section_data.get(key, default)
    return default


def get_autosave_config() -> Dict[str, Any]:
    """The ``[AutoSave]`` section with every value cast to its expected type."""
    section = load_config_and_ensure_existence().get("AutoSave", {})
    defaults = DEFAULT_CONFIG_FROM_TOML.get("AutoSave", {})
    return {
        'enabled': _get_typed_value(section, 'enabled', defaults.get('enabled', True), bool),
        'interval_ms': _get_typed_value(section, 'interval_ms', defaults.get('interval_ms', 15000), int),
        'pause_delay_ms': _get_typed_value(section, 'pause_delay_ms', defaults.get('pause_delay_ms', 3000), int),
        'max_attempts': _get_typed_value(section, 'max_attempts', defaults.get('max_attempts', 3), int),
        'base_delay_ms': _get_typed_value(section, 'base_delay_ms', defaults.get('base_delay_ms', 2000), int),
        'min_length_session_notes': _get_typed_value(section, 'min_length_session_notes', defaults.get('min_length_session_notes', 10), int),
        'min_length_messages': _get_typed_value(section, 'min_length_messages', defaults.get('min_length_messages', 5), int),
        'min_length_sleep_diary': _get_typed_value(section, 'min_length_sleep_diary', defaults.get('min_length_sleep_diary', 5), int),
    }


def get_drafts_store_path() -> Path:
    default = Path(DEFAULT_CONFIG_FROM_TOML["Drafts"]["store_path"]).expanduser()
    section = load_config_and_ensure_existence().get("Drafts", {})
    return _get_typed_value(section, 'store_path', default, Path)


def get_logging_config() -> Dict[str, Any]:
    section = load_config_and_ensure_existence().get("Logging", {})
    defaults = DEFAULT_CONFIG_FROM_TOML.get("Logging", {})
    return {
        'log_level': os.environ.get("COACH_AUTOSAVE_LOG_LEVEL") or _get_typed_value(section, 'log_level', defaults.get('log_level', 'INFO'), str),
        'log_file': _get_typed_value(section, 'log_file', Path(defaults.get('log_file', 'coach_autosave.log')).expanduser(), Path),
        'console': _get_typed_value(section, 'console', defaults.get('console', True), bool),
    }

#
# End of config.py
#######################################################################################################################
