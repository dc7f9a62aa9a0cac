"""Configuration file discovery, loading and validation.

Reads YAML (or JSON, which the YAML parser accepts) files, merges the
user-level and project-level files, expands ``${ENV_VAR}`` placeholders
and validates against the Pydantic models in :mod:`schema`.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from mcp_compression_proxy.config.env import expand_env_vars
from mcp_compression_proxy.config.schema import ProxyConfig
from mcp_compression_proxy.constants import (
    CONFIG_BASENAME,
    CONFIG_ENV_VAR,
    CONFIG_EXTENSIONS,
    DEFAULT_DATA_DIR,
)
from mcp_compression_proxy.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Keys whose list values are concatenated (user first) when merging files.
_PATTERN_KEYS = ("exclude_tools", "no_compress_tools")


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML or JSON config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in CONFIG_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            f"Supported: {', '.join(CONFIG_EXTENSIONS)}."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            f"Top-level configuration content of {cfg_fpath} must be a mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def _merge_raw(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two raw config mappings; *override* wins.

    Backends merge by name, pattern lists are concatenated without
    duplicates, every other key is replaced.
    """
    merged = dict(base)
    for key, value in override.items():
        if key == "backends" and isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = {**base[key], **value}
        elif key in _PATTERN_KEYS and isinstance(value, list) and isinstance(base.get(key), list):
            merged[key] = list(dict.fromkeys([*base[key], *value]))
        else:
            merged[key] = value
    return merged


def _validate(raw_data: Dict[str, Any], source: str) -> ProxyConfig:
    raw_data = expand_env_vars(raw_data)
    try:
        config = ProxyConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed for {source} "
            f"({len(exc.errors())} error(s)):\n{error_summary}"
        ) from exc

    disabled = [name for name, b in config.backends.items() if not b.is_enabled]
    if disabled:
        logger.info("Disabled backend(s) skipped: %s", ", ".join(disabled))
    logger.info(
        "Configuration '%s' loaded (v%s). %d backend(s), %d enabled.",
        source,
        config.version,
        len(config.backends),
        len(config.enabled_backends),
    )
    return config


# ── Public API ───────────────────────────────────────────────────────────


def find_config_file(directory: str) -> Optional[str]:
    """Return the first ``servers.<ext>`` file found in *directory*."""
    for ext in CONFIG_EXTENSIONS:
        candidate = os.path.join(directory, f"{CONFIG_BASENAME}{ext}")
        if os.path.isfile(candidate):
            return candidate
    return None


def discover_config_files(
    project_dir: Optional[str] = None,
    user_dir: Optional[str] = None,
) -> List[str]:
    """Return existing config files in merge order (user first, project last)."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return [env_path]

    found: List[str] = []
    for directory in (user_dir or DEFAULT_DATA_DIR, project_dir or os.getcwd()):
        path = find_config_file(os.path.expanduser(directory))
        if path and path not in found:
            found.append(path)
    return found


def load_proxy_config(cfg_fpath: str) -> ProxyConfig:
    """Load, expand and validate a single configuration file.

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures (all errors reported at once).
    """
    logger.debug("Loading configuration file: %s", cfg_fpath)

    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    return _validate(_read_config_file(cfg_fpath), cfg_fpath)


def load_merged_config(paths: List[str]) -> ProxyConfig:
    """Load several files and merge them in order; later files win."""
    if not paths:
        raise ConfigurationError("No configuration files given.")
    for path in paths:
        if not os.path.exists(path):
            raise ConfigurationError(f"Configuration file does not exist: {path}")

    raw_data: Dict[str, Any] = {}
    for path in paths:
        logger.debug("Merging configuration file: %s", path)
        raw_data = _merge_raw(raw_data, _read_config_file(path))
    return _validate(raw_data, " + ".join(paths))


def load_config(cfg_fpath: Optional[str] = None) -> ProxyConfig:
    """Resolve the configuration the proxy should run with.

    An explicit path is loaded alone.  Otherwise discovered files are
    merged; when none exist an empty configuration is returned.
    """
    if cfg_fpath:
        return load_proxy_config(cfg_fpath)

    paths = discover_config_files()
    if not paths:
        logger.warning(
            "No configuration file found (checked $%s, %s and the current directory). "
            "Starting with no backends.",
            CONFIG_ENV_VAR,
            DEFAULT_DATA_DIR,
        )
        return ProxyConfig()
    if len(paths) == 1:
        return load_proxy_config(paths[0])
    return load_merged_config(paths)
