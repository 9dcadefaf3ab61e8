"""
Configuration — loads settings from .sourcesync.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml

from .editing.identity import DEFAULT_ATTRIBUTE, EXCLUDED_TAGS


_DEFAULTS = {
    "identity_attribute": DEFAULT_ATTRIBUTE,
    "excluded_tags": sorted(EXCLUDED_TAGS),
    "preview_prefixes": ["#preview-content"],
    "ambiguous_paths": "first",
    "queue_timeout": 10.0,
    "readiness_url": "",
    "readiness_timeout": 30.0,
    "readiness_interval": 0.5,
    "log_dir": ".sourcesync/logs",
    "metrics": False,
    "metrics_dir": ".sourcesync",
    "review": "textual",
}

_AMBIGUITY_POLICIES = ("first", "error")
_REVIEW_MODES = ("textual", "console", "auto-accept")

# Config file search locations
_CONFIG_FILENAMES = [".sourcesync.yaml", ".sourcesync.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


def _as_list(value) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return []


class Config:
    """Source-sync configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables (``SOURCESYNC_*``)
    3. .sourcesync.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() == "true"
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        def _get_list(env_key: str, yaml_key: str, default: list) -> list[str]:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return _as_list(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return _as_list(yaml_val)
            return list(default)

        # Identity markers
        self.IDENTITY_ATTRIBUTE = _get("SOURCESYNC_IDENTITY_ATTRIBUTE", "identity_attribute",
                                       _DEFAULTS["identity_attribute"])
        self.EXCLUDED_TAGS = _get_list("SOURCESYNC_EXCLUDED_TAGS", "excluded_tags",
                                       _DEFAULTS["excluded_tags"])

        # Path resolution
        self.PREVIEW_PREFIXES = _get_list("SOURCESYNC_PREVIEW_PREFIXES", "preview_prefixes",
                                          _DEFAULTS["preview_prefixes"])
        self.AMBIGUOUS_PATHS = _get("SOURCESYNC_AMBIGUOUS_PATHS", "ambiguous_paths",
                                    _DEFAULTS["ambiguous_paths"]).lower()
        if self.AMBIGUOUS_PATHS not in _AMBIGUITY_POLICIES:
            self.AMBIGUOUS_PATHS = _DEFAULTS["ambiguous_paths"]

        # Mutation queue
        self.QUEUE_TIMEOUT = _get("SOURCESYNC_QUEUE_TIMEOUT", "queue_timeout",
                                  _DEFAULTS["queue_timeout"], cast=float)

        # Companion readiness
        self.READINESS_URL = _get("SOURCESYNC_READINESS_URL", "readiness_url",
                                  _DEFAULTS["readiness_url"])
        self.READINESS_TIMEOUT = _get("SOURCESYNC_READINESS_TIMEOUT", "readiness_timeout",
                                      _DEFAULTS["readiness_timeout"], cast=float)
        self.READINESS_INTERVAL = _get("SOURCESYNC_READINESS_INTERVAL", "readiness_interval",
                                       _DEFAULTS["readiness_interval"], cast=float)

        # Logging / metrics
        self.LOG_DIR = _get("SOURCESYNC_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])
        self.METRICS = _get_bool("SOURCESYNC_METRICS", "metrics", _DEFAULTS["metrics"])
        self.METRICS_DIR = _get("SOURCESYNC_METRICS_DIR", "metrics_dir",
                                _DEFAULTS["metrics_dir"])

        # Review UI
        self.REVIEW = _get("SOURCESYNC_REVIEW", "review", _DEFAULTS["review"]).lower()
        if self.REVIEW not in _REVIEW_MODES:
            self.REVIEW = _DEFAULTS["review"]

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
