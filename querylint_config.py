"""Configuration file support for querylint.

Loads .querylint.yml from the project root (or specified path) and provides
the watched query object/methods, rule severity, path exclusions and the
inline suppression keyword.

Config format example:

    query:
      object: "linq"
      methods: ["execute", "executeWritable"]

    severity: "warning"

    exclude_paths:
      - "vendor/"
      - "test/"
      - "**/*.spec.js"

    suppression_keyword: "nolint"
"""

import os
import fnmatch
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import yaml


DEFAULT_OBJECT_NAME = "linq"
DEFAULT_METHOD_NAMES = ("execute", "executeWritable")
SEVERITIES = ("error", "warning", "info", "hint")
CONFIG_FILENAMES = (".querylint.yml", ".querylint.yaml")


class ConfigError(ValueError):
    """Raised when a config file contains invalid settings."""

    def __init__(self, message: str, path: Optional[str] = None, key: Optional[str] = None):
        self.path = path
        self.key = key
        where = path or "<config>"
        if key:
            where += f" [{key}]"
        super().__init__(f"{where}: {message}")


@dataclass(frozen=True)
class RuleConfig:
    """Which calls count as query calls."""
    object_name: str = DEFAULT_OBJECT_NAME
    method_names: Tuple[str, ...] = DEFAULT_METHOD_NAMES

    def with_overrides(self, object_name: str = None, method_names: List[str] = None) -> 'RuleConfig':
        return RuleConfig(
            object_name=object_name or self.object_name,
            method_names=tuple(method_names) if method_names else self.method_names,
        )


@dataclass
class QuerylintConfig:
    """Parsed configuration from .querylint.yml."""
    rule: RuleConfig = field(default_factory=RuleConfig)
    severity: str = "warning"
    exclude_paths: List[str] = field(default_factory=list)
    suppression_keyword: str = "nolint"
    source_path: Optional[str] = None

    def should_exclude(self, file_path: str) -> bool:
        """Check if a file path matches any exclusion pattern."""
        for pattern in self.exclude_paths:
            if fnmatch.fnmatch(file_path, pattern):
                return True
            # Also check if any path component matches
            if pattern.endswith('/') and pattern.rstrip('/') in file_path.split(os.sep):
                return True
        return False


def find_config(target_path: str) -> Optional[str]:
    """Walk up from target_path looking for a .querylint.yml file."""
    search_dir = os.path.abspath(target_path)
    if os.path.isfile(search_dir):
        search_dir = os.path.dirname(search_dir)

    while True:
        for name in CONFIG_FILENAMES:
            candidate = os.path.join(search_dir, name)
            if os.path.isfile(candidate):
                return candidate
        parent = os.path.dirname(search_dir)
        if parent == search_dir:
            return None  # Reached filesystem root
        search_dir = parent


def load_config(target_path: str, config_path: str = None) -> QuerylintConfig:
    """Load querylint configuration.

    Args:
        target_path: The scan target path (used to find .querylint.yml)
        config_path: Explicit config path (overrides auto-discovery)

    Returns:
        The parsed config, or the defaults when no file is found.

    Raises:
        ConfigError: if an explicit config_path does not exist or a file
            holds invalid settings.
    """
    if config_path:
        if not os.path.isfile(config_path):
            raise ConfigError("config file not found", path=config_path)
        return _parse_config(config_path)

    found = find_config(target_path)
    if found:
        return _parse_config(found)
    return QuerylintConfig()


def _parse_config(config_path: str) -> QuerylintConfig:
    """Parse a .querylint.yml file into a QuerylintConfig."""
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}", path=config_path) from e
    return parse_config_data(data, config_path)


def parse_config_data(data: dict, config_path: str = None) -> QuerylintConfig:
    """Build a QuerylintConfig from already-loaded YAML data."""
    if not isinstance(data, dict):
        raise ConfigError("top level must be a mapping", path=config_path)

    config = QuerylintConfig(source_path=config_path)

    # Parse query sink
    query = data.get('query', {})
    if not isinstance(query, dict):
        raise ConfigError("must be a mapping", path=config_path, key='query')
    object_name = query.get('object', DEFAULT_OBJECT_NAME)
    if not isinstance(object_name, str) or not object_name:
        raise ConfigError("must be a non-empty string", path=config_path, key='query.object')
    methods = query.get('methods', list(DEFAULT_METHOD_NAMES))
    if isinstance(methods, str):
        methods = [methods]
    if not isinstance(methods, list) or not methods:
        raise ConfigError("must be a non-empty list", path=config_path, key='query.methods')
    config.rule = RuleConfig(object_name=object_name, method_names=tuple(str(m) for m in methods))

    # Parse severity
    severity = str(data.get('severity', 'warning')).lower()
    if severity == 'warn':
        severity = 'warning'
    if severity not in SEVERITIES:
        raise ConfigError(f"unknown severity {severity!r}, expected one of {', '.join(SEVERITIES)}",
                          path=config_path, key='severity')
    config.severity = severity

    # Parse exclude_paths
    exclude = data.get('exclude_paths', [])
    if not isinstance(exclude, list):
        raise ConfigError("must be a list", path=config_path, key='exclude_paths')
    config.exclude_paths = [str(p) for p in exclude]

    config.suppression_keyword = str(data.get('suppression_keyword', 'nolint'))
    return config
