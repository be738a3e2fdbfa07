"""
Configuration file loader for code2llm.

Supports loading configuration from:
- .code2llm.yaml / .code2llm.yml / code2llm.yaml
- .code2llm.toml / code2llm.toml

CLI flags override config file values.
"""

from __future__ import annotations

import importlib
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import Config, OutputSettings, Prompts

# Optional runtime modules (loaded via importlib); typed as Any to avoid stub issues.
tomllib: Any | None
yaml: Any | None

# Optional imports for config file parsing
try:
    import tomllib as _tomllib  # Python 3.11+
except ImportError:
    try:
        _tomllib = importlib.import_module("tomli")
    except ImportError:
        _tomllib = None
tomllib = _tomllib

try:
    yaml = importlib.import_module("yaml")
except ImportError:
    yaml = None


# Config file search order (first found wins)
CONFIG_FILE_NAMES = [
    ".code2llm.yaml",
    ".code2llm.yml",
    "code2llm.yaml",
    ".code2llm.toml",
    "code2llm.toml",
]

DEFAULT_CONFIG_FILE = ".code2llm.yaml"

_SECTION = "code2llm"


class ConfigError(Exception):
    """Raised when a config file cannot be read or holds invalid values."""


@dataclass
class ProjectConfig:
    """
    Project-level configuration loaded from config files.

    All fields are optional - CLI flags will override any values set here.
    """

    # Language tables
    language_map: dict[str, str] | None = None
    default_ignore: list[str] | None = None
    binary_extensions: list[str] | None = None
    non_code_extensions: list[str] | None = None

    # Filtering
    custom_patterns: list[str] | None = None
    custom_regex: list[str] | None = None
    respect_gitignore: bool | None = None
    max_file_bytes: int | None = None

    # Output options
    max_chars: int | None = None
    compress: bool | None = None
    ultra_compress: bool | None = None
    split_mode: str | None = None
    include_tree: bool | None = None
    output_prefix: str | None = None
    output_dir: Path | None = None
    min_continuation_chars: int | None = None

    # Markdown wording
    prompts: dict[str, Any] = field(default_factory=dict)

    # Source file path (for debugging)
    _config_file: Path | None = field(default=None, repr=False)

    @property
    def config_file(self) -> Path | None:
        return self._config_file

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary holding only the values that were set.

        Returns:
            A dict representation of the configuration with sorted keys.
        """
        result: dict[str, Any] = {}
        for name in (
            "language_map",
            "default_ignore",
            "binary_extensions",
            "non_code_extensions",
            "custom_patterns",
            "custom_regex",
            "respect_gitignore",
            "max_file_bytes",
            "max_chars",
            "compress",
            "ultra_compress",
            "split_mode",
            "include_tree",
            "output_prefix",
            "min_continuation_chars",
        ):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.output_dir is not None:
            result["output_dir"] = str(self.output_dir)
        if self.prompts:
            result["prompts"] = dict(sorted(self.prompts.items()))
        if self._config_file is not None:
            result["_loaded_from"] = str(self._config_file)
        return dict(sorted(result.items()))


def find_config_file(search_dir: Path) -> Path | None:
    """
    Find a configuration file in a project directory.

    Args:
        search_dir: Directory to search

    Returns:
        Path to the config file, or None if not found
    """
    for name in CONFIG_FILE_NAMES:
        config_path = search_dir / name
        if config_path.is_file():
            return config_path
    return None


def _unwrap_section(data: dict[str, Any]) -> dict[str, Any]:
    # Support both flat files and a nested [code2llm] section
    if _SECTION in data and isinstance(data[_SECTION], dict):
        return dict(data[_SECTION])
    return data


def _parse_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML config file into a dict.

    Raises:
        ConfigError: If TOML support is unavailable or the file is invalid.
    """
    if tomllib is None:
        raise ConfigError(
            "TOML support requires 'tomli' package (Python < 3.11) or Python 3.11+. "
            "Install with: pip install tomli"
        )

    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    return _unwrap_section(data)


def _parse_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML config file into a dict.

    Raises:
        ConfigError: If PyYAML is not installed or the file is invalid.
    """
    if yaml is None:
        raise ConfigError(
            "YAML support requires 'pyyaml' package. Install with: pip install pyyaml"
        )

    try:
        with open(path, encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return _unwrap_section(dict(raw_data))


def _normalize_list(values: Any, name: str) -> list[str] | None:
    """Normalize list input (comma-separated string or sequence) to a list of strings.

    Raises:
        ConfigError: If `values` is neither a string nor a sequence.
    """
    if values is None:
        return None
    if isinstance(values, str):
        values = [v.strip() for v in values.split(",")]
    if not isinstance(values, (list, tuple, set)):
        raise ConfigError(f"'{name}' must be a list, got {type(values).__name__}")
    return [str(v).strip() for v in values if str(v).strip()]


def _get(data: dict[str, Any], section: str, key: str) -> Any:
    """Read `key` from a nested section, falling back to the top level."""
    nested = data.get(section)
    if isinstance(nested, dict) and key in nested:
        return nested[key]
    return data.get(key)


def _as_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer, got {value!r}") from e


def _as_bool(value: Any) -> bool | None:
    return None if value is None else bool(value)


def load_config(search_dir: Path, config_path: Path | None = None) -> ProjectConfig:
    """
    Load configuration from a config file.

    Args:
        search_dir: Directory searched when no explicit path is given
        config_path: Explicit path to config file (optional)

    Returns:
        ProjectConfig with loaded values (unset values remain None).

    Raises:
        ConfigError: If an explicit config file is missing, or a config file cannot be
            read or parsed.
    """
    if config_path is None:
        config_path = find_config_file(search_dir)
        if config_path is None:
            return ProjectConfig()
    elif not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    try:
        if suffix == ".toml":
            data = _parse_toml(config_path)
        elif suffix in (".yml", ".yaml"):
            data = _parse_yaml(config_path)
        else:
            raise ConfigError(f"Unsupported config file type: {config_path.name}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    config = ProjectConfig(_config_file=config_path)

    language_map = data.get("language_map")
    if language_map is not None:
        if not isinstance(language_map, dict):
            raise ConfigError("'language_map' must be a mapping of extension to language")
        config.language_map = {str(k): str(v) for k, v in language_map.items()}

    config.default_ignore = _normalize_list(data.get("default_ignore"), "default_ignore")
    config.binary_extensions = _normalize_list(
        data.get("binary_extensions"), "binary_extensions"
    )
    config.non_code_extensions = _normalize_list(
        data.get("non_code_extensions"), "non_code_extensions"
    )

    custom_ignore = data.get("custom_ignore") or {}
    if not isinstance(custom_ignore, dict):
        raise ConfigError("'custom_ignore' must be a mapping with 'patterns' and 'regex'")
    config.custom_patterns = _normalize_list(
        custom_ignore.get("patterns"), "custom_ignore.patterns"
    )
    config.custom_regex = _normalize_list(custom_ignore.get("regex"), "custom_ignore.regex")
    config.respect_gitignore = _as_bool(data.get("respect_gitignore"))
    config.max_file_bytes = _as_int(data.get("max_file_bytes"), "max_file_bytes")

    # Output
    config.max_chars = _as_int(_get(data, "output", "max_chars"), "max_chars")
    config.compress = _as_bool(_get(data, "output", "compress"))
    config.ultra_compress = _as_bool(_get(data, "output", "ultra_compress"))
    split_mode = _get(data, "output", "split_mode")
    if split_mode is not None:
        config.split_mode = str(split_mode).lower()
    config.include_tree = _as_bool(_get(data, "output", "include_tree"))
    output_prefix = _get(data, "output", "output_prefix")
    if output_prefix is not None:
        config.output_prefix = str(output_prefix)
    config.min_continuation_chars = _as_int(
        _get(data, "output", "min_continuation_chars"), "min_continuation_chars"
    )
    output_dir = _get(data, "output", "output_dir")
    if output_dir is not None:
        config.output_dir = Path(output_dir)

    prompts = data.get("prompts") or {}
    if not isinstance(prompts, dict):
        raise ConfigError("'prompts' must be a mapping")
    config.prompts = dict(prompts)

    return config


def _pick(cli_value: Any, file_value: Any, default: Any) -> Any:
    """CLI wins over the config file, which wins over the default."""
    if cli_value is not None:
        return cli_value
    if file_value is not None:
        return file_value
    return default


def merge_cli_with_config(
    config: ProjectConfig,
    *,
    # CLI arguments (None means not specified on CLI)
    max_chars: int | None = None,
    compress: bool | None = None,
    ultra: bool = False,
    split_mode: str | None = None,
    include_tree: bool | None = None,
    output_prefix: str | None = None,
    exclude: list[str] | None = None,
    regex: list[str] | None = None,
    no_gitignore: bool = False,
    max_file_bytes: int | None = None,
) -> Config:
    """Merge CLI arguments with config file values (CLI wins).

    Args:
        config: Config loaded from file (may have unset values).
        max_chars: CLI character budget per segment (optional).
        compress: CLI compression switch (optional).
        ultra: CLI flag for ultra compression; implies compression.
        split_mode: CLI split mode override (optional).
        include_tree: CLI switch for the directory tree section (optional).
        output_prefix: CLI output file prefix (optional).
        exclude: Extra ignore patterns, appended to the configured ones.
        regex: Extra ignore regexes, appended to the configured ones.
        no_gitignore: CLI flag to disable `.gitignore` respect.
        max_file_bytes: CLI override for max file size (optional).

    Returns:
        The merged `Config` for the run.

    Raises:
        ConfigError: If the merged values are invalid.
    """
    defaults = Config()
    default_output = defaults.output

    ultra_compress = ultra or bool(config.ultra_compress)
    compress_value = _pick(compress, config.compress, default_output.compress)
    if ultra:
        compress_value = True

    custom_regex = [*(config.custom_regex or []), *(regex or [])]
    for expr in custom_regex:
        try:
            re.compile(expr)
        except re.error as e:
            raise ConfigError(f"Invalid ignore regex {expr!r}: {e}") from e

    try:
        output = OutputSettings(
            max_chars=_pick(max_chars, config.max_chars, default_output.max_chars),
            compress=compress_value,
            ultra_compress=ultra_compress,
            split_mode=_pick(split_mode, config.split_mode, default_output.split_mode),
            include_tree=_pick(include_tree, config.include_tree, default_output.include_tree),
            output_prefix=_pick(
                output_prefix, config.output_prefix, default_output.output_prefix
            ),
            min_continuation_chars=_pick(
                None, config.min_continuation_chars, default_output.min_continuation_chars
            ),
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e

    language_map = dict(config.language_map or {})

    return Config(
        language_map=language_map,
        default_ignore=_pick(None, config.default_ignore, defaults.default_ignore),
        binary_extensions=set(
            _pick(None, config.binary_extensions, defaults.binary_extensions)
        ),
        non_code_extensions=set(
            _pick(None, config.non_code_extensions, defaults.non_code_extensions)
        ),
        custom_patterns=[*(config.custom_patterns or []), *(exclude or [])],
        custom_regex=custom_regex,
        respect_gitignore=False if no_gitignore else _pick(
            None, config.respect_gitignore, defaults.respect_gitignore
        ),
        max_file_bytes=_pick(max_file_bytes, config.max_file_bytes, defaults.max_file_bytes),
        output=output,
        prompts=Prompts.from_dict(config.prompts),
    )


def dump_config(config: Config, output_dir: Path | None = None) -> str:
    """Render a configuration as YAML text.

    Args:
        config: Configuration to render.
        output_dir: Output directory to record alongside the output settings (optional).

    Raises:
        ConfigError: If PyYAML is unavailable.
    """
    if yaml is None:
        raise ConfigError(
            "YAML support requires 'pyyaml' package. Install with: pip install pyyaml"
        )

    data = config.to_dict()
    if output_dir is not None:
        data["output"]["output_dir"] = str(output_dir)
    text: str = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=100)
    return text


def save_config(config: Config, path: Path, output_dir: Path | None = None) -> Path:
    """Write a configuration as YAML.

    Returns:
        The written path.

    Raises:
        ConfigError: If PyYAML is unavailable or the file cannot be written.
    """
    text = dump_config(config, output_dir)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot write config file {path}: {e}") from e
    return path
