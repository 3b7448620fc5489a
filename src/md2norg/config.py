"""Configuration loader for md2norg runs."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Mapping, MutableMapping, Optional, Sequence

from md2norg.core.files import parse_extensions

CONFIG_FILENAME = "md2norg.toml"
CONFIG_ENV = "MD2NORG_CONFIG"
TEMPLATE_RESOURCE = "template.toml"
ENV_PREFIX = "MD2NORG_"

_DEFAULT_EXTENSIONS: tuple[str, ...] = ("md", "markdown")
_DEFAULT_TARGET_EXTENSION = "norg"
_DEFAULT_COLLISION = "overwrite"
_DEFAULT_LOG_LEVEL = "INFO"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class Md2NorgConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


class CollisionPolicy(Enum):
    """Strategies for outputs that already exist on disk."""

    OVERWRITE = "overwrite"
    SKIP = "skip"
    VERSION = "version"

    @classmethod
    def from_value(cls, value: str) -> "CollisionPolicy":
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        expected = ", ".join(member.value for member in cls)
        raise Md2NorgConfigError(
            f"Unknown collision policy '{value}'. Expected one of: {expected}."
        )


@dataclass(frozen=True)
class Md2NorgConfig:
    """Fully resolved configuration for a conversion run."""

    extensions: tuple[str, ...] = _DEFAULT_EXTENSIONS
    target_extension: str = _DEFAULT_TARGET_EXTENSION
    recursive: bool = False
    collision: CollisionPolicy = CollisionPolicy.OVERWRITE
    remove_source: bool = False
    list_indent_width: int = 1
    wiki_links: bool = False
    log_level: str = _DEFAULT_LOG_LEVEL
    log_file: Optional[Path] = None


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of file/env options."""

    extensions: Optional[Sequence[str]] = None
    recursive: Optional[bool] = None
    collision: Optional[CollisionPolicy] = None
    remove_source: Optional[bool] = None
    list_indent_width: Optional[int] = None
    wiki_links: Optional[bool] = None
    log_level: Optional[str] = None
    log_file: Optional[Path] = None


@dataclass(frozen=True)
class LoadResult:
    """Resolved configuration and the TOML file it came from, if any."""

    config: Md2NorgConfig
    config_path: Optional[Path]


def default_config_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Return the per-user config location honouring ``XDG_CONFIG_HOME``."""

    env_map = os.environ if env is None else env
    base = env_map.get("XDG_CONFIG_HOME", "").strip()
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / "md2norg" / CONFIG_FILENAME


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML defaults."""

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env

    requested_path = _resolve_config_path(
        config_path=config_path,
        env_map=env_map,
        default_path=default_config_path(env_map),
    )

    defaults = _default_table()
    loaded_path: Optional[Path]

    if requested_path.exists():
        loaded_path = requested_path
        _apply_file_table(defaults, _read_config_file(requested_path))
    else:
        loaded_path = None
        if config_path is not None or _has_env_config(env_map):
            raise Md2NorgConfigError(
                f"Config file not found: {requested_path}"
            )

    file_options = defaults

    extensions = _normalize_extensions(
        _pick_first(
            overrides.extensions,
            _parse_env_list(env_map, "EXTENSIONS"),
            file_options["discovery"]["extensions"],
        )
    )

    recursive = _resolve_bool(
        "discovery.recursive",
        overrides.recursive,
        _parse_env_bool(env_map, "RECURSIVE"),
        file_options["discovery"]["recursive"],
    )

    target_extension = _resolve_target_extension(
        file_options["output"]["target_extension"]
    )

    collision = _resolve_collision(
        overrides.collision,
        _parse_env_collision(env_map),
        file_options["output"]["collision"],
    )

    remove_source = _resolve_bool(
        "output.remove_source",
        overrides.remove_source,
        _parse_env_bool(env_map, "REMOVE_SOURCE"),
        file_options["output"]["remove_source"],
    )

    list_indent_width = _resolve_indent_width(
        _pick_first(
            overrides.list_indent_width,
            _parse_env_int(env_map, "LIST_INDENT_WIDTH"),
            file_options["conversion"]["list_indent_width"],
        )
    )

    wiki_links = _resolve_bool(
        "conversion.wiki_links",
        overrides.wiki_links,
        _parse_env_bool(env_map, "WIKI_LINKS"),
        file_options["conversion"]["wiki_links"],
    )

    log_level = _resolve_log_level(
        overrides.log_level,
        _parse_env_string(env_map, "LOG_LEVEL"),
        file_options["logging"]["level"],
    )

    log_file = _pick_first(
        overrides.log_file,
        _parse_env_path(env_map, "LOG_FILE"),
        _coerce_optional_path(file_options["logging"]["file"]),
    )

    config = Md2NorgConfig(
        extensions=extensions,
        target_extension=target_extension,
        recursive=recursive,
        collision=collision,
        remove_source=remove_source,
        list_indent_width=list_indent_width,
        wiki_links=wiki_links,
        log_level=log_level,
        log_file=log_file,
    )
    return LoadResult(config=config, config_path=loaded_path)


def read_config_template() -> str:
    """Return the packaged ``template.toml`` documenting every option."""

    resource = resources.files("md2norg").joinpath(TEMPLATE_RESOURCE)
    return resource.read_text(encoding="utf-8")


def write_config_template(path: Path, *, overwrite: bool = False) -> Path:
    """Write the packaged template to ``path`` for ``md2norg config init``."""

    if path.exists() and not overwrite:
        raise Md2NorgConfigError(f"Config already exists: {path}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(read_config_template(), encoding="utf-8")
    except OSError as exc:
        raise Md2NorgConfigError(
            f"Failed to write config {path}: {exc}"
        ) from exc
    return path


def _read_config_file(path: Path) -> Mapping[str, object]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except OSError as exc:
        raise Md2NorgConfigError(
            f"Failed to read config {path}: {exc}"
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise Md2NorgConfigError(f"Failed to parse {path}: {exc}") from exc


def _apply_file_table(
    table: MutableMapping[str, object],
    parsed: Mapping[str, object],
    prefix: str = "",
) -> None:
    # Only keys present in the defaults table are accepted.
    for key, value in parsed.items():
        name = prefix + key
        if key not in table:
            raise Md2NorgConfigError(f"Unknown configuration key '{name}'.")
        current = table[key]
        if isinstance(current, MutableMapping):
            if not isinstance(value, Mapping):
                raise Md2NorgConfigError(f"'{name}' must be a TOML table.")
            _apply_file_table(current, value, prefix=f"{name}.")
        else:
            table[key] = value


def _default_table() -> MutableMapping[str, MutableMapping[str, object]]:
    return {
        "discovery": {
            "extensions": list(_DEFAULT_EXTENSIONS),
            "recursive": False,
        },
        "output": {
            "target_extension": _DEFAULT_TARGET_EXTENSION,
            "collision": _DEFAULT_COLLISION,
            "remove_source": False,
        },
        "conversion": {
            "list_indent_width": 1,
            "wiki_links": False,
        },
        "logging": {"level": _DEFAULT_LOG_LEVEL, "file": None},
    }


def _resolve_config_path(
    *,
    config_path: Optional[Path],
    env_map: Mapping[str, str],
    default_path: Path,
) -> Path:
    if config_path is not None:
        return config_path.expanduser()
    env_candidate = env_map.get(CONFIG_ENV)
    if env_candidate and env_candidate.strip():
        return Path(env_candidate.strip()).expanduser()
    return default_path


def _has_env_config(env_map: Mapping[str, str]) -> bool:
    env_candidate = env_map.get(CONFIG_ENV)
    return bool(env_candidate and env_candidate.strip())


def _coerce_optional_path(value: object) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        return Path(raw).expanduser()
    raise Md2NorgConfigError("logging.file must be a string when provided.")


def _normalize_extensions(value: object) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise Md2NorgConfigError(
            "discovery.extensions must be a list of strings."
        )
    if any(not isinstance(item, str) for item in value):
        raise Md2NorgConfigError("Extensions must be strings.")
    result = parse_extensions(value, default=())
    if not result:
        raise Md2NorgConfigError(
            "At least one extension must be configured."
        )
    return result


def _resolve_target_extension(value: object) -> str:
    if not isinstance(value, str) or not value.strip().lstrip("."):
        raise Md2NorgConfigError(
            "output.target_extension must be a non-empty string."
        )
    return value.strip().lstrip(".").lower()


def _resolve_collision(
    override: Optional[CollisionPolicy],
    env_value: Optional[CollisionPolicy],
    file_value: object,
) -> CollisionPolicy:
    if override is not None:
        return override
    if env_value is not None:
        return env_value
    if isinstance(file_value, CollisionPolicy):
        return file_value
    if isinstance(file_value, str):
        return CollisionPolicy.from_value(file_value)
    raise Md2NorgConfigError(
        "output.collision must be one of: overwrite, skip, version."
    )


def _resolve_bool(
    key: str,
    override: Optional[bool],
    env_value: Optional[bool],
    file_value: object,
) -> bool:
    candidate = _pick_first(override, env_value, file_value)
    if not isinstance(candidate, bool):
        raise Md2NorgConfigError(f"{key} must be a boolean.")
    return candidate


def _resolve_indent_width(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise Md2NorgConfigError(
            "conversion.list_indent_width must be an integer."
        )
    if value < 1:
        raise Md2NorgConfigError(
            "conversion.list_indent_width must be at least 1."
        )
    return value


def _resolve_log_level(
    override: Optional[str],
    env_value: Optional[str],
    file_value: object,
) -> str:
    candidate = _pick_first(override, env_value, file_value)
    if candidate is None:
        raise Md2NorgConfigError("logging.level must be provided.")
    if not isinstance(candidate, str):
        raise Md2NorgConfigError("logging.level must be a string.")
    level = candidate.strip()
    if not level:
        raise Md2NorgConfigError(
            "logging.level must be a non-empty string."
        )
    return level.upper()


def _parse_env_list(
    env_map: Mapping[str, str], key: str
) -> Optional[Sequence[str]]:
    raw = _parse_env_string(env_map, key)
    if raw is None:
        return None
    parts = [part for part in raw.replace(",", " ").split() if part]
    return parts or None


def _parse_env_collision(
    env_map: Mapping[str, str],
) -> Optional[CollisionPolicy]:
    raw = _parse_env_string(env_map, "COLLISION")
    if raw is None:
        return None
    return CollisionPolicy.from_value(raw)


def _parse_env_bool(env_map: Mapping[str, str], key: str) -> Optional[bool]:
    raw = _parse_env_string(env_map, key)
    if raw is None:
        return None
    normalized = raw.lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise Md2NorgConfigError(
        f"{ENV_PREFIX}{key} must be a boolean (true/false), got '{raw}'."
    )


def _parse_env_int(env_map: Mapping[str, str], key: str) -> Optional[int]:
    raw = _parse_env_string(env_map, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise Md2NorgConfigError(
            f"{ENV_PREFIX}{key} must be an integer, got '{raw}'."
        ) from exc


def _parse_env_path(env_map: Mapping[str, str], key: str) -> Optional[Path]:
    raw = _parse_env_string(env_map, key)
    if raw is None:
        return None
    return Path(raw).expanduser()


def _parse_env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _pick_first(*candidates: object) -> object:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None
