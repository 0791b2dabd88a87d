"""
git-dx — runtime config loader.

Layers, lowest first: built-in defaults, ``git-dx.toml`` (parsed with
``tomllib``), ``GITDX_*`` environment variables, then CLI overrides. The file
layer is validated on its own before overrides are applied so that errors
point at the file; the merged result is validated again.

``observability.log_file`` is resolved relative to the directory holding the
config file (or the directory that was searched for one).
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from git_dx.config.schema import assert_valid_config, default_config, merge_config

DEFAULT_CONFIG_FILE: Final[str] = "git-dx.toml"
ENV_PREFIX: Final[str] = "GITDX_"

_LOG_FILE_KEY: Final[tuple[str, str]] = ("observability", "log_file")


def _as_text(raw: str) -> object:
    return raw.strip()


def _as_integer(raw: str) -> object:
    return int(raw.strip())


# Environment variable suffix -> (config key, coercion).
_ENV_FIELDS: Final[dict[str, tuple[tuple[str, str], Callable[[str], object]]]] = {
    "META_SCHEMA_VERSION": (("meta", "schema_version"), _as_integer),
    "TRAILERS_BRANCH_KEY": (("trailers", "branch_key"), _as_text),
    "TRAILERS_SOURCE_KEY": (("trailers", "source_key"), _as_text),
    "TRAILERS_SEPARATOR": (("trailers", "separator"), _as_text),
    "BRANCHES_PREFIX": (("branches", "prefix"), _as_text),
    "REMOTE_NAME": (("remote", "name"), _as_text),
    "OBSERVABILITY_LOG_LEVEL": (("observability", "log_level"), _as_text),
    "OBSERVABILITY_LOG_FORMAT": (("observability", "log_format"), _as_text),
    "OBSERVABILITY_LOG_FILE": (_LOG_FILE_KEY, _as_text),
}


class ConfigLoadError(ValueError):
    """The config file is unreadable or an environment override has the wrong type."""


def load_config(
    config_path: str | Path | None = None,
    *,
    search_dir: str | Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the effective, validated config.

    Without ``config_path``, ``git-dx.toml`` is looked up in ``search_dir``
    (default: the current directory) and silently skipped when absent. An
    explicit ``config_path`` must exist. ``cli_overrides`` maps dotted keys
    (``"remote.name"``) to values; ``None`` values are skipped so argparse
    defaults can be passed straight through.
    """

    if config_path is None:
        base = Path(search_dir) if search_dir is not None else Path.cwd()
        source = (base / DEFAULT_CONFIG_FILE).resolve()
        file_layer = _read_toml(source) if source.is_file() else {}
    else:
        source = Path(config_path).expanduser().resolve()
        if not source.exists():
            raise ConfigLoadError(f"config file not found: {source}")
        file_layer = _read_toml(source)

    effective = assert_valid_config(merge_config(default_config(), file_layer))

    overrides: dict[str, Any] = {}
    for dotted, value in _env_layer(os.environ if environ is None else environ):
        _assign(overrides, dotted, value)
    for dotted, value in sorted((cli_overrides or {}).items()):
        if value is not None:
            _assign(overrides, tuple(dotted.split(".")), value)

    effective = merge_config(effective, overrides)
    log_file = effective.get("observability", {}).get("log_file")
    if isinstance(log_file, str):
        effective["observability"]["log_file"] = _anchor_path(log_file, source.parent)
    return assert_valid_config(effective)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return deterministic JSON dump of the effective config."""

    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(environ: Mapping[str, str]) -> list[tuple[tuple[str, ...], object]]:
    layer: list[tuple[tuple[str, ...], object]] = []
    for suffix, (key, coerce) in sorted(_ENV_FIELDS.items()):
        name = ENV_PREFIX + suffix
        raw = environ.get(name)
        if raw is None:
            continue
        try:
            layer.append((key, coerce(raw)))
        except ValueError as exc:
            raise ConfigLoadError(f"{name} -> {'.'.join(key)} must be an integer") from exc
    return layer


def _assign(target: dict[str, Any], key: tuple[str, ...], value: object) -> None:
    if not key or not all(key):
        raise ConfigLoadError(f"invalid override key {'.'.join(key)!r}")
    *sections, leaf = key
    node = target
    for section in sections:
        node = node.setdefault(section, {})
    node[leaf] = value


def _anchor_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "dump_effective_config",
    "load_config",
]
