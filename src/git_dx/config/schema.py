"""
git-dx — configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules.
- Validate payloads and return structured errors (field path + message).
- Provide deterministic deep-merge helpers for layered loading.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from git_dx.constants import (
    BRANCH_PREFIX,
    BRANCH_TRAILER_KEY,
    CONFIG_SCHEMA_VERSION,
    DEFAULT_REMOTE,
    SOURCE_TRAILER_KEY,
    TRAILER_SEPARATOR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

# Trailer keys are ``git interpret-trailers`` tokens: no whitespace or separators.
_TRAILER_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*$")
# Git refname component rules, restricted to what a branch prefix sensibly holds.
_BRANCH_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]*$")
_REMOTE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class MetaConfig(TypedDict):
    schema_version: int


class TrailersConfig(TypedDict):
    branch_key: str
    source_key: str
    separator: str


class BranchesConfig(TypedDict):
    prefix: str


class RemoteConfig(TypedDict):
    name: str


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_file: NotRequired[str]


class GitDxConfig(TypedDict):
    meta: MetaConfig
    trailers: TrailersConfig
    branches: BranchesConfig
    remote: RemoteConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[GitDxConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "trailers": {
        "branch_key": BRANCH_TRAILER_KEY,
        "source_key": SOURCE_TRAILER_KEY,
        "separator": TRAILER_SEPARATOR,
    },
    "branches": {"prefix": BRANCH_PREFIX},
    "remote": {"name": DEFAULT_REMOTE},
    "observability": {"log_level": "WARNING", "log_format": "json"},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> GitDxConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade git-dx.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade git-dx"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())

    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise :class:`ConfigValidationError` on any issue."""

    result = validate_config(config)
    if not result.is_valid or result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    validators = {
        "meta": _validate_meta,
        "trailers": _validate_trailers,
        "branches": _validate_branches,
        "remote": _validate_remote,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, set(validators), "", issues)
    _require_keys(payload, set(validators), "", issues)

    out: dict[str, Any] = {}
    for name in sorted(validators):
        if name not in payload:
            continue
        section = _as_object(payload[name], name, issues)
        if section is None:
            continue
        out[name] = validators[name](section, name, issues)

    trailers = out.get("trailers")
    if isinstance(trailers, Mapping):
        branch_key = trailers.get("branch_key")
        if branch_key is not None and branch_key == trailers.get("source_key"):
            issues.add("trailers.source_key", "must differ from trailers.branch_key")
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        version = _as_int(payload["schema_version"], _join(path, "schema_version"), issues)
        if version is not None:
            if version != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(version))
            else:
                out["schema_version"] = version
    return out


def _validate_trailers(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"branch_key", "source_key", "separator"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in ("branch_key", "source_key"):
        if key not in payload:
            continue
        parsed = _as_pattern(
            payload[key],
            _join(path, key),
            issues,
            pattern=_TRAILER_KEY_PATTERN,
            hint="letters, digits, and '-' only",
        )
        if parsed is not None:
            out[key] = parsed

    if "separator" in payload:
        separator_path = _join(path, "separator")
        raw = payload["separator"]
        if not isinstance(raw, str):
            issues.add(separator_path, f"expected string, got {type(raw).__name__}")
        elif len(raw) != 1 or raw.isspace() or raw.isalnum():
            issues.add(separator_path, "must be a single punctuation character")
        else:
            out["separator"] = raw
    return out


def _validate_branches(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"prefix"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "prefix" in payload:
        parsed = _as_pattern(
            payload["prefix"],
            _join(path, "prefix"),
            issues,
            pattern=_BRANCH_PREFIX_PATTERN,
            hint="a valid branch name prefix",
        )
        if parsed is not None:
            if ".." in parsed or parsed.endswith(".lock"):
                issues.add(_join(path, "prefix"), "is not a valid branch name prefix")
            else:
                out["prefix"] = parsed
    return out


def _validate_remote(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"name"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "name" in payload:
        parsed = _as_pattern(
            payload["name"],
            _join(path, "name"),
            issues,
            pattern=_REMOTE_NAME_PATTERN,
            hint="a git remote name",
        )
        if parsed is not None:
            out["name"] = parsed
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, {"log_level", "log_format"}, path, issues)

    out: dict[str, Any] = {}

    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level

    if "log_format" in payload:
        parsed_log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if parsed_log_format is not None:
            out["log_format"] = parsed_log_format

    if "log_file" in payload:
        parsed_log_file = _as_str(payload["log_file"], _join(path, "log_file"), issues)
        if parsed_log_file is not None:
            if "\x00" in parsed_log_file:
                issues.add(_join(path, "log_file"), "must not contain NUL bytes")
            else:
                out["log_file"] = parsed_log_file

    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_pattern(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    pattern: re.Pattern[str],
    hint: str,
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not pattern.fullmatch(parsed):
        issues.add(path, f"invalid value {parsed!r}; expected {hint}")
        return None
    return parsed


def _as_int(value: object, path: str, issues: _IssueCollector) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


__all__ = [
    "DEFAULT_CONFIG",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "GitDxConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
