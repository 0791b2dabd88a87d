"""
git-dx — unit tests for config schema validation.

Purpose
- Validate strict schema checks, structured issue paths, and deep merging.
"""

from __future__ import annotations

import pytest

from git_dx.config.schema import (
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _with(overlay: dict[str, object]) -> dict[str, object]:
    return merge_config(default_config(), overlay)


def _issue_paths(config: object) -> list[str]:
    return [issue.path for issue in validate_config(config).issues]


def test_default_config_is_valid_and_isolated() -> None:
    first = default_config()
    first["remote"]["name"] = "mutated"

    assert assert_valid_config(default_config())["remote"]["name"] == "origin"


def test_root_must_be_a_mapping() -> None:
    assert _issue_paths(["not", "a", "mapping"]) == ["<root>"]


def test_unknown_sections_and_keys_are_rejected() -> None:
    paths = _issue_paths(_with({"extra": {}, "remote": {"url": "x"}}))

    assert "extra" in paths
    assert "remote.url" in paths


def test_missing_required_key_is_reported() -> None:
    config = default_config()
    del config["trailers"]["source_key"]

    assert _issue_paths(config) == ["trailers.source_key"]


@pytest.mark.parametrize("separator", ["", "::", " ", "a", "7"])
def test_separator_must_be_single_punctuation(separator: str) -> None:
    assert _issue_paths(_with({"trailers": {"separator": separator}})) == ["trailers.separator"]


@pytest.mark.parametrize("separator", [":", "=", "#"])
def test_separator_accepts_punctuation(separator: str) -> None:
    assert assert_valid_config(_with({"trailers": {"separator": separator}}))["trailers"][
        "separator"
    ] == separator


@pytest.mark.parametrize("key", ["has space", "-leading", "colon:key", ""])
def test_trailer_keys_reject_invalid_tokens(key: str) -> None:
    assert _issue_paths(_with({"trailers": {"branch_key": key}})) == ["trailers.branch_key"]


def test_branch_and_source_keys_must_differ() -> None:
    config = _with({"trailers": {"branch_key": "Same-Key", "source_key": "Same-Key"}})

    assert _issue_paths(config) == ["trailers.source_key"]


@pytest.mark.parametrize("prefix", ["bad..prefix", "topic.lock", "-dash", "with space"])
def test_branch_prefix_must_be_ref_safe(prefix: str) -> None:
    assert _issue_paths(_with({"branches": {"prefix": prefix}})) == ["branches.prefix"]


def test_observability_enums_are_enforced() -> None:
    paths = _issue_paths(_with({"observability": {"log_level": "LOUD", "log_format": "xml"}}))

    assert sorted(paths) == ["observability.log_format", "observability.log_level"]


def test_schema_version_mismatch_includes_guidance() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(_with({"meta": {"schema_version": 0}}))

    assert "older than supported" in str(excinfo.value)
    assert migration_guidance(1) == "schema version is current"


def test_boolean_schema_version_is_not_an_integer() -> None:
    assert _issue_paths(_with({"meta": {"schema_version": True}})) == ["meta.schema_version"]


def test_merge_config_is_deep_and_non_mutating() -> None:
    base = default_config()
    merged = merge_config(base, {"trailers": {"separator": "="}})

    assert merged["trailers"]["separator"] == "="
    assert merged["trailers"]["branch_key"] == "wchargin-branch"
    assert base["trailers"]["separator"] == ":"
