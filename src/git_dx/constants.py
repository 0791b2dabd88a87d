"""Stable constants shared by the integration plane, config defaults, and CLI."""

from __future__ import annotations

from typing import Final

# Provenance trailers written on every remote commit.
BRANCH_TRAILER_KEY: Final[str] = "wchargin-branch"
SOURCE_TRAILER_KEY: Final[str] = "wchargin-source"

# Separator used both to parse and to rewrite trailers.
TRAILER_SEPARATOR: Final[str] = ":"

# Remote branch name = prefix + branch trailer value.
BRANCH_PREFIX: Final[str] = "wchargin-"

DEFAULT_REMOTE: Final[str] = "origin"
DEFAULT_SOURCE_REVISION: Final[str] = "HEAD"

# Messages for generated integration commits; ``{label}`` is the unprefixed branch value.
UPDATE_DIFFBASE_MESSAGE: Final[str] = "[{label}: update diffbase]"
UPDATE_PATCH_MESSAGE: Final[str] = "[{label}: {summary}]\n"
DEFAULT_PATCH_SUMMARY: Final[str] = "update patch"
BUMP_CI_MESSAGE: Final[str] = "[{label}: bump ci]\n"
NO_OP_MESSAGE: Final[str] = "[{label}: no-op] [ci skip]\n"

CONFIG_SCHEMA_VERSION: Final[int] = 1

__all__ = [
    "BRANCH_PREFIX",
    "BRANCH_TRAILER_KEY",
    "BUMP_CI_MESSAGE",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_PATCH_SUMMARY",
    "DEFAULT_REMOTE",
    "DEFAULT_SOURCE_REVISION",
    "NO_OP_MESSAGE",
    "SOURCE_TRAILER_KEY",
    "TRAILER_SEPARATOR",
    "UPDATE_DIFFBASE_MESSAGE",
    "UPDATE_PATCH_MESSAGE",
]
