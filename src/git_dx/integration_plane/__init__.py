"""
Integration plane: commit lookup, provenance trailers, and the integration engine.

Everything here drives ``git`` through :class:`GitBackend`; no state outlives
one :class:`CommitStore`.
"""

from git_dx.integration_plane.commit_store import Commit, CommitStore
from git_dx.integration_plane.engine import (
    IntegrationEngine,
    IntegrationOptions,
    IntegrationResult,
    Outcome,
    integrate,
)
from git_dx.integration_plane.git_backend import CommandResult, GitBackend, parse_oid
from git_dx.integration_plane.trailers import (
    Duplicate,
    Missing,
    TrailerEngine,
    TrailerLookup,
    Unique,
    lookup,
    unique,
)

__all__ = [
    "CommandResult",
    "Commit",
    "CommitStore",
    "Duplicate",
    "GitBackend",
    "IntegrationEngine",
    "IntegrationOptions",
    "IntegrationResult",
    "Missing",
    "Outcome",
    "TrailerEngine",
    "TrailerLookup",
    "Unique",
    "integrate",
    "lookup",
    "parse_oid",
    "unique",
]
