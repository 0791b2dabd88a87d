"""
Integration engine: turn a local change commit into a pushable remote commit.

The engine works on one source commit whose diff against its (sole) parent is
the full change, and whose message carries a branch trailer naming the remote
branch. It:

1. checks out the remote target branch, or (if none exists) the remote
   diffbase, which falls back to the local diffbase when the parent change has
   not been pushed;
2. merges in the remote diffbase, committing conflicts as they stand;
3. commits the source tree on top, unless nothing changed and no empty commit
   was requested.

The resulting commit is tree-equal to the source commit and is left checked
out. On failure the state of the work tree and index is undefined; callers
restore their own checkout.

Decision logs go through ``structlog``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from git_dx.constants import (
    BUMP_CI_MESSAGE,
    DEFAULT_PATCH_SUMMARY,
    DEFAULT_REMOTE,
    NO_OP_MESSAGE,
    SOURCE_TRAILER_KEY,
    UPDATE_DIFFBASE_MESSAGE,
    UPDATE_PATCH_MESSAGE,
)
from git_dx.integration_plane.trailers import TrailerEngine, unique

if TYPE_CHECKING:
    from git_dx.integration_plane.commit_store import Commit, CommitStore


class Outcome(StrEnum):
    """Which kind of history an integration produced."""

    NEW_BRANCH = "new_branch"
    NO_OP = "no_op"
    PATCH_UPDATE = "patch_update"
    EMPTY_COMMIT = "empty_commit"
    BUMP = "bump"


@dataclass(frozen=True, slots=True)
class IntegrationOptions:
    """Per-invocation knobs.

    ``bump`` only picks the message of an empty commit; whether one is created
    at all is up to ``allow_empty``.
    """

    remote: str = DEFAULT_REMOTE
    allow_empty: bool = False
    bump: bool = False
    message: str | None = None


@dataclass(frozen=True, slots=True)
class IntegrationResult:
    """Integrated commit plus the remote branch it belongs on."""

    remote_commit: str
    target_branch: str
    outcome: Outcome
    remote_diffbase: str
    merged_diffbase: bool
    conflicted: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "remote_commit": self.remote_commit,
            "target_branch": self.target_branch,
            "outcome": self.outcome.value,
            "remote_diffbase": self.remote_diffbase,
            "merged_diffbase": self.merged_diffbase,
            "conflicted": self.conflicted,
        }


class IntegrationEngine:
    """Compute and check out the remote commit for a source commit."""

    def __init__(
        self,
        store: CommitStore,
        trailers: TrailerEngine | None = None,
        *,
        source_key: str = SOURCE_TRAILER_KEY,
        logger: Any | None = None,
    ) -> None:
        self._store = store
        self._git = store.backend
        self._trailers = trailers if trailers is not None else TrailerEngine(store.backend)
        self._source_key = source_key
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def remote_branch_oid(self, remote: str, branch: str) -> str | None:
        return self._store.resolve(f"refs/remotes/{remote}/{branch}")

    def integrate(
        self,
        source: Commit,
        options: IntegrationOptions | None = None,
    ) -> IntegrationResult:
        opts = options if options is not None else IntegrationOptions()
        branch_key = self._trailers.branch_key

        label = unique(self._trailers.lookup(branch_key, source.message), source.oid)
        target_branch = f"{self._trailers.branch_prefix}{label}"

        local_diffbase = self._store.get_commit(f"{source.oid}~^{{commit}}")
        remote_diffbase = local_diffbase.oid
        diffbase_branch = self._trailers.branch_name(local_diffbase)
        if diffbase_branch is not None:
            pushed = self.remote_branch_oid(opts.remote, diffbase_branch)
            if pushed is not None:
                remote_diffbase = pushed

        target_tip = self.remote_branch_oid(opts.remote, target_branch)
        new_branch = target_tip is None
        merge_head = remote_diffbase if target_tip is None else target_tip
        self._logger.debug(
            "integration_plan",
            source=source.oid,
            target_branch=target_branch,
            local_diffbase=local_diffbase.oid,
            remote_diffbase=remote_diffbase,
            merge_head=merge_head,
            new_branch=new_branch,
        )

        self._git.checkout_detached(merge_head)

        head_before_merge = self._store.head()
        clean = self._git.merge(
            remote_diffbase,
            messages=(
                UPDATE_DIFFBASE_MESSAGE.format(label=label),
                self._provenance_footer(label, source.oid),
            ),
        )
        if not clean:
            # Assume conflicts; commit them as they stand.
            self._git.stage_all()
            self._git.commit_no_edit()

        base = self._store.get_commit("HEAD")
        same_tree = source.tree == base.tree

        if same_tree and not opts.allow_empty:
            outcome = Outcome.NO_OP
            remote_commit = base.oid
        else:
            outcome, message = self._patch_message(
                source,
                label=label,
                new_branch=new_branch,
                same_tree=same_tree,
                opts=opts,
            )
            remote_commit = self._trailers.commit_with_trailers(
                source.tree,
                [base.oid],
                message,
                [(branch_key, label), (self._source_key, source.oid)],
            )
            self._git.checkout_detached(remote_commit)

        result = IntegrationResult(
            remote_commit=remote_commit,
            target_branch=target_branch,
            outcome=outcome,
            remote_diffbase=remote_diffbase,
            merged_diffbase=base.oid != head_before_merge,
            conflicted=not clean,
        )
        self._logger.info("integration_complete", source=source.oid, **result.to_dict())
        return result

    def integrate_reference(
        self,
        reference: str,
        options: IntegrationOptions | None = None,
    ) -> IntegrationResult:
        return self.integrate(self._store.get_commit(reference), options)

    def _provenance_footer(self, label: str, source_oid: str) -> str:
        sep = self._trailers.separator
        return (
            f"{self._trailers.branch_key}{sep} {label}\n"
            f"{self._source_key}{sep} {source_oid}"
        )

    def _patch_message(
        self,
        source: Commit,
        *,
        label: str,
        new_branch: bool,
        same_tree: bool,
        opts: IntegrationOptions,
    ) -> tuple[Outcome, str]:
        if new_branch:
            return Outcome.NEW_BRANCH, source.message
        if same_tree and opts.bump:
            return Outcome.BUMP, BUMP_CI_MESSAGE.format(label=label)
        if same_tree:
            return Outcome.EMPTY_COMMIT, NO_OP_MESSAGE.format(label=label)
        summary = opts.message if opts.message is not None else DEFAULT_PATCH_SUMMARY
        return Outcome.PATCH_UPDATE, UPDATE_PATCH_MESSAGE.format(label=label, summary=summary)


def integrate(
    store: CommitStore,
    source: Commit,
    options: IntegrationOptions | None = None,
    *,
    trailers: TrailerEngine | None = None,
) -> IntegrationResult:
    """Run one integration with a fresh engine over ``store``."""
    return IntegrationEngine(store, trailers).integrate(source, options)


__all__ = [
    "IntegrationEngine",
    "IntegrationOptions",
    "IntegrationResult",
    "Outcome",
    "integrate",
]
