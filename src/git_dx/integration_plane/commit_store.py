"""Commit lookup with a per-invocation cache keyed by canonical object id."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from git_dx.errors import CommitCacheInvariantError, GitContractError, NoSuchCommitError
from git_dx.integration_plane.git_backend import is_oid, parse_oid

if TYPE_CHECKING:
    from git_dx.integration_plane.git_backend import GitBackend

# An object id, optionally navigated with ``~``/``^`` or peeled with ``^{commit}``.
# These always name the same commit; ``HEAD`` and branch names do not.
_IMMUTABLE_REFERENCE_RE = re.compile(
    r"^[0-9a-f]{40}(?:[0-9a-f]{24})?(?:[~^][0-9]*|\^\{commit\})*$"
)


@dataclass(frozen=True, slots=True)
class Commit:
    """Snapshot of a commit object."""

    oid: str
    parents: tuple[str, ...]
    tree: str
    message: str


class CommitStore:
    """Resolve references and read commits from one repository.

    Entries are stored once under their canonical id; references that are
    guaranteed to keep naming the same commit are remembered in a separate
    alias map pointing at that id.
    """

    def __init__(self, backend: GitBackend) -> None:
        self._backend = backend
        self._commits: dict[str, Commit] = {}
        self._aliases: dict[str, str] = {}

    @property
    def backend(self) -> GitBackend:
        return self._backend

    def __len__(self) -> int:
        return len(self._commits)

    def __contains__(self, oid: object) -> bool:
        return oid in self._commits

    def cached_oids(self) -> tuple[str, ...]:
        return tuple(sorted(self._commits))

    def resolve(self, reference: str) -> str | None:
        stdout = self._backend.rev_parse(reference)
        if stdout is None:
            return None
        oid = parse_oid(stdout)
        if oid is None:
            raise GitContractError(f"rev-parse returned success but stdout was: {stdout!r}")
        return oid

    def resolve_commit(self, reference: str) -> str | None:
        oid = self.resolve(reference)
        if oid is None:
            return None
        return self.resolve(f"{oid}^{{commit}}")

    def resolve_commit_required(self, reference: str) -> str:
        oid = self.resolve_commit(reference)
        if oid is None:
            raise NoSuchCommitError(reference)
        return oid

    def head(self) -> str:
        return self.resolve_commit_required("HEAD")

    def get_commit(self, reference: str) -> Commit:
        """Read a commit (maybe from cache).

        ``reference`` may be any commit reference: a full or abbreviated id, a
        navigation like ``OID~1^2``, or a movable name like ``HEAD``. It must
        not be misinterpretable as an option to ``git show`` (a leading ``-``).
        """
        cached = self._lookup(reference)
        if cached is not None:
            return cached

        commit = self._read_commit(reference)
        if reference != commit.oid and _IMMUTABLE_REFERENCE_RE.fullmatch(reference):
            self._aliases[reference] = commit.oid

        existing = self._commits.get(commit.oid)
        if existing is None:
            self._commits[commit.oid] = commit
            return commit
        if existing != commit:
            raise CommitCacheInvariantError(
                f"commit {commit.oid} read twice with different contents: "
                f"{existing!r} != {commit!r}"
            )
        return existing

    def _lookup(self, reference: str) -> Commit | None:
        commit = self._commits.get(reference)
        if commit is not None:
            return commit
        oid = self._aliases.get(reference)
        if oid is None:
            return None
        return self._commits[oid]

    def _read_commit(self, reference: str) -> Commit:
        stdout = self._backend.show_commit(reference)
        if stdout is None:
            raise NoSuchCommitError(reference)

        # The message is unconstrained, so peel fixed-format fields off the end.
        rest, oid = _split_last_line(stdout, reference, field="commit id")
        if not is_oid(oid) or self.resolve_commit(oid) != oid:
            # ``show`` succeeded on some other kind of object, e.g. a tree.
            raise NoSuchCommitError(reference)
        rest, tree = _split_last_line(rest, reference, field="tree id")
        message, parent_line = _split_last_line(rest, reference, field="parent list")
        parents = tuple(parent_line.split())

        return Commit(oid=oid, parents=parents, tree=tree, message=message)


def _split_last_line(text: str, reference: str, *, field: str) -> tuple[str, str]:
    head, newline, last = text.rpartition("\n")
    if not newline:
        raise GitContractError(f"show output for {reference!r} has no {field}: {text!r}")
    return head, last


__all__ = ["Commit", "CommitStore"]
