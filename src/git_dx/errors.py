"""Error taxonomy shared by the commit store, trailer engine, and integration engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class GitDxError(RuntimeError):
    """Base error for integration failures."""


class NoSuchCommitError(GitDxError):
    """A user-provided commit reference does not name a commit."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"no such commit: {reference}")


class TrailerError(GitDxError):
    """A commit message has malformed provenance trailers."""

    def __init__(self, message: str, *, oid: str, key: str) -> None:
        self.oid = oid
        self.key = key
        super().__init__(message)


class MissingTrailerError(TrailerError):
    """A commit message is expected to carry a trailer with ``key`` but does not."""

    def __init__(self, *, oid: str, key: str) -> None:
        super().__init__(f"commit {oid} has no {key!r} trailer", oid=oid, key=key)


class DuplicateTrailerError(TrailerError):
    """A commit message carries more than one trailer with ``key``."""

    def __init__(self, *, oid: str, key: str) -> None:
        super().__init__(f"commit {oid} has more than one {key!r} trailer", oid=oid, key=key)


class GitContractError(GitDxError):
    """``git`` behaved unexpectedly, e.g. exited zero without printing an object id."""


class GitCommandError(GitContractError):
    """A git subprocess that must succeed exited non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
        summary: str | None = None,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        head = summary if summary is not None else f"git command failed ({returncode})"
        message = f"{head}: {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class GitInvocationError(GitDxError):
    """The ``git`` executable could not be invoked at all."""


class CommitCacheInvariantError(AssertionError):
    """Two reads of the same commit object disagreed; always a bug."""


__all__ = [
    "CommitCacheInvariantError",
    "DuplicateTrailerError",
    "GitCommandError",
    "GitContractError",
    "GitDxError",
    "GitInvocationError",
    "MissingTrailerError",
    "NoSuchCommitError",
    "TrailerError",
]
