"""Commit-message trailer extraction, lookup, and rewriting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from git_dx.constants import BRANCH_PREFIX, BRANCH_TRAILER_KEY, TRAILER_SEPARATOR
from git_dx.errors import DuplicateTrailerError, GitContractError, MissingTrailerError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from git_dx.integration_plane.commit_store import Commit
    from git_dx.integration_plane.git_backend import GitBackend

Trailer = tuple[str, str]


@dataclass(frozen=True, slots=True)
class Missing:
    key: str

    def plus(self, value: str) -> TrailerLookup:
        return Unique(self.key, value)


@dataclass(frozen=True, slots=True)
class Unique:
    key: str
    value: str

    def plus(self, value: str) -> TrailerLookup:
        return Duplicate(self.key)


@dataclass(frozen=True, slots=True)
class Duplicate:
    key: str

    def plus(self, value: str) -> TrailerLookup:
        return self


TrailerLookup = Missing | Unique | Duplicate


def lookup(key: str, trailers: Iterable[Trailer]) -> TrailerLookup:
    """Fold every trailer with ``key`` into a :data:`TrailerLookup`."""
    found: TrailerLookup = Missing(key)
    for trailer_key, value in trailers:
        if trailer_key != key:
            continue
        found = found.plus(value)
        if isinstance(found, Duplicate):
            break
    return found


def unique(found: TrailerLookup, oid: str) -> str:
    """Return the value of a unique trailer, naming ``oid`` in the error otherwise."""
    if isinstance(found, Unique):
        return found.value
    if isinstance(found, Missing):
        raise MissingTrailerError(oid=oid, key=found.key)
    raise DuplicateTrailerError(oid=oid, key=found.key)


class TrailerEngine:
    """Trailer operations sharing one separator configuration.

    Parsing and rewriting are both delegated to ``git interpret-trailers`` and
    both receive ``separator`` from this object, so the two can never disagree.
    """

    def __init__(
        self,
        backend: GitBackend,
        *,
        separator: str = TRAILER_SEPARATOR,
        branch_key: str = BRANCH_TRAILER_KEY,
        branch_prefix: str = BRANCH_PREFIX,
    ) -> None:
        if len(separator) != 1:
            raise ValueError(f"trailer separator must be one character, got {separator!r}")
        self._backend = backend
        self.separator = separator
        self.branch_key = branch_key
        self.branch_prefix = branch_prefix

    def extract(self, message: str) -> list[Trailer]:
        output = self._backend.parse_trailers(message, separator=self.separator)
        trailers: list[Trailer] = []
        for line in output.split("\n"):
            if not line:
                continue
            key, sep, value = line.partition(self.separator)
            if not sep:
                raise GitContractError(f"interpret-trailers emitted line: {line!r}")
            trailers.append((key, value.removeprefix(" ")))
        return trailers

    def lookup(self, key: str, message: str) -> TrailerLookup:
        return lookup(key, self.extract(message))

    def rewrite(
        self,
        message: str,
        replacements: Sequence[Trailer],
        *,
        if_exists: str = "replace",
    ) -> str:
        return self._backend.rewrite_trailers(
            self._keep_last_occurrence(message, [key for key, _ in replacements]),
            replacements,
            separator=self.separator,
            if_exists=if_exists,
        )

    def commit_with_trailers(
        self,
        tree: str,
        parents: Sequence[str],
        message: str,
        replacements: Sequence[Trailer],
    ) -> str:
        """Rewrite ``replacements`` into ``message`` and commit ``tree`` with it, in one pipe."""
        return self._backend.commit_tree_with_trailers(
            tree,
            parents,
            self._keep_last_occurrence(message, [key for key, _ in replacements]),
            replacements,
            separator=self.separator,
        )

    def branch_value(self, commit: Commit) -> str | None:
        """Return the unprefixed branch trailer value, ``None`` when absent."""
        found = self.lookup(self.branch_key, commit.message)
        if isinstance(found, Missing):
            return None
        return unique(found, commit.oid)

    def branch_name(self, commit: Commit) -> str | None:
        value = self.branch_value(commit)
        if value is None:
            return None
        return f"{self.branch_prefix}{value}"

    def _keep_last_occurrence(self, message: str, keys: Sequence[str]) -> str:
        # ``--if-exists replace`` drops one occurrence of a key; trim the others first.
        present = self.extract(message)
        repeated = {key for key in keys if isinstance(lookup(key, present), Duplicate)}
        if not repeated:
            return message
        return _drop_earlier_trailers(message, repeated, self.separator)


def _drop_earlier_trailers(message: str, keys: set[str], separator: str) -> str:
    """Remove all but the last trailer for each of ``keys`` from the final paragraph.

    Continuation lines (leading whitespace) go with the trailer they follow.
    Everything else, including line endings, is left byte for byte.
    """
    lines = message.split("\n")
    end = len(lines)
    while end and not lines[end - 1].strip():
        end -= 1
    start = end
    while start and lines[start - 1].strip():
        start -= 1
    block = lines[start:end]

    owners: list[tuple[str | None, int]] = []
    owner: tuple[str | None, int] = (None, -1)
    for offset, line in enumerate(block):
        if owner[1] < 0 or not line[:1].isspace():
            token, sep, _ = line.partition(separator)
            owner = (token.strip() if sep else None, offset)
        owners.append(owner)

    last = {key: offset for key, offset in owners if key in keys}
    kept = [
        line
        for line, (key, offset) in zip(block, owners, strict=True)
        if key not in keys or offset == last[key]
    ]
    return "\n".join([*lines[:start], *kept, *lines[end:]])


__all__ = [
    "Duplicate",
    "Missing",
    "Trailer",
    "TrailerEngine",
    "TrailerLookup",
    "Unique",
    "lookup",
    "unique",
]
