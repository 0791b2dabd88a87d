"""
git-dx — test suite for trailer lookup and the trailer engine.

Purpose
- Validate Missing/Unique/Duplicate classification (including property tests)
  and extraction/rewriting through ``git interpret-trailers``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from git_dx.errors import DuplicateTrailerError, GitContractError, MissingTrailerError
from git_dx.integration_plane.commit_store import Commit
from git_dx.integration_plane.git_backend import GitBackend
from git_dx.integration_plane.trailers import (
    Duplicate,
    Missing,
    TrailerEngine,
    Unique,
    lookup,
    unique,
)

if TYPE_CHECKING:
    from tests.conftest import GitRepo

OID = "0123456789abcdef0123456789abcdef01234567"

_KEYS = st.sampled_from(("wchargin-branch", "wchargin-source", "Signed-off-by"))
_VALUES = st.text(alphabet="abcdefghij-_/0123456789", min_size=1, max_size=12)


def _engine(repo: GitRepo, **kwargs: str) -> TrailerEngine:
    return TrailerEngine(GitBackend(repo.path), **kwargs)


def _commit(message: str) -> Commit:
    return Commit(oid=OID, parents=(), tree="f" * 40, message=message)


@given(trailers=st.lists(st.tuples(_KEYS, _VALUES), max_size=6))
@settings(
    max_examples=60,
    derandomize=True,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
def test_property_lookup_classifies_by_occurrence_count(trailers: list[tuple[str, str]]) -> None:
    key = "wchargin-branch"
    values = [value for trailer_key, value in trailers if trailer_key == key]

    found = lookup(key, trailers)

    if not values:
        assert found == Missing(key)
    elif len(values) == 1:
        assert found == Unique(key, values[0])
    else:
        assert found == Duplicate(key)


@given(extra=st.lists(_VALUES, min_size=1, max_size=4), value=_VALUES)
@settings(
    max_examples=30,
    derandomize=True,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
def test_property_duplicate_absorbs_further_matches(extra: list[str], value: str) -> None:
    found = Unique("k", value).plus(extra[0])
    for item in extra[1:]:
        found = found.plus(item)
    assert found == Duplicate("k")


def test_unique_raises_typed_errors_naming_oid_and_key() -> None:
    assert unique(Unique("k", "v"), OID) == "v"

    with pytest.raises(MissingTrailerError) as missing:
        unique(Missing("k"), OID)
    assert (missing.value.oid, missing.value.key) == (OID, "k")
    assert OID in str(missing.value)

    with pytest.raises(DuplicateTrailerError) as duplicate:
        unique(Duplicate("k"), OID)
    assert (duplicate.value.oid, duplicate.value.key) == (OID, "k")


def test_engine_rejects_multi_character_separator(repo: GitRepo) -> None:
    with pytest.raises(ValueError, match="one character"):
        _engine(repo, separator="::")


def test_extract_returns_trailers_in_order(repo: GitRepo) -> None:
    engine = _engine(repo)
    message = (
        "Add widget\n\n"
        "Body mentioning key: value in prose.\n\n"
        "wchargin-branch: widget\n"
        "Signed-off-by: A U Thor <author@example.com>\n"
    )

    assert engine.extract(message) == [
        ("wchargin-branch", "widget"),
        ("Signed-off-by", "A U Thor <author@example.com>"),
    ]


def test_extract_without_trailer_block_is_empty(repo: GitRepo) -> None:
    assert _engine(repo).extract("just a summary\n") == []


def test_extract_uses_configured_separator(repo: GitRepo) -> None:
    engine = _engine(repo, separator="=")

    assert engine.extract("summary\n\nwchargin-branch= topic=x\n") == [
        ("wchargin-branch", "topic=x")
    ]


def test_extract_rejects_lines_without_separator(
    repo: GitRepo, monkeypatch: pytest.MonkeyPatch
) -> None:
    backend = GitBackend(repo.path)
    monkeypatch.setattr(backend, "parse_trailers", lambda message, *, separator: "garbage\n")
    engine = TrailerEngine(backend)

    with pytest.raises(GitContractError, match="garbage"):
        engine.extract("summary\n")


def test_rewrite_then_extract_holds_exactly_one_of_each(repo: GitRepo) -> None:
    engine = _engine(repo)
    message = "summary\n\nwchargin-branch: topic\nwchargin-source: stale\n"

    rewritten = engine.rewrite(
        message, [("wchargin-branch", "topic"), ("wchargin-source", OID)]
    )

    assert engine.lookup("wchargin-branch", rewritten) == Unique("wchargin-branch", "topic")
    assert engine.lookup("wchargin-source", rewritten) == Unique("wchargin-source", OID)


_OTHER_TRAILERS = st.tuples(st.sampled_from(("Reviewed-by", "Acked-by", "Signed-off-by")), _VALUES)
_PROVENANCE_TRAILERS = st.tuples(st.sampled_from(("wchargin-branch", "wchargin-source")), _VALUES)


@given(trailers=st.lists(st.one_of(_OTHER_TRAILERS, _PROVENANCE_TRAILERS), max_size=8))
@settings(
    max_examples=25,
    derandomize=True,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
def test_property_rewrite_keeps_other_trailers_in_order(
    repo: GitRepo, trailers: list[tuple[str, str]]
) -> None:
    engine = _engine(repo)
    block = "".join(f"{key}: {value}\n" for key, value in trailers)
    message = f"summary\n\n{block}" if block else "summary\n"
    replacements = [("wchargin-branch", "topic"), ("wchargin-source", OID)]

    rewritten = engine.rewrite(message, replacements)

    others = [
        trailer for trailer in trailers if trailer[0] not in ("wchargin-branch", "wchargin-source")
    ]
    assert engine.extract(rewritten) == [*others, *replacements]


def test_rewrite_replaces_every_repeated_occurrence(repo: GitRepo) -> None:
    engine = _engine(repo)
    message = (
        "summary\n\n"
        "wchargin-source: old1\n"
        "  continued\n"
        "Acked-by: someone\n"
        "wchargin-source: old2\n"
    )

    rewritten = engine.rewrite(message, [("wchargin-source", OID)])

    assert rewritten == f"summary\n\nAcked-by: someone\nwchargin-source: {OID}\n"


def test_rewrite_appends_trailer_block_to_plain_message(repo: GitRepo) -> None:
    engine = _engine(repo)

    rewritten = engine.rewrite("[topic: update patch]\n", [("wchargin-branch", "topic")])

    assert rewritten == "[topic: update patch]\n\nwchargin-branch: topic\n"


def test_branch_name_applies_prefix(repo: GitRepo) -> None:
    engine = _engine(repo)

    assert engine.branch_name(_commit("x\n\nwchargin-branch: topic\n")) == "wchargin-topic"
    assert engine.branch_value(_commit("x\n\nwchargin-branch: topic\n")) == "topic"
    assert engine.branch_name(_commit("no trailers\n")) is None


def test_branch_name_honors_custom_key_and_prefix(repo: GitRepo) -> None:
    engine = _engine(repo, branch_key="Review-Branch", branch_prefix="rv/")

    assert engine.branch_name(_commit("x\n\nReview-Branch: topic\n")) == "rv/topic"


def test_branch_name_propagates_duplicates(repo: GitRepo) -> None:
    engine = _engine(repo)
    message = "x\n\nwchargin-branch: one\nwchargin-branch: two\n"

    with pytest.raises(DuplicateTrailerError):
        engine.branch_name(_commit(message))
