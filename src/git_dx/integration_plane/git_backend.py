"""Thin subprocess wrapper over the git CLI operations the integration engine consumes."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING

from git_dx.constants import TRAILER_SEPARATOR
from git_dx.errors import GitCommandError, GitContractError, GitInvocationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_OID_RE = re.compile(r"^[0-9a-f]{40}(?:[0-9a-f]{24})?$")

# Show format: free-form message, then one line each of parents, tree, and canonical id.
SHOW_COMMIT_FORMAT = "--pretty=format:%B%n%P%n%T%n%H"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result for a single git invocation."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def parse_oid(stdout: str) -> str | None:
    """Parse a single newline-terminated object id, as printed by ``rev-parse``."""
    if not stdout.endswith("\n"):
        return None
    candidate = stdout[:-1]
    if not _OID_RE.fullmatch(candidate):
        return None
    return candidate


def is_oid(value: str) -> bool:
    return bool(_OID_RE.fullmatch(value))


class GitBackend:
    """Blocking git CLI wrapper rooted at one repository working tree.

    Every method maps onto exactly one git invocation (or, for
    :meth:`commit_tree_with_trailers`, one two-process pipeline). Commands that
    must succeed raise :class:`GitCommandError`; commands whose failure carries
    meaning (``rev-parse``, ``show``, ``merge``) report it through their return
    value instead.
    """

    def __init__(
        self,
        repo_path: Path | str = ".",
        *,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).resolve()
        self._env_overrides = dict(env_overrides or {})

    def rev_parse(self, ref: str) -> str | None:
        """Return raw ``rev-parse --verify`` stdout, or ``None`` when git rejects ``ref``."""
        result = self._run_git(["rev-parse", "--verify", ref], check=False)
        if not result.ok:
            return None
        return result.stdout

    def show_commit(self, ref: str) -> str | None:
        """Return message, parents, tree, and id of ``ref`` in one round trip."""
        result = self._run_git(["show", "--no-patch", SHOW_COMMIT_FORMAT, ref], check=False)
        if not result.ok:
            return None
        return result.stdout

    def symbolic_head(self) -> str | None:
        """Return the short branch name HEAD points at, or ``None`` when detached."""
        result = self._run_git(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def checkout(self, ref: str) -> None:
        self._run_git(
            ["checkout", ref, "--"],
            summary=f"failed to check out {ref}",
        )

    def checkout_detached(self, oid: str) -> None:
        self._run_git(
            ["checkout", "--detach", oid],
            summary=f"failed to check out {oid}",
        )

    def merge(self, other: str, *, messages: Sequence[str]) -> bool:
        """Merge ``other`` into HEAD with resolution replay disabled.

        Returns ``False`` when git exits non-zero, which callers treat as
        conflicts left marked in the tree and index.
        """
        args = ["merge", "--no-ff", "--no-verify", "--no-edit", other]
        for message in messages:
            args.extend(["-m", message])
        result = self._run_git(args, config={"rerere.enabled": "false"}, check=False)
        if not result.ok:
            _logger.debug(
                "merge exited non-zero",
                extra={"other": other, "returncode": result.returncode},
            )
        return result.ok

    def stage_all(self) -> None:
        self._run_git(["add", "--all"], summary="failed to stage")

    def commit_no_edit(self) -> None:
        self._run_git(["commit", "--no-edit", "--no-verify"], summary="failed to commit merge")

    def parse_trailers(self, message: str, *, separator: str = TRAILER_SEPARATOR) -> str:
        """Return ``interpret-trailers --parse`` output: one ``key<sep> value`` per line."""
        result = self._run_git(
            ["interpret-trailers", "--parse", "--no-divider"],
            config={"trailer.separators": separator},
            input_text=message,
            summary="failed to parse trailers",
        )
        return result.stdout

    def rewrite_trailers(
        self,
        message: str,
        trailers: Sequence[tuple[str, str]],
        *,
        separator: str = TRAILER_SEPARATOR,
        if_exists: str = "replace",
    ) -> str:
        result = self._run_git(
            ["interpret-trailers", *_rewrite_args(trailers, separator, if_exists)],
            config={"trailer.separators": separator},
            input_text=message,
            summary="failed to rewrite trailers",
        )
        return result.stdout

    def commit_tree_with_trailers(
        self,
        tree: str,
        parents: Sequence[str],
        message: str,
        trailers: Sequence[tuple[str, str]],
        *,
        separator: str = TRAILER_SEPARATOR,
        if_exists: str = "replace",
    ) -> str:
        """Create a commit of ``tree`` whose message has ``trailers`` rewritten in.

        ``interpret-trailers`` stdout feeds ``commit-tree`` stdin directly. The
        message is written by a dedicated thread so this thread never blocks on
        a full pipe while the rewriter waits for its reader.
        """
        rewrite_args = ["interpret-trailers", *_rewrite_args(trailers, separator, if_exists)]
        rewrite_command = self._command(rewrite_args, config={"trailer.separators": separator})
        commit_args = ["commit-tree", tree]
        for parent in parents:
            commit_args.extend(["-p", parent])
        commit_command = self._command(commit_args)
        env = self._env()

        try:
            rewriter = subprocess.Popen(
                rewrite_command,
                cwd=self.repo_path,
                env=env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise GitInvocationError(f"failed to invoke git: {exc}") from exc

        assert rewriter.stdin is not None
        assert rewriter.stdout is not None
        assert rewriter.stderr is not None
        try:
            committer = subprocess.Popen(
                commit_command,
                cwd=self.repo_path,
                env=env,
                stdin=rewriter.stdout,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            rewriter.kill()
            rewriter.wait()
            raise GitInvocationError(f"failed to invoke git: {exc}") from exc
        # commit-tree now owns the read end.
        rewriter.stdout.close()

        payload = _encode(message)
        writer_error: OSError | None = None

        def feed(stream: IO[bytes]) -> None:
            nonlocal writer_error
            try:
                stream.write(payload)
                stream.close()
            except OSError as exc:
                writer_error = exc

        rewrite_stderr: list[bytes] = []
        writer = threading.Thread(
            target=feed, args=(rewriter.stdin,), name="git-dx-trailer-writer", daemon=True
        )
        drainer = threading.Thread(
            target=_drain,
            args=(rewriter.stderr, rewrite_stderr),
            name="git-dx-trailer-stderr",
            daemon=True,
        )
        writer.start()
        drainer.start()
        raw_stdout, raw_stderr = committer.communicate()
        commit_stdout = _decode(raw_stdout)
        commit_stderr = _decode(raw_stderr)
        writer.join()
        drainer.join()
        rewrite_returncode = rewriter.wait()

        if rewrite_returncode != 0:
            raise GitCommandError(
                command=rewrite_command,
                returncode=rewrite_returncode,
                stdout="",
                stderr=_decode(b"".join(rewrite_stderr)),
                summary="failed to rewrite trailers",
            )
        if writer_error is not None:
            raise GitInvocationError(
                f"failed to write commit message to git: {writer_error}"
            ) from writer_error
        if committer.returncode != 0:
            raise GitCommandError(
                command=commit_command,
                returncode=committer.returncode,
                stdout=commit_stdout,
                stderr=commit_stderr,
                summary="failed to create commit",
            )
        oid = parse_oid(commit_stdout)
        if oid is None:
            raise GitContractError(f"commit-tree gave bad output: {commit_stdout!r}")
        return oid

    def push(
        self,
        remote: str,
        oid: str,
        remote_ref: str,
        *,
        dry_run: bool = False,
    ) -> CommandResult:
        args = ["push"]
        if dry_run:
            args.append("--dry-run")
        args.extend([remote, f"{oid}:{remote_ref}"])
        return self._run_git(args, summary="failed to push")

    def _command(
        self,
        args: Sequence[str],
        *,
        config: Mapping[str, str] | None = None,
    ) -> tuple[str, ...]:
        settings = {"i18n.logOutputEncoding": "utf-8", **(config or {})}
        prefix: list[str] = ["git"]
        for key, value in settings.items():
            prefix.extend(["-c", f"{key}={value}"])
        return (*prefix, *args)

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.setdefault("GIT_MERGE_AUTOEDIT", "no")
        env.update(self._env_overrides)
        return env

    def _run_git(
        self,
        args: Sequence[str],
        *,
        config: Mapping[str, str] | None = None,
        check: bool = True,
        input_text: str | None = None,
        summary: str | None = None,
    ) -> CommandResult:
        command = self._command(args, config=config)
        _logger.debug("running git", extra={"command": list(command)})
        try:
            completed = subprocess.run(
                command,
                cwd=self.repo_path,
                env=self._env(),
                capture_output=True,
                input=None if input_text is None else _encode(input_text),
                check=False,
            )
        except OSError as exc:
            raise GitInvocationError(f"failed to invoke git: {exc}") from exc

        result = CommandResult(
            command=command,
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
        )

        if check and not result.ok:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
                summary=summary,
            )

        return result


def _rewrite_args(
    trailers: Sequence[tuple[str, str]], separator: str, if_exists: str
) -> list[str]:
    args = ["--no-divider", "--where", "end", "--if-exists", if_exists]
    for key, value in trailers:
        args.extend(["--trailer", f"{key}{separator} {value}"])
    return args


def _drain(stream: IO[bytes], sink: list[bytes]) -> None:
    sink.append(stream.read())
    stream.close()


def _encode(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _decode(raw: bytes) -> str:
    # No newline translation: commit messages may carry carriage returns.
    return raw.decode("utf-8", "surrogateescape")


__all__ = ["SHOW_COMMIT_FORMAT", "CommandResult", "GitBackend", "is_oid", "parse_oid"]
