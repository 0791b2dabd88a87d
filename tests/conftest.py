"""
git-dx — shared fixtures for tests driving real temporary git repositories.

Every test runs with an isolated ``HOME``/``XDG_CONFIG_HOME`` and a fixed
author identity so user-level git configuration can never leak in.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path

import pytest

from git_dx.observability import shutdown_logging


def run_git(
    cwd: Path, *args: str, check: bool = True, input_text: str | None = None
) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        text=True,
        input=input_text,
        capture_output=True,
        check=False,
    )
    if check and completed.returncode != 0:
        msg = (
            f"git command failed: git {' '.join(args)}\n"
            f"stdout:\n{completed.stdout}\nstderr:\n{completed.stderr}"
        )
        raise AssertionError(msg)
    return completed


class GitRepo:
    """Thin helper for building commit graphs in a scratch repository."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str, check: bool = True, input_text: str | None = None) -> str:
        return run_git(self.path, *args, check=check, input_text=input_text).stdout

    def rev(self, ref: str) -> str:
        return self.git("rev-parse", "--verify", ref).strip()

    def tree(self, ref: str) -> str:
        return self.rev(f"{ref}^{{tree}}")

    def message(self, ref: str) -> str:
        raw = self.git("cat-file", "commit", self.rev(ref))
        return raw.partition("\n\n")[2]

    def parents(self, ref: str) -> list[str]:
        return self.git("rev-parse", f"{ref}^@").split()

    def write(self, files: Mapping[str, str]) -> None:
        for rel_path, content in files.items():
            target = self.path / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

    def commit(self, message: str, files: Mapping[str, str] | None = None) -> str:
        self.write(files or {})
        self.git("add", "--all")
        self.git("commit", "--allow-empty", "--no-verify", "-q", "-F", "-", input_text=message)
        return self.rev("HEAD")

    def set_remote_branch(self, branch: str, oid: str, *, remote: str = "origin") -> None:
        self.git("update-ref", f"refs/remotes/{remote}/{branch}", oid)

    def head_branch(self) -> str | None:
        completed = run_git(self.path, "symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if completed.returncode != 0:
            return None
        return completed.stdout.strip()


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    home.mkdir()
    xdg.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Test Author")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "author@example.com")
    for name in [key for key in os.environ if key.startswith("GITDX_")]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    shutdown_logging()


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[str], GitRepo]:
    def factory(name: str = "repo") -> GitRepo:
        path = tmp_path / name
        path.mkdir()
        run_git(path, "init", "-q", "-b", "main")
        run_git(path, "config", "commit.gpgsign", "false")
        return GitRepo(path)

    return factory


@pytest.fixture
def repo(make_repo: Callable[[str], GitRepo]) -> GitRepo:
    return make_repo("repo")
