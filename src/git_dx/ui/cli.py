"""Command-line interface for git-dx."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from git_dx import __version__
from git_dx.config import ConfigLoadError, ConfigValidationError, load_config
from git_dx.constants import DEFAULT_SOURCE_REVISION
from git_dx.integration_plane import (
    CommitStore,
    GitBackend,
    IntegrationEngine,
    IntegrationOptions,
    IntegrationResult,
    TrailerEngine,
)
from git_dx.observability import (
    correlation_scope,
    redact_text,
    setup_logging,
    shutdown_logging,
)

SUCCESS_MESSAGE: Final[str] = "successfully integrated"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the single integrate workflow."""

    parser = argparse.ArgumentParser(
        prog="git-dx",
        description=(
            "Integrate a local change commit into its remote review branch.\n\n"
            "The commit's message must carry a branch trailer; the result is a\n"
            "commit on top of the remote branch whose tree equals the source.\n\n"
            "Common workflows:\n"
            "  git-dx                      Integrate HEAD and print the new commit\n"
            "  git-dx --push               Integrate HEAD and push it\n"
            "  git-dx -m 'fix typo' --push HEAD~2\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "commit",
        nargs="?",
        default=DEFAULT_SOURCE_REVISION,
        help="Source commit (default: HEAD).",
    )
    parser.add_argument(
        "--push",
        action="store_true",
        default=False,
        help="Push the integrated commit to its remote branch.",
    )
    parser.add_argument(
        "--dry-run",
        "-n",
        dest="dry_run",
        action="store_true",
        default=False,
        help="Use dry-run pushes only.",
    )
    parser.add_argument(
        "--message",
        "-m",
        metavar="MSG",
        default=None,
        help="Short description of updates.",
    )
    parser.add_argument(
        "--allow-empty",
        dest="allow_empty",
        action="store_true",
        default=False,
        help="Create an integration commit even when there is no change.",
    )
    parser.add_argument(
        "--bump",
        action="store_true",
        default=False,
        help="Don't skip CI on an empty commit (implies --allow-empty).",
    )
    parser.add_argument(
        "--remote",
        "-r",
        default=None,
        help="Remote to integrate against and push to (default: from config, 'origin').",
    )
    parser.add_argument(
        "--repo-root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to git-dx TOML config (default: <repo-root>/git-dx.toml if present).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log every git invocation and engine decision.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print a JSON object describing the integration instead of the bare commit id.",
    )
    parser.set_defaults(handler=_cmd_integrate)
    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, run the integration, and return the process exit code.

    Integration errors are not caught here; :mod:`git_dx.main` maps them onto
    exit codes.
    """

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_integrate(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)

    observability = config.get("observability")
    setup_logging(
        observability if isinstance(observability, Mapping) else None,
        verbose=bool(args.verbose),
    )
    try:
        return _integrate(args, repo_root, config)
    finally:
        shutdown_logging()


def _integrate(args: argparse.Namespace, repo_root: Path, config: Mapping[str, Any]) -> int:
    trailers_cfg = config["trailers"]
    remote = str(config["remote"]["name"])

    backend = GitBackend(repo_root)
    store = CommitStore(backend)
    trailers = TrailerEngine(
        backend,
        separator=trailers_cfg["separator"],
        branch_key=trailers_cfg["branch_key"],
        branch_prefix=config["branches"]["prefix"],
    )
    engine = IntegrationEngine(store, trailers, source_key=trailers_cfg["source_key"])

    # Not a full restore: local changes to the work tree are not preserved.
    original_head = backend.symbolic_head() or store.head()

    source = store.get_commit(args.commit)
    options = IntegrationOptions(
        remote=remote,
        allow_empty=bool(args.allow_empty or args.bump),
        bump=bool(args.bump),
        message=args.message,
    )

    with correlation_scope(source=source.oid, remote=remote):
        result = engine.integrate(source, options)

        print(SUCCESS_MESSAGE, file=sys.stderr)
        if args.json:
            _emit_json(_result_payload(result, source_oid=source.oid, remote=remote))
        else:
            print(result.remote_commit)
        sys.stdout.flush()

        backend.checkout(original_head)

        if args.push:
            pushed = backend.push(
                remote,
                result.remote_commit,
                f"refs/heads/{result.target_branch}",
                dry_run=bool(args.dry_run),
            )
            _echo_stderr(pushed.stdout)
            _echo_stderr(pushed.stderr)
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _result_payload(
    result: IntegrationResult, *, source_oid: str, remote: str
) -> dict[str, object]:
    payload = result.to_dict()
    payload["source"] = source_oid
    payload["remote"] = remote
    return payload


def _echo_stderr(text: str) -> None:
    if text:
        sys.stderr.write(redact_text(text))


# ---------------------------------------------------------------------------
# Helpers: config and paths
# ---------------------------------------------------------------------------


def _repo_root(args: argparse.Namespace) -> Path:
    raw = getattr(args, "repo_root", None)
    if not isinstance(raw, str) or not raw.strip():
        raise CLIError("invalid repo_root: value cannot be empty", exit_code=2)
    candidate = Path(raw).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate}", exit_code=2)
    return candidate


def _load_effective_config(args: argparse.Namespace, repo_root: Path) -> dict[str, Any]:
    try:
        return load_config(
            getattr(args, "config_path", None),
            search_dir=repo_root,
            cli_overrides={"remote.name": getattr(args, "remote", None)},
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


__all__ = ["CLIError", "SUCCESS_MESSAGE", "build_parser", "run_cli"]
