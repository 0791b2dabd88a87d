"""Process entrypoint: run the CLI and turn escaped exceptions into exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Process exit codes of ``git-dx``."""

    SUCCESS = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    GIT_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m git_dx`` and the ``git-dx`` script."""

    try:
        from git_dx.ui.cli import run_cli

        return _exit_status(run_cli(argv))
    except SystemExit as exc:
        # argparse exits directly for --help, --version and usage errors.
        return _exit_status(exc.code)
    except BaseException as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def main() -> None:
    """Console-script shim."""

    raise SystemExit(cli_entrypoint())


def _exit_status(code: object) -> int:
    if code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(code, int):
        known = {int(member) for member in ExitCode}
        return code if code in known else int(ExitCode.INTERNAL_ERROR)
    _write_stderr(str(code))
    return int(ExitCode.INTERNAL_ERROR)


def _exit_routes() -> tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...]:
    from git_dx.config import ConfigLoadError, ConfigValidationError
    from git_dx.errors import (
        CommitCacheInvariantError,
        GitContractError,
        GitInvocationError,
        NoSuchCommitError,
        TrailerError,
    )

    # First match wins, checked per link of the chain.
    return (
        ((CommitCacheInvariantError,), ExitCode.INTERNAL_ERROR),
        ((NoSuchCommitError, TrailerError), ExitCode.USER_ERROR),
        ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
        ((GitContractError, GitInvocationError), ExitCode.GIT_ERROR),
    )


def _route_exception(exc: BaseException) -> ExitCode:
    routes = _exit_routes()
    for link in _exception_chain(exc):
        for types, code in routes:
            if isinstance(link, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    from git_dx.observability import redact_text

    message = str(exc).strip() or type(exc).__name__
    _write_stderr(f"error: {redact_text(message)}")


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint", "main"]
