"""subprocess-based implementation of the CommandRunnerPort."""

from __future__ import annotations

import logging
import subprocess

from cpjoin.adapters.ports import CommandResult, CommandRunnerPort
from cpjoin.domain.exceptions import CommandExecutionError

logger = logging.getLogger(__name__)


class SubprocessCommandRunner:
    """Runs commands with ``subprocess.run``, never through a shell.

    Output is captured as text. A non-zero exit status is returned in the
    CommandResult; only a missing binary or a timeout raises.
    """

    def __init__(self, default_timeout: float | None = 60.0) -> None:
        """Initialize the runner.

        Args:
            default_timeout: Timeout used when run() is called without one.
        """
        self._default_timeout = default_timeout

    def run(
        self, args: list[str], timeout: float | None = None, input: str | None = None
    ) -> CommandResult:
        """Run a command and capture its output.

        Raises:
            CommandExecutionError: If the binary is missing or the command
                times out.
        """
        effective_timeout = timeout if timeout is not None else self._default_timeout
        logger.debug("running %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=effective_timeout,
                input=input,
                check=False,
            )
        except FileNotFoundError as e:
            raise CommandExecutionError(
                f"command not found: {args[0]}", args_=tuple(args)
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionError(
                f"command timed out after {effective_timeout}s: {' '.join(args)}",
                args_=tuple(args),
            ) from e

        return CommandResult(
            args=tuple(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


def run_checked(
    runner: CommandRunnerPort,
    args: list[str],
    timeout: float | None = None,
    input: str | None = None,
) -> CommandResult:
    """Run a command and raise if it exits non-zero.

    Raises:
        CommandExecutionError: If the command fails for any reason.
    """
    result = runner.run(args, timeout=timeout, input=input)
    if not result.ok:
        raise CommandExecutionError(
            f"{args[0]} exited with status {result.returncode}: {result.stderr.strip()}",
            args_=result.args,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result


# Runtime protocol check
assert isinstance(SubprocessCommandRunner(), CommandRunnerPort)
