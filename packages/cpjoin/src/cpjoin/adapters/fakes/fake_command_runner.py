"""Fake command runner for testing subprocess-based adapters."""

from __future__ import annotations

from cpjoin.adapters.ports import CommandResult
from cpjoin.domain.exceptions import CommandExecutionError


def _contains_in_order(args: list[str], tokens: tuple[str, ...]) -> bool:
    remaining = iter(args)
    return all(token in remaining for token in tokens)


class FakeCommandRunner:
    """Fake implementation of CommandRunnerPort for testing.

    A response matches a command when all of its tokens appear in the
    command in order, so ``["etcdctl", "member", "list"]`` matches an
    etcdctl call with TLS flags in between. The match with most tokens
    wins. Unmatched commands succeed with empty output.

    Example:
        >>> runner = FakeCommandRunner()
        >>> runner.respond(["systemctl", "is-active"], returncode=3)
        >>> runner.run(["systemctl", "is-active", "--quiet", "haproxy"]).ok
        False
    """

    def __init__(self) -> None:
        self._responses: list[tuple[tuple[str, ...], int, str, str]] = []
        self._missing: set[str] = set()
        self.calls: list[list[str]] = []
        self.timeouts: list[float | None] = []

    def respond(
        self,
        tokens: list[str],
        stdout: str = "",
        returncode: int = 0,
        stderr: str = "",
    ) -> None:
        """Configure the result for commands containing tokens in order."""
        self._responses.append((tuple(tokens), returncode, stdout, stderr))

    def missing_binary(self, name: str) -> None:
        """Make commands for this binary raise as if it were not installed."""
        self._missing.add(name)

    def run(
        self, args: list[str], timeout: float | None = None, input: str | None = None
    ) -> CommandResult:
        self.calls.append(list(args))
        self.timeouts.append(timeout)

        if args and args[0] in self._missing:
            raise CommandExecutionError(
                f"command not found: {args[0]}", args_=tuple(args)
            )

        best: tuple[tuple[str, ...], int, str, str] | None = None
        for response in self._responses:
            if _contains_in_order(args, response[0]):
                if best is None or len(response[0]) > len(best[0]):
                    best = response

        if best is None:
            return CommandResult(args=tuple(args), returncode=0, stdout="", stderr="")
        _, returncode, stdout, stderr = best
        return CommandResult(
            args=tuple(args), returncode=returncode, stdout=stdout, stderr=stderr
        )
