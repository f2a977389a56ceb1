"""Utilities for executing the rule-file executor with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    stdout_path: Path | None = None
    stderr_path: Path | None = None


class CommandError(RuntimeError):
    """Raised when a command fails."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {format_command(result.command)}"
        if result.stderr_path is not None:
            message = f"{message}\nstderr (from {result.stderr_path}):\n{result.stderr}"
        else:
            message = (
                f"{message}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        super().__init__(message)
        self.result = result


def format_command(
    command: Sequence[str],
    *,
    stdout_path: Path | None = None,
    stderr_path: Path | None = None,
) -> str:
    """Render ``command`` as a shell line, including append redirections."""

    parts = [shlex.quote(str(part)) for part in command]
    if stdout_path is not None:
        parts.append(f">> {shlex.quote(str(stdout_path))}")
    if stderr_path is not None:
        parts.append(f"2>> {shlex.quote(str(stderr_path))}")
    return " ".join(parts)


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stdout_path: Path | None = None,
        stderr_path: Path | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return format_command(command)


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return 0


def _read_from(path: Path, offset: int) -> str:
    with path.open("rb") as handle:
        handle.seek(offset)
        return handle.read().decode("utf-8", errors="replace")


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    When ``stdout_path``/``stderr_path`` are given the streams are appended to
    those files rather than captured in memory. The returned result then holds
    only the text written by this invocation.
    """

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def _finalize(self, result: CommandResult, *, check: bool) -> CommandResult:
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stdout_path: Path | None = None,
        stderr_path: Path | None = None,
    ) -> CommandResult:
        merged_env = self._merge_environment(env)
        if stdout_path is None and stderr_path is None:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
            )
            return self._finalize(
                CommandResult(
                    command=command,
                    returncode=process.returncode,
                    stdout=process.stdout,
                    stderr=process.stderr,
                ),
                check=check,
            )

        out_offset = _file_size(stdout_path) if stdout_path else 0
        err_offset = _file_size(stderr_path) if stderr_path else 0
        with open(stdout_path or os.devnull, "ab") as out_handle, open(stderr_path or os.devnull, "ab") as err_handle:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                stdout=out_handle if stdout_path else subprocess.PIPE,
                stderr=err_handle if stderr_path else subprocess.PIPE,
                check=False,
            )

        if stdout_path is not None:
            stdout = _read_from(stdout_path, out_offset)
        else:
            stdout = (process.stdout or b"").decode("utf-8", errors="replace")
        if stderr_path is not None:
            stderr = _read_from(stderr_path, err_offset)
        else:
            stderr = (process.stderr or b"").decode("utf-8", errors="replace")

        return self._finalize(
            CommandResult(
                command=command,
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr,
                stdout_path=stdout_path,
                stderr_path=stderr_path,
            ),
            check=check,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None
    stdout_path: str | None
    stderr_path: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self, *, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.commands: List[RecordedCommand] = []
        self._returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stdout_path: Path | None = None,
        stderr_path: Path | None = None,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=[str(part) for part in command],
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else {},
                note=note,
                stdout_path=str(stdout_path) if stdout_path else None,
                stderr_path=str(stderr_path) if stderr_path else None,
            )
        )
        result = CommandResult(
            command=command,
            returncode=self._returncode,
            stdout=self._stdout,
            stderr=self._stderr,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
        )
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = format_command(
                record.command,
                stdout_path=Path(record.stdout_path) if record.stdout_path else None,
                stderr_path=Path(record.stderr_path) if record.stderr_path else None,
            )
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            yield " ".join(parts)


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "format_command",
]
