"""Write a Makefile, run ``make`` against it and collect what it produced."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
import os
import shutil
import sys
import tempfile

from .command_runner import CommandError, CommandResult, CommandRunner, SubprocessCommandRunner, format_command
from .console import Console
from .graph import makefile_to_mermaid
from .rules import DEFAULT_TARGET, RuleSet, write_rules


class RunFailure(CommandError):
    """Raised when ``make`` exits with a nonzero status."""

    def __init__(self, target: str, result: CommandResult):
        super().__init__(result)
        self.target = target

    @property
    def stderr(self) -> str:
        return self.result.stderr


@dataclass(slots=True)
class SessionOptions:
    numcpus: int = 1
    tempdir: Path | None = None
    executable: str = "make"
    nice: bool = True
    bindir: Path | None = None

    def __post_init__(self) -> None:
        if self.numcpus < 1:
            raise ValueError(f"numcpus must be at least 1, got {self.numcpus}")
        if self.tempdir is not None:
            self.tempdir = Path(self.tempdir)


def rule_variables(options: SessionOptions) -> Dict[str, Any]:
    """Variables written at the top of every Makefile a session compiles."""

    bindir = options.bindir or Path(sys.argv[0] or ".").resolve().parent
    return {"BINDIR": bindir, "CPUS": options.numcpus}


@dataclass(slots=True)
class RunResult:
    target: str
    stdout: str
    stderr: str
    path: Path
    command: str


class Session:
    """A scratch area holding one Makefile plus per-target logs.

    Layout under ``tempdir``::

        work/Makefile   the compiled rules; make runs here
        log/<t>.out     stdout of every run of target <t>, appended
        log/<t>.log     stderr of every run of target <t>, appended
    """

    def __init__(
        self,
        options: SessionOptions | None = None,
        *,
        runner: CommandRunner | None = None,
        console: Console | None = None,
    ) -> None:
        self.options = options or SessionOptions()
        self._runner = runner or SubprocessCommandRunner()
        self._console = console or Console()
        self._owns_tempdir = self.options.tempdir is None
        if self._owns_tempdir:
            self.tempdir = Path(tempfile.mkdtemp(prefix="hump."))
        else:
            self.tempdir = self.options.tempdir
            self.tempdir.mkdir(parents=True, exist_ok=True)
        self.workdir = self.tempdir / "work"
        self.logdir = self.tempdir / "log"
        self.makefile = self.workdir / "Makefile"

        self.workdir.mkdir(exist_ok=True)
        self.logdir.mkdir(exist_ok=True)
        self.makefile.write_text("", encoding="utf-8")
        self._console.debug(f"Session directory: {self.tempdir}")

    @property
    def numcpus(self) -> int:
        return self.options.numcpus

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Remove the session directory if this session created it."""

        if self._owns_tempdir and self.tempdir.exists():
            self._console.debug(f"Removing {self.tempdir}")
            shutil.rmtree(self.tempdir, ignore_errors=True)

    def to_string(self) -> str:
        """Return the current Makefile contents."""

        return self.makefile.read_text(encoding="utf-8")

    def write_rules(self, rules: RuleSet, *, require_default: bool = True) -> str:
        text = write_rules(
            rules,
            self.makefile,
            variables=rule_variables(self.options),
            require_default=require_default,
        )
        self._console.info(f"Wrote {len(rules)} target(s) to {self.makefile}")
        return text

    def log_paths(self, target: str) -> tuple[Path, Path]:
        return self.logdir / f"{target}.out", self.logdir / f"{target}.log"

    def make_command(self, target: str = DEFAULT_TARGET) -> List[str]:
        command: List[str] = []
        if self.options.nice and shutil.which("nice"):
            command.append("nice")
        command.extend(
            [
                self.options.executable,
                "-C",
                str(self.workdir),
                "--quiet",
                "-f",
                str(self.makefile),
                target,
                "-j",
                str(self.numcpus),
            ]
        )
        return command

    def run(self, target: str = DEFAULT_TARGET) -> RunResult:
        stdout_path, stderr_path = self.log_paths(target)
        stdout_path.parent.mkdir(parents=True, exist_ok=True)
        command = self.make_command(target)
        command_line = format_command(command, stdout_path=stdout_path, stderr_path=stderr_path)

        self._console.info(f"Making '{target}'")
        self._console.debug(command_line)
        result = self._runner.run(
            command,
            cwd=self.workdir,
            check=False,
            note=f"make {target}",
            stdout_path=stdout_path,
            stderr_path=stderr_path,
        )
        if result.returncode != 0:
            self._console.error(f"make '{target}' exited with status {result.returncode}")
            raise RunFailure(target, result)

        self._console.info(f"Finished '{target}'")
        return RunResult(
            target=target,
            stdout=result.stdout,
            stderr=result.stderr,
            path=self.workdir / target,
            command=command_line,
        )

    def copy_artifact(self, target: str, destination: Path | str) -> str:
        """Copy a built target out of the work directory.

        Returns an empty string on success, otherwise a description of the
        problem. Nothing is written when the target does not exist.
        """

        source = self.workdir / target
        if not source.exists():
            return f"ERROR: could not copy target {target} because it does not exist at {source}"
        try:
            shutil.copy(source, os.fspath(destination))
        except OSError as exc:
            return f"ERROR copying file {source} => {destination}: {exc.strerror or exc}"
        self._console.info(f"Copied {source} to {destination}")
        return ""

    def graph(self) -> str:
        """Return the Mermaid diagram of the current Makefile."""

        return makefile_to_mermaid(self.to_string())


__all__ = [
    "RunFailure",
    "RunResult",
    "Session",
    "SessionOptions",
    "rule_variables",
]
