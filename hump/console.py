"""Console output handler shared by the session and the command line."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, TextIO
import sys
import time


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'none' (no output)

    Every message is prefixed with the program name and the number of seconds
    elapsed since the console was created. Build one console at start-up and
    hand it to whatever needs to report progress.
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(
        self,
        level: str = "none",
        dry_run: bool = False,
        *,
        program: str | None = None,
        stream: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if level not in self.LEVELS:
            raise ValueError(f"Unknown log level '{level}'. Choose from: {', '.join(self.LEVELS)}")
        self.level_name = level
        self.level = self.LEVELS[level]
        self.dry_run = dry_run
        self.program = program or Path(sys.argv[0] or "hump").name
        self._stream = stream
        self._clock = clock
        self._started = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    def _emit(self, tag: str, message: str) -> None:
        stream = self._stream or sys.stderr
        print(f"{self.program} {self.elapsed:.1f}s [{tag}] {message}", file=stream)

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            self._emit("INFO", message)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            self._emit("ERROR", message)

    def dry(self, message: str) -> None:
        if self.dry_run:
            self._emit("DRY", message)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            self._emit("DEBUG", message)


__all__ = ["Console"]
