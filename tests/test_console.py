from __future__ import annotations

import io
import unittest

from hump.console import Console


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class ConsoleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.stream = io.StringIO()

    def _console(self, level: str, **kwargs) -> Console:
        return Console(level=level, program="hump", stream=self.stream, clock=self.clock, **kwargs)

    def test_messages_carry_elapsed_time(self) -> None:
        console = self._console("info")
        self.clock.now = 102.5
        console.info("compiled")
        self.assertEqual(self.stream.getvalue(), "hump 2.5s [INFO] compiled\n")

    def test_levels_filter_output(self) -> None:
        console = self._console("error")
        console.debug("hidden")
        console.info("hidden")
        console.error("shown")
        self.assertEqual(self.stream.getvalue(), "hump 0.0s [ERROR] shown\n")

    def test_none_is_silent(self) -> None:
        console = self._console("none")
        console.error("nothing")
        self.assertEqual(self.stream.getvalue(), "")

    def test_debug_shows_everything(self) -> None:
        console = self._console("debug")
        console.debug("d")
        console.info("i")
        console.error("e")
        self.assertEqual(len(self.stream.getvalue().splitlines()), 3)

    def test_dry_only_in_dry_run(self) -> None:
        self._console("none").dry("skipped")
        self.assertEqual(self.stream.getvalue(), "")
        self._console("none", dry_run=True).dry("would run")
        self.assertIn("[DRY] would run", self.stream.getvalue())

    def test_unknown_level(self) -> None:
        with self.assertRaises(ValueError):
            Console(level="verbose")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
