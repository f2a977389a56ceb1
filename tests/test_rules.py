from __future__ import annotations

from pathlib import Path
import tempfile
import textwrap
import unittest

from hump.graph import parse_rule_header
from hump.rules import (
    MAKE_DEPS,
    MAKE_TARGET,
    PREAMBLE,
    CompileError,
    RuleSetError,
    TargetSpec,
    build_rule_set,
    compile_rules,
    ordered_targets,
    write_rules,
)


EXAMPLE = {
    "all": TargetSpec(deps=["hello.txt", "world.txt"], cmd=[f"cat {MAKE_DEPS} | tr '\\n' ' '", "echo"]),
    "hello.txt": TargetSpec(cmd=[f"echo 'Hello' > {MAKE_TARGET}"]),
    "world.txt": TargetSpec(cmd=[f"echo 'World' > {MAKE_TARGET}"]),
}


def _rule_headers(text: str) -> list[str]:
    return [
        line
        for line in text.splitlines()
        if parse_rule_header(line) is not None and not line.startswith(".")
    ]


class CompileRulesTests(unittest.TestCase):
    def test_compiles_example_rule_set(self) -> None:
        expected = PREAMBLE + "\n" + textwrap.dedent(
            """
            all: hello.txt world.txt
            \tcat $^ | tr '\\n' ' '
            \techo

            hello.txt:
            \techo 'Hello' > $@

            world.txt:
            \techo 'World' > $@
            """
        )
        self.assertEqual(compile_rules(EXAMPLE), expected)

    def test_all_is_first_rule_regardless_of_insertion_order(self) -> None:
        rules = {
            "zeta": TargetSpec(cmd=["true"]),
            "alpha": TargetSpec(),
            "all": TargetSpec(deps=["zeta", "alpha"]),
        }
        headers = _rule_headers(compile_rules(rules))
        self.assertEqual(headers[0], "all: zeta alpha")

    def test_other_targets_are_sorted(self) -> None:
        rules = {name: TargetSpec() for name in ["mango", "all", "apple", "Zebra", "banana.txt"]}
        headers = [line.rstrip(":") for line in _rule_headers(compile_rules(rules))]
        self.assertEqual(headers, ["all", "Zebra", "apple", "banana.txt", "mango"])
        self.assertEqual(ordered_targets(rules), headers)

    def test_commands_are_emitted_verbatim_and_in_order(self) -> None:
        rules = {
            "all": TargetSpec(cmd=["echo \"$$HOME\" | sed 's/a/b/'", "  indented already", "third"]),
        }
        text = compile_rules(rules)
        body = text.split("all:", 1)[1].splitlines()[1:]
        self.assertEqual(body, ["\techo \"$$HOME\" | sed 's/a/b/'", "\t  indented already", "\tthird"])

    def test_variables_precede_preamble(self) -> None:
        text = compile_rules(EXAMPLE, variables={"BINDIR": "/opt/bin", "CPUS": 4})
        self.assertTrue(text.startswith("BINDIR := /opt/bin\nCPUS := 4\nSHELL := /bin/bash\n"))

    def test_compile_is_deterministic(self) -> None:
        first = compile_rules(EXAMPLE, variables={"CPUS": 2})
        second = compile_rules(dict(reversed(list(EXAMPLE.items()))), variables={"CPUS": 2})
        self.assertEqual(first, second)
        self.assertEqual(first, compile_rules(EXAMPLE, variables={"CPUS": 2}))

    def test_missing_all_is_rejected_by_default(self) -> None:
        with self.assertRaises(RuleSetError):
            compile_rules({"hello.txt": TargetSpec(cmd=["touch $@"])})

    def test_missing_all_can_be_compiled_permissively(self) -> None:
        text = compile_rules({"hello.txt": TargetSpec(cmd=["touch $@"])}, require_default=False)
        self.assertFalse(any(line.startswith("all:") for line in text.splitlines()))
        self.assertIn(".PHONY: all\n", text)
        self.assertEqual(_rule_headers(text), ["hello.txt:"])

    def test_undefined_dependencies_and_cycles_are_not_checked(self) -> None:
        rules = {
            "all": TargetSpec(deps=["a", "missing.txt"]),
            "a": TargetSpec(deps=["b"]),
            "b": TargetSpec(deps=["a"]),
        }
        self.assertIn("b: a\n", compile_rules(rules))


class WriteRulesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_write_replaces_previous_content(self) -> None:
        path = self.root / "Makefile"
        path.write_text("stale: content\n" * 50)
        text = write_rules(EXAMPLE, path)
        self.assertEqual(path.read_text(), text)
        self.assertNotIn("stale", path.read_text())

    def test_missing_directory_raises_compile_error(self) -> None:
        path = self.root / "absent" / "Makefile"
        with self.assertRaises(CompileError) as ctx:
            write_rules(EXAMPLE, path)
        self.assertIsInstance(ctx.exception, OSError)
        self.assertEqual(ctx.exception.path, path)
        self.assertIn(str(path), str(ctx.exception))


class TargetSpecTests(unittest.TestCase):
    def test_sequences_become_tuples(self) -> None:
        spec = TargetSpec(deps=["a", "b"], cmd="echo one")
        self.assertEqual(spec.deps, ("a", "b"))
        self.assertEqual(spec.cmd, ("echo one",))

    def test_from_mapping_accepts_lower_and_upper_case_keys(self) -> None:
        lower = TargetSpec.from_mapping("x", {"deps": ["y"], "cmd": ["touch $@"]})
        upper = TargetSpec.from_mapping("x", {"DEP": ["y"], "CMD": ["touch $@"]})
        self.assertEqual(lower, upper)

    def test_from_mapping_keeps_command_whitespace(self) -> None:
        spec = TargetSpec.from_mapping("x", {"cmd": ["  echo padded  "]})
        self.assertEqual(spec.cmd, ("  echo padded  ",))

    def test_from_mapping_rejects_bad_entries(self) -> None:
        with self.assertRaises(RuleSetError):
            TargetSpec.from_mapping("x", {"deps": [1]})
        with self.assertRaises(RuleSetError):
            TargetSpec.from_mapping("x", {"cmd": {"not": "a list"}})
        with self.assertRaises(RuleSetError):
            TargetSpec.from_mapping("x", {"command": ["typo"]})
        with self.assertRaises(RuleSetError):
            TargetSpec.from_mapping("x", ["not", "a", "mapping"])

    def test_build_rule_set(self) -> None:
        rules = build_rule_set({"all": {"deps": ["a"]}, "a": TargetSpec(cmd=["touch $@"])})
        self.assertEqual(rules["all"].deps, ("a",))
        self.assertEqual(rules["a"].cmd, ("touch $@",))

    def test_build_rule_set_rejects_names_with_whitespace(self) -> None:
        with self.assertRaises(RuleSetError):
            build_rule_set({"two words": {}})
        with self.assertRaises(RuleSetError):
            build_rule_set({"": {}})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
