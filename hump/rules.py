"""Compile target definitions into a GNU Makefile."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

#: Automatic variable for the target being built.
MAKE_TARGET = "$@"
#: Automatic variable for the first dependency.
MAKE_DEP = "$<"
#: Automatic variable for all dependencies, in the order given.
MAKE_DEPS = "$^"

DEFAULT_TARGET = "all"

PREAMBLE = """\
SHELL := /bin/bash
MAKEFLAGS += --no-builtin-rules
MAKEFLAGS += --no-builtin-variables

.SUFFIXES:
.DELETE_ON_ERROR:
.SECONDARY:
.ONESHELL:
.DEFAULT_GOAL := all
.PHONY: all
"""


class RuleSetError(ValueError):
    """Raised when a rule set cannot be compiled."""


class CompileError(OSError):
    """Raised when the compiled Makefile cannot be written."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"could not write {path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass(frozen=True, slots=True)
class TargetSpec:
    """A named build step: what it depends on and how to make it."""

    deps: Tuple[str, ...] = ()
    cmd: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "deps", _as_tuple(self.deps))
        object.__setattr__(self, "cmd", _as_tuple(self.cmd))

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "TargetSpec":
        if not isinstance(data, Mapping):
            raise RuleSetError(f"Target '{name}' must be a mapping with 'deps' and 'cmd'")
        deps = _string_list(_first_present(data, "deps", "DEP"), name=name, field_name="deps")
        cmd = _string_list(_first_present(data, "cmd", "CMD"), name=name, field_name="cmd")
        unknown = sorted(set(data) - {"deps", "DEP", "cmd", "CMD"})
        if unknown:
            raise RuleSetError(f"Target '{name}' has unknown keys: {', '.join(unknown)}")
        return cls(deps=deps, cmd=cmd)


RuleSet = Mapping[str, TargetSpec]


def _as_tuple(value: Iterable[str] | str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _string_list(value: Any, *, name: str, field_name: str) -> List[str]:
    # Commands are shell text and are kept byte for byte.
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise RuleSetError(f"Target '{name}': {field_name} entries must be strings")
            items.append(item)
        return items
    raise RuleSetError(f"Target '{name}': {field_name} must be a string or list of strings")


def build_rule_set(data: Mapping[str, Any]) -> Dict[str, TargetSpec]:
    """Convert a mapping of plain target mappings into a rule set."""

    rules: Dict[str, TargetSpec] = {}
    for name, entry in data.items():
        if not isinstance(name, str) or not name or any(ch.isspace() for ch in name):
            raise RuleSetError(f"Invalid target name: {name!r}")
        rules[name] = entry if isinstance(entry, TargetSpec) else TargetSpec.from_mapping(name, entry)
    return rules


def ordered_targets(rules: RuleSet) -> List[str]:
    """Return target names in emission order: ``all`` first, then sorted."""

    others = sorted(name for name in rules if name != DEFAULT_TARGET)
    if DEFAULT_TARGET in rules:
        return [DEFAULT_TARGET, *others]
    return others


def compile_rules(
    rules: RuleSet,
    *,
    variables: Mapping[str, Any] | None = None,
    require_default: bool = True,
) -> str:
    """Render ``rules`` as Makefile text.

    ``variables`` are written as ``NAME := value`` lines ahead of the fixed
    preamble. Commands are emitted verbatim, one tab-indented line each.
    """

    if require_default and DEFAULT_TARGET not in rules:
        raise RuleSetError(f"Rule set has no '{DEFAULT_TARGET}' target")

    lines: List[str] = [f"{name} := {value}" for name, value in (variables or {}).items()]
    text = "\n".join(lines) + "\n" if lines else ""
    text += PREAMBLE + "\n"

    for name in ordered_targets(rules):
        spec = rules[name]
        text += "\n"
        text += f"{name}: {' '.join(spec.deps)}".rstrip() + "\n"
        for command in spec.cmd:
            text += f"\t{command}\n"
    return text


def write_rules(rules: RuleSet, path: Path, **kwargs: Any) -> str:
    """Compile ``rules`` and replace the contents of ``path`` with the result."""

    text = compile_rules(rules, **kwargs)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise CompileError(path, exc.strerror or str(exc)) from exc
    return text


__all__ = [
    "CompileError",
    "DEFAULT_TARGET",
    "MAKE_DEP",
    "MAKE_DEPS",
    "MAKE_TARGET",
    "PREAMBLE",
    "RuleSet",
    "RuleSetError",
    "TargetSpec",
    "build_rule_set",
    "compile_rules",
    "ordered_targets",
    "write_rules",
]
