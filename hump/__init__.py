"""Describe a workflow as targets, let ``make`` run it."""
from __future__ import annotations

from .command_runner import CommandError, CommandResult, RecordingCommandRunner, SubprocessCommandRunner
from .console import Console
from .graph import DependencyGraph, extract_graph, makefile_to_mermaid, render_mermaid
from .rules import (
    MAKE_DEP,
    MAKE_DEPS,
    MAKE_TARGET,
    CompileError,
    RuleSetError,
    TargetSpec,
    build_rule_set,
    compile_rules,
    write_rules,
)
from .session import RunFailure, RunResult, Session, SessionOptions

__version__ = "0.4.0"

__all__ = [
    "CommandError",
    "CommandResult",
    "CompileError",
    "Console",
    "DependencyGraph",
    "MAKE_DEP",
    "MAKE_DEPS",
    "MAKE_TARGET",
    "RecordingCommandRunner",
    "RuleSetError",
    "RunFailure",
    "RunResult",
    "Session",
    "SessionOptions",
    "SubprocessCommandRunner",
    "TargetSpec",
    "build_rule_set",
    "compile_rules",
    "extract_graph",
    "makefile_to_mermaid",
    "render_mermaid",
    "write_rules",
]
