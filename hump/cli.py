"""Command line interface for hump."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from dataclasses import replace
from pathlib import Path
from typing import Iterable
import os
import sys

from .command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import WorkflowConfig, load_workflow
from .console import Console
from .graph import makefile_to_mermaid
from .rules import CompileError, DEFAULT_TARGET, RuleSetError, compile_rules, write_rules
from .session import RunFailure, Session, SessionOptions, rule_variables


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="hump", description="Makefile-backed workflow runner")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        action="append",
        default=[],
        help="Workflow file (TOML, JSON or YAML); repeat to merge several",
    )
    parser.add_argument(
        "--log",
        "-l",
        choices=list(Console.LEVELS),
        default=None,
        help="Set log level (default: error)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output (maps to debug)")
    parser.add_argument("--allow-missing-all", action="store_true", help="Compile even without an 'all' target")
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser("compile", help="Print or write the generated Makefile")
    compile_parser.add_argument("--output", "-o", type=Path, help="Write the Makefile here instead of printing it")

    run_parser = subparsers.add_parser("run", help="Compile the workflow and run a target")
    run_parser.add_argument("target", nargs="?", default=DEFAULT_TARGET, help="Target to make (default: all)")
    run_parser.add_argument("--jobs", "-j", dest="numcpus", type=int, help="How many jobs make may run at once")
    run_parser.add_argument("--tempdir", type=Path, help="Keep work and log files in this directory")
    run_parser.add_argument("--copy", dest="copy_to", type=Path, help="Copy the built target to this path")
    run_parser.add_argument("--no-nice", action="store_true", help="Do not lower the priority of make")
    run_parser.add_argument("--dry-run", "-n", action="store_true", help="Print the make command without running it")

    graph_parser = subparsers.add_parser("graph", help="Print the dependency graph as Mermaid")
    graph_parser.add_argument("--makefile", type=Path, help="Read an existing Makefile instead of a workflow file")

    return parser.parse_args(list(argv))


def _build_console(args: Namespace) -> Console:
    # Explicit --log takes precedence, otherwise --verbose maps to debug
    if args.log:
        level = args.log
    else:
        level = "debug" if args.verbose else "error"
    return Console(level=level, dry_run=getattr(args, "dry_run", False), program="hump")


def _load(args: Namespace, console: Console) -> WorkflowConfig:
    if not args.config:
        raise ValueError("No workflow file given; use --config PATH")
    for path in args.config:
        console.debug(f"Loading workflow file: {path}")
    return load_workflow(args.config, environ=os.environ)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    console = _build_console(args)

    try:
        if args.command == "compile":
            return _handle_compile(args, console)
        if args.command == "run":
            return _handle_run(args, console)
        if args.command == "graph":
            return _handle_graph(args, console)
    except RunFailure as exc:
        console.error(f"Target '{exc.target}' failed (exit code {exc.result.returncode})")
        sys.stderr.write(exc.stderr)
        return 1
    except (CompileError, RuleSetError, ValueError, TypeError, OSError) as exc:
        console.error(str(exc))
        return 1
    raise ValueError(f"Unknown command: {args.command}")


def _handle_compile(args: Namespace, console: Console) -> int:
    config = _load(args, console)
    kwargs = {
        "variables": rule_variables(config.session),
        "require_default": not args.allow_missing_all,
    }
    if args.output:
        write_rules(config.targets, args.output, **kwargs)
        console.info(f"Wrote {args.output}")
    else:
        sys.stdout.write(compile_rules(config.targets, **kwargs))
    return 0


def _session_options(args: Namespace, options: SessionOptions) -> SessionOptions:
    overrides = {}
    if args.numcpus is not None:
        overrides["numcpus"] = args.numcpus
    if args.tempdir is not None:
        overrides["tempdir"] = args.tempdir
    if args.no_nice:
        overrides["nice"] = False
    return replace(options, **overrides) if overrides else options


def _handle_run(args: Namespace, console: Console) -> int:
    config = _load(args, console)
    options = _session_options(args, config.session)

    runner: CommandRunner
    if args.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    with Session(options, runner=runner, console=console) as session:
        session.write_rules(config.targets, require_default=not args.allow_missing_all)
        result = session.run(args.target)

        if isinstance(runner, RecordingCommandRunner):
            for line in runner.iter_formatted():
                print(line)
            if args.copy_to:
                console.dry(f"Would copy {result.path} to {args.copy_to}")
            return 0

        sys.stdout.write(result.stdout)
        if args.copy_to:
            error = session.copy_artifact(args.target, args.copy_to)
            if error:
                console.error(error)
                return 1
    return 0


def _handle_graph(args: Namespace, console: Console) -> int:
    if args.makefile:
        console.debug(f"Reading {args.makefile}")
        text = args.makefile.read_text(encoding="utf-8")
    else:
        config = _load(args, console)
        text = compile_rules(
            config.targets,
            variables=rule_variables(config.session),
            require_default=not args.allow_missing_all,
        )
    sys.stdout.write(makefile_to_mermaid(text))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
