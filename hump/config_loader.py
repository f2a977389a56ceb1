"""Helpers for loading workflow definitions from configuration files."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping

import json
import tomllib

import yaml

from .rules import TargetSpec, build_rule_set
from .session import SessionOptions


ConfigLoader = Callable[[Any], Mapping[str, Any]]


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""

ENVIRONMENT_KEYS: Dict[str, str] = {
    "HUMP_NUMCPUS": "numcpus",
    "HUMP_TEMPDIR": "tempdir",
}
"""Environment variables that provide session defaults."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge two mapping objects."""

    result: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_mappings(existing, value)
        else:
            result[key] = value
    return result


def session_settings_from_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
    settings: Dict[str, Any] = {}
    for variable, key in ENVIRONMENT_KEYS.items():
        value = environ.get(variable)
        if value:
            settings[key] = value
    return settings


def session_options_from_mapping(data: Mapping[str, Any]) -> SessionOptions:
    """Build :class:`SessionOptions` from a ``session`` table."""

    if not isinstance(data, Mapping):
        raise TypeError("'session' must be a mapping")
    unknown = sorted(set(data) - {"numcpus", "tempdir", "executable", "nice", "bindir"})
    if unknown:
        raise ValueError(f"Unknown session settings: {', '.join(unknown)}")

    try:
        numcpus = int(data.get("numcpus", 1))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"session.numcpus must be an integer, got {data.get('numcpus')!r}") from exc
    tempdir = data.get("tempdir")
    bindir = data.get("bindir")
    return SessionOptions(
        numcpus=numcpus,
        tempdir=Path(str(tempdir)).expanduser() if tempdir else None,
        executable=str(data.get("executable", "make")),
        nice=bool(data.get("nice", True)),
        bindir=Path(str(bindir)).expanduser() if bindir else None,
    )


@dataclass(slots=True)
class WorkflowConfig:
    """Targets and session settings assembled from one or more files."""

    targets: Dict[str, TargetSpec]
    session: SessionOptions
    sources: list[Path] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, sources: Iterable[Path] = ()) -> "WorkflowConfig":
        targets = data.get("targets")
        if not isinstance(targets, Mapping) or not targets:
            raise ValueError("Configuration must define a non-empty 'targets' table")
        return cls(
            targets=build_rule_set(targets),
            session=session_options_from_mapping(data.get("session", {})),
            sources=list(sources),
        )


def load_workflow(paths: Iterable[Path], *, environ: Mapping[str, str] | None = None) -> WorkflowConfig:
    """Load and merge workflow files in order; later files win.

    Environment defaults (``HUMP_NUMCPUS``, ``HUMP_TEMPDIR``) sit below any
    value given in a file.
    """

    sources = list(paths)
    if not sources:
        raise ValueError("At least one configuration file is required")

    merged: Dict[str, Any] = {"session": session_settings_from_environment(environ or {})}
    for path in sources:
        merged = merge_mappings(merged, load_config_file(path))
    return WorkflowConfig.from_mapping(merged, sources=sources)


__all__ = [
    "ConfigLoader",
    "ENVIRONMENT_KEYS",
    "FILE_LOADERS",
    "WorkflowConfig",
    "load_config_file",
    "load_workflow",
    "merge_mappings",
    "session_options_from_mapping",
    "session_settings_from_environment",
]
