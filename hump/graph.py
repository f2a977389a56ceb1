"""Rebuild a dependency diagram from Makefile text."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

MERMAID_HEADER = "graph TD;"


@dataclass(frozen=True, slots=True)
class DependencyGraph:
    """Reverse adjacency: each dependency maps to the targets that list it."""

    dependents: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.dependents)

    def __contains__(self, dependency: object) -> bool:
        return dependency in self.dependents

    def targets_of(self, dependency: str) -> Tuple[str, ...]:
        return self.dependents.get(dependency, ())

    def edges(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(dependency, target)`` pairs in rendering order."""

        for dependency in sorted(self.dependents):
            for target in self.dependents[dependency]:
                yield dependency, target


def parse_rule_header(line: str) -> Tuple[str, List[str]] | None:
    """Split a rule header into its target and dependency tokens.

    A header is a line whose first run of non-whitespace characters contains a
    colon. When that run holds several colons the target ends at the last one.
    Indented lines and lines without a colon return ``None``.
    """

    if not line or line[0].isspace():
        return None
    head = line.split(None, 1)[0]
    colon = head.rfind(":")
    if colon <= 0:
        return None
    target = head[:colon]
    rest = line[colon + 1:]
    return target, [token for token in rest.split() if token]


def _iter_edges(text: str) -> Iterator[Tuple[str, str]]:
    for line in text.splitlines():
        parsed = parse_rule_header(line)
        if parsed is None:
            continue
        target, deps = parsed
        for dep in deps:
            yield dep, target


def extract_graph(text: str) -> DependencyGraph:
    return graph_from_edges(_iter_edges(text))


def render_mermaid(graph: DependencyGraph) -> str:
    lines: List[str] = [MERMAID_HEADER]
    for dependency in sorted(graph.dependents):
        targets = graph.dependents[dependency]
        if not targets:
            continue
        lines.extend(f"  {dependency} --> {target};" for target in targets)
    return "\n".join(lines) + "\n"


def makefile_to_mermaid(text: str) -> str:
    """Parse Makefile ``text`` and render its dependency diagram."""

    return render_mermaid(extract_graph(text))


def graph_from_edges(edges: Iterable[Tuple[str, str]]) -> DependencyGraph:
    """Build a graph from ``(dependency, target)`` pairs, keeping their order."""

    reverse: Dict[str, List[str]] = {}
    for dependency, target in edges:
        reverse.setdefault(dependency, []).append(target)
    return DependencyGraph({dep: tuple(targets) for dep, targets in reverse.items()})


__all__ = [
    "DependencyGraph",
    "MERMAID_HEADER",
    "extract_graph",
    "graph_from_edges",
    "makefile_to_mermaid",
    "parse_rule_header",
    "render_mermaid",
]
