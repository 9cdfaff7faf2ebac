"""Context cost analysis over the file dependency graph.

Depth and reachable cost are measured on the condensation of the import graph,
so files in an import cycle share one node and are paid for together.
"""
from math import fsum
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

import networkx as nx

from aiready.utils.logger import get_logger

from . import tokens as tok
from .graph_builder import DependencyGraphBuilder
from .models import (
    AnalysisResult, CodeUnit, DependencyEdge, Issue, IssueType, Location,
    Metrics, Severity, SourceFile,
)

logger = get_logger(__name__)

TOOL_NAME = "context"
CYCLE_SUGGESTION = "break the cycle by moving shared code into a module both sides import"
SPLIT_SUGGESTION = "reduce the import chain or split the file so less context is pulled in"


def find_cycles(graph: nx.DiGraph) -> List[List[str]]:
    """Distinct import cycles found by depth-first search.

    Traversal starts from every unvisited node in sorted order. A back-edge to
    a node still on the recursion stack closes a cycle. Cycles are rotated to
    start at their smallest path and deduplicated by edge set.

    Returns:
        Cycles as file sequences (first file not repeated at the end), sorted
    """
    state: Dict[str, str] = {}
    seen: Set[FrozenSet[Tuple[str, str]]] = set()
    cycles: List[List[str]] = []

    for start in sorted(graph.nodes):
        if start in state:
            continue
        path: List[str] = [start]
        on_path: Dict[str, int] = {start: 0}
        stack: List[Iterator[str]] = [iter(sorted(graph.successors(start)))]
        state[start] = "visiting"

        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                done = path.pop()
                del on_path[done]
                state[done] = "visited"
                stack.pop()
                continue

            if state.get(neighbor) == "visiting":
                cycle = path[on_path[neighbor]:]
                edges = frozenset(zip(cycle, cycle[1:] + cycle[:1]))
                if edges not in seen:
                    seen.add(edges)
                    pivot = cycle.index(min(cycle))
                    cycles.append(cycle[pivot:] + cycle[:pivot])
            elif neighbor not in state:
                state[neighbor] = "visiting"
                on_path[neighbor] = len(path)
                path.append(neighbor)
                stack.append(iter(sorted(graph.successors(neighbor))))

    return sorted(cycles)


def condensed_depths(condensed: nx.DiGraph) -> Dict[int, int]:
    """Longest outgoing path, in edges, from every node of a DAG."""
    depths: Dict[int, int] = {}
    for node in reversed(list(nx.topological_sort(condensed))):
        depths[node] = max((depths[succ] + 1 for succ in condensed.successors(node)), default=0)
    return depths


def reachable_within(condensed: nx.DiGraph, source: int, max_hops: int) -> Set[int]:
    """Condensed nodes at most max_hops edges away from source, source included."""
    return set(nx.single_source_shortest_path_length(condensed, source, cutoff=max_hops))


def cohesion_of(units: Sequence[CodeUnit], project_symbols: FrozenSet[str]) -> float:
    """Share of a file's referenced project symbols that the file defines itself."""
    local: Set[str] = set()
    imported: Set[str] = set()
    referenced: Set[str] = set()
    for unit in units:
        local.update(unit.definitions)
        for ref in unit.imports:
            imported.update(ref.names)
        referenced.update(unit.references)

    project_refs = {name for name in referenced if name in project_symbols or name in imported}
    if not project_refs:
        return 1.0
    return len(project_refs & local) / len(project_refs)


class ContextAnalyzer:
    """Estimate how much context an AI assistant must load to work on each file."""

    def __init__(self, max_depth: int, max_context_budget: int):
        self.max_depth = max_depth
        self.max_context_budget = max_context_budget

    def analyze(self, files: Sequence[SourceFile],
                units_by_file: Dict[str, Sequence[CodeUnit]]) -> List[AnalysisResult]:
        """Build the dependency graph and produce one AnalysisResult per file.

        Args:
            files: Every analyzed file
            units_by_file: File path mapped to its units, module unit first

        Returns:
            Results sorted by file path, tool "context"
        """
        builder = DependencyGraphBuilder(units_by_file)
        graph = builder.build_graph()
        logger.debug("Dependency graph: %d files, %d edges", graph.number_of_nodes(),
                     graph.number_of_edges())

        own_tokens = {file.path: tok.count_tokens(file.content) for file in files}
        project_symbols = frozenset(
            name for units in units_by_file.values() for unit in units for name in unit.definitions
        )

        condensed = nx.condensation(graph)
        mapping: Dict[str, int] = condensed.graph['mapping']
        depths = condensed_depths(condensed)

        issues: Dict[str, List[Issue]] = {path: [] for path in sorted(units_by_file)}
        for warning in builder.warnings:
            issues[warning.location.file].append(warning)
        for cycle in find_cycles(graph):
            issues[cycle[0]].append(self._cycle_issue(cycle, builder.edges))

        results = []
        for path in sorted(units_by_file):
            component = mapping[path]
            depth = depths[component]
            reached = reachable_within(condensed, component, self.max_depth)
            cost = sum(
                own_tokens.get(member, 0)
                for node in sorted(reached)
                for member in condensed.nodes[node]['members']
            )

            issue = self._fragmentation_issue(path, depth, cost)
            if issue is not None:
                issues[path].append(issue)

            fanout = graph.out_degree(path)
            cohesion = cohesion_of(units_by_file[path], project_symbols)
            results.append(AnalysisResult(
                file_name=path,
                tool=TOOL_NAME,
                issues=tuple(sorted(issues[path], key=lambda item: item.sort_key)),
                metrics=Metrics(
                    token_cost=cost,
                    import_depth=depth,
                    dependency_count=fanout,
                    cohesion=cohesion,
                    fragmentation=(1.0 - cohesion) * fanout / (fanout + 1),
                    complexity_score=100.0 * min(1.0, depth / self.max_depth),
                    token_cost_ratio=cost / self.max_context_budget,
                ),
            ))
        return results

    def _cycle_issue(self, cycle: List[str], edges: Sequence[DependencyEdge]) -> Issue:
        head, following = cycle[0], cycle[1 % len(cycle)]
        lines = [edge.line for edge in edges if edge.source == head and edge.target == following]
        chain = " -> ".join(cycle + [head])
        return Issue(
            type=IssueType.CIRCULAR_DEPENDENCY,
            severity=Severity.CRITICAL,
            message=f"Circular dependency: {chain}",
            location=Location(file=head, line=min(lines) if lines else 1),
            suggestion=CYCLE_SUGGESTION,
        )

    def _fragmentation_issue(self, path: str, depth: int, cost: int) -> Optional[Issue]:
        """Single issue citing every exceeded limit, or None."""
        problems = []
        severity = None
        if depth > self.max_depth:
            problems.append(f"import depth {depth} exceeds max {self.max_depth}")
            severity = Severity.MAJOR
        if cost > self.max_context_budget:
            problems.append(f"context cost {cost} tokens exceeds budget {self.max_context_budget}")
            over = Severity.CRITICAL if cost > 2 * self.max_context_budget else Severity.MAJOR
            severity = over if severity is None or over.rank > severity.rank else severity
        if not problems:
            return None
        return Issue(
            type=IssueType.CONTEXT_FRAGMENTATION,
            severity=severity,
            message="; ".join(problems).capitalize(),
            location=Location(file=path, line=1),
            suggestion=SPLIT_SUGGESTION,
            token_cost=cost,
        )


def generate_summary(results: Sequence[AnalysisResult]) -> Dict[str, float]:
    """Rollup for console output: files, average cohesion and fragmentation, cycles."""
    cohesion = [r.metrics.cohesion for r in results if r.metrics.cohesion is not None]
    fragmentation = [r.metrics.fragmentation for r in results if r.metrics.fragmentation is not None]
    cycles = sum(
        1 for r in results for issue in r.issues if issue.type == IssueType.CIRCULAR_DEPENDENCY
    )
    return {
        'totalFiles': len(results),
        'avgCohesion': fsum(cohesion) / len(cohesion) if cohesion else 1.0,
        'avgFragmentation': fsum(fragmentation) / len(fragmentation) if fragmentation else 0.0,
        'circularDependencies': cycles,
    }
