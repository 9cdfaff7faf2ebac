"""Dependency graph builder using NetworkX."""
from typing import Dict, List, Sequence
import networkx as nx

from .models import CodeUnit, DependencyEdge, Issue, IssueType, Location, Severity
from .resolver import ImportResolver


class DependencyGraphBuilder:
    """Build the directed file dependency graph from extracted units."""

    def __init__(self, units_by_file: Dict[str, Sequence[CodeUnit]]):
        """Initialize graph builder.

        Args:
            units_by_file: Every scanned file path mapped to its units
        """
        self.units_by_file = units_by_file
        self.resolver = ImportResolver(units_by_file.keys())
        self.graph = nx.DiGraph()
        self.edges: List[DependencyEdge] = []
        self.warnings: List[Issue] = []

    def build_graph(self) -> nx.DiGraph:
        """Build the dependency graph for all files.

        Creates directed graph where edge (A, B) means "file A imports file B".
        Every import occurrence is also kept in self.edges. Self-imports are
        dropped; unresolved relative imports become info warnings.

        Returns:
            NetworkX DiGraph with one node per file
        """
        for file_path in sorted(self.units_by_file):
            self.graph.add_node(file_path)

        for file_path in sorted(self.units_by_file):
            self._process_file(file_path)

        return self.graph

    def _process_file(self, file_path: str):
        for unit in self.units_by_file[file_path]:
            for ref in unit.imports:
                targets = self.resolver.resolve(file_path, ref)
                if not targets and ref.is_relative:
                    self.warnings.append(Issue(
                        type=IssueType.DEGRADED_ANALYSIS,
                        severity=Severity.INFO,
                        message=f"Unresolved relative import '{ref.target}'",
                        location=Location(file=file_path, line=ref.line),
                    ))
                for target in targets:
                    if target == file_path:
                        continue
                    self.edges.append(DependencyEdge(
                        source=file_path, target=target, raw_target=ref.target, line=ref.line,
                    ))
                    self.graph.add_edge(file_path, target)
