"""Near-duplicate code detection over normalized code units.

Candidate pairs come from an inverted shingle index with prefix filtering:
shingles are ordered rarest-first across the whole input and each unit is
indexed only under the prefix any set with Jaccard >= min_similarity must
share with it. Candidates are then compared exactly; linked pairs are grouped
into clusters by connected components.

Clustering is transitive: A~B and B~C put A, B and C in one cluster even if
A~C falls below the threshold.
"""
import math
from collections import Counter, defaultdict
from typing import Dict, FrozenSet, Iterable, List, Sequence, Set, Tuple

import networkx as nx

from . import tokens as tok
from .models import (
    AnalysisResult, CodeUnit, DuplicateCluster, Issue, IssueType, Location,
    Metrics, Severity, SourceFile, UnitKind,
)

TOOL_NAME = "patterns"
SUGGESTION = "extract shared abstraction"
MAJOR_CLUSTER_SIZE = 3
MAJOR_SIMILARITY = 0.9


def similarity(a: CodeUnit, b: CodeUnit) -> float:
    """Jaccard similarity of two units' shingle sets."""
    return tok.jaccard(tok.shingles(a.tokens), tok.shingles(b.tokens))


def _prefix_length(size: int, threshold: float) -> int:
    # Tolerance keeps e.g. 0.4 * 5 from rounding up to 3
    required = math.ceil(threshold * size - 1e-9)
    return max(1, min(size, size - required + 1))


def _nested(a: CodeUnit, b: CodeUnit) -> bool:
    return a.file_path == b.file_path and (a.span.contains(b.span) or b.span.contains(a.span))


class PatternDetector:
    """Find near-duplicate units and the context tokens they waste."""

    def __init__(self, min_similarity: float, min_lines: int):
        self.min_similarity = min_similarity
        self.min_lines = min_lines

    def comparable_units(self, units: Iterable[CodeUnit]) -> List[CodeUnit]:
        """Units eligible for comparison, in deterministic order.

        Units shorter than min_lines are dropped here, before any comparison.
        """
        eligible = [
            unit for unit in units
            if unit.kind != UnitKind.MODULE and unit.line_count >= self.min_lines and unit.tokens
        ]
        return sorted(eligible, key=lambda unit: unit.sort_key)

    def candidate_pairs(self, shingle_sets: Sequence[FrozenSet[int]]) -> List[Tuple[int, int]]:
        """Pairs (i, j), i < j, sharing at least one prefix bucket."""
        frequency = Counter(shingle for shingle_set in shingle_sets for shingle in shingle_set)
        buckets: Dict[int, List[int]] = defaultdict(list)
        pairs: Set[Tuple[int, int]] = set()

        for index, shingle_set in enumerate(shingle_sets):
            ordered = sorted(shingle_set, key=lambda shingle: (frequency[shingle], shingle))
            prefix = ordered[:_prefix_length(len(ordered), self.min_similarity)]
            for shingle in prefix:
                bucket = buckets[shingle]
                for other in bucket:
                    pairs.add((other, index))
                bucket.append(index)

        return sorted(pairs)

    def detect(self, units: Iterable[CodeUnit]) -> List[DuplicateCluster]:
        """Group near-duplicate units into clusters.

        Returns:
            Clusters ordered by their representative
        """
        candidates = self.comparable_units(units)
        shingle_sets = [tok.shingles(unit.tokens) for unit in candidates]

        graph = nx.Graph()
        graph.add_nodes_from(range(len(candidates)))
        links: List[Tuple[int, int, float]] = []
        for i, j in self.candidate_pairs(shingle_sets):
            if _nested(candidates[i], candidates[j]):
                continue
            score = tok.jaccard(shingle_sets[i], shingle_sets[j])
            if score >= self.min_similarity:
                links.append((i, j, score))
                graph.add_edge(i, j)

        # Components ordered by their lowest index keep cluster order deterministic
        components = sorted(
            (sorted(component) for component in nx.connected_components(graph) if len(component) > 1),
            key=lambda member_indexes: member_indexes[0],
        )
        component_of = {index: root for root, component in enumerate(components) for index in component}
        component_links: Dict[int, List[Tuple[int, int, float]]] = defaultdict(list)
        for i, j, score in links:
            component_links[component_of[i]].append((i, j, score))

        clusters = []
        for root, member_indexes in enumerate(components):
            members = tuple(candidates[index] for index in member_indexes)
            cluster_links = tuple(
                (candidates[i].identity, candidates[j].identity, score)
                for i, j, score in component_links[root]
            )
            clusters.append(DuplicateCluster(
                members=members,
                representative=members[0],
                links=cluster_links,
                similarity=min(score for _, _, score in cluster_links),
            ))
        return clusters

    def duplicate_issues(self, clusters: Sequence[DuplicateCluster]) -> List[Issue]:
        """One issue per redundant copy, skipping copies inside another reported copy."""
        redundant: List[Tuple[CodeUnit, DuplicateCluster]] = [
            (member, cluster)
            for cluster in clusters
            for member in cluster.members
            if member is not cluster.representative
        ]
        redundant_units = [member for member, _ in redundant]

        issues = []
        for member, cluster in redundant:
            if any(
                other.file_path == member.file_path and other.span.contains(member.span)
                for other in redundant_units
            ):
                continue
            best = cluster.best_similarity(member)
            severity = Severity.MAJOR if (
                cluster.size >= MAJOR_CLUSTER_SIZE or best >= MAJOR_SIMILARITY
            ) else Severity.MINOR
            rep = cluster.representative
            issues.append(Issue(
                type=IssueType.DUPLICATE_PATTERN,
                severity=severity,
                message=(
                    f"{member.kind.value.capitalize()} '{member.name}' duplicates "
                    f"'{rep.name}' ({rep.file_path}:{rep.span.start_line}); "
                    f"{best:.0%} similar, {cluster.size} copies, "
                    f"{member.token_count} redundant tokens"
                ),
                location=Location(
                    file=member.file_path,
                    line=member.span.start_line,
                    column=member.span.start_column,
                    end_line=member.span.end_line,
                    end_column=member.span.end_column,
                ),
                suggestion=SUGGESTION,
                token_cost=member.token_count,
            ))
        return issues

    def analyze(self, files: Sequence[SourceFile], units: Iterable[CodeUnit]) -> List[AnalysisResult]:
        """Run detection and produce one AnalysisResult per file."""
        clusters = self.detect(units)
        issues_by_file: Dict[str, List[Issue]] = defaultdict(list)
        for issue in self.duplicate_issues(clusters):
            issues_by_file[issue.location.file].append(issue)

        results = []
        for file in sorted(files, key=lambda f: f.path):
            file_issues = sorted(issues_by_file.get(file.path, []), key=lambda issue: issue.sort_key)
            wasted = sum(issue.token_cost or 0 for issue in file_issues)
            file_tokens = tok.count_tokens(file.content)
            ratio = min(1.0, wasted / file_tokens) if file_tokens else 0.0
            results.append(AnalysisResult(
                file_name=file.path,
                tool=TOOL_NAME,
                issues=tuple(file_issues),
                metrics=Metrics(token_cost=wasted, token_cost_ratio=ratio),
            ))
        return results


def generate_summary(results: Sequence[AnalysisResult]) -> Dict[str, int]:
    """Totals for console output: duplicate patterns and wasted tokens."""
    patterns = [
        issue for result in results for issue in result.issues
        if issue.type == IssueType.DUPLICATE_PATTERN
    ]
    return {
        'totalPatterns': len(patterns),
        'totalTokenCost': sum(issue.token_cost or 0 for issue in patterns),
    }
