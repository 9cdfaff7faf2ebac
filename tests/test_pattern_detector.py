"""Tests for near-duplicate detection.

Clustering is transitive on purpose: two units can share a cluster through an
intermediate unit even when their own similarity is below the threshold.
"""
import itertools
import random

import pytest

from aiready.analyzer import tokens as tok
from aiready.analyzer.models import IssueType, Severity, SourceFile
from aiready.analyzer.normalizer import normalize
from aiready.analyzer.pattern_detector import PatternDetector, generate_summary, similarity
from conftest import SUMMARIZE_TS, synthetic_unit


def _seq(prefix: str, start: int, stop: int):
    return [f"{prefix}{i}" for i in range(start, stop)]


@pytest.fixture
def duplicated_ts():
    """The same 20-line function in a.ts and b.ts."""
    files = [SourceFile.from_text('a.ts', SUMMARIZE_TS), SourceFile.from_text('b.ts', SUMMARIZE_TS)]
    units = [unit for file in files for unit in normalize(file)[0]]
    return files, units


class TestVerbatimDuplicates:
    """A function copied verbatim into two files."""

    def test_one_cluster_with_full_similarity(self, duplicated_ts):
        _, units = duplicated_ts
        clusters = PatternDetector(0.4, 5).detect(units)
        assert len(clusters) == 1
        cluster = clusters[0]
        assert cluster.size == 2
        assert cluster.similarity == 1.0
        assert {m.file_path for m in cluster.members} == {'a.ts', 'b.ts'}
        assert cluster.representative.file_path == 'a.ts'

    def test_issue_on_non_representative_copy(self, duplicated_ts):
        files, units = duplicated_ts
        results = PatternDetector(0.4, 5).analyze(files, units)

        assert [r.file_name for r in results] == ['a.ts', 'b.ts']
        assert all(r.tool == 'patterns' for r in results)
        assert results[0].issues == ()
        assert len(results[1].issues) == 1

        issue = results[1].issues[0]
        copy = next(u for u in units if u.file_path == 'b.ts' and u.name == 'summarize')
        assert issue.type == IssueType.DUPLICATE_PATTERN
        assert issue.severity == Severity.MAJOR
        assert issue.token_cost == copy.token_count
        assert issue.suggestion == 'extract shared abstraction'
        assert issue.location.line == copy.span.start_line
        assert results[1].metrics.token_cost == copy.token_count
        assert 0.0 < results[1].metrics.token_cost_ratio <= 1.0

    def test_summary_totals(self, duplicated_ts):
        files, units = duplicated_ts
        results = PatternDetector(0.4, 5).analyze(files, units)
        summary = generate_summary(results)
        assert summary['totalPatterns'] == 1
        assert summary['totalTokenCost'] == results[1].issues[0].token_cost

    def test_units_below_min_lines_never_cluster(self, duplicated_ts):
        _, units = duplicated_ts
        assert PatternDetector(0.4, 21).detect(units) == []

    def test_detection_is_deterministic(self, duplicated_ts):
        _, units = duplicated_ts
        first = PatternDetector(0.4, 5).detect(units)
        second = PatternDetector(0.4, 5).detect(list(reversed(units)))
        assert first == second


class TestSimilarity:
    def test_symmetric(self):
        a = synthetic_unit('a.py', _seq('t', 0, 12))
        b = synthetic_unit('b.py', _seq('t', 4, 16))
        assert similarity(a, b) == similarity(b, a)

    def test_renamed_copy_is_identical(self):
        first = normalize(SourceFile.from_text('a.py', "def f(a, b):\n    return a * b + 1\n"))[0][1]
        second = normalize(SourceFile.from_text('b.py', "def g(x, y):\n    return x * y + 7\n"))[0][1]
        assert similarity(first, second) == 1.0


class TestClustering:
    """Cluster shape, severity and report suppression."""

    def test_transitive_relaxation(self):
        """A~B and B~C link A and C even though A~C is zero."""
        a = synthetic_unit('a.py', _seq('t', 0, 10))
        b = synthetic_unit('b.py', _seq('t', 3, 13))
        c = synthetic_unit('c.py', _seq('t', 6, 16))
        assert tok.jaccard(tok.shingles(a.tokens), tok.shingles(c.tokens)) == 0.0

        clusters = PatternDetector(0.3, 1).detect([c, a, b])
        assert len(clusters) == 1
        assert clusters[0].members == (a, b, c)
        assert clusters[0].similarity == pytest.approx(1 / 3)

    def test_cluster_of_three_is_major(self):
        a = synthetic_unit('a.py', _seq('t', 0, 10))
        b = synthetic_unit('b.py', _seq('t', 3, 13))
        c = synthetic_unit('c.py', _seq('t', 6, 16))
        detector = PatternDetector(0.3, 1)
        issues = detector.duplicate_issues(detector.detect([a, b, c]))
        assert [i.location.file for i in issues] == ['b.py', 'c.py']
        assert all(i.severity == Severity.MAJOR for i in issues)

    def test_partial_pair_is_minor(self):
        a = synthetic_unit('a.py', _seq('t', 0, 20))
        b = synthetic_unit('b.py', _seq('t', 0, 16) + _seq('z', 0, 4))
        detector = PatternDetector(0.4, 1)
        clusters = detector.detect([a, b])
        assert clusters[0].similarity == pytest.approx(0.6)
        issues = detector.duplicate_issues(clusters)
        assert len(issues) == 1
        assert issues[0].severity == Severity.MINOR

    def test_nested_units_are_not_compared(self):
        outer = synthetic_unit('a.py', _seq('t', 0, 20), start=1, end=30, name='outer')
        inner = synthetic_unit('a.py', _seq('t', 0, 20), start=5, end=20, name='inner')
        assert PatternDetector(0.4, 1).detect([outer, inner]) == []

    def test_nested_copy_is_reported_once(self):
        outer_a = synthetic_unit('a.py', _seq('o', 0, 30), start=1, end=30, name='outer')
        inner_a = synthetic_unit('a.py', _seq('i', 0, 10), start=5, end=15, name='inner')
        outer_b = synthetic_unit('b.py', _seq('o', 0, 30), start=1, end=30, name='outer')
        inner_b = synthetic_unit('b.py', _seq('i', 0, 10), start=5, end=15, name='inner')

        detector = PatternDetector(0.4, 1)
        clusters = detector.detect([outer_a, inner_a, outer_b, inner_b])
        assert len(clusters) == 2

        issues = detector.duplicate_issues(clusters)
        assert len(issues) == 1
        assert issues[0].location.line == 1
        assert issues[0].token_cost == outer_b.token_count

    def test_module_units_are_ignored(self, duplicated_ts):
        _, units = duplicated_ts
        detector = PatternDetector(0.4, 1)
        eligible = detector.comparable_units(units)
        assert all(unit.name != '<module>' for unit in eligible)


class TestPrefixFilter:
    """The inverted index must never miss a pair at or above the threshold."""

    @pytest.mark.parametrize('threshold', [0.0, 0.2, 0.4, 0.5, 0.8, 1.0])
    def test_candidates_cover_every_linked_pair(self, threshold):
        rng = random.Random(7)
        vocabulary = [f"w{i}" for i in range(6)]
        base = [rng.choice(vocabulary) for _ in range(40)]
        sets = []
        for _ in range(25):
            tokens = list(base)
            for _ in range(rng.randint(0, 12)):
                tokens[rng.randrange(len(tokens))] = rng.choice(vocabulary)
            sets.append(tok.shingles(tokens))

        detector = PatternDetector(threshold, 1)
        candidates = set(detector.candidate_pairs(sets))
        for i, j in itertools.combinations(range(len(sets)), 2):
            score = tok.jaccard(sets[i], sets[j])
            if score >= threshold and score > 0:
                assert (i, j) in candidates, f"missed pair {i},{j} at {score:.3f}"


DEFAULT_EXPORT_BODY = """(items) {
  const totals = new Map();
  for (const item of items) {
    const key = item.category || 'other';
    totals.set(key, (totals.get(key) || 0) + item.amount);
  }
  return Array.from(totals.entries()).sort((a, b) => b[1] - a[1]);
}
"""


class TestAnonymousFunctions:
    """Units without a declared name still take part in detection."""

    def _units(self, source):
        files = [SourceFile.from_text('a.ts', source), SourceFile.from_text('b.ts', source)]
        return [unit for file in files for unit in normalize(file)[0]]

    def test_default_export_function_copies(self):
        clusters = PatternDetector(0.4, 5).detect(self._units("export default function " + DEFAULT_EXPORT_BODY))
        assert len(clusters) == 1
        assert [(m.file_path, m.name) for m in clusters[0].members] == [('a.ts', 'default'), ('b.ts', 'default')]

    def test_default_export_arrow_copies(self):
        source = "export default " + DEFAULT_EXPORT_BODY.replace("(items) {", "(items) => {", 1)
        clusters = PatternDetector(0.4, 5).detect(self._units(source))
        assert len(clusters) == 1
        assert clusters[0].similarity == 1.0

    def test_arrow_field_copies(self):
        body = DEFAULT_EXPORT_BODY.replace("(items) {", "(items) => {", 1)
        source = "export class Ledger {\n  group = " + body.rstrip("\n") + ";\n}\n"
        clusters = PatternDetector(0.4, 5).detect(self._units(source))
        names = {(m.file_path, m.name) for cluster in clusters for m in cluster.members}
        assert ('a.ts', 'Ledger.group') in names
        assert ('b.ts', 'Ledger.group') in names
