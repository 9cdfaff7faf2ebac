"""Tests for result aggregation into a Report."""
import pytest

from aiready.analyzer.aggregator import aggregate, generate_summary, merge_reports, overall_score
from aiready.analyzer.models import AnalysisResult, Issue, IssueType, Location, Metrics, Severity


def _issue(file: str, line: int, severity: Severity = Severity.MINOR,
           issue_type: IssueType = IssueType.DUPLICATE_PATTERN) -> Issue:
    return Issue(type=issue_type, severity=severity, message=f"issue at {line}",
                 location=Location(file=file, line=line))


@pytest.fixture
def results():
    return [
        AnalysisResult('b.ts', 'patterns', (_issue('b.ts', 3, Severity.MAJOR),),
                       Metrics(token_cost=40, token_cost_ratio=0.5)),
        AnalysisResult('a.ts', 'patterns', (), Metrics(token_cost=0, token_cost_ratio=0.0)),
        AnalysisResult('a.ts', 'context',
                       (_issue('a.ts', 1, Severity.CRITICAL, IssueType.CIRCULAR_DEPENDENCY),),
                       Metrics(token_cost=300, complexity_score=50.0, fragmentation=0.2,
                               token_cost_ratio=0.03)),
        AnalysisResult('b.ts', 'context', (), Metrics(token_cost=120, complexity_score=0.0,
                                                      fragmentation=0.0, token_cost_ratio=0.012)),
    ]


class TestAggregate:
    """Counts, ordering and rollups."""

    def test_results_sorted_by_file_then_tool(self, results):
        report = aggregate(results, ['patterns', 'context'])
        assert [(r.file_name, r.tool) for r in report.results] == [
            ('a.ts', 'context'), ('a.ts', 'patterns'), ('b.ts', 'context'), ('b.ts', 'patterns'),
        ]

    def test_summary_counts(self, results):
        summary = aggregate(results, ['patterns', 'context']).summary
        assert summary.total_files == 2
        assert summary.total_issues == 2
        assert summary.critical_issues == 1
        assert summary.major_issues == 1
        assert summary.minor_issues == 0
        assert summary.tools_run == ('context', 'patterns')
        assert dict(summary.issues_by_tool) == {'context': 1, 'patterns': 1}

    def test_token_cost_total(self, results):
        assert aggregate(results).metrics.token_cost_total == 460

    def test_order_independent(self, results):
        forward = aggregate(results, ['patterns', 'context'])
        backward = aggregate(list(reversed(results)), ['context', 'patterns'])
        assert forward == backward
        assert forward.to_dict() == backward.to_dict()

    def test_issues_differing_only_in_cost_are_order_independent(self):
        cheap = Issue(type=IssueType.DUPLICATE_PATTERN, severity=Severity.MINOR, message="copy",
                      location=Location(file='a.py', line=4), token_cost=1)
        costly = Issue(type=IssueType.DUPLICATE_PATTERN, severity=Severity.MINOR, message="copy",
                       location=Location(file='a.py', line=4), token_cost=2)
        first = AnalysisResult('a.py', 'patterns', (cheap,), Metrics(token_cost=1))
        second = AnalysisResult('a.py', 'patterns', (costly,), Metrics(token_cost=2))

        forward = aggregate([first, second])
        backward = aggregate([second, first])
        assert forward == backward
        assert [i.token_cost for i in forward.results[0].issues] == [1, 2]

    def test_issues_differing_only_in_suggestion_are_order_independent(self):
        plain = Issue(type=IssueType.CONTEXT_FRAGMENTATION, severity=Severity.MAJOR, message="deep",
                      location=Location(file='a.py', line=1))
        advised = Issue(type=IssueType.CONTEXT_FRAGMENTATION, severity=Severity.MAJOR, message="deep",
                        location=Location(file='a.py', line=1), suggestion="split the file")
        first = AnalysisResult('a.py', 'context', (advised,), Metrics())
        second = AnalysisResult('a.py', 'context', (plain,), Metrics())
        assert aggregate([first, second]) == aggregate([second, first])

    def test_duplicate_keys_are_merged(self):
        first = AnalysisResult('a.py', 'patterns', (_issue('a.py', 9),),
                               Metrics(token_cost=10, complexity_score=20.0))
        second = AnalysisResult('a.py', 'patterns', (_issue('a.py', 2),),
                                Metrics(token_cost=5, complexity_score=70.0))
        report = aggregate([first, second])

        assert len(report.results) == 1
        merged = report.results[0]
        assert [i.location.line for i in merged.issues] == [2, 9]
        assert merged.metrics.token_cost == 15
        assert merged.metrics.complexity_score == 70.0

    def test_avg_consistency_unpopulated(self, results):
        assert aggregate(results).metrics.avg_consistency is None

    def test_avg_consistency_populated(self):
        report = aggregate([
            AnalysisResult('a.py', 'naming', (), Metrics(consistency_score=80.0)),
            AnalysisResult('b.py', 'naming', (), Metrics(consistency_score=60.0)),
        ])
        assert report.metrics.avg_consistency == pytest.approx(70.0)

    def test_empty_input(self):
        report = aggregate([], ['patterns'])
        assert report.summary.total_files == 0
        assert report.summary.issues_by_tool == (('patterns', 0),)
        assert report.metrics.overall_score == 100.0


class TestOverallScore:
    def test_no_components_scores_full(self):
        assert overall_score([AnalysisResult('a.py', 'normalize')]) == 100.0

    def test_weighted_components(self, results):
        # complexity avg 25 -> 0.75, fragmentation avg 0.1 -> 0.9,
        # cost ratio avg (0.5 + 0 + 0.03 + 0.012) / 4 -> 1 - 0.1355
        expected = 100 * (0.2 * 0.75 + 0.3 * 0.9 + 0.3 * (1 - 0.1355)) / 0.8
        assert overall_score(results) == pytest.approx(expected, abs=1e-6)

    def test_ratios_above_one_are_capped(self):
        score = overall_score([AnalysisResult('a.py', 'context', (), Metrics(token_cost_ratio=7.5))])
        assert score == 0.0


class TestMergeReports:
    def test_merge_equals_single_aggregate(self, results):
        left = aggregate(results[:2], ['patterns'])
        right = aggregate(results[2:], ['context'])
        merged = merge_reports(left, right)
        assert merged == aggregate(results, ['patterns', 'context'])

    def test_merge_is_associative(self, results):
        parts = [aggregate([result]) for result in results]
        nested = merge_reports(merge_reports(parts[0], parts[1]), merge_reports(parts[2], parts[3]))
        flat = merge_reports(*parts)
        assert nested == flat


def test_generate_summary_text(results):
    text = generate_summary(aggregate(results, ['patterns', 'context']))
    assert 'Tools run: context, patterns' in text
    assert 'Total issues: 2' in text
    assert '  patterns: 1' in text
    assert '1 critical, 1 major, 0 minor, 0 info' in text
    assert 'Overall score:' in text
