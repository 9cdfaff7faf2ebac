"""Combine per-file analyzer results into one Report.

aggregate() is associative and order-independent: results are keyed by
(file, tool), duplicates merged, and every rollup is computed from the merged
set with exactly rounded float sums.
"""
from math import fsum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    AnalysisResult, Issue, Metrics, Report, ReportMetrics, ReportSummary, Severity,
)

# Component weights for overall_score
SCORE_WEIGHTS = {
    'consistency': 0.2,
    'complexity': 0.2,
    'cohesion': 0.3,
    'token_cost': 0.3,
}


def _mean(values: Sequence[float]) -> Optional[float]:
    return fsum(values) / len(values) if values else None


def merge_results(results: Iterable[AnalysisResult]) -> List[AnalysisResult]:
    """Merge results sharing a (file, tool) key and sort them."""
    merged: Dict[Tuple[str, str], Tuple[List[Issue], Metrics]] = {}
    for result in results:
        key = (result.file_name, result.tool)
        if key in merged:
            issues, metrics = merged[key]
            issues.extend(result.issues)
            merged[key] = (issues, metrics.merge(result.metrics))
        else:
            merged[key] = (list(result.issues), result.metrics)

    return [
        AnalysisResult(
            file_name=file_name,
            tool=tool,
            issues=tuple(sorted(issues, key=lambda issue: issue.sort_key)),
            metrics=metrics,
        )
        for (file_name, tool), (issues, metrics) in sorted(merged.items())
    ]


def overall_score(results: Sequence[AnalysisResult]) -> float:
    """Weighted readiness score in [0, 100] over whichever components are populated."""
    consistency = _mean([r.metrics.consistency_score for r in results
                         if r.metrics.consistency_score is not None])
    complexity = _mean([r.metrics.complexity_score for r in results
                        if r.metrics.complexity_score is not None])
    fragmentation = _mean([r.metrics.fragmentation for r in results
                           if r.metrics.fragmentation is not None])
    cost_ratio = _mean([min(1.0, r.metrics.token_cost_ratio) for r in results
                        if r.metrics.token_cost_ratio is not None])

    components = {}
    if consistency is not None:
        components['consistency'] = consistency / 100.0
    if complexity is not None:
        components['complexity'] = 1.0 - complexity / 100.0
    if fragmentation is not None:
        components['cohesion'] = 1.0 - fragmentation
    if cost_ratio is not None:
        components['token_cost'] = 1.0 - cost_ratio

    if not components:
        return 100.0
    total_weight = fsum(SCORE_WEIGHTS[name] for name in components)
    weighted = fsum(SCORE_WEIGHTS[name] * value for name, value in components.items())
    return round(min(100.0, max(0.0, 100.0 * weighted / total_weight)), 6)


def aggregate(results: Iterable[AnalysisResult], tools: Sequence[str] = ()) -> Report:
    """Build a Report from analyzer results.

    Args:
        results: Results from any number of tools, in any order
        tools: Tools that ran; tools seen in results are added

    Returns:
        Report with sorted results, severity counts and rollup metrics
    """
    merged = merge_results(results)
    issues = [issue for result in merged for issue in result.issues]

    per_tool: Dict[str, int] = {tool: 0 for tool in tools}
    for result in merged:
        per_tool[result.tool] = per_tool.get(result.tool, 0) + len(result.issues)

    def count(severity: Severity) -> int:
        return sum(1 for issue in issues if issue.severity == severity)

    summary = ReportSummary(
        total_files=len({result.file_name for result in merged}),
        total_issues=len(issues),
        critical_issues=count(Severity.CRITICAL),
        major_issues=count(Severity.MAJOR),
        minor_issues=count(Severity.MINOR),
        info_issues=count(Severity.INFO),
        tools_run=tuple(sorted(set(tools))) if tools else tuple(sorted(per_tool)),
        issues_by_tool=tuple(sorted(per_tool.items())),
    )

    consistency = [r.metrics.consistency_score for r in merged
                   if r.metrics.consistency_score is not None]
    metrics = ReportMetrics(
        overall_score=overall_score(merged),
        token_cost_total=sum(r.metrics.token_cost or 0 for r in merged),
        avg_consistency=_mean(consistency),
    )
    return Report(summary=summary, results=tuple(merged), metrics=metrics)


def merge_reports(*reports: Report) -> Report:
    """Aggregate the union of several reports' results."""
    tools = sorted({tool for report in reports for tool in report.summary.tools_run})
    return aggregate((result for report in reports for result in report.results), tools)


def generate_summary(report: Report) -> str:
    """Human-readable summary of a Report."""
    summary = report.summary
    lines = [
        f"Tools run: {', '.join(summary.tools_run) or 'none'}",
        f"Files analyzed: {summary.total_files}",
        f"Total issues: {summary.total_issues}",
    ]
    for tool, count in summary.issues_by_tool:
        lines.append(f"  {tool}: {count}")
    lines.append(
        f"Severity: {summary.critical_issues} critical, {summary.major_issues} major, "
        f"{summary.minor_issues} minor, {summary.info_issues} info"
    )
    lines.append(f"Token cost total: {report.metrics.token_cost_total}")
    lines.append(f"Overall score: {report.metrics.overall_score:.1f}/100")
    return "\n".join(lines)
