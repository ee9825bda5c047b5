"""Serialization and text rendering of a ``MetricsBundle``.

Downstream reports read fields by name, so serialized keys are the exact
camelCase metric names. Contributor maps are sorted by identity to keep the
output reproducible.
"""

from __future__ import annotations

import csv
import json
from dataclasses import fields, is_dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import MetricsBundle, TimeSeries
from .stats import format_duration


def _serialize(value: Any) -> Any:
    if isinstance(value, TimeSeries):
        return {"labels": list(value.labels), "values": list(value.values)}
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: _serialize(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, dict):
        return {key: _serialize(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, date):
        return value.isoformat()
    return value


def bundle_to_dict(bundle: MetricsBundle) -> Dict[str, Any]:
    """Convert a bundle into JSON-serializable dictionaries.

    Optional sub-bundles that were not computed are omitted.
    """
    serialized = _serialize(bundle)
    return {key: value for key, value in serialized.items() if value is not None}


def write_json(path: Union[str, Path], bundle: MetricsBundle) -> Path:
    """Write the serialized bundle to ``path`` and return the path written."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(bundle_to_dict(bundle), indent=2), encoding="utf-8")
    return output_path


def _flatten_metrics(bundle: MetricsBundle) -> Dict[str, Any]:
    sections: List[Optional[Any]] = [
        bundle.prMetrics,
        bundle.issueMetrics,
        bundle.doraMetrics,
        bundle.projectMetrics,
    ]
    row: Dict[str, Any] = {}
    for section in sections:
        if section is None:
            continue
        for item in fields(section):
            row[item.name] = getattr(section, item.name)
    return row


def write_csv(path: Union[str, Path], bundle: MetricsBundle) -> Path:
    """Write the overall metrics as a two-row CSV and return the path written.

    The header row holds the camelCase metric names and the second row their
    values. Pull request and issue metrics are always present; DORA and project
    board columns follow when they were computed. Contributor maps, time
    series, and iterations are only available in the JSON output.
    """
    row = _flatten_metrics(bundle)

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(list(row))
        writer.writerow(list(row.values()))
    return output_path


def _hours(value: float) -> str:
    return f"{value:.1f}h"


def generate_report(repo_name: str, bundle: MetricsBundle) -> str:
    """Generate a human-readable metrics report for a repository.

    The report includes overall pull request and issue metrics, per-contributor
    breakdowns, and the DORA, project board, and iteration sections when they
    were computed. Minute-based timings are formatted as ``HH:MM``.
    """
    pr = bundle.prMetrics
    issue = bundle.issueMetrics

    lines: List[str] = [
        f"Repository: {repo_name}",
        "Productivity Metrics Report",
        "",
        "1) Pull Requests",
        f"   Merged: {pr.mergedPullRequests}",
        f"   Avg time to first review: {format_duration(pr.avgTimeToFirstReview)}",
        f"   Avg time to merge: {format_duration(pr.avgTimeToMerge)}",
        f"   Lines changed: {pr.totalLinesChanged}",
        f"   Avg review comments per PR: {pr.avgReviewCommentsPerPR:.2f}",
        f"   Avg review iterations per PR: {pr.avgReviewIterationsPerPR:.2f}",
    ]

    for identity in sorted(bundle.prContributors):
        contributor = bundle.prContributors[identity]
        lines.append(
            f"   - {identity}: merged={contributor.mergedPullRequests}"
            f" | avg merge={format_duration(contributor.avgTimeToMerge)}"
            f" | lines={contributor.totalLinesChanged}"
        )

    lines.extend(
        [
            "",
            "2) Issues",
            f"   Closed: {issue.closedIssues}",
            f"   Avg resolution time: {format_duration(issue.avgIssueResolutionTime)}",
        ]
    )

    for identity in sorted(bundle.issueContributors):
        contributor = bundle.issueContributors[identity]
        lines.append(
            f"   - {identity}: closed={contributor.closedIssues}"
            f" | avg resolution={format_duration(contributor.avgIssueResolutionTime)}"
        )

    if bundle.doraMetrics is not None:
        dora = bundle.doraMetrics
        lines.extend(
            [
                "",
                "3) DORA",
                f"   Deployment frequency: {dora.deploymentFrequency}",
                f"   Lead time for changes: {_hours(dora.leadTimeForChanges)}",
                f"   Change failure rate: {dora.changeFailureRate:.1f}%",
                f"   Mean time to recovery: {_hours(dora.meanTimeToRecovery)}",
            ]
        )

    if bundle.projectMetrics is not None:
        project = bundle.projectMetrics
        lines.extend(
            [
                "",
                "4) Project Board",
                f"   Cards: {project.completedCards}/{project.totalCards} completed",
                f"   Avg card lead time: {_hours(project.avgCardLeadTime)}",
                f"   Throughput: {project.throughput:.2f} cards/week",
            ]
        )

    if bundle.iterationMetrics is not None:
        lines.extend(["", "5) Iterations"])
        for iteration in bundle.iterationMetrics:
            lines.append(
                f"   - {iteration.title} ({iteration.startDate.isoformat()}"
                f" to {iteration.endDate.isoformat()}):"
                f" {iteration.completedItems}/{iteration.totalItems} completed"
                f" | {iteration.throughput:.2f} items/week"
            )

    return "\n".join(lines)
