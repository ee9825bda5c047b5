"""Issue metric aggregation.

Reduces closed issues into overall resolution time, per-contributor totals,
and daily, weekly, and monthly series. Issues are attributed to the assignee,
then the author, then ``"unknown"``. Timings are in minutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

from .models import (
    UNKNOWN_IDENTITY,
    ContributorIssueMetrics,
    Issue,
    IssueMetrics,
    IssueReport,
    IssueSeries,
    IssueTimeSeries,
)
from .stats import minutes_between, safe_average
from .timeseries import GRANULARITIES, BucketedSeries

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ContributorTotals:
    closed_issues: int = 0
    resolution_time: float = 0.0

    def finalize(self) -> ContributorIssueMetrics:
        return ContributorIssueMetrics(
            closedIssues=self.closed_issues,
            totalIssueResolutionTime=self.resolution_time,
            avgIssueResolutionTime=safe_average(self.resolution_time, self.closed_issues),
        )


def issue_identity(issue: Issue) -> str:
    return issue.assignee_login or issue.user_login or UNKNOWN_IDENTITY


def aggregate_issues(issues: List[Issue]) -> IssueReport:
    """Aggregate closed issues into overall, per-contributor, and time-series metrics.

    Issues missing either timestamp still count toward ``closedIssues`` but are
    excluded from resolution-time totals, averages, and time series.
    """
    contributors: Dict[str, _ContributorTotals] = {}
    resolution_series = BucketedSeries()

    total_resolution_time = 0.0
    resolution_samples = 0

    for issue in issues:
        totals = contributors.setdefault(issue_identity(issue), _ContributorTotals())
        totals.closed_issues += 1

        resolution_time = minutes_between(issue.created_at, issue.closed_at)
        if resolution_time is None or issue.closed_at is None:
            continue

        total_resolution_time += resolution_time
        resolution_samples += 1
        totals.resolution_time += resolution_time
        resolution_series.add(issue.closed_at, resolution_time)

    overall = IssueMetrics(
        closedIssues=len(issues),
        avgIssueResolutionTime=safe_average(total_resolution_time, resolution_samples),
    )

    time_series = IssueTimeSeries(
        **{
            granularity: IssueSeries(
                closedIssues=resolution_series.counts(granularity),
                avgIssueResolutionTime=resolution_series.means(granularity),
            )
            for granularity in GRANULARITIES
        }
    )

    logger.info(
        "Aggregated issue metrics",
        extra={
            "issues_total": len(issues),
            "resolution_samples": resolution_samples,
            "contributors": len(contributors),
        },
    )

    return IssueReport(
        overall=overall,
        contributors={identity: totals.finalize() for identity, totals in contributors.items()},
        time_series=time_series,
    )
