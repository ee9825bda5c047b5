"""Pull request metric aggregation.

Reduces merged pull requests, each carrying its review comments, into:
- overall metrics (merge time, first review time, lines changed, review activity),
- per-author totals and averages,
- daily, weekly, and monthly merge-count and merge-time series.

All timings are in minutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import (
    UNKNOWN_IDENTITY,
    ContributorPullRequestMetrics,
    PullRequest,
    PullRequestMetrics,
    PullRequestReport,
    PullRequestSeries,
    PullRequestTimeSeries,
)
from .stats import minutes_between, safe_average
from .timeseries import GRANULARITIES, BucketedSeries

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _AuthorTotals:
    merged_pull_requests: int = 0
    time_to_first_review: float = 0.0
    time_to_merge: float = 0.0
    lines_changed: int = 0
    review_comments: int = 0
    review_iterations: int = 0

    def finalize(self) -> ContributorPullRequestMetrics:
        count = self.merged_pull_requests
        return ContributorPullRequestMetrics(
            mergedPullRequests=count,
            totalTimeToFirstReview=self.time_to_first_review,
            totalTimeToMerge=self.time_to_merge,
            totalLinesChanged=self.lines_changed,
            totalReviewComments=self.review_comments,
            totalReviewIterations=self.review_iterations,
            avgTimeToFirstReview=safe_average(self.time_to_first_review, count),
            avgTimeToMerge=safe_average(self.time_to_merge, count),
            avgReviewCommentsPerPR=safe_average(self.review_comments, count),
            avgReviewIterationsPerPR=safe_average(self.review_iterations, count),
        )


def compute_time_to_first_review(pr: PullRequest) -> Optional[float]:
    """Compute minutes from PR creation to its earliest dated review comment.

    Returns ``None`` when the PR has no creation time or no dated comments.
    """
    comment_times = [
        comment.created_at for comment in pr.review_comments if comment.created_at is not None
    ]
    if not comment_times:
        return None
    return minutes_between(pr.created_at, min(comment_times))


def count_review_iterations(pr: PullRequest) -> int:
    """Count review iterations as the number of distinct commenters.

    This is a simplification: it does not detect true back-and-forth review
    rounds. Comments without an author count as ``"unknown"``.
    """
    return len({comment.user_login or UNKNOWN_IDENTITY for comment in pr.review_comments})


def aggregate_pull_requests(pull_requests: List[PullRequest]) -> PullRequestReport:
    """Aggregate merged pull requests into overall, per-author, and time-series metrics.

    Business logic:
    - Each PR is attributed to its author, or ``"unknown"``.
    - Merge time (``merged_at - created_at``) is only accumulated when both
      timestamps exist, and is bucketed by ``merged_at``.
    - First review time uses the earliest review comment.
    - Review iterations are the distinct commenter count.
    - Per-author averages divide each total by the author's PR count.
    """
    authors: Dict[str, _AuthorTotals] = {}
    merge_series = BucketedSeries()

    total_time_to_merge = 0.0
    merge_samples = 0
    total_time_to_first_review = 0.0
    review_samples = 0
    total_lines_changed = 0
    total_review_comments = 0
    total_review_iterations = 0

    for pr in pull_requests:
        identity = pr.user_login or UNKNOWN_IDENTITY
        totals = authors.setdefault(identity, _AuthorTotals())
        totals.merged_pull_requests += 1

        time_to_merge = minutes_between(pr.created_at, pr.merged_at)
        if time_to_merge is not None and pr.merged_at is not None:
            total_time_to_merge += time_to_merge
            merge_samples += 1
            totals.time_to_merge += time_to_merge
            merge_series.add(pr.merged_at, time_to_merge)

        lines_changed = pr.additions + pr.deletions
        total_lines_changed += lines_changed
        totals.lines_changed += lines_changed

        comment_count = len(pr.review_comments)
        total_review_comments += comment_count
        totals.review_comments += comment_count

        if comment_count:
            time_to_first_review = compute_time_to_first_review(pr)
            if time_to_first_review is not None:
                total_time_to_first_review += time_to_first_review
                review_samples += 1
                totals.time_to_first_review += time_to_first_review

            iterations = count_review_iterations(pr)
            total_review_iterations += iterations
            totals.review_iterations += iterations

    merged_count = len(pull_requests)
    overall = PullRequestMetrics(
        mergedPullRequests=merged_count,
        avgTimeToFirstReview=safe_average(total_time_to_first_review, review_samples),
        avgTimeToMerge=safe_average(total_time_to_merge, merge_samples),
        totalLinesChanged=total_lines_changed,
        avgReviewCommentsPerPR=safe_average(total_review_comments, merged_count),
        avgReviewIterationsPerPR=safe_average(total_review_iterations, merged_count),
    )

    time_series = PullRequestTimeSeries(
        **{
            granularity: PullRequestSeries(
                mergedPullRequests=merge_series.counts(granularity),
                avgTimeToMerge=merge_series.means(granularity),
            )
            for granularity in GRANULARITIES
        }
    )

    logger.info(
        "Aggregated pull request metrics",
        extra={
            "prs_total": merged_count,
            "merge_samples": merge_samples,
            "review_samples": review_samples,
            "contributors": len(authors),
        },
    )

    return PullRequestReport(
        overall=overall,
        contributors={identity: totals.finalize() for identity, totals in authors.items()},
        time_series=time_series,
    )
