"""Domain models for GitHub productivity metrics.

Input records intentionally model only the subset of GitHub payload fields that
the aggregators need, and keep GitHub's field names. Output structures keep the
camelCase field names that downstream reports format by convention.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

UNKNOWN_IDENTITY = "unknown"


@dataclass(slots=True)
class ReviewComment:
    """Represents a pull request review comment."""

    user_login: Optional[str]
    created_at: Optional[datetime]


@dataclass(slots=True)
class PullRequest:
    """Represents a merged pull request with its review comments attached."""

    number: int
    user_login: Optional[str]
    created_at: Optional[datetime]
    merged_at: Optional[datetime]
    additions: int = 0
    deletions: int = 0
    merge_commit_sha: Optional[str] = None
    review_comments: List[ReviewComment] = field(default_factory=list)
    files: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Issue:
    """Represents a closed issue (pull requests excluded)."""

    number: int
    user_login: Optional[str]
    assignee_login: Optional[str]
    created_at: Optional[datetime]
    closed_at: Optional[datetime]
    labels: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Deployment:
    """Represents a deployment of a specific commit."""

    id: int
    sha: Optional[str]
    created_at: Optional[datetime]
    environment: Optional[str] = None


@dataclass(slots=True)
class Release:
    """Represents a published release."""

    id: int
    tag_name: str
    target_commitish: Optional[str]
    published_at: Optional[datetime]


@dataclass(slots=True)
class Project:
    """Represents a classic project board attached to a repository."""

    id: int
    name: str


@dataclass(slots=True)
class ProjectColumn:
    """Represents a classic project board column."""

    id: int
    name: str


@dataclass(slots=True)
class ProjectCard:
    """Represents a card on a classic project board."""

    id: int
    column_id: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@dataclass(slots=True)
class IterationValue:
    """Represents an item's assignment to a project (v2) iteration."""

    iteration_id: str
    title: str
    start_date: date
    duration: int


@dataclass(slots=True)
class ProjectV2Item:
    """Represents a project (v2) item with its iteration and status field values."""

    id: str
    content_url: Optional[str]
    iteration: Optional[IterationValue]
    status: Optional[str]


@dataclass(frozen=True)
class TimeSeries:
    """Ordered ``(label, value)`` pairs, labels strictly ascending."""

    labels: Tuple[str, ...] = ()
    values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class PullRequestMetrics:
    """Overall pull request metrics. Timings are in minutes."""

    mergedPullRequests: int
    avgTimeToFirstReview: float
    avgTimeToMerge: float
    totalLinesChanged: int
    avgReviewCommentsPerPR: float
    avgReviewIterationsPerPR: float


@dataclass(frozen=True)
class ContributorPullRequestMetrics:
    """Per-author pull request totals and averages. Timings are in minutes."""

    mergedPullRequests: int
    totalTimeToFirstReview: float
    totalTimeToMerge: float
    totalLinesChanged: int
    totalReviewComments: int
    totalReviewIterations: int
    avgTimeToFirstReview: float
    avgTimeToMerge: float
    avgReviewCommentsPerPR: float
    avgReviewIterationsPerPR: float


@dataclass(frozen=True)
class IssueMetrics:
    """Overall issue metrics. Timings are in minutes."""

    closedIssues: int
    avgIssueResolutionTime: float


@dataclass(frozen=True)
class ContributorIssueMetrics:
    """Per-assignee issue totals and averages. Timings are in minutes."""

    closedIssues: int
    totalIssueResolutionTime: float
    avgIssueResolutionTime: float


@dataclass(frozen=True)
class PullRequestSeries:
    mergedPullRequests: TimeSeries
    avgTimeToMerge: TimeSeries


@dataclass(frozen=True)
class PullRequestTimeSeries:
    daily: PullRequestSeries
    weekly: PullRequestSeries
    monthly: PullRequestSeries


@dataclass(frozen=True)
class IssueSeries:
    closedIssues: TimeSeries
    avgIssueResolutionTime: TimeSeries


@dataclass(frozen=True)
class IssueTimeSeries:
    daily: IssueSeries
    weekly: IssueSeries
    monthly: IssueSeries


@dataclass(frozen=True)
class DoraMetrics:
    """DORA indicators. Lead time and recovery are in hours, failure rate in percent."""

    deploymentFrequency: int
    leadTimeForChanges: float
    changeFailureRate: float
    meanTimeToRecovery: float


@dataclass(frozen=True)
class ProjectMetrics:
    """Classic project board metrics. Lead time is in hours, throughput in cards per week."""

    totalCards: int
    completedCards: int
    avgCardLeadTime: float
    throughput: float


@dataclass(frozen=True)
class IterationMetrics:
    """Throughput for a single project (v2) iteration."""

    iterationId: str
    title: str
    startDate: date
    endDate: date
    totalItems: int
    completedItems: int
    throughput: float
    totalStoryPoints: int = 0
    completedStoryPoints: int = 0


@dataclass(frozen=True)
class PullRequestReport:
    """Output of the pull request aggregator."""

    overall: PullRequestMetrics
    contributors: Dict[str, ContributorPullRequestMetrics]
    time_series: PullRequestTimeSeries


@dataclass(frozen=True)
class IssueReport:
    """Output of the issue aggregator."""

    overall: IssueMetrics
    contributors: Dict[str, ContributorIssueMetrics]
    time_series: IssueTimeSeries


@dataclass(frozen=True)
class MetricsBundle:
    """Every metric produced for one repository and analysis window."""

    prMetrics: PullRequestMetrics
    issueMetrics: IssueMetrics
    prContributors: Dict[str, ContributorPullRequestMetrics]
    issueContributors: Dict[str, ContributorIssueMetrics]
    prTimeSeries: PullRequestTimeSeries
    issueTimeSeries: IssueTimeSeries
    doraMetrics: Optional[DoraMetrics] = None
    projectMetrics: Optional[ProjectMetrics] = None
    iterationMetrics: Optional[List[IterationMetrics]] = None
