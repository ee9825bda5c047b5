"""DORA metric correlation.

Combines pull requests, issues, deployments, and releases already filtered to
the analysis window into the four DORA indicators. These are approximations:
- Deployment frequency is the in-window deployment plus release count.
- Lead time matches a PR's merge commit SHA to a deployment SHA exactly, so
  deployments of squash or rebase commits other than the recorded merge
  commit are not attributed.
- Incidents are issues labeled ``bug`` or ``incident``.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .models import Deployment, DoraMetrics, Issue, PullRequest, Release
from .stats import hours_between, safe_average

logger = logging.getLogger(__name__)

INCIDENT_LABELS = frozenset({"bug", "incident"})


def is_incident(issue: Issue) -> bool:
    """Return ``True`` if any label matches an incident label, ignoring case."""
    return any(label.strip().lower() in INCIDENT_LABELS for label in issue.labels)


def find_first_deployment(
    pr: PullRequest,
    deployments: List[Deployment],
) -> Optional[Deployment]:
    """Find the earliest deployment of the PR's merge commit at or after its merge.

    Returns ``None`` if the PR has no merge commit or merge time, or no
    deployment of that commit happened at or after the merge.
    """
    if pr.merge_commit_sha is None or pr.merged_at is None:
        return None

    merged_at = pr.merged_at
    eligible = [
        deployment
        for deployment in deployments
        if deployment.sha == pr.merge_commit_sha
        and deployment.created_at is not None
        and deployment.created_at >= merged_at
    ]
    if not eligible:
        return None
    return min(eligible, key=lambda deployment: deployment.created_at or merged_at)


def calculate_dora_metrics(
    pull_requests: List[PullRequest],
    issues: List[Issue],
    deployments: List[Deployment],
    releases: List[Release],
) -> DoraMetrics:
    """Calculate deployment frequency, lead time, change failure rate, and MTTR.

    Business logic:
    - ``deploymentFrequency`` = deployments + releases in the window.
    - ``leadTimeForChanges`` = mean hours from merge to the first matching
      deployment, over PRs that found a match. Unmatched PRs are excluded.
    - ``changeFailureRate`` = incident issues / deployment frequency * 100,
      or ``0`` without deployments.
    - ``meanTimeToRecovery`` = mean hours from creation to close of incident
      issues that have both timestamps.
    """
    deployment_frequency = len(deployments) + len(releases)

    total_lead_time = 0.0
    matched_pull_requests = 0
    for pr in pull_requests:
        deployment = find_first_deployment(pr, deployments)
        if deployment is None:
            continue
        lead_time = hours_between(pr.merged_at, deployment.created_at)
        if lead_time is None:
            continue
        total_lead_time += lead_time
        matched_pull_requests += 1

    incidents = [issue for issue in issues if is_incident(issue)]
    if deployment_frequency > 0:
        change_failure_rate = len(incidents) / deployment_frequency * 100
    else:
        change_failure_rate = 0.0

    total_recovery_time = 0.0
    recovered_incidents = 0
    for issue in incidents:
        recovery_time = hours_between(issue.created_at, issue.closed_at)
        if recovery_time is None:
            continue
        total_recovery_time += recovery_time
        recovered_incidents += 1

    logger.info(
        "Calculated DORA metrics",
        extra={
            "deployment_frequency": deployment_frequency,
            "matched_pull_requests": matched_pull_requests,
            "incidents": len(incidents),
        },
    )

    return DoraMetrics(
        deploymentFrequency=deployment_frequency,
        leadTimeForChanges=safe_average(total_lead_time, matched_pull_requests),
        changeFailureRate=change_failure_rate,
        meanTimeToRecovery=safe_average(total_recovery_time, recovered_incidents),
    )
