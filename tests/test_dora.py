"""Tests for DORA metric correlation."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from productivity_metrics.dora import calculate_dora_metrics, find_first_deployment, is_incident
from productivity_metrics.models import Deployment, Issue, PullRequest, Release

MERGED = datetime(2026, 5, 4, 12, 0, 0, tzinfo=timezone.utc)


def _pr(number: int = 1, sha: str | None = "abc123", merged: datetime | None = MERGED) -> PullRequest:
    return PullRequest(
        number=number,
        user_login="alice",
        created_at=MERGED - timedelta(hours=5),
        merged_at=merged,
        merge_commit_sha=sha,
    )


def _deployment(deployment_id: int, sha: str | None, hours_after_merge: float) -> Deployment:
    return Deployment(
        id=deployment_id,
        sha=sha,
        created_at=MERGED + timedelta(hours=hours_after_merge),
    )


def _issue(labels: list[str], hours_open: float | None = 4) -> Issue:
    created = MERGED
    closed = created + timedelta(hours=hours_open) if hours_open is not None else None
    return Issue(
        number=1,
        user_login="ops",
        assignee_login=None,
        created_at=created,
        closed_at=closed,
        labels=labels,
    )


def test_bug_issue_with_one_deployment_gives_full_failure_rate_and_recovery_time():
    """Verify one bug closed after 4 hours against one deployment yields 100% and 4h."""
    metrics = calculate_dora_metrics(
        pull_requests=[],
        issues=[_issue(["bug"], hours_open=4)],
        deployments=[_deployment(1, "zzz", 1)],
        releases=[],
    )

    assert metrics.deploymentFrequency == 1
    assert metrics.changeFailureRate == pytest.approx(100.0)
    assert metrics.meanTimeToRecovery == pytest.approx(4.0)


def test_deployment_frequency_counts_deployments_and_releases():
    """Verify deployment frequency adds deployments and releases in the window."""
    releases = [Release(id=1, tag_name="v1.0.0", target_commitish="main", published_at=MERGED)]

    metrics = calculate_dora_metrics([], [], [_deployment(1, "a", 0), _deployment(2, "b", 1)], releases)

    assert metrics.deploymentFrequency == 3


def test_first_deployment_prefers_earliest_eligible_match():
    """Verify lead-time matching selects the earliest deployment at or after the merge."""
    deployments = [
        _deployment(1, "abc123", 6),
        _deployment(2, "abc123", -2),
        _deployment(3, "other", 1),
        _deployment(4, "abc123", 3),
    ]

    match = find_first_deployment(_pr(), deployments)

    assert match is not None
    assert match.id == 4


def test_deployment_at_exact_merge_instant_is_eligible():
    """Verify a deployment created at the merge instant matches with zero lead time."""
    metrics = calculate_dora_metrics([_pr()], [], [_deployment(1, "abc123", 0)], [])

    assert metrics.leadTimeForChanges == pytest.approx(0.0)


def test_lead_time_averages_only_matched_pull_requests():
    """Verify unmatched PRs are excluded from lead time rather than counted as zero."""
    prs = [_pr(1, "abc123"), _pr(2, "def456"), _pr(3, "nomatch"), _pr(4, None)]
    deployments = [_deployment(1, "abc123", 2), _deployment(2, "def456", 6)]

    metrics = calculate_dora_metrics(prs, [], deployments, [])

    assert metrics.leadTimeForChanges == pytest.approx(4.0)


def test_no_deployments_yields_zero_failure_rate():
    """Verify the change failure rate is zero when nothing was deployed."""
    metrics = calculate_dora_metrics([_pr()], [_issue(["incident"])], [], [])

    assert metrics.deploymentFrequency == 0
    assert metrics.changeFailureRate == 0
    assert metrics.leadTimeForChanges == 0


def test_incident_labels_match_case_insensitively():
    """Verify Bug and INCIDENT labels are treated as incidents while others are not."""
    assert is_incident(_issue(["Bug"]))
    assert is_incident(_issue(["enhancement", "INCIDENT"]))
    assert not is_incident(_issue(["feature", "bugfix-candidate"]))


def test_mttr_ignores_incidents_without_both_timestamps():
    """Verify recovery time only averages incidents that have both timestamps."""
    issues = [_issue(["bug"], hours_open=2), _issue(["bug"], hours_open=None), _issue(["docs"], 50)]

    metrics = calculate_dora_metrics([], issues, [_deployment(1, "x", 0), _deployment(2, "y", 0)], [])

    assert metrics.meanTimeToRecovery == pytest.approx(2.0)
    assert metrics.changeFailureRate == pytest.approx(100.0)
