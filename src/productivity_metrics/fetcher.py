"""Record collection on top of ``GitHubClient``.

Per-pull-request detail, review comment, and file requests are fanned out to
a thread pool with a fixed number of workers, so at most ``max_workers``
requests are in flight at once. All requests finish before aggregation starts.
A failed request aborts collection: pending requests are cancelled and the
error propagates to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .github_client import GitHubClient
from .models import ProjectV2Item, PullRequest
from .projects import BoardColumn

logger = logging.getLogger(__name__)


def collect_pull_requests(
    client: GitHubClient,
    owner: str,
    repo: str,
    start: datetime,
    end: datetime,
    max_workers: int,
) -> List[PullRequest]:
    """List merged pull requests and attach details, review comments, and files.

    Args:
        client: GitHub client (cache-wrapped).
        owner: Repository owner.
        repo: Repository name.
        start: Start of the analysis window.
        end: End of the analysis window.
        max_workers: Maximum number of simultaneous in-flight requests.

    Returns:
        Fully populated pull requests in listing order.
    """
    listed = client.list_pull_requests(owner, repo, start, end)
    logger.info(
        "Fetched pull request listing",
        extra={"repo": f"{owner}/{repo}", "prs_total": len(listed)},
    )
    if not listed:
        return []

    futures: Dict[Tuple[str, int], Future[Any]] = {}
    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        for pr in listed:
            futures[("detail", pr.number)] = executor.submit(
                client.get_pull_request, owner, repo, pr.number
            )
            futures[("review_comments", pr.number)] = executor.submit(
                client.list_review_comments, owner, repo, pr.number
            )
            futures[("files", pr.number)] = executor.submit(
                client.list_pull_request_files, owner, repo, pr.number
            )

        results = {key: future.result() for key, future in futures.items()}
    except BaseException:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    pull_requests: List[PullRequest] = []
    for pr in listed:
        detail: PullRequest = results[("detail", pr.number)]
        pull_requests.append(
            PullRequest(
                number=pr.number,
                user_login=detail.user_login or pr.user_login,
                created_at=detail.created_at or pr.created_at,
                merged_at=detail.merged_at or pr.merged_at,
                additions=detail.additions,
                deletions=detail.deletions,
                merge_commit_sha=detail.merge_commit_sha or pr.merge_commit_sha,
                review_comments=results[("review_comments", pr.number)],
                files=results[("files", pr.number)],
            )
        )

    logger.info(
        "Fetched pull request details",
        extra={"repo": f"{owner}/{repo}", "requests": len(futures), "max_workers": max_workers},
    )
    return pull_requests


def fetch_project_board(
    client: GitHubClient,
    owner: str,
    repo: str,
    project_name: str,
) -> Optional[List[BoardColumn]]:
    """Resolve a classic project board by name and load its columns and cards.

    Returns:
        Columns paired with their cards, or ``None`` if no project is named
        ``project_name`` (case-insensitive).
    """
    normalized = project_name.strip().lower()
    project = next(
        (
            candidate
            for candidate in client.list_projects(owner, repo)
            if candidate.name.strip().lower() == normalized
        ),
        None,
    )
    if project is None:
        logger.warning(
            "Project board not found",
            extra={"repo": f"{owner}/{repo}", "project_name": project_name},
        )
        return None

    return [
        (column, client.list_column_cards(column.id))
        for column in client.list_project_columns(project.id)
    ]


def fetch_project_iterations(
    client: GitHubClient,
    owner: str,
    number: int,
    iteration_field: str,
    status_field: str,
) -> Optional[List[ProjectV2Item]]:
    """Resolve a project (v2) by number and load its items.

    Returns:
        The project's items, or ``None`` if the project cannot be resolved.
    """
    project_id = client.get_project_v2(owner, number)
    if project_id is None:
        logger.warning("Project (v2) not found", extra={"owner": owner, "project_number": number})
        return None

    return client.get_project_v2_items(project_id, iteration_field, status_field)
