"""GitHub REST and GraphQL client for productivity metric data retrieval."""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from .cache import RecordCache, build_cache_key
from .errors import ApiError, AuthenticationError, DataValidationError
from .models import (
    Deployment,
    IterationValue,
    Issue,
    Project,
    ProjectCard,
    ProjectColumn,
    ProjectV2Item,
    PullRequest,
    Release,
    ReviewComment,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROJECT_V2_QUERY = """
query($owner: String!, $number: Int!) {
  repositoryOwner(login: $owner) {
    ... on ProjectV2Owner {
      projectV2(number: $number) {
        id
        title
      }
    }
  }
}
"""

PROJECT_V2_ITEMS_QUERY = """
query($projectId: ID!, $iterationField: String!, $statusField: String!, $cursor: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 100, after: $cursor) {
        nodes {
          id
          content {
            ... on Issue { url }
            ... on PullRequest { url }
            ... on DraftIssue { title }
          }
          iteration: fieldValueByName(name: $iterationField) {
            ... on ProjectV2ItemFieldIterationValue {
              iterationId
              title
              startDate
              duration
            }
          }
          status: fieldValueByName(name: $statusField) {
            ... on ProjectV2ItemFieldSingleSelectValue {
              name
            }
          }
        }
        pageInfo {
          hasNextPage
          endCursor
        }
      }
    }
  }
}
"""


class GitHubClient:
    """Small, typed client for the GitHub APIs that feed the metric aggregators.

    Every listing call is wrapped by the optional ``RecordCache``. Raw JSON
    payloads are cached and normalized into models afterwards, so cached and
    fresh runs produce identical records.
    """

    _API_URL = "https://api.github.com"
    _GRAPHQL_URL = "https://api.github.com/graphql"
    _API_VERSION = "2022-11-28"
    _PAGE_SIZE = 100
    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30

    def __init__(
        self,
        token: str,
        cache: Optional[RecordCache] = None,
        timeout_seconds: int = 30,
    ) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            token: GitHub Personal Access Token.
            cache: Record cache wrapping each listing call. ``None`` disables caching.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._cache = cache
        self._timeout_seconds = timeout_seconds

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": self._API_VERSION,
            }
        )

    def _build_url(self, path: str) -> str:
        """Build a fully qualified REST API URL from a path."""
        return f"{self._API_URL}/{path.lstrip('/')}"

    def _format_datetime(self, value: datetime) -> str:
        """Format a datetime as UTC ISO8601 suitable for GitHub query params."""
        utc_value = value.astimezone(timezone.utc)
        return utc_value.replace(microsecond=0).isoformat().replace("+00:00", "Z")

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        """Parse GitHub ISO8601 timestamps into timezone-aware datetimes."""
        if not value:
            return None

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(normalized)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Execute a request with retry logic for 429/5xx responses.

        Raises:
            AuthenticationError: If GitHub rejects the token (HTTP 401).
            ApiError: If the request repeatedly fails, returns HTTP >= 400,
                or does not return valid JSON.
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"GitHub request failed after retries: {method} {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._MAX_RETRIES:
                logger.info(
                    "Retrying GitHub request",
                    extra={"url": url, "status_code": status_code, "attempt": attempt},
                )
                time.sleep(self._extract_backoff_seconds(response, attempt))
                continue

            if status_code == 401:
                raise AuthenticationError(
                    "GitHub rejected the configured token (HTTP 401). "
                    "Check the 'GITHUB_TOKEN' environment variable."
                )

            if status_code >= 400:
                raise ApiError(
                    "GitHub API request failed: "
                    f"{method} {url} returned {status_code} - {response.text}",
                    status_code=status_code,
                )

            try:
                return response.json()
            except ValueError as exc:
                raise ApiError(f"GitHub API returned invalid JSON: {method} {url}") from exc

        raise ApiError(f"GitHub request failed after retries: {method} {url}") from last_error

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request_json("GET", self._build_url(path), params=params)

    def _graphql(
        self,
        query: str,
        variables: Dict[str, Any],
        allow_not_found: bool = False,
    ) -> Dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` object.

        Args:
            query: GraphQL document.
            variables: Query variables.
            allow_not_found: Drop ``NOT_FOUND`` errors; the missing node is
                then ``null`` in the returned data.

        Raises:
            ApiError: If the response carries GraphQL errors or has no data.
        """
        payload = self._request_json(
            "POST",
            self._GRAPHQL_URL,
            json_body={"query": query, "variables": variables},
        )
        if not isinstance(payload, dict):
            raise ApiError("GitHub GraphQL API returned unexpected payload shape.")

        errors = payload.get("errors") or []
        if allow_not_found:
            missing = [
                error
                for error in errors
                if isinstance(error, dict) and error.get("type") == "NOT_FOUND"
            ]
            if missing:
                logger.info(
                    "GraphQL node not found",
                    extra={"paths": [error.get("path") for error in missing]},
                )
            errors = [error for error in errors if error not in missing]
        if errors:
            raise ApiError(f"GitHub GraphQL errors: {errors}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ApiError("GitHub GraphQL API returned no data.")
        return data

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect every page of a REST listing.

        Uses page-based pagination with a fixed ``per_page`` and stops at the
        first page shorter than the page size.
        """
        items: List[Dict[str, Any]] = []
        page = 1

        while True:
            query: Dict[str, Any] = dict(params or {})
            query["per_page"] = self._PAGE_SIZE
            query["page"] = page

            payload = self._get_json(path, params=query)
            if not isinstance(payload, list):
                raise ApiError(f"GitHub API returned unexpected payload shape: GET {path}")

            items.extend(payload)
            logger.debug(
                "Fetched page",
                extra={"api_path": path, "page": page, "page_items": len(payload)},
            )

            if len(payload) < self._PAGE_SIZE:
                break

            page += 1

        return items

    def _cached(self, key: str, loader: Callable[[], T]) -> T:
        if self._cache is None:
            return loader()
        return self._cache.get_or_fetch(key, loader)

    def _within(self, value: Optional[str], start: datetime, end: datetime) -> bool:
        instant = self._parse_datetime(value)
        return instant is not None and start <= instant <= end

    def _login(self, user: Any) -> Optional[str]:
        if isinstance(user, dict) and user.get("login"):
            return str(user["login"])
        return None

    def _parse_pull_request(self, item: Dict[str, Any]) -> PullRequest:
        number = item.get("number")
        if number is None:
            raise DataValidationError(
                f"GitHub pull request payload is missing required field 'number': {item}"
            )

        return PullRequest(
            number=int(number),
            user_login=self._login(item.get("user")),
            created_at=self._parse_datetime(item.get("created_at")),
            merged_at=self._parse_datetime(item.get("merged_at")),
            additions=int(item.get("additions") or 0),
            deletions=int(item.get("deletions") or 0),
            merge_commit_sha=item.get("merge_commit_sha") or None,
        )

    def _parse_issue(self, item: Dict[str, Any]) -> Issue:
        number = item.get("number")
        if number is None:
            raise DataValidationError(
                f"GitHub issue payload is missing required field 'number': {item}"
            )

        labels: List[str] = []
        for label in item.get("labels") or []:
            name = label.get("name") if isinstance(label, dict) else label
            if name:
                labels.append(str(name))

        return Issue(
            number=int(number),
            user_login=self._login(item.get("user")),
            assignee_login=self._login(item.get("assignee")),
            created_at=self._parse_datetime(item.get("created_at")),
            closed_at=self._parse_datetime(item.get("closed_at")),
            labels=labels,
        )

    def list_pull_requests(
        self,
        owner: str,
        repo: str,
        start: datetime,
        end: datetime,
    ) -> List[PullRequest]:
        """List pull requests merged within ``[start, end]``.

        Queries closed pull requests and keeps only those whose ``merged_at``
        falls inside the window. Detail fields such as additions, deletions,
        and review comments are not part of the listing payload.
        """
        def load() -> List[Dict[str, Any]]:
            return [
                item
                for item in self._paginate(f"repos/{owner}/{repo}/pulls", {"state": "closed"})
                if self._within(item.get("merged_at"), start, end)
            ]

        payload = self._cached(build_cache_key("pulls", owner, repo, start, end), load)
        return [self._parse_pull_request(item) for item in payload]

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Fetch a single pull request including additions and deletions."""
        def load() -> Dict[str, Any]:
            payload = self._get_json(f"repos/{owner}/{repo}/pulls/{number}")
            if not isinstance(payload, dict):
                raise ApiError(
                    f"GitHub API returned unexpected payload shape for pull request #{number}"
                )
            return payload

        payload = self._cached(build_cache_key("pull", owner, repo, number), load)
        return self._parse_pull_request(payload)

    def list_review_comments(self, owner: str, repo: str, number: int) -> List[ReviewComment]:
        """List review comments for a pull request."""
        payload = self._cached(
            build_cache_key("review-comments", owner, repo, number),
            lambda: self._paginate(f"repos/{owner}/{repo}/pulls/{number}/comments"),
        )
        return [
            ReviewComment(
                user_login=self._login(item.get("user")),
                created_at=self._parse_datetime(item.get("created_at")),
            )
            for item in payload
        ]

    def list_pull_request_files(self, owner: str, repo: str, number: int) -> List[str]:
        """List the file names changed by a pull request."""
        payload = self._cached(
            build_cache_key("files", owner, repo, number),
            lambda: self._paginate(f"repos/{owner}/{repo}/pulls/{number}/files"),
        )
        return [str(item["filename"]) for item in payload if item.get("filename")]

    def list_issues(
        self,
        owner: str,
        repo: str,
        start: datetime,
        end: datetime,
    ) -> List[Issue]:
        """List issues closed within ``[start, end]``, excluding pull requests."""
        def load() -> List[Dict[str, Any]]:
            params = {"state": "closed", "since": self._format_datetime(start)}
            return [
                item
                for item in self._paginate(f"repos/{owner}/{repo}/issues", params)
                if not item.get("pull_request")
                and self._within(item.get("closed_at"), start, end)
            ]

        payload = self._cached(build_cache_key("issues", owner, repo, start, end), load)
        return [self._parse_issue(item) for item in payload]

    def list_deployments(
        self,
        owner: str,
        repo: str,
        start: datetime,
        end: datetime,
    ) -> List[Deployment]:
        """List deployments created within ``[start, end]``."""
        def load() -> List[Dict[str, Any]]:
            return [
                item
                for item in self._paginate(f"repos/{owner}/{repo}/deployments")
                if self._within(item.get("created_at"), start, end)
            ]

        payload = self._cached(build_cache_key("deployments", owner, repo, start, end), load)
        return [
            Deployment(
                id=int(item["id"]),
                sha=item.get("sha") or None,
                created_at=self._parse_datetime(item.get("created_at")),
                environment=item.get("environment"),
            )
            for item in payload
            if item.get("id") is not None
        ]

    def list_releases(
        self,
        owner: str,
        repo: str,
        start: datetime,
        end: datetime,
    ) -> List[Release]:
        """List releases published within ``[start, end]``.

        Unpublished (draft) releases fall back to their creation time.
        """
        def load() -> List[Dict[str, Any]]:
            return [
                item
                for item in self._paginate(f"repos/{owner}/{repo}/releases")
                if self._within(item.get("published_at") or item.get("created_at"), start, end)
            ]

        payload = self._cached(build_cache_key("releases", owner, repo, start, end), load)
        return [
            Release(
                id=int(item["id"]),
                tag_name=str(item.get("tag_name") or ""),
                target_commitish=item.get("target_commitish") or None,
                published_at=self._parse_datetime(
                    item.get("published_at") or item.get("created_at")
                ),
            )
            for item in payload
            if item.get("id") is not None
        ]

    def list_projects(self, owner: str, repo: str) -> List[Project]:
        """List classic project boards attached to a repository.

        A repository with projects disabled (HTTP 404 or 410) has no boards.
        """
        try:
            payload = self._cached(
                build_cache_key("projects", owner, repo),
                lambda: self._paginate(f"repos/{owner}/{repo}/projects", {"state": "all"}),
            )
        except ApiError as exc:
            if exc.status_code not in (404, 410):
                raise
            logger.warning(
                "Project boards unavailable for repository",
                extra={"repo": f"{owner}/{repo}", "status_code": exc.status_code},
            )
            return []
        return [
            Project(id=int(item["id"]), name=str(item.get("name") or ""))
            for item in payload
            if item.get("id") is not None
        ]

    def list_project_columns(self, project_id: int) -> List[ProjectColumn]:
        """List the columns of a classic project board."""
        payload = self._cached(
            build_cache_key("columns", project_id),
            lambda: self._paginate(f"projects/{project_id}/columns"),
        )
        return [
            ProjectColumn(id=int(item["id"]), name=str(item.get("name") or ""))
            for item in payload
            if item.get("id") is not None
        ]

    def list_column_cards(self, column_id: int) -> List[ProjectCard]:
        """List the cards in a classic project board column."""
        payload = self._cached(
            build_cache_key("cards", column_id),
            lambda: self._paginate(f"projects/columns/{column_id}/cards"),
        )
        return [
            ProjectCard(
                id=int(item["id"]),
                column_id=column_id,
                created_at=self._parse_datetime(item.get("created_at")),
                updated_at=self._parse_datetime(item.get("updated_at")),
            )
            for item in payload
            if item.get("id") is not None
        ]

    def get_project_v2(self, owner: str, number: int) -> Optional[str]:
        """Resolve a project (v2) number owned by a user or organization to its node ID.

        Returns:
            The project node ID, or ``None`` if the owner or project does not exist.
        """
        def load() -> Dict[str, Any]:
            data = self._graphql(
                PROJECT_V2_QUERY,
                {"owner": owner, "number": number},
                allow_not_found=True,
            )
            project_owner = data.get("repositoryOwner") or {}
            return project_owner.get("projectV2") or {}

        project = self._cached(build_cache_key("projectv2", owner, number), load)
        project_id = project.get("id") if isinstance(project, dict) else None
        return str(project_id) if project_id else None

    def get_project_v2_items(
        self,
        project_id: str,
        iteration_field: str,
        status_field: str,
    ) -> List[ProjectV2Item]:
        """List every item of a project (v2) with its iteration and status values.

        Uses GraphQL cursor pagination.
        """
        def load() -> List[Dict[str, Any]]:
            nodes: List[Dict[str, Any]] = []
            cursor: Optional[str] = None
            while True:
                data = self._graphql(
                    PROJECT_V2_ITEMS_QUERY,
                    {
                        "projectId": project_id,
                        "iterationField": iteration_field,
                        "statusField": status_field,
                        "cursor": cursor,
                    },
                )
                items = ((data.get("node") or {}).get("items")) or {}
                nodes.extend(items.get("nodes") or [])

                page_info = items.get("pageInfo") or {}
                if not page_info.get("hasNextPage"):
                    break
                cursor = page_info.get("endCursor")
            return nodes

        payload = self._cached(
            build_cache_key("projectv2-items", project_id, iteration_field, status_field),
            load,
        )
        return [self._parse_project_v2_item(node) for node in payload if node.get("id")]

    def _parse_project_v2_item(self, node: Dict[str, Any]) -> ProjectV2Item:
        iteration: Optional[IterationValue] = None
        raw_iteration = node.get("iteration") or {}
        if raw_iteration.get("iterationId") and raw_iteration.get("startDate"):
            iteration = IterationValue(
                iteration_id=str(raw_iteration["iterationId"]),
                title=str(raw_iteration.get("title") or ""),
                start_date=date.fromisoformat(raw_iteration["startDate"]),
                duration=int(raw_iteration.get("duration") or 0),
            )

        raw_status = node.get("status") or {}
        content = node.get("content") or {}

        return ProjectV2Item(
            id=str(node["id"]),
            content_url=content.get("url"),
            iteration=iteration,
            status=raw_status.get("name"),
        )
