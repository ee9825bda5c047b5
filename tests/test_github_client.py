"""Tests for GitHub API client behavior with mocked HTTP."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import requests

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from productivity_metrics.cache import RecordCache
from productivity_metrics.errors import ApiError, AuthenticationError, DataValidationError
from productivity_metrics.github_client import GitHubClient

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
END = datetime(2026, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


def _build_client(cache: RecordCache | None = None) -> GitHubClient:
    return GitHubClient(token="gh-token", cache=cache)


def _response(status_code: int, payload=None, text: str = "", headers: dict | None = None):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    response.json.return_value = payload if payload is not None else {}
    return response


def _pull_item(number: int, merged_at: str | None = "2026-01-10T12:00:00Z") -> dict:
    return {
        "number": number,
        "user": {"login": "alice"},
        "created_at": "2026-01-10T10:00:00Z",
        "merged_at": merged_at,
        "merge_commit_sha": f"sha-{number}",
    }


def test_session_sends_bearer_token_and_api_version_headers():
    """Verify the session is configured with GitHub authentication headers."""
    client = _build_client()

    headers = client._session.headers
    assert headers["Authorization"] == "Bearer gh-token"
    assert headers["Accept"] == "application/vnd.github+json"
    assert headers["X-GitHub-Api-Version"] == client._API_VERSION


def test_request_json_retries_on_429_and_succeeds():
    """Verify requests are retried after HTTP 429 and eventually return JSON payload."""
    client = _build_client()
    first = _response(429, payload=[], headers={"Retry-After": "1"})
    second = _response(200, payload=[{"id": 1}])
    client._session.request = Mock(side_effect=[first, second])

    with patch("productivity_metrics.github_client.time.sleep") as sleep_mock:
        payload = client._get_json("repos/acme/widget/deployments")

    assert payload == [{"id": 1}]
    assert client._session.request.call_count == 2
    sleep_mock.assert_called_once_with(1)


def test_request_json_retries_on_5xx_and_raises_after_max_retries():
    """Verify retryable server errors raise ApiError once the retry limit is reached."""
    client = _build_client()
    server_error = _response(503, text="service unavailable")
    client._session.request = Mock(side_effect=[server_error] * client._MAX_RETRIES)

    with patch("productivity_metrics.github_client.time.sleep") as sleep_mock:
        with pytest.raises(ApiError):
            client._get_json("repos/acme/widget/pulls")

    assert client._session.request.call_count == client._MAX_RETRIES
    assert sleep_mock.call_count == client._MAX_RETRIES - 1


def test_request_json_network_errors_raise_api_error_after_retries():
    """Verify transport exceptions are retried and then surfaced as ApiError."""
    client = _build_client()
    client._session.request = Mock(side_effect=requests.ConnectionError("reset"))

    with patch("productivity_metrics.github_client.time.sleep"):
        with pytest.raises(ApiError):
            client._get_json("repos/acme/widget/pulls")

    assert client._session.request.call_count == client._MAX_RETRIES


def test_request_json_401_raises_authentication_error():
    """Verify a rejected token is reported as an authentication failure."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(401, text="Bad credentials"))

    with pytest.raises(AuthenticationError):
        client._get_json("repos/acme/widget/pulls")


def test_paginate_requests_pages_until_short_page():
    """Verify page-based pagination stops at the first page shorter than the page size."""
    client = _build_client()
    first_page = [{"id": i} for i in range(client._PAGE_SIZE)]
    second_page = [{"id": 100}, {"id": 101}]
    client._get_json = Mock(side_effect=[first_page, second_page])

    items = client._paginate("repos/acme/widget/deployments", {"environment": "prod"})

    assert len(items) == 102
    first_call, second_call = client._get_json.call_args_list
    assert first_call.kwargs["params"] == {"environment": "prod", "per_page": 100, "page": 1}
    assert second_call.kwargs["params"]["page"] == 2


def test_paginate_rejects_non_list_payloads():
    """Verify unexpected payload shapes surface as ApiError."""
    client = _build_client()
    client._get_json = Mock(return_value={"message": "Not Found"})

    with pytest.raises(ApiError):
        client._paginate("repos/acme/widget/releases")


def test_list_pull_requests_keeps_only_prs_merged_in_window():
    """Verify closed-but-unmerged and out-of-window PRs are filtered out."""
    client = _build_client()
    client._get_json = Mock(
        return_value=[
            _pull_item(1),
            _pull_item(2, merged_at=None),
            _pull_item(3, merged_at="2025-12-31T23:59:59Z"),
            _pull_item(4, merged_at="2026-01-31T23:00:00Z"),
        ]
    )

    prs = client.list_pull_requests("acme", "widget", START, END)

    assert [pr.number for pr in prs] == [1, 4]
    assert prs[0].user_login == "alice"
    assert prs[0].merged_at == datetime(2026, 1, 10, 12, tzinfo=timezone.utc)
    assert prs[0].merge_commit_sha == "sha-1"
    params = client._get_json.call_args.kwargs["params"]
    assert params["state"] == "closed"


def test_list_pull_requests_is_served_from_cache_on_second_call(tmp_path):
    """Verify listing results are cached under the request signature and reused."""
    cache = RecordCache(tmp_path)
    client = _build_client(cache=cache)
    client._get_json = Mock(return_value=[_pull_item(1)])

    first = client.list_pull_requests("acme", "widget", START, END)
    second = client.list_pull_requests("acme", "widget", START, END)

    assert first == second
    assert client._get_json.call_count == 1
    key = f"pulls-acme-widget-{int(START.timestamp() * 1000)}-{int(END.timestamp() * 1000)}"
    assert cache.read(key) == [_pull_item(1)]


def test_parse_pull_request_without_number_raises_data_validation_error():
    """Verify payloads missing the PR number are rejected at the client boundary."""
    client = _build_client()
    client._get_json = Mock(return_value={"user": {"login": "alice"}})

    with pytest.raises(DataValidationError):
        client.get_pull_request("acme", "widget", 7)


def test_get_pull_request_reads_line_counts():
    """Verify detail payloads populate additions and deletions."""
    client = _build_client()
    client._get_json = Mock(return_value={**_pull_item(7), "additions": 12, "deletions": None})

    pr = client.get_pull_request("acme", "widget", 7)

    assert pr.additions == 12
    assert pr.deletions == 0
    client._get_json.assert_called_once_with("repos/acme/widget/pulls/7")


def test_list_review_comments_normalizes_missing_author():
    """Verify review comments without a user keep a None identity."""
    client = _build_client()
    client._get_json = Mock(
        return_value=[
            {"user": {"login": "rev"}, "created_at": "2026-01-10T11:00:00Z"},
            {"user": None, "created_at": None},
        ]
    )

    comments = client.list_review_comments("acme", "widget", 7)

    assert comments[0].user_login == "rev"
    assert comments[0].created_at == datetime(2026, 1, 10, 11, tzinfo=timezone.utc)
    assert comments[1].user_login is None
    assert comments[1].created_at is None


def test_list_issues_excludes_pull_requests_and_reads_labels():
    """Verify the issues listing drops pull requests and normalizes label names."""
    client = _build_client()
    client._get_json = Mock(
        return_value=[
            {
                "number": 1,
                "user": {"login": "reporter"},
                "assignee": {"login": "dev"},
                "created_at": "2026-01-02T00:00:00Z",
                "closed_at": "2026-01-03T00:00:00Z",
                "labels": [{"name": "bug"}, "incident"],
            },
            {
                "number": 2,
                "user": {"login": "alice"},
                "created_at": "2026-01-02T00:00:00Z",
                "closed_at": "2026-01-03T00:00:00Z",
                "pull_request": {"url": "https://api.github.com/repos/acme/widget/pulls/2"},
            },
            {
                "number": 3,
                "user": {"login": "reporter"},
                "created_at": "2025-11-02T00:00:00Z",
                "closed_at": "2025-12-03T00:00:00Z",
            },
        ]
    )

    issues = client.list_issues("acme", "widget", START, END)

    assert [issue.number for issue in issues] == [1]
    assert issues[0].assignee_login == "dev"
    assert issues[0].labels == ["bug", "incident"]
    params = client._get_json.call_args.kwargs["params"]
    assert params["since"] == "2026-01-01T00:00:00Z"


def test_list_releases_falls_back_to_creation_time():
    """Verify unpublished releases use their creation time for window filtering."""
    client = _build_client()
    client._get_json = Mock(
        return_value=[
            {"id": 1, "tag_name": "v1", "published_at": None, "created_at": "2026-01-05T00:00:00Z"},
            {"id": 2, "tag_name": "v0", "published_at": "2025-06-01T00:00:00Z"},
        ]
    )

    releases = client.list_releases("acme", "widget", START, END)

    assert [release.tag_name for release in releases] == ["v1"]
    assert releases[0].published_at == datetime(2026, 1, 5, tzinfo=timezone.utc)


def test_get_project_v2_returns_none_when_project_missing():
    """Verify an unresolvable project (v2) is reported as None, not an error."""
    client = _build_client()
    client._graphql = Mock(return_value={"repositoryOwner": {"projectV2": None}})

    assert client.get_project_v2("acme", 9) is None


def test_graphql_errors_raise_api_error():
    """Verify GraphQL error payloads surface as ApiError."""
    client = _build_client()
    client._request_json = Mock(return_value={"errors": [{"message": "boom"}]})

    with pytest.raises(ApiError):
        client._graphql("query { viewer { login } }", {})


def test_get_project_v2_returns_none_for_not_found_graphql_error():
    """Verify GitHub's NOT_FOUND answer for an unknown project number resolves to None."""
    client = _build_client()
    not_found = {
        "data": {"repositoryOwner": {"projectV2": None}},
        "errors": [
            {
                "type": "NOT_FOUND",
                "path": ["repositoryOwner", "projectV2"],
                "message": "Could not resolve to a ProjectV2 with the number 99.",
            }
        ],
    }
    client._session.request = Mock(return_value=_response(200, payload=not_found))

    assert client.get_project_v2("acme", 99) is None


def test_get_project_v2_returns_none_for_unknown_owner():
    """Verify an unresolvable owner login also resolves to None."""
    client = _build_client()
    not_found = {
        "data": {"repositoryOwner": None},
        "errors": [{"type": "NOT_FOUND", "path": ["repositoryOwner"], "message": "missing"}],
    }
    client._session.request = Mock(return_value=_response(200, payload=not_found))

    assert client.get_project_v2("ghost", 1) is None


def test_graphql_allow_not_found_still_raises_other_errors():
    """Verify only NOT_FOUND errors are tolerated when missing nodes are allowed."""
    client = _build_client()
    client._request_json = Mock(
        return_value={
            "data": {"repositoryOwner": None},
            "errors": [
                {"type": "NOT_FOUND", "message": "missing"},
                {"type": "FORBIDDEN", "message": "Resource not accessible by integration"},
            ],
        }
    )

    with pytest.raises(ApiError, match="FORBIDDEN"):
        client._graphql("query { viewer { login } }", {}, allow_not_found=True)


@pytest.mark.parametrize("status_code", [404, 410])
def test_list_projects_returns_empty_list_when_projects_are_disabled(status_code):
    """Verify a repository without classic projects yields no boards instead of failing."""
    client = _build_client()
    client._session.request = Mock(
        return_value=_response(status_code, text='{"message": "Projects are disabled for this repository"}')
    )

    assert client.list_projects("acme", "widget") == []


def test_list_projects_propagates_other_http_errors():
    """Verify non-missing HTTP failures still abort with ApiError carrying the status code."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(403, text="forbidden"))

    with pytest.raises(ApiError) as exc_info:
        client.list_projects("acme", "widget")

    assert exc_info.value.status_code == 403


def test_get_project_v2_items_follows_cursor_and_parses_fields():
    """Verify project (v2) items are paged by cursor and normalized into iteration values."""
    client = _build_client()
    first_page = {
        "node": {
            "items": {
                "nodes": [
                    {
                        "id": "item-1",
                        "content": {"url": "https://github.com/acme/widget/issues/1"},
                        "iteration": {
                            "iterationId": "it-1",
                            "title": "Sprint 1",
                            "startDate": "2026-01-05",
                            "duration": 14,
                        },
                        "status": {"name": "Done"},
                    }
                ],
                "pageInfo": {"hasNextPage": True, "endCursor": "cursor-1"},
            }
        }
    }
    second_page = {
        "node": {
            "items": {
                "nodes": [{"id": "item-2", "content": {}, "iteration": {}, "status": None}],
                "pageInfo": {"hasNextPage": False, "endCursor": None},
            }
        }
    }
    client._graphql = Mock(side_effect=[first_page, second_page])

    items = client.get_project_v2_items("PVT_1", "Iteration", "Status")

    assert len(items) == 2
    assert items[0].iteration is not None
    assert items[0].iteration.start_date == date(2026, 1, 5)
    assert items[0].iteration.duration == 14
    assert items[0].status == "Done"
    assert items[1].iteration is None
    assert items[1].status is None
    assert client._graphql.call_args_list[1].args[1]["cursor"] == "cursor-1"
