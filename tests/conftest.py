import json
from datetime import datetime, timezone
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest

from githubql_exporter.domain.repository import OrganizationResult, RateLimit, Repository
from githubql_exporter.infrastructure.github_client import QueryExecutionError

T1 = datetime(2017, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
T2 = datetime(2018, 6, 15, 8, 30, 0, tzinfo=timezone.utc)
RESET_AT = datetime(2018, 6, 15, 9, 0, 0, tzinfo=timezone.utc)


def make_repository(name: str = "widget", **overrides) -> Repository:
    fields = dict(
        name=name,
        disk_usage=42,
        created_at=T1,
        pushed_at=T2,
        forks=3,
        stargazers=11,
        watchers=13,
        issues_open=5,
        issues_closed=7,
        pull_requests_open=1,
        pull_requests_closed=2,
        pull_requests_merged=4,
    )
    fields.update(overrides)
    return Repository(**fields)


def make_result(login: str = "acme", repositories=None, remaining: int = 4990) -> OrganizationResult:
    if repositories is None:
        repositories = [make_repository()]
    return OrganizationResult(
        login=login,
        rate_limit=RateLimit(limit=5000, remaining=remaining, reset_at=RESET_AT),
        repositories=tuple(repositories),
    )


class FakeExecutor:
    """Returns canned results per organization; raises for organizations in ``failing``."""

    def __init__(self, results: Dict[str, OrganizationResult], failing=()):
        self.results = results
        self.failing = set(failing)
        self.calls: List[tuple] = []

    def query_organization(self, organization: str, timeout: float) -> OrganizationResult:
        self.calls.append((organization, timeout))
        if organization in self.failing:
            raise QueryExecutionError(organization, "boom")
        return self.results[organization]


@pytest.fixture
def acme_executor() -> FakeExecutor:
    return FakeExecutor({"acme": make_result()})


@pytest.fixture
def repository_node() -> Dict[str, Any]:
    return {
        "name": "widget",
        "diskUsage": 42,
        "createdAt": "2017-03-01T12:00:00Z",
        "pushedAt": "2018-06-15T08:30:00Z",
        "stargazers": {"totalCount": 11},
        "watchers": {"totalCount": 13},
        "forks": {"totalCount": 3},
        "issuesOpen": {"totalCount": 5},
        "issuesClosed": {"totalCount": 7},
        "pullRequestsOpen": {"totalCount": 1},
        "pullRequestsClosed": {"totalCount": 2},
        "pullRequestsMerged": {"totalCount": 4},
    }


@pytest.fixture
def organization_response(repository_node: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "data": {
            "organization": {
                "login": "acme",
                "repositories": {"nodes": [repository_node]},
            },
            "rateLimit": {
                "limit": 5000,
                "remaining": 4990,
                "resetAt": "2018-06-15T09:00:00Z",
            },
        }
    }


NO_PAYLOAD = object()


def mock_response(status_code: int = 200, payload: Any = NO_PAYLOAD, text: str = "") -> MagicMock:
    """Streamed response whose body is ``payload`` as JSON, or ``text`` when no payload is given."""
    body = text.encode("utf-8") if payload is NO_PAYLOAD else json.dumps(payload).encode("utf-8")
    response = MagicMock()
    response.status_code = status_code
    response.raw.connection = None
    response.raw.read1.side_effect = [body, b""] if body else [b""]
    return response
