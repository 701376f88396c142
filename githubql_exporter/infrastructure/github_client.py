"""GitHub GraphQL API client for organization repository statistics."""

import json
import logging
import socket
import time
from datetime import datetime
from typing import Any, Dict, Optional

import requests
import urllib3
from urllib3.exceptions import ReadTimeoutError

from githubql_exporter.domain.repository import OrganizationResult, RateLimit, Repository

logger = logging.getLogger(__name__)


class QueryExecutionError(Exception):
    """Raised when an organization query cannot be executed successfully."""

    def __init__(self, organization: str, message: str):
        super().__init__(f"query for organization {organization!r} failed: {message}")
        self.organization = organization
        self.message = message


# (field, state) -> alias under which the state-filtered count is requested
STATE_ALIASES = {
    ("issues", "OPEN"): "issuesOpen",
    ("issues", "CLOSED"): "issuesClosed",
    ("pullRequests", "OPEN"): "pullRequestsOpen",
    ("pullRequests", "CLOSED"): "pullRequestsClosed",
    ("pullRequests", "MERGED"): "pullRequestsMerged",
}


def build_organization_query(page_size: int) -> str:
    """Build the organization query with aliased state-filtered counts."""
    state_counts = "\n".join(
        f"                        {alias}: {field}(states: {state}) {{ totalCount }}"
        for (field, state), alias in STATE_ALIASES.items()
    )
    return f"""
        query($organization: String!) {{
            organization(login: $organization) {{
                login
                repositories(first: {page_size}) {{
                    nodes {{
                        name
                        diskUsage
                        createdAt
                        pushedAt
                        stargazers {{ totalCount }}
                        watchers {{ totalCount }}
                        forks {{ totalCount }}
{state_counts}
                    }}
                }}
            }}
            rateLimit {{
                limit
                remaining
                resetAt
            }}
        }}
        """


def parse_datetime(value: str) -> datetime:
    """Parse a GraphQL DateTime (ISO-8601, 'Z' suffix) into an aware datetime."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubGraphQLClient:
    """Client for the GitHub GraphQL API. Performs no retries."""

    GRAPHQL_ENDPOINT = "https://api.github.com/graphql"
    PAGE_SIZE = 100  # single page, repositories beyond this are not fetched
    DEFAULT_TIMEOUT_SECONDS = 5.0
    READ_CHUNK_SIZE = 8192

    def __init__(
        self,
        token: str,
        endpoint: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GitHub GraphQL client.

        Args:
            token: GitHub personal access token, sent as a bearer token.
            endpoint: GraphQL endpoint. Defaults to the public GitHub API.
            session: Optional requests session to send queries with.
        """
        self.endpoint = endpoint or self.GRAPHQL_ENDPOINT
        self.session = session
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        self.organization_query = build_organization_query(self.PAGE_SIZE)

    def _post(self, payload: Dict[str, Any], timeout: float) -> requests.Response:
        # timeout covers connect and each socket read; the overall deadline is enforced while reading
        if self.session is not None:
            return self.session.post(
                self.endpoint, json=payload, headers=self.headers, timeout=(timeout, timeout), stream=True
            )
        return requests.post(
            self.endpoint, json=payload, headers=self.headers, timeout=(timeout, timeout), stream=True
        )

    def _read_body(self, organization: str, response: requests.Response, deadline: float, timeout: float) -> bytes:
        """Read the streamed response body, failing once the deadline has passed."""
        chunks = []
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise QueryExecutionError(organization, f"deadline exceeded after {timeout}s")

            sock = getattr(response.raw.connection, "sock", None)
            if sock is not None:
                sock.settimeout(remaining)

            try:
                chunk = response.raw.read1(self.READ_CHUNK_SIZE, decode_content=True)
            except (ReadTimeoutError, socket.timeout) as e:
                raise QueryExecutionError(organization, f"deadline exceeded after {timeout}s: {e}") from e
            except urllib3.exceptions.HTTPError as e:
                raise QueryExecutionError(organization, f"failed to read response: {e}") from e

            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def _execute_query(
        self,
        organization: str,
        query: str,
        variables: Dict[str, Any],
        timeout: float,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL query once within ``timeout`` seconds.

        Returns:
            The ``data`` member of the GraphQL response.

        Raises:
            QueryExecutionError: On transport failure, deadline exceeded,
                non-200 status, GraphQL errors or a response that is not
                a JSON object.
        """
        payload = {"query": query, "variables": variables}
        deadline = time.monotonic() + timeout

        try:
            response = self._post(payload, max(deadline - time.monotonic(), 0.001))
        except requests.exceptions.Timeout as e:
            raise QueryExecutionError(organization, f"deadline exceeded after {timeout}s: {e}") from e
        except requests.exceptions.RequestException as e:
            raise QueryExecutionError(organization, str(e)) from e

        try:
            body = self._read_body(organization, response, deadline, timeout)
        finally:
            response.close()

        if response.status_code == 401:
            raise QueryExecutionError(organization, "authentication failed, check your GitHub token")
        if response.status_code != 200:
            text = body[:200].decode("utf-8", errors="replace")
            raise QueryExecutionError(organization, f"unexpected status {response.status_code}: {text}")

        try:
            data = json.loads(body)
        except ValueError as e:
            raise QueryExecutionError(organization, f"invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise QueryExecutionError(organization, f"malformed response: expected a JSON object, got {type(data).__name__}")

        if data.get("errors"):
            error_messages = [
                err.get("message", "") if isinstance(err, dict) else str(err)
                for err in data["errors"]
            ]
            raise QueryExecutionError(organization, f"GraphQL errors: {error_messages}")

        result = data.get("data")
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise QueryExecutionError(organization, f"malformed response: 'data' is a {type(result).__name__}")
        return result

    def query_organization(
        self,
        organization: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> OrganizationResult:
        """
        Fetch the first page of repositories of an organization.

        Args:
            organization: Organization login.
            timeout: Deadline in seconds for the request.

        Returns:
            The decoded organization result including the rate limit snapshot.

        Raises:
            QueryExecutionError: If the request fails or the response is malformed.
        """
        logger.debug(f"Querying organization {organization}")
        data = self._execute_query(
            organization,
            self.organization_query,
            {"organization": organization},
            timeout,
        )

        try:
            return decode_organization_result(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise QueryExecutionError(organization, f"malformed response: {e!r}") from e


def _total_count(node: Dict[str, Any], key: str) -> int:
    return int(node[key]["totalCount"])


def decode_repository(node: Dict[str, Any]) -> Repository:
    """Decode a repository node into a Repository entity."""
    return Repository(
        name=node["name"],
        disk_usage=int(node["diskUsage"] or 0),
        created_at=parse_datetime(node["createdAt"]),
        pushed_at=parse_datetime(node["pushedAt"]) if node["pushedAt"] else None,
        forks=_total_count(node, "forks"),
        stargazers=_total_count(node, "stargazers"),
        watchers=_total_count(node, "watchers"),
        issues_open=_total_count(node, STATE_ALIASES[("issues", "OPEN")]),
        issues_closed=_total_count(node, STATE_ALIASES[("issues", "CLOSED")]),
        pull_requests_open=_total_count(node, STATE_ALIASES[("pullRequests", "OPEN")]),
        pull_requests_closed=_total_count(node, STATE_ALIASES[("pullRequests", "CLOSED")]),
        pull_requests_merged=_total_count(node, STATE_ALIASES[("pullRequests", "MERGED")]),
    )


def decode_organization_result(data: Dict[str, Any]) -> OrganizationResult:
    """
    Decode the ``data`` member of an organization query response.

    Raises:
        ValueError: If the organization is missing from the response.
        KeyError, TypeError, AttributeError: If a required field is missing or
            has the wrong type.
    """
    organization = data.get("organization")
    if organization is None:
        raise ValueError("organization not found in response")

    rate_limit = data["rateLimit"]
    nodes = organization["repositories"]["nodes"] or []

    return OrganizationResult(
        login=organization["login"],
        rate_limit=RateLimit(
            limit=int(rate_limit["limit"]),
            remaining=int(rate_limit["remaining"]),
            reset_at=parse_datetime(rate_limit["resetAt"]),
        ),
        repositories=tuple(decode_repository(node) for node in nodes if node is not None),
    )
