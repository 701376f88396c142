"""Application service translating organization queries into metric samples."""

import logging
from typing import Iterator, List, Optional, Protocol, Sequence

from githubql_exporter.domain.metrics import (
    MetricDescriptor,
    MetricSample,
    build_fq_name,
    to_unix_seconds,
)
from githubql_exporter.domain.repository import OrganizationResult, RateLimit, Repository
from githubql_exporter.infrastructure.github_client import QueryExecutionError

logger = logging.getLogger(__name__)

REPO_LABELS = ("owner", "name")
STATE_LABELS = ("owner", "name", "state")


class OrganizationQueryExecutor(Protocol):
    def query_organization(self, organization: str, timeout: float) -> OrganizationResult:
        ...


class OrganizationCollector:
    """Collects repository metrics for a fixed list of organizations."""

    def __init__(
        self,
        client: OrganizationQueryExecutor,
        organizations: Sequence[str],
        namespace: str = "github",
        timeout: float = 5.0,
    ):
        """
        Initialize the collector and its metric descriptors.

        Args:
            client: Executes one organization query per call.
            organizations: Organization logins, queried in this order.
            namespace: Prefix of every metric name.
            timeout: Deadline in seconds for each organization query.
        """
        self.client = client
        self.organizations = tuple(organizations)
        self.timeout = timeout

        def repo_desc(name: str, help_text: str, labels=REPO_LABELS) -> MetricDescriptor:
            return MetricDescriptor(build_fq_name(namespace, "repo", name), help_text, labels)

        def rate_limit_desc(name: str, help_text: str) -> MetricDescriptor:
            return MetricDescriptor(build_fq_name(namespace, "rate_limit", name), help_text)

        self.created = repo_desc("created", "Unix timestamp of when the repo was created")
        self.disk_usage = repo_desc("disk_usage_bytes", "Kilobytes of the repository used on disk")
        self.forks = repo_desc("forks", "Number of forks of that repo")
        self.issues = repo_desc(
            "issues", "Number of issues with a state of open or closed", STATE_LABELS
        )
        self.pull_requests = repo_desc(
            "pull_requests", "Number of pull requests with a state of open, closed or merged", STATE_LABELS
        )
        self.pushed = repo_desc("pushed", "Unix timestamp of when the repo was pushed to the last time")
        self.stargazers = repo_desc("stargazers", "Number of users that star the repo")
        self.watchers = repo_desc("watchers", "Number of users that watch the repo")

        self.rate_limit = rate_limit_desc("limit", "The rate limit")
        self.rate_limit_remaining = rate_limit_desc(
            "remaining", "The remaining requests left until hitting the rate limit"
        )
        self.rate_limit_reset = rate_limit_desc("reset_seconds", "Unix timestamp when the rate limit will be reset")

        self._descriptors = (
            self.created,
            self.disk_usage,
            self.forks,
            self.issues,
            self.pull_requests,
            self.pushed,
            self.stargazers,
            self.watchers,
            self.rate_limit,
            self.rate_limit_remaining,
            self.rate_limit_reset,
        )

    def describe(self) -> List[MetricDescriptor]:
        """Return every descriptor this collector can emit. Makes no network call."""
        return list(self._descriptors)

    def collect(self) -> Iterator[MetricSample]:
        """
        Run one collection cycle.

        Organizations are queried sequentially. The first failed query ends
        the cycle: samples already yielded stand, remaining organizations and
        the rate limit samples are skipped.
        """
        rate_limit: Optional[RateLimit] = None

        for organization in self.organizations:
            try:
                result = self.client.query_organization(organization, timeout=self.timeout)
            except QueryExecutionError as e:
                logger.warning(
                    f"Failed to execute organization query successfully for {organization}: {e.message}"
                )
                return

            rate_limit = result.rate_limit
            logger.debug(f"Organization {result.login}: {len(result.repositories)} repositories")

            for repo in result.repositories:
                yield from self._repository_samples(result.login, repo)

        if rate_limit is None:
            return

        yield MetricSample(self.rate_limit, float(rate_limit.limit))
        yield MetricSample(self.rate_limit_remaining, float(rate_limit.remaining))
        yield MetricSample(self.rate_limit_reset, to_unix_seconds(rate_limit.reset_at))

    def _repository_samples(self, owner: str, repo: Repository) -> Iterator[MetricSample]:
        labels = (owner, repo.name)
        pushed = to_unix_seconds(repo.pushed_at) if repo.pushed_at is not None else 0.0

        yield MetricSample(self.created, to_unix_seconds(repo.created_at), labels)
        yield MetricSample(self.disk_usage, float(repo.disk_usage), labels)
        yield MetricSample(self.forks, float(repo.forks), labels)
        yield MetricSample(self.issues, float(repo.issues_open), labels + ("open",))
        yield MetricSample(self.issues, float(repo.issues_closed), labels + ("closed",))
        yield MetricSample(self.pull_requests, float(repo.pull_requests_open), labels + ("open",))
        yield MetricSample(self.pull_requests, float(repo.pull_requests_closed), labels + ("closed",))
        yield MetricSample(self.pull_requests, float(repo.pull_requests_merged), labels + ("merged",))
        yield MetricSample(self.pushed, pushed, labels)
        yield MetricSample(self.stargazers, float(repo.stargazers), labels)
        yield MetricSample(self.watchers, float(repo.watchers), labels)
