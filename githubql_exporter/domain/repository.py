"""Domain entities for GitHub organization query results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Repository:
    """Immutable repository statistics entity."""

    name: str
    disk_usage: int  # kilobytes
    created_at: datetime
    pushed_at: Optional[datetime]  # None for repositories never pushed to
    forks: int
    stargazers: int
    watchers: int
    issues_open: int
    issues_closed: int
    pull_requests_open: int
    pull_requests_closed: int
    pull_requests_merged: int


@dataclass(frozen=True)
class RateLimit:
    """Snapshot of the caller's GraphQL rate limit status."""

    limit: int
    remaining: int
    reset_at: datetime


@dataclass(frozen=True)
class OrganizationResult:
    """Result of a single organization query."""

    login: str
    rate_limit: RateLimit
    repositories: Tuple[Repository, ...] = field(default_factory=tuple)
