"""Metric descriptors and samples produced by a collection cycle."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Tuple


@dataclass(frozen=True)
class MetricDescriptor:
    """Immutable definition of a metric family."""

    name: str
    help: str
    label_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricSample:
    """One observation of a metric family."""

    descriptor: MetricDescriptor
    value: float
    label_values: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.label_values) != len(self.descriptor.label_names):
            raise ValueError(
                f"{self.descriptor.name}: expected {len(self.descriptor.label_names)} "
                f"label values, got {len(self.label_values)}"
            )


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty name parts with underscores."""
    return "_".join(part for part in (namespace, subsystem, name) if part)


def to_unix_seconds(instant: datetime) -> float:
    """
    Convert an instant to Unix epoch seconds.

    Naive datetimes are treated as UTC, which is what the GraphQL API returns.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.timestamp()
