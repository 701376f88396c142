"""Prometheus client integration for the organization collector."""

import logging
from typing import Dict, Iterator, List

from prometheus_client import CollectorRegistry
from prometheus_client.core import GaugeMetricFamily

from githubql_exporter.application.collector_service import OrganizationCollector
from githubql_exporter.domain.metrics import MetricDescriptor

logger = logging.getLogger(__name__)


def _gauge_family(descriptor: MetricDescriptor) -> GaugeMetricFamily:
    return GaugeMetricFamily(descriptor.name, descriptor.help, labels=list(descriptor.label_names))


class PrometheusCollector:
    """Adapts OrganizationCollector to the prometheus_client collector protocol."""

    def __init__(self, collector: OrganizationCollector):
        self.collector = collector

    def describe(self) -> List[GaugeMetricFamily]:
        return [_gauge_family(descriptor) for descriptor in self.collector.describe()]

    def collect(self) -> Iterator[GaugeMetricFamily]:
        # Samples are grouped per family; families keep the order of their first sample.
        families: Dict[MetricDescriptor, GaugeMetricFamily] = {}
        for sample in self.collector.collect():
            family = families.get(sample.descriptor)
            if family is None:
                family = families[sample.descriptor] = _gauge_family(sample.descriptor)
            family.add_metric(list(sample.label_values), sample.value)

        logger.debug(f"Collected {sum(len(f.samples) for f in families.values())} samples")
        yield from families.values()


def build_registry(collector: OrganizationCollector) -> CollectorRegistry:
    """Create a registry exposing only the organization metrics."""
    registry = CollectorRegistry(auto_describe=True)
    registry.register(PrometheusCollector(collector))
    return registry
