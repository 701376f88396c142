#!/usr/bin/env python3
"""Script to serve GitHub organization metrics for Prometheus."""

import logging
import platform
import sys
import os
from importlib.metadata import PackageNotFoundError, version

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from githubql_exporter.infrastructure.config import ConfigError, load_config
from githubql_exporter.infrastructure.github_client import GitHubGraphQLClient
from githubql_exporter.infrastructure.prometheus_exporter import build_registry
from githubql_exporter.infrastructure.web import create_app, serve
from githubql_exporter.application.collector_service import OrganizationCollector

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def _exporter_version() -> str:
    try:
        return version("githubql-exporter")
    except PackageNotFoundError:
        return "unknown"


def main():
    """Load configuration and serve metrics until interrupted."""
    try:
        config = load_config()
        host, port = config.listen_address()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info(
        f"Starting githubql_exporter version={_exporter_version()} "
        f"python={platform.python_version()} organizations={','.join(config.organizations)}"
    )

    client = GitHubGraphQLClient(token=config.github_token)
    collector = OrganizationCollector(
        client,
        config.organizations,
        namespace=config.namespace,
        timeout=config.query_timeout,
    )
    app = create_app(build_registry(collector), config.web_path)

    try:
        serve(app, host, port)
    except KeyboardInterrupt:
        logger.info("Shutting down")
        return 0
    except OSError as e:
        logger.error(f"HTTP listen and serve error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
