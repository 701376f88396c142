"""Exporter configuration from command-line flags and environment variables."""

import argparse
import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_WEB_ADDR = ":9276"
DEFAULT_WEB_PATH = "/metrics"
DEFAULT_QUERY_TIMEOUT = 5.0
DEFAULT_NAMESPACE = "github"

TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when the exporter configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class Config:
    """Immutable exporter configuration."""

    github_token: str
    organizations: Tuple[str, ...]
    web_addr: str = DEFAULT_WEB_ADDR
    web_path: str = DEFAULT_WEB_PATH
    debug: bool = False
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
    namespace: str = DEFAULT_NAMESPACE

    def listen_address(self) -> Tuple[str, int]:
        """
        Split ``web_addr`` into host and port.

        An empty host (``":9276"``) listens on all interfaces.
        """
        host, sep, port = self.web_addr.rpartition(":")
        if not sep or not port.isdigit():
            raise ConfigError(f"Invalid listen address: {self.web_addr!r}")
        return host.strip("[]"), int(port)

    def __repr__(self):
        # keep the token out of logs
        return (
            f"Config(organizations={self.organizations!r}, web_addr={self.web_addr!r}, "
            f"web_path={self.web_path!r}, debug={self.debug!r}, "
            f"query_timeout={self.query_timeout!r}, namespace={self.namespace!r})"
        )


def parse_organizations(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma separated organization list, dropping empty entries."""
    if not value:
        return ()
    return tuple(org.strip() for org in value.split(",") if org.strip())


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in TRUE_VALUES


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Prometheus exporter for GitHub organization statistics")
    parser.add_argument(
        "--debug",
        action="store_true",
        default=_env_flag("DEBUG"),
        help="Enable debug logging (env: DEBUG)"
    )
    parser.add_argument(
        "--github-token",
        default=os.getenv("GITHUB_TOKEN"),
        help="GitHub token used for the GraphQL API (env: GITHUB_TOKEN)"
    )
    parser.add_argument(
        "--orgs",
        default=os.getenv("ORGS", ""),
        help="Comma separated list of organizations (env: ORGS)"
    )
    parser.add_argument(
        "--web-addr",
        default=os.getenv("WEB_ADDR", DEFAULT_WEB_ADDR),
        help=f"Address to listen on (env: WEB_ADDR, default: {DEFAULT_WEB_ADDR})"
    )
    parser.add_argument(
        "--web-path",
        default=os.getenv("WEB_PATH", DEFAULT_WEB_PATH),
        help=f"Path under which metrics are exposed (env: WEB_PATH, default: {DEFAULT_WEB_PATH})"
    )
    parser.add_argument(
        "--query-timeout",
        type=float,
        default=float(os.getenv("QUERY_TIMEOUT", DEFAULT_QUERY_TIMEOUT)),
        help=f"Timeout in seconds for each organization query (env: QUERY_TIMEOUT, default: {DEFAULT_QUERY_TIMEOUT})"
    )
    parser.add_argument(
        "--namespace",
        default=DEFAULT_NAMESPACE,
        help=f"Metric name prefix (default: {DEFAULT_NAMESPACE})"
    )
    return parser


def load_config(argv: Optional[Sequence[str]] = None, env_file: Optional[str] = ".env") -> Config:
    """
    Load configuration from an optional .env file, environment and flags.

    Flags take precedence over environment variables, which take precedence
    over values from the .env file.

    Args:
        argv: Command-line arguments. Defaults to ``sys.argv[1:]``.
        env_file: Path of the .env file to load if it exists. ``None`` skips it.

    Raises:
        ConfigError: If the token is missing or a value is invalid.
    """
    if env_file and os.path.exists(env_file):
        logger.info(f"Loading environment variables from: {env_file}")
        load_dotenv(dotenv_path=env_file, override=False)

    try:
        parser = _build_parser()
    except ValueError as e:
        raise ConfigError(f"Invalid QUERY_TIMEOUT: {e}") from e
    args = parser.parse_args(argv)

    if not args.github_token:
        raise ConfigError("GITHUB_TOKEN is required")
    if args.query_timeout <= 0:
        raise ConfigError(f"Query timeout must be positive, got {args.query_timeout}")
    if not args.web_path.startswith("/"):
        raise ConfigError(f"Web path must start with '/', got {args.web_path!r}")

    config = Config(
        github_token=args.github_token,
        organizations=parse_organizations(args.orgs),
        web_addr=args.web_addr,
        web_path=args.web_path,
        debug=args.debug,
        query_timeout=args.query_timeout,
        namespace=args.namespace,
    )
    config.listen_address()

    if not config.organizations:
        logger.warning("No organizations configured, only an empty scrape will be served")

    return config
