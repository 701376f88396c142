"""HTTP endpoint serving the metrics page and a landing page."""

import logging
import socket
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>GitHubQL Exporter</title></head>
<body>
<h1>GitHubQL Exporter</h1>
<p><a href="{web_path}">Metrics</a></p>
</body>
</html>"""


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """WSGI server handling each request in its own thread."""

    daemon_threads = True


class ThreadingWSGIServerV6(ThreadingWSGIServer):
    """IPv6 variant, chosen for listen hosts such as ``::`` or ``::1``."""

    address_family = socket.AF_INET6


def server_class_for(host: str):
    """Pick the server class matching the address family of ``host``."""
    if ":" in host:
        return ThreadingWSGIServerV6
    return ThreadingWSGIServer


class _LoggingHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} - {format % args}")


def create_app(registry: CollectorRegistry, web_path: str):
    """Return a WSGI app serving metrics on ``web_path`` and a landing page elsewhere."""
    metrics_app = make_wsgi_app(registry)
    landing_page = LANDING_PAGE.format(web_path=web_path).encode("utf-8")

    def app(environ, start_response):
        if environ.get("PATH_INFO", "/") == web_path:
            return metrics_app(environ, start_response)

        start_response("200 OK", [
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Length", str(len(landing_page))),
        ])
        return [landing_page]

    return app


def serve(app, host: str, port: int):
    """Serve the WSGI app until interrupted."""
    httpd = make_server(host, port, app, server_class_for(host), handler_class=_LoggingHandler)
    display_host = f"[{host}]" if ":" in host else (host or "0.0.0.0")
    logger.info(f"Listening on {display_host}:{port}")
    try:
        httpd.serve_forever()
    finally:
        httpd.server_close()
