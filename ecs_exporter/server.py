"""HTTP frontend: /metrics, /status and an index page."""

import logging
import ssl
from typing import Optional

from aiohttp import web

from .collectors.projection import LAST_CYCLE_SUCCESS
from .config.models import TLSConfig
from .registry import MetricsRegistry


REGISTRY_KEY = web.AppKey("registry", MetricsRegistry)
VERSION_KEY = web.AppKey("version", str)

STATUS_PAGE = "<html><head><title>AWS ECS Exporter</title></head><body>Ok</body></html>"

HOME_PAGE = """<html>
<head><title>AWS ECS Exporter</title></head>
<body>
    AWS ECS Exporter v{version}
    <ul>
        <li><a href="/status">Exporter status</a></li>
        <li><a href="/metrics">Metrics</a></li>
    </ul>
</body>
</html>
"""


async def handle_index(request: web.Request) -> web.Response:
    return web.Response(
        text=HOME_PAGE.format(version=request.app[VERSION_KEY]),
        content_type="text/html"
    )


async def handle_status(request: web.Request) -> web.Response:
    # Liveness only: never consults AWS or the registry
    return web.Response(text=STATUS_PAGE, content_type="text/html")


async def handle_metrics(request: web.Request) -> web.Response:
    registry = request.app[REGISTRY_KEY]
    # success only while the last completed cycle described every cluster
    last_cycle_ok = registry.get_sample_value(LAST_CYCLE_SUCCESS) == 1
    registry.count_request("success" if last_cycle_ok else "error")
    return web.Response(
        body=registry.render(),
        headers={"Content-Type": registry.content_type}
    )


def create_app(registry: MetricsRegistry, version: str = "unknown") -> web.Application:
    """
    Build the aiohttp application.

    Args:
        registry: Registry rendered by /metrics
        version: Version shown on the index page

    Returns:
        web.Application: Application with all routes registered
    """
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app[VERSION_KEY] = version
    app.router.add_get("/", handle_index)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/metrics", handle_metrics)
    return app


def create_ssl_context(tls: Optional[TLSConfig]) -> Optional[ssl.SSLContext]:
    """
    Load the server certificate, if TLS is configured.

    Raises:
        FileNotFoundError: If the certificate or key file is missing
        ssl.SSLError: If they cannot be loaded
    """
    if tls is None:
        return None
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(certfile=tls.cert_path, keyfile=tls.key_path)
    return context


async def start_server(
    app: web.Application,
    host: str,
    port: int,
    logger: logging.Logger,
    ssl_context: Optional[ssl.SSLContext] = None
) -> web.AppRunner:
    """
    Start serving *app*; the caller owns the returned runner and must clean it up.

    Returns:
        web.AppRunner: Running application runner
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port, ssl_context=ssl_context)
    await site.start()

    scheme = "https" if ssl_context else "http"
    display_host = f"[{host}]" if ":" in host else host
    logger.info(f"Serving metrics on {scheme}://{display_host}:{port}/metrics")
    return runner
