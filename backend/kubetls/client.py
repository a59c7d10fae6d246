"""httpx clients configured with the cluster TLS context."""
import logging
from typing import Any

import httpx

from .context import build_ssl_context, build_ssl_context_async


logger = logging.getLogger(__name__)


def create_http_client(config: Any, **kwargs: Any) -> httpx.AsyncClient:
    """
    Create an httpx.AsyncClient that verifies and authenticates with config.

    Blocks while the TLS context is built; prefer open_http_client on an
    event loop.
    """
    if "verify" in kwargs:
        raise TypeError("verify is derived from the cluster configuration")
    return httpx.AsyncClient(verify=build_ssl_context(config), **kwargs)


async def open_http_client(config: Any, **kwargs: Any) -> httpx.AsyncClient:
    """Async variant of create_http_client; builds the context off the event loop."""
    if "verify" in kwargs:
        raise TypeError("verify is derived from the cluster configuration")
    context = await build_ssl_context_async(config)
    logger.debug("[KUBE-TLS] Opening HTTP client for %s", kwargs.get("base_url", "<no base url>"))
    return httpx.AsyncClient(verify=context, **kwargs)
