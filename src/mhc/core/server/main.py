"""Run the CVH scoring server over streamable HTTP (``python -m mhc.core.server.main``)."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from mhc.core.config.settings import Settings, get_settings
from mhc.core.server.app import SERVER_NAME, create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _check_bind(settings: Settings) -> None:
    # The server has no authentication; recorded samples are personal health data.
    if settings.mhc_allow_insecure_bind or _is_loopback_host(settings.mhc_host):
        return
    raise RuntimeError(
        f"Refusing to serve on non-loopback host {settings.mhc_host!r}. "
        "Set MHC_ALLOW_INSECURE_BIND=true to expose it anyway."
    )


def run() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.mhc_log_level.upper(), logging.INFO))
    _check_bind(settings)

    logger.info("Starting %s on %s:%d (timezone %s)",
                SERVER_NAME, settings.mhc_host, settings.mhc_port, settings.timezone)
    create_app(settings=settings).run(
        transport="streamable-http",
        host=settings.mhc_host,
        port=settings.mhc_port,
    )


if __name__ == "__main__":
    run()
