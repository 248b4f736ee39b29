# src/tradewatch/main.py
"""
Process entry point: `python -m tradewatch`.

Startup: settings -> logging -> services -> metrics -> monitor.start().
Shutdown on SIGINT/SIGTERM: stop the poll loop, give it a grace period, drain
detached tasks, close the HTTP client and dispose the engine. A second signal
during shutdown forces exit.
"""

import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

from tradewatch.boot import build_services
from tradewatch.config import Settings, load_settings
from tradewatch.errors import ConfigurationError
from tradewatch.infrastructure.metrics import start_metrics_server
from tradewatch.logging_conf import prune_old_logs, setup_logging

log = logging.getLogger(__name__)


async def main(settings: Settings) -> None:
    services = build_services(settings)
    monitor = services["monitor_service"]
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _on_signal(signame: str) -> None:
        if shutdown.is_set():
            log.warning("Received %s again; forcing exit.", signame)
            raise SystemExit(1)
        log.info("Received %s, shutting down gracefully...", signame)
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig.name)
        except NotImplementedError:
            # Windows event loops do not support signal handlers; Ctrl+C still raises KeyboardInterrupt.
            pass

    if settings.METRICS_ENABLED:
        start_metrics_server(settings.METRICS_PORT)

    try:
        await monitor.start()
        await shutdown.wait()
    finally:
        monitor.stop()
        await monitor.wait_stopped(settings.SHUTDOWN_GRACE_SECONDS)
        await services["supervisor"].join(timeout=settings.SHUTDOWN_GRACE_SECONDS)
        await services["client"].aclose()
        if services["ledger"] is not None:
            services["ledger"].dispose()
        log.info("Graceful shutdown completed.")


def run() -> None:
    load_dotenv()
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging()
        log.critical("Configuration error: %s", e.message)
        sys.exit(1)

    setup_logging(settings.LOG_DIR)
    if settings.LOG_DIR:
        removed = prune_old_logs(settings.LOG_DIR)
        if removed:
            log.info("Removed %d old log file(s) from %s", removed, settings.LOG_DIR)

    try:
        asyncio.run(main(settings))
    except ConfigurationError as e:
        log.critical("Configuration error: %s", e.message)
        sys.exit(1)
    except KeyboardInterrupt:
        log.info("Trade monitor stopped manually.")


if __name__ == "__main__":
    run()
