# File: src/tradewatch/boot.py
"""
Composition root: builds every service from a Settings object.
"""

import logging
from typing import Any, Dict

from tradewatch.application.services import (
    AccountRegistry,
    BootstrapService,
    EventClassifier,
    FastCycleFeed,
    MonitorService,
    PositionService,
    default_subkind_filters,
)
from tradewatch.config import Settings
from tradewatch.domain.entities import BootstrapState
from tradewatch.infrastructure.db.base import make_engine
from tradewatch.infrastructure.db.ledger_repository import LedgerStore
from tradewatch.infrastructure.db.uow import create_tables
from tradewatch.infrastructure.market.data_api_client import DataApiClient
from tradewatch.infrastructure.notify.detections import FanoutNotifier, LogNotifier
from tradewatch.infrastructure.sched.clock import Clock
from tradewatch.infrastructure.sched.supervisor import TaskSupervisor

log = logging.getLogger(__name__)


def build_ledger(settings: Settings) -> LedgerStore:
    engine = make_engine(settings.DATABASE_URL)
    if engine.dialect.name == "sqlite":
        # Local/dev databases are created in place; other backends go through alembic.
        create_tables(engine)
    return LedgerStore(engine)


def build_services(settings: Settings, **overrides) -> Dict[str, Any]:
    """
    Build and wire all services. Any entry may be replaced through `overrides`
    (e.g. `client=`, `ledger=`, `clock=`), which is how tests inject fakes.
    """
    log.info("Building trade monitor services...")
    services: Dict[str, Any] = {}

    try:
        services["clock"] = overrides.get("clock") or Clock()
        services["ledger"] = overrides["ledger"] if "ledger" in overrides else build_ledger(settings)
        services["client"] = overrides.get("client") or DataApiClient(
            base_url=settings.DATA_API_BASE,
            timeout_seconds=settings.REQUEST_TIMEOUT_MS / 1000,
        )
        services["registry"] = AccountRegistry.from_settings(settings, services["ledger"])
        services["bootstrap_state"] = BootstrapState()
        services["supervisor"] = TaskSupervisor()
        services["notifier"] = overrides.get("notifier") or FanoutNotifier([LogNotifier()])
        services["fast_cycle_feed"] = FastCycleFeed(ttl_seconds=settings.FAST_CYCLE_STALENESS_SECONDS)

        services["classifier"] = EventClassifier(
            stale_window_hours=settings.TOO_OLD_TIMESTAMP,
            subkind_filters=default_subkind_filters(
                enable_15m=settings.ENABLE_15MIN_UPDOWN_TRADES,
                enable_5m=settings.ENABLE_5MIN_UPDOWN_TRADES,
            ),
            suppression_ttl_seconds=settings.SUPPRESSION_TTL_HOURS * 3600,
        )
        services["bootstrap_service"] = BootstrapService(
            registry=services["registry"],
            client=services["client"],
            ledger=services["ledger"],
            lookback_minutes=settings.BOOTSTRAP_LOOKBACK_MINUTES,
            clock=services["clock"],
        )
        services["position_service"] = PositionService(
            client=services["client"], ledger=services["ledger"]
        )
        services["monitor_service"] = MonitorService(
            registry=services["registry"],
            client=services["client"],
            ledger=services["ledger"],
            classifier=services["classifier"],
            bootstrap=services["bootstrap_service"],
            positions=services["position_service"],
            interval_seconds=settings.FETCH_INTERVAL,
            batch_size=settings.BATCH_SIZE,
            clock=services["clock"],
            notifier=services["notifier"],
            fast_cycle_feed=services["fast_cycle_feed"],
            supervisor=services["supervisor"],
            state=services["bootstrap_state"],
        )

        log.info("All services built and wired successfully.")
        return services

    except Exception as e:
        log.critical(f"Service building failed: {e}", exc_info=True)
        raise
