# File: src/tradewatch/application/services/__init__.py

from .account_registry import AccountHandle, AccountRegistry
from .bootstrap_service import BootstrapReport, BootstrapService
from .classifier import Decision, EventClassifier, SubKindFilter, Verdict, default_subkind_filters
from .fast_cycle_feed import FastCycleFeed, FastCycleSignal
from .monitor_service import CycleReport, MonitorService
from .position_service import PositionService

__all__ = [
    "AccountHandle",
    "AccountRegistry",
    "BootstrapReport",
    "BootstrapService",
    "Decision",
    "EventClassifier",
    "SubKindFilter",
    "Verdict",
    "default_subkind_filters",
    "FastCycleFeed",
    "FastCycleSignal",
    "CycleReport",
    "MonitorService",
    "PositionService",
]
