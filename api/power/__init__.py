"""Host power-state coordination"""
from power.event_sources import (
    AppKitPowerEventSource,
    NullPowerEventSource,
    PowerEventSource,
    default_power_event_source,
)
from power.sleep_wake_monitor import SleepWakeMonitor

__all__ = [
    'AppKitPowerEventSource',
    'NullPowerEventSource',
    'PowerEventSource',
    'SleepWakeMonitor',
    'default_power_event_source',
]
