"""
monitoring — periodic re-evaluation loop and alert digest.
"""

from .scheduler import CycleReport, MonitoringMode, MonitoringScheduler, SchedulerState

__all__ = ["CycleReport", "MonitoringMode", "MonitoringScheduler", "SchedulerState"]
