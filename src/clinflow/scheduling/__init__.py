"""Scheduling — recurring schedules and the periodic sweeps."""
from clinflow.scheduling.manager import ScheduleManager
from clinflow.scheduling.models import BackupSnapshot, Schedule
from clinflow.scheduling.scheduler import Scheduler

__all__ = ["BackupSnapshot", "Schedule", "ScheduleManager", "Scheduler"]
