"""
Jobs package - itch.io polling and scheduled maintenance
"""
from geserver.jobs.scheduler import PollScheduler, WatcherStatus

__all__ = ["PollScheduler", "WatcherStatus"]
