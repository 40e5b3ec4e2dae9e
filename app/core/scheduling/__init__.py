"""Background job scheduling."""

from .tasks import start_scheduler, stop_scheduler

__all__ = ["start_scheduler", "stop_scheduler"]
