from bt_intercomm.scheduler.queue import ConfirmationDelayScheduler

__all__ = ["ConfirmationDelayScheduler"]
