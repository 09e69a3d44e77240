"""
Job Queue — background work that runs beside the dialog engine.

- MessageDeleter batches "delete for me" requests per chat and sweeps them
  on an adaptive timer.
"""
from job_queue.message_deleter import MAX_MULTIPLIER, MIN_MULTIPLIER, MessageDeleter

__all__ = ["MessageDeleter", "MIN_MULTIPLIER", "MAX_MULTIPLIER"]
