"""Shared runtime utilities for job execution."""

from sql_dump_loader.infrastructure.runtime.slot_based_job_queue import (
    JobSlotControl,
    SlotBasedJobQueue,
)

__all__ = ["JobSlotControl", "SlotBasedJobQueue"]
