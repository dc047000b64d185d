"""Bounded concurrency for import jobs."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

QueueStateCallback = Callable[[], Awaitable[None]]


@dataclass(slots=True)
class JobSlotControl:
    """Queue bookkeeping for one job."""

    slot_acquired: bool = False
    waiting_for_slot: bool = False


class SlotBasedJobQueue:
    """Let at most `max_active_jobs` imports run; later ones wait in FIFO order."""

    def __init__(self, max_active_jobs: int) -> None:
        self._max_active_jobs = max(1, max_active_jobs)
        self._slots = asyncio.Semaphore(self._max_active_jobs)
        self._waiting = 0

    @property
    def max_active_jobs(self) -> int:
        """Return queue capacity for concurrently running jobs."""

        return self._max_active_jobs

    @property
    def waiting_jobs(self) -> int:
        """Number of jobs currently waiting for a slot."""

        return self._waiting

    async def acquire(
        self,
        control: JobSlotControl,
        on_queue_state_change: QueueStateCallback | None = None,
    ) -> None:
        """Block until the job holds a slot."""

        if control.slot_acquired:
            return
        if self._slots.locked():
            await self._set_waiting_for_slot(control, True, on_queue_state_change)
        self._waiting += 1
        try:
            await self._slots.acquire()
        finally:
            self._waiting -= 1
        control.slot_acquired = True
        await self._set_waiting_for_slot(control, False, on_queue_state_change)

    def release(self, control: JobSlotControl) -> None:
        """Release a previously acquired slot."""

        if not control.slot_acquired:
            return
        control.slot_acquired = False
        self._slots.release()

    @asynccontextmanager
    async def slot(
        self,
        control: JobSlotControl | None = None,
        on_queue_state_change: QueueStateCallback | None = None,
    ) -> AsyncIterator[JobSlotControl]:
        """Hold a slot for the duration of the block."""

        control = control or JobSlotControl()
        await self.acquire(control, on_queue_state_change)
        try:
            yield control
        finally:
            self.release(control)

    async def _set_waiting_for_slot(
        self,
        control: JobSlotControl,
        waiting_for_slot: bool,
        on_queue_state_change: QueueStateCallback | None,
    ) -> None:
        """Update queued state and notify when the state actually changed."""

        if control.waiting_for_slot == waiting_for_slot:
            return
        control.waiting_for_slot = waiting_for_slot
        if on_queue_state_change is not None:
            await on_queue_state_change()


__all__ = ["JobSlotControl", "SlotBasedJobQueue"]
