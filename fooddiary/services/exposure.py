"""
Background exposure writes.

After a feed is ranked the served foods must be appended to the exposure
ledger, but the response must not wait for it and must not fail because of it.
ExposureRecorder runs each write as its own asyncio task:

  • detached   — the task is not tied to the request, so it keeps running after
                 the response has been sent
  • bounded    — every write is wrapped in asyncio.wait_for(timeout)
  • supervised — tasks are tracked until done; failures are logged and counted
                 in exposure_write_failures_total, never raised to the caller
  • drainable  — drain() waits for in-flight writes (shutdown, tests)
"""
import asyncio
import logging
from datetime import datetime
from typing import Iterable

from fooddiary.clients.exposure_ledger import ExposureLedger
from fooddiary.telemetry import EXPOSURE_WRITE_FAILURES_TOTAL

logger = logging.getLogger(__name__)


class ExposureRecorder:
    def __init__(self, ledger: ExposureLedger, timeout: float = 5.0) -> None:
        self.ledger = ledger
        self.timeout = timeout
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(
        self,
        user_id: str,
        food_ids: Iterable[str],
        parents: Iterable[str],
        shown_at: datetime,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._write(user_id, list(food_ids), list(parents), shown_at),
            name=f"exposure-write:{user_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(
        self, user_id: str, food_ids: list[str], parents: list[str], shown_at: datetime
    ) -> bool:
        try:
            await asyncio.wait_for(
                self.ledger.record(user_id, food_ids, parents, shown_at),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            EXPOSURE_WRITE_FAILURES_TOTAL.labels(reason="timeout").inc()
            logger.warning(
                "Exposure write timed out after %.1fs (user=%s, foods=%d)",
                self.timeout, user_id, len(food_ids),
            )
            return False
        except Exception as exc:
            EXPOSURE_WRITE_FAILURES_TOTAL.labels(reason="error").inc()
            logger.warning("Failed to save exposure history (user=%s): %s", user_id, exc)
            return False

        logger.debug("Recorded exposure of %d foods for user_id=%s", len(food_ids), user_id)
        return True

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
