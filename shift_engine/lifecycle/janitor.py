import asyncio
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from shift_engine.utils.exception_logging import log_exception_with_details

ONE_WEEK = 60 * 60 * 24 * 7


class CacheJanitor:
    """
    Periodically removes the session engine's transient script cache.

    A failed purge is logged and retried on the next period; it never stops
    the loop or the process.
    """

    def __init__(
        self,
        path: Path | str,
        logger: logging.Logger,
        interval: float = ONE_WEEK,
    ):
        self.path = Path(path)
        self.interval = interval
        self._logger = logger
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return bool(self._task and not self._task.done())

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(), name="cache-janitor")
        return self._task

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def purge(self) -> bool:
        """Run one firing. Returns True when the cache directory was removed."""
        try:
            if not self.path.exists():
                return False
            await asyncio.to_thread(shutil.rmtree, self.path)
        except FileNotFoundError:
            # Removed by someone else between the check and the removal.
            self._logger.debug(f"[Cache Purge] {self.path} vanished before removal")
            return False
        except Exception as e:
            log_exception_with_details(self._logger, "[Cache Purge Error]", e)
            return False
        self._logger.info(
            f"[Cache Purge] Cleared {self.path} at {datetime.now(timezone.utc).isoformat()}"
        )
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.purge()
