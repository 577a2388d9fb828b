import logging
from pathlib import Path
from typing import Callable, Optional

from shift_engine.vars import SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


class ShutdownSentinel:
    """
    Graceful shutdown driven by a marker file.

    The stop script creates the file and then requests the reserved shutdown
    route. Only the file's existence matters; its content is never read.
    """

    def __init__(self, path: Path | str, stop_listener: Optional[Callable[[], None]] = None):
        self.path = Path(path)
        self.stop_listener = stop_listener
        self.exit_code: Optional[int] = None

    def check(self) -> bool:
        if not self.path.exists():
            return False

        logger.info(f"[Shutdown] {SERVICE_NAME} is shutting down.")
        if self.stop_listener is not None:
            self.stop_listener()
        else:
            logger.warning("[Shutdown] No listener attached, only removing the sentinel")
        # The file may already be gone if two checks raced; either way it is absent now.
        self.path.unlink(missing_ok=True)
        self.exit_code = 0
        return True
