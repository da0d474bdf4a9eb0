import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

from opgl_gateway.stores.api_keys import ApiKeyStore


class LastUsedRecorder:
    """
    Best-effort background updates of ``api_keys.last_used_at``.

    Submissions never block the caller. When ``max_pending`` updates are
    already queued, or after ``shutdown``, new ones are dropped. Failures
    are logged at debug level and otherwise ignored: a missed timestamp has
    no effect on admission.
    """

    def __init__(self, store: ApiKeyStore, logger: logging.Logger, max_pending: int = 1000):
        self._store = store
        self._logger = logger
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="last-used")
        self._closed = False

    def submit(self, key_id: uuid.UUID) -> bool:
        if self._closed or not self._slots.acquire(blocking=False):
            self._logger.debug("last_used_dropped", extra={"api_key_id": str(key_id)})
            return False
        try:
            self._executor.submit(self._run, key_id)
        except RuntimeError:
            # executor already shut down
            self._slots.release()
            return False
        return True

    def _run(self, key_id: uuid.UUID) -> None:
        try:
            self._store.touch_last_used(key_id)
        except Exception:
            self._logger.debug("last_used_update_failed", exc_info=True, extra={"api_key_id": str(key_id)})
        finally:
            self._slots.release()

    def shutdown(self, wait: bool = False) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
