import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class JobRunner:
    """Starts one daemon thread per job.

    Threads are fire-and-forget: results travel through the job store, and the
    handles kept here are only for observability and orderly shutdown. With
    ``max_concurrent`` set, extra jobs wait on a semaphore before running.
    """

    def __init__(self, target: Callable[[str], None], max_concurrent: int | None = None) -> None:
        self._target = target
        self._slots = threading.BoundedSemaphore(max_concurrent) if max_concurrent else None
        self._threads: dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def submit(self, job_id: str) -> threading.Thread:
        thread = threading.Thread(
            target=self._run, args=(job_id,), name=f"job-{job_id[:8]}", daemon=True
        )
        with self._lock:
            self._threads[job_id] = thread
        thread.start()
        return thread

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads.values() if t.is_alive())

    def join(self, timeout: float | None = None) -> None:
        with self._lock:
            threads = list(self._threads.values())
        for thread in threads:
            thread.join(timeout)

    def _run(self, job_id: str) -> None:
        try:
            if self._slots is None:
                self._target(job_id)
            else:
                with self._slots:
                    self._target(job_id)
        except Exception:
            logger.exception("Job %s crashed outside the pipeline", job_id)
        finally:
            with self._lock:
                self._threads.pop(job_id, None)
