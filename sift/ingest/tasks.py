"""
Dump Task Queue

Runs process_dump off the request path on a thread pool. Submission
returns immediately; the handle lets callers (and tests) wait for the
outcome without polling the store.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional

logger = logging.getLogger("sift.ingest.tasks")


class TaskHandle:
    """Observable result of one submitted dump"""

    def __init__(self, dump_id: str, future: Future):
        self.dump_id = dump_id
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until finished; False if the timeout expired first"""
        done, _ = wait([self._future], timeout=timeout)
        return bool(done)

    @property
    def error(self) -> Optional[BaseException]:
        if not self._future.done():
            return None
        return self._future.exception()


class DumpTaskQueue:
    def __init__(self, process: Callable[[str], None], workers: int = 4):
        """
        Args:
            process: Usually DumpOrchestrator.process_dump
            workers: Pool size
        """
        self._process = process
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="sift-dump")

    def submit(self, dump_id: str) -> TaskHandle:
        logger.debug("Queued dump %s", dump_id)
        return TaskHandle(dump_id, self._executor.submit(self._process, dump_id))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
