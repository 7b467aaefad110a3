from concurrent.futures import ThreadPoolExecutor

import logging
import threading


logger = logging.getLogger(__name__)


class SemaphoredExecutor:
    """Limit the number of outstanding tasks submitted through this object.

    ``submit`` blocks until a permit is free; the permit is returned when
    the task finishes. The delegate executor is shared and not owned.
    """

    def __init__(self, delegate, permits):
        if permits < 1:
            raise ValueError(f"permits must be positive, got {permits}")
        self._delegate = delegate
        self._permits = threading.BoundedSemaphore(permits)

    def submit(self, fn, *args, **kwargs):
        self._permits.acquire()
        try:
            future = self._delegate.submit(fn, *args, **kwargs)
        except BaseException:
            self._permits.release()
            raise
        future.add_done_callback(self._release)
        return future

    def _release(self, _future):
        self._permits.release()


class BlockingThreadPoolExecutor(SemaphoredExecutor):
    """Thread pool that makes callers wait instead of queueing without bound.

    At most ``max_workers`` tasks run and ``max_tasks`` more may wait in
    the queue; further submissions block.
    """

    def __init__(self, max_workers, max_tasks, thread_name_prefix="s3dirfs"):
        super().__init__(
            ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix=thread_name_prefix
            ),
            max_workers + max_tasks,
        )

    def shutdown(self, wait=True):
        self._delegate.shutdown(wait=wait)


class CopyFileContext:
    """Completion barrier for the copy tasks of one directory rename.

    Use as a context manager to hold its lock.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._copies_finished = 0
        self._copy_failure = False

    def __enter__(self):
        self._condition.acquire()
        return self

    def __exit__(self, *exc_info):
        self._condition.release()

    def is_copy_failure(self):
        return self._copy_failure

    def set_copy_failure(self):
        self._copy_failure = True

    @property
    def copies_finished(self):
        return self._copies_finished

    def inc_copies_finished(self):
        """Count one finished task and wake the waiter. Hold the lock."""
        self._copies_finished += 1
        self._condition.notify_all()

    def await_all_finish(self, copies_to_finish):
        """Wait until ``copies_to_finish`` tasks have reported. Hold the lock."""
        while self._copies_finished < copies_to_finish:
            self._condition.wait()


class CopyFileTask:
    """Copy one object and report the outcome to a CopyFileContext."""

    def __init__(self, store, src_key, size, dst_key, context):
        self.store = store
        self.src_key = src_key
        self.size = size
        self.dst_key = dst_key
        self.context = context

    def __call__(self):
        failed = False
        try:
            self.store.copy_object(self.src_key, self.dst_key, size=self.size)
        except Exception:
            failed = True
            logger.exception("Failed to copy %s to %s", self.src_key, self.dst_key)
        with self.context:
            if failed:
                self.context.set_copy_failure()
            self.context.inc_copies_finished()
