import time

from . import log
from .config import DEFAULT_POLL_ATTEMPTS, DEFAULT_POLL_INTERVAL
from .errors import GitForgeError, ReadAfterWriteTimeout


class Poller:
    """
    Bounded read-after-write wait.

    Calls a read function until it succeeds, at most ``attempts`` times with a
    fixed ``interval`` sleep between failures. The read function signals
    "not yet" by raising a GitForgeError (usually an ApiError) or by returning
    None. Nothing is ever re-created here, only re-read.
    """

    def __init__(self, attempts=DEFAULT_POLL_ATTEMPTS, interval=DEFAULT_POLL_INTERVAL, sleep=time.sleep):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.interval = interval
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings, sleep=time.sleep):
        return cls(attempts=settings.poll_attempts, interval=settings.poll_interval, sleep=sleep)

    def wait(self, read, description="resource"):
        """Return (True, value) on the first successful read, else (False, ReadAfterWriteTimeout)."""
        last_error = None
        for attempt in range(1, self.attempts + 1):
            try:
                value = read()
            except GitForgeError as e:
                last_error = e
                value = None
            if value is not None:
                if attempt > 1:
                    log.debug(f"{description} became available after {attempt} attempts")
                return True, value
            if attempt < self.attempts:
                log.debug(f"waiting for {description} (attempt {attempt}/{self.attempts})")
                self.sleep(self.interval)
        timeout = ReadAfterWriteTimeout(description, self.attempts, last_error)
        log.warn(str(timeout))
        return False, timeout
