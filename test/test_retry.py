import pytest

from gitforge.config import Settings
from gitforge.errors import ApiError, ReadAfterWriteTimeout
from gitforge.retry import Poller


class Reader:
    def __init__(self, succeed_on=None, value="ready"):
        self.succeed_on = succeed_on
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.succeed_on is not None and self.calls >= self.succeed_on:
            return self.value
        raise ApiError(404, "https://git.example/thing", "not yet")


def test_first_read_succeeds_without_sleeping(poller, sleeps):
    read = Reader(succeed_on=1)
    assert poller.wait(read, "thing") == (True, "ready")
    assert read.calls == 1
    assert sleeps == []


def test_success_on_attempt_29(poller, sleeps):
    read = Reader(succeed_on=29)
    ok, value = poller.wait(read, "thing")
    assert ok
    assert value == "ready"
    assert read.calls == 29
    assert sleeps == [2.0] * 28


def test_gives_up_after_exactly_30_attempts(poller, sleeps):
    read = Reader()
    ok, timeout = poller.wait(read, "thing")
    assert not ok
    assert read.calls == 30
    assert len(sleeps) == 29
    assert isinstance(timeout, ReadAfterWriteTimeout)
    assert timeout.attempts == 30
    assert isinstance(timeout.last_error, ApiError)
    assert "thing" in str(timeout)


def test_none_counts_as_not_ready(sleeps):
    results = [None, None, "done"]
    poller = Poller(attempts=5, interval=0.5, sleep=sleeps.append)
    assert poller.wait(lambda: results.pop(0)) == (True, "done")
    assert sleeps == [0.5, 0.5]


def test_other_errors_propagate(poller):
    def read():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        poller.wait(read)


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        Poller(attempts=0)


def test_from_settings(sleeps):
    poller = Poller.from_settings(Settings(poll_attempts=3, poll_interval=0.1), sleep=sleeps.append)
    assert poller.attempts == 3
    assert poller.interval == 0.1
