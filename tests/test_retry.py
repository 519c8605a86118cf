"""Tests for the retryer."""

import pytest

from filestore.core.config.models import RetryConfig
from filestore.storage.exceptions import ObjectNotFoundError, TransientStorageError
from filestore.utils.retry import Retryer


class Flaky:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures, error=TransientStorageError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "ok"


@pytest.fixture
def sleeps():
    return []


class TestRetryer:
    """Test exponential backoff with jitter."""

    def test_success_without_retry(self, sleeps):
        fn = Flaky(0)
        assert Retryer(sleep=sleeps.append).send(fn) == "ok"
        assert fn.calls == 1
        assert sleeps == []

    def test_recovers_after_failures(self, sleeps):
        fn = Flaky(2)
        retryer = Retryer(max_attempts=3, sleep=sleeps.append, rand=lambda: 0.5)
        assert retryer.send(fn) == "ok"
        assert fn.calls == 3
        assert sleeps == [0.5, 1.0]

    def test_gives_up_after_max_attempts(self, sleeps):
        """Test that the last error is raised after max_attempts retries."""
        fn = Flaky(10)
        retryer = Retryer(max_attempts=3, sleep=sleeps.append, rand=lambda: 1.0)
        with pytest.raises(TransientStorageError, match="failure 4"):
            retryer.send(fn)
        assert fn.calls == 4
        assert sleeps == [1.0, 2.0, 4.0]

    def test_backoff_capped(self, sleeps):
        fn = Flaky(4)
        retryer = Retryer(max_attempts=5, max_backoff=3.0, sleep=sleeps.append, rand=lambda: 1.0)
        retryer.send(fn)
        assert sleeps == [1.0, 2.0, 3.0, 3.0]

    def test_non_retryable_errors_propagate(self, sleeps):
        fn = Flaky(1, error=ObjectNotFoundError)
        retryer = Retryer(retry_on=(TransientStorageError,), sleep=sleeps.append)
        with pytest.raises(ObjectNotFoundError):
            retryer.send(fn)
        assert fn.calls == 1

    def test_zero_attempts(self, sleeps):
        fn = Flaky(1)
        with pytest.raises(TransientStorageError):
            Retryer(max_attempts=0, sleep=sleeps.append).send(fn)
        assert fn.calls == 1

    def test_from_config(self):
        retryer = Retryer.from_config(RetryConfig(max_attempts=7, max_backoff=1.5, base=3.0))
        assert (retryer.max_attempts, retryer.max_backoff, retryer.base) == (7, 1.5, 3.0)
