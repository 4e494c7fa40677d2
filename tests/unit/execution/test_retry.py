"""Test the retry policy."""

from monopub.config import RetryConfig
from monopub.errors import ErrorKind
from monopub.execution import RetryPolicy


def test_default_policy_never_retries():
    policy = RetryPolicy()
    assert not policy.should_retry(ErrorKind.TIMEOUT, 1)


def test_only_recoverable_kinds_are_retried():
    policy = RetryPolicy(max_attempts=3, recoverable_kinds=frozenset({ErrorKind.TIMEOUT}))

    assert policy.should_retry(ErrorKind.TIMEOUT, 1)
    assert not policy.should_retry(ErrorKind.BUILD_FAILED, 1)


def test_attempts_are_bounded():
    policy = RetryPolicy(max_attempts=3, recoverable_kinds=frozenset({ErrorKind.TIMEOUT}))

    assert policy.should_retry(ErrorKind.TIMEOUT, 2)
    assert not policy.should_retry(ErrorKind.TIMEOUT, 3)


def test_exponential_backoff_with_cap():
    policy = RetryPolicy(delay=1.0, backoff_multiplier=2.0, max_delay=5.0)

    assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 5.0]


def test_from_config():
    config = RetryConfig(
        max_attempts=4,
        delay=0.5,
        auto_recoverable_error_kinds=["timeout", "git_failed"],
    )

    policy = RetryPolicy.from_config(config)

    assert policy.max_attempts == 4
    assert policy.delay == 0.5
    assert policy.recoverable_kinds == {ErrorKind.TIMEOUT, ErrorKind.GIT_FAILED}
