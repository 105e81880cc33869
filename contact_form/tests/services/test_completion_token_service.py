import pytest

from contact_form.core.config import Settings
from contact_form.core.errors import ConfigurationError
from contact_form.services.completion_token_service import (
    CompletionTokenGuard,
    resolve_completion_guard,
)


class FakeClock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(scope="function")
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def guard(clock):
    return CompletionTokenGuard("test-secret", clock=clock)


def test_issue_format(guard, clock):
    timestamp, signature = guard.issue().split(".")

    assert timestamp == str(clock.now)
    assert len(signature) == 64


def test_fresh_token_verifies(guard, clock):
    token = guard.issue()
    clock.now += 10_000

    assert guard.verify(token, max_age_seconds=10)


def test_expired_token_rejected(guard, clock):
    token = guard.issue()
    clock.now += 10_001

    assert not guard.verify(token, max_age_seconds=10)


def test_future_token_rejected(guard, clock):
    token = guard.issue()
    clock.now -= 1

    assert not guard.verify(token)


def test_tampered_timestamp_rejected(guard, clock):
    timestamp, signature = guard.issue().split(".")

    assert not guard.verify(f"{int(timestamp) + 1}.{signature}")


def test_other_secret_rejected(guard, clock):
    other = CompletionTokenGuard("other-secret", clock=clock)

    assert not guard.verify(other.issue())


@pytest.mark.parametrize(
    "token",
    ["", "abc", "1.2.3", "12a.deadbeef", "١٢٣.deadbeef", ".deadbeef"],
)
def test_malformed_token_rejected(guard, token):
    assert not guard.verify(token)


@pytest.mark.parametrize("value", ["session", "token"])
def test_resolve_completion_guard(value):
    config = Settings()
    config.COMPLETION_GUARD = value

    assert resolve_completion_guard(config) == value


def test_resolve_unknown_completion_guard():
    config = Settings()
    config.COMPLETION_GUARD = "cookie"

    with pytest.raises(ConfigurationError, match="cookie"):
        resolve_completion_guard(config)
