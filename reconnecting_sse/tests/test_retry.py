import httpx
import pytest

from reconnecting_sse.errors import (
    FrameParseError,
    InvalidContentTypeError,
    InvalidLastEventIdError,
    InvalidStatusCodeError,
    StreamEndedError,
    TransportError,
    Utf8DecodeError,
)
from reconnecting_sse.retry import (
    Constant,
    ExponentialBackoff,
    Never,
    RetryState,
    default_retry_policy,
    default_should_retry,
)

_TRANSPORT = TransportError(httpx.ConnectError("refused"))

_NON_RETRYABLE = [
    Utf8DecodeError("bad byte"),
    FrameParseError("line too long"),
    InvalidStatusCodeError(404),
    InvalidContentTypeError("application/json"),
    InvalidLastEventIdError("café"),
]


def _delays(policy, failures: int) -> list:
    """Feed consecutive transport failures through a policy the way EventSource does."""
    delays = []
    state = None
    for _ in range(failures):
        delay = policy.decide(_TRANSPORT, state)
        delays.append(delay)
        if delay is None:
            break
        state = RetryState(state.attempt + 1 if state else 1, delay)
    return delays


def test_default_classification_matches_error_kinds() -> None:
    assert default_should_retry(_TRANSPORT)
    assert default_should_retry(StreamEndedError())
    for error in _NON_RETRYABLE:
        assert not default_should_retry(error)


@pytest.mark.parametrize(
    "policy",
    [
        ExponentialBackoff(start=0.5, factor=2.0, max_delay=3.0),
        ExponentialBackoff(start=1.0, factor=1.0, max_delay=1.0),
        ExponentialBackoff(start=0.1, factor=3.5, max_delay=60.0),
        ExponentialBackoff(start=0.0, factor=2.0, max_delay=1.0),
    ],
)
def test_exponential_backoff_starts_at_start_and_never_shrinks(policy) -> None:
    delays = _delays(policy, 12)

    assert delays[0] == policy.start
    assert delays == sorted(delays)
    assert max(delays) <= policy.max_delay


def test_exponential_backoff_sequence() -> None:
    policy = ExponentialBackoff(start=0.3, factor=2.0, max_delay=5.0)

    assert _delays(policy, 6) == pytest.approx([0.3, 0.6, 1.2, 2.4, 4.8, 5.0])


@pytest.mark.parametrize(
    "policy",
    [
        ExponentialBackoff(start=0.1, factor=2.0, max_delay=1.0, max_retries=3),
        Constant(delay=1.0, max_retries=3),
    ],
)
def test_max_retries_allows_exactly_that_many_retries(policy) -> None:
    delays = _delays(policy, 10)

    assert len(delays) == 4
    assert None not in delays[:3]
    assert delays[3] is None


def test_constant_returns_the_same_delay_every_time() -> None:
    assert _delays(Constant(delay=2.0), 5) == [2.0] * 5


@pytest.mark.parametrize(
    "policy",
    [
        ExponentialBackoff(start=0.1, factor=2.0, max_delay=1.0, max_retries=0),
        Constant(delay=1.0, max_retries=0),
    ],
)
def test_zero_max_retries_gives_up_on_first_failure(policy) -> None:
    assert _delays(policy, 3) == [None]


@pytest.mark.parametrize("error", _NON_RETRYABLE)
def test_builtin_policies_never_retry_non_retryable_errors(error) -> None:
    for policy in (default_retry_policy(), Constant(delay=1.0), Never()):
        assert policy.decide(error, None) is None
        assert policy.decide(error, RetryState(1, 1.0)) is None


def test_never_gives_up_on_first_failure() -> None:
    assert Never().decide(_TRANSPORT, None) is None
    assert Never().decide(StreamEndedError(), None) is None


def test_default_policy_values() -> None:
    policy = default_retry_policy()

    assert (policy.start, policy.factor, policy.max_delay, policy.max_retries) == (
        0.3,
        2.0,
        5.0,
        None,
    )
    assert default_retry_policy() is not policy


def test_reconnection_time_moves_the_first_delay() -> None:
    backoff = ExponentialBackoff(start=0.3, factor=2.0, max_delay=5.0)
    backoff.set_reconnection_time(2.0)
    assert backoff.decide(_TRANSPORT, None) == 2.0

    backoff.set_reconnection_time(30.0)
    assert backoff.decide(_TRANSPORT, None) == 5.0

    constant = Constant(delay=1.0)
    constant.set_reconnection_time(4.0)
    assert constant.decide(_TRANSPORT, RetryState(3, 1.0)) == 4.0

    never = Never()
    never.set_reconnection_time(4.0)
    assert never.decide(_TRANSPORT, None) is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"start": -1.0, "factor": 2.0, "max_delay": 5.0},
        {"start": 1.0, "factor": 0.5, "max_delay": 5.0},
        {"start": 10.0, "factor": 2.0, "max_delay": 5.0},
    ],
)
def test_exponential_backoff_rejects_shrinking_configurations(kwargs) -> None:
    with pytest.raises(ValueError):
        ExponentialBackoff(**kwargs)


def test_constant_rejects_negative_delay() -> None:
    with pytest.raises(ValueError):
        Constant(delay=-0.1)
