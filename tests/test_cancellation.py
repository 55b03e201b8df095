import time

import pytest

from testsorter.services.cancellation import CancellationToken, DeadlineTimer


def test_token_without_deadline_only_cancels_explicitly():
    token = CancellationToken()

    assert not token.is_cancelled()
    token.cancel()
    assert token.is_cancelled()


def test_deadline_trips_on_supplied_clock():
    now = [100.0]
    token = CancellationToken.from_budget(250, clock=lambda: now[0])

    assert token.deadline == pytest.approx(100.25)
    assert not token.is_cancelled()
    now[0] = 100.25
    assert token.is_cancelled()


def test_cancellation_is_write_once():
    now = [0.0]
    token = CancellationToken.from_budget(10, clock=lambda: now[0])
    now[0] = 1.0
    assert token.is_cancelled()

    now[0] = 0.0
    assert token.is_cancelled()


def test_zero_budget_means_no_deadline():
    token = CancellationToken.from_budget(0)

    assert token.deadline is None
    assert not token.is_cancelled()


def test_negative_budget_is_rejected():
    with pytest.raises(ValueError):
        CancellationToken.from_budget(-5)
    with pytest.raises(ValueError):
        DeadlineTimer(CancellationToken(), -5)


def test_timer_cancels_token_in_background():
    token = CancellationToken()
    with DeadlineTimer(token, 20):
        assert token.wait(timeout=5.0)

    assert token.is_cancelled()


def test_timer_with_zero_budget_never_fires():
    token = CancellationToken()
    timer = DeadlineTimer(token, 0)
    timer.start()
    time.sleep(0.05)

    assert not token.is_cancelled()


def test_cancelled_timer_does_not_fire():
    token = CancellationToken()
    timer = DeadlineTimer(token, 200)
    timer.start()
    timer.cancel()

    assert not token.wait(timeout=0.4)
