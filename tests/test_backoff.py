"""Reconnect backoff policy tests."""

from skewmarket.ingestion.backoff import ReconnectBudget, backoff_delay


def test_backoff_delay_doubles_and_caps():
    assert [backoff_delay(n) for n in range(7)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    assert backoff_delay(3, base_delay=0.5, max_delay=2.0) == 2.0


def test_budget_exhausts_after_max_attempts():
    budget = ReconnectBudget(max_attempts=3)
    delays = []
    while not budget.exhausted:
        delays.append(budget.next_delay())
    assert delays == [1.0, 2.0, 4.0]
    assert budget.attempts == 3
    budget.reset()
    assert not budget.exhausted
    assert budget.next_delay() == 1.0
