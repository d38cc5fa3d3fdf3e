"""Tests for the cancellation signal."""

from unitrun.cancellation import CancellationSignal


def test_cancellation_is_one_way() -> None:
    """Stays cancelled once cancelled."""
    signal = CancellationSignal()
    assert not signal.is_cancelled

    signal.cancel()
    signal.cancel()

    assert signal.is_cancelled


def test_signals_are_independent() -> None:
    """Cancelling one signal leaves another untouched."""
    first, second = CancellationSignal(), CancellationSignal()

    first.cancel()

    assert first.is_cancelled
    assert not second.is_cancelled
