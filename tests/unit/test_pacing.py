"""
Unit tests for submission pacing.
"""

import pytest

from minting.pacing import PacingPolicy


class TestPacingPolicy:
    """Test pacing against a simulated clock."""

    def test_first_submission_does_not_wait(self, pacing, clock):
        assert pacing.wait() == 0.0
        assert clock.sleeps == []

    def test_waits_remaining_interval(self, pacing, clock):
        pacing.mark()
        clock.now += 0.25

        waited = pacing.wait()

        assert waited == pytest.approx(0.75)
        assert clock.sleeps == [pytest.approx(0.75)]

    def test_no_wait_after_interval_elapsed(self, pacing, clock):
        pacing.mark()
        clock.now += 2.0

        assert pacing.wait() == 0.0

    def test_zero_interval(self, clock):
        policy = PacingPolicy(0, clock=clock.time, sleep=clock.sleep)
        policy.mark()

        assert policy.wait() == 0.0
        assert clock.sleeps == []

    def test_reset(self, pacing, clock):
        pacing.mark()
        pacing.reset()
        assert pacing.wait() == 0.0

    def test_negative_interval(self):
        with pytest.raises(ValueError):
            PacingPolicy(-1)
