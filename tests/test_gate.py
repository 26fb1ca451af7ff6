"""
Sampling Gate Tests
===================
"""

import pytest

from ad_narrator.models.state import GateDecision
from ad_narrator.narration.gate import SamplingGate


class TestProcessInterval:

    def test_first_candidate_always_passes(self):
        gate = SamplingGate()
        assert gate.evaluate(0.0, in_flight=False) is GateDecision.DISPATCH
        assert gate.last_processed == 0.0

    def test_throttles_idle_candidates(self):
        gate = SamplingGate(process_interval=3.0, accumulate_interval=6.0)
        decisions = [gate.evaluate(t, in_flight=False) for t in (0.0, 1.0, 2.0, 3.0)]
        assert decisions == [
            GateDecision.DISPATCH,
            GateDecision.DROP,
            GateDecision.DROP,
            GateDecision.DISPATCH,
        ]

    def test_dropped_candidate_does_not_move_timestamp(self):
        gate = SamplingGate(process_interval=3.0)
        gate.evaluate(0.0, in_flight=False)
        gate.evaluate(2.9, in_flight=False)
        assert gate.last_processed == 0.0

    def test_zero_interval_admits_everything(self):
        gate = SamplingGate(process_interval=0.0)
        assert all(
            gate.evaluate(t, in_flight=False) is GateDecision.DISPATCH
            for t in (0.0, 0.0, 0.1)
        )


class TestAccumulation:

    def test_accumulate_interval_while_in_flight(self):
        gate = SamplingGate(process_interval=0.0, accumulate_interval=6.0)

        assert gate.evaluate(0.0, in_flight=True) is GateDecision.ACCUMULATE
        gate.mark_accumulated(0.0)
        assert gate.evaluate(2.0, in_flight=True) is GateDecision.DROP
        assert gate.evaluate(6.0, in_flight=True) is GateDecision.ACCUMULATE

    def test_process_interval_advances_in_accumulation_mode(self):
        gate = SamplingGate(process_interval=3.0, accumulate_interval=6.0)
        gate.evaluate(0.0, in_flight=False)

        assert gate.evaluate(3.0, in_flight=True) is GateDecision.ACCUMULATE
        gate.mark_accumulated(3.0)
        assert gate.evaluate(6.0, in_flight=True) is GateDecision.DROP
        assert gate.last_processed == 6.0
        # Inside the process interval of the dropped candidate
        assert gate.evaluate(8.0, in_flight=True) is GateDecision.DROP
        assert gate.evaluate(9.0, in_flight=True) is GateDecision.ACCUMULATE

    def test_unmarked_accumulation_is_retried(self):
        gate = SamplingGate(process_interval=0.0, accumulate_interval=6.0)
        assert gate.evaluate(0.0, in_flight=True) is GateDecision.ACCUMULATE
        # Encoder rejected the frame, nothing was marked
        assert gate.evaluate(1.0, in_flight=True) is GateDecision.ACCUMULATE

    def test_reset(self):
        gate = SamplingGate()
        gate.evaluate(0.0, in_flight=False)
        gate.mark_accumulated(0.0)
        gate.reset()
        assert gate.last_processed is None
        assert gate.last_accumulated is None


def test_negative_intervals_rejected():
    with pytest.raises(ValueError):
        SamplingGate(process_interval=-1.0)
    with pytest.raises(ValueError):
        SamplingGate(accumulate_interval=-1.0)
