from __future__ import annotations

from burrow.packet import PacketKind
from burrow.selftest import SESSION_ID, build_scenario, run_selftest


def test_scenario_passes():
    outcome = run_selftest()
    assert outcome.failures == []
    assert outcome.passed == len(build_scenario())
    assert outcome.ok


def test_scenario_shape():
    steps = build_scenario()
    assert steps[0].send.kind is PacketKind.DATA
    assert steps[0].expect.kind is PacketKind.TEARDOWN
    assert steps[-2].send.session_id == SESSION_ID
    assert steps[-2].expect is None


def test_runs_are_independent():
    assert run_selftest().passed == run_selftest().passed
