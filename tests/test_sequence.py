from __future__ import annotations

import pytest

from burrow.sequence import fixed_isn, random_isn, scripted_isn, seq_add, seq_distance, seq_in_window


def test_add_wraps():
    assert seq_add(0xFFFF, 1) == 0
    assert seq_add(0xFFFE, 5) == 3
    assert seq_add(0, -1) == 0xFFFF


def test_distance_is_forward():
    assert seq_distance(0xFFFE, 2) == 4
    assert seq_distance(2, 0xFFFE) == 0xFFFC


def test_window_across_wrap():
    assert seq_in_window(0xFFFF, 0xFFFE, 3)
    assert seq_in_window(1, 0xFFFE, 3)
    assert not seq_in_window(2, 0xFFFE, 3)
    assert not seq_in_window(0xFFFD, 0xFFFE, 3)


def test_window_is_closed_interval():
    assert seq_in_window(10, 10, 0)
    assert seq_in_window(15, 10, 5)
    assert not seq_in_window(16, 10, 5)


def test_isn_sources():
    assert 0 <= random_isn() <= 0xFFFF
    assert fixed_isn(0x4444)() == 0x4444
    nxt = scripted_isn([1, 2])
    assert (nxt(), nxt()) == (1, 2)
    with pytest.raises(ValueError):
        fixed_isn(0x10000)
