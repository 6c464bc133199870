"""
Unit tests for the status enums
"""

import pytest

from src.core.enums import PositionSide, PositionStatus, TransferStatus


def test_live_moves_only_to_terminal_states():
    assert PositionStatus.LIVE.can_transition_to(PositionStatus.CLOSED)
    assert PositionStatus.LIVE.can_transition_to(PositionStatus.BUSTED)
    assert not PositionStatus.LIVE.can_transition_to(PositionStatus.LIVE)


@pytest.mark.parametrize("terminal", [PositionStatus.CLOSED, PositionStatus.BUSTED])
def test_terminal_states_are_one_way(terminal):
    assert terminal.is_terminal()
    for target in PositionStatus:
        assert not terminal.can_transition_to(target)


def test_side_parse_is_strict():
    assert PositionSide.parse("up") is PositionSide.UP
    assert PositionSide.parse("down") is PositionSide.DOWN
    with pytest.raises(ValueError):
        PositionSide.parse("UP")


def test_transfer_status_terminal():
    assert not TransferStatus.PENDING.is_terminal()
    assert all(
        status.is_terminal()
        for status in (TransferStatus.SUCCESS, TransferStatus.PROCESSED, TransferStatus.FAILED)
    )
