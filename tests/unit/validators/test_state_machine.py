from __future__ import annotations

import pytest

from quoteflow.core.exceptions import ConflictError
from quoteflow.models.enums import NegotiationStatus
from quoteflow.orchestration.state_machine import InvalidTransitionError, negotiation_state_machine


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (NegotiationStatus.OPEN, NegotiationStatus.AWAITING_RESPONSE),
        (NegotiationStatus.OPEN, NegotiationStatus.RESPONDED),
        (NegotiationStatus.OPEN, NegotiationStatus.CANCELLED),
        (NegotiationStatus.AWAITING_RESPONSE, NegotiationStatus.RESPONDED),
        (NegotiationStatus.AWAITING_RESPONSE, NegotiationStatus.CANCELLED),
        (NegotiationStatus.RESPONDED, NegotiationStatus.RESOLVED),
        (NegotiationStatus.RESPONDED, NegotiationStatus.CANCELLED),
    ],
)
def test_allowed_negotiation_transitions(current, target):
    assert negotiation_state_machine.can_transition(current, target)
    negotiation_state_machine.assert_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (NegotiationStatus.OPEN, NegotiationStatus.RESOLVED),
        (NegotiationStatus.AWAITING_RESPONSE, NegotiationStatus.OPEN),
        (NegotiationStatus.AWAITING_RESPONSE, NegotiationStatus.RESOLVED),
        (NegotiationStatus.RESOLVED, NegotiationStatus.CANCELLED),
        (NegotiationStatus.CANCELLED, NegotiationStatus.OPEN),
    ],
)
def test_disallowed_transitions_raise_conflict(current, target):
    with pytest.raises(InvalidTransitionError):
        negotiation_state_machine.assert_transition(current, target)


def test_terminal_states_have_no_exits():
    assert negotiation_state_machine.is_terminal(NegotiationStatus.RESOLVED)
    assert negotiation_state_machine.is_terminal(NegotiationStatus.CANCELLED)
    assert not negotiation_state_machine.is_terminal(NegotiationStatus.RESPONDED)
    assert issubclass(InvalidTransitionError, ConflictError)
