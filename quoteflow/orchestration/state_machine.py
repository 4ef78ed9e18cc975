"""Canonical state transition table for negotiation sessions."""

from __future__ import annotations

from enum import Enum
from typing import Generic, TypeVar

from quoteflow.core.exceptions import ConflictError
from quoteflow.models.enums import NegotiationStatus

S = TypeVar("S", bound=Enum)


class InvalidTransitionError(ConflictError):
    """Raised when a disallowed state transition is attempted."""

    error_code = "invalid_transition"


class StateMachine(Generic[S]):
    """Transition table over an enum of states; states without exits are terminal."""

    def __init__(self, transitions: dict[S, set[S]]) -> None:
        self._transitions = transitions

    def can_transition(self, current: S, target: S) -> bool:
        return target in self._transitions.get(current, set())

    def is_terminal(self, state: S) -> bool:
        return not self._transitions.get(state)

    def assert_transition(self, current: S, target: S) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(f"Transition not allowed: {current.value} -> {target.value}")


NEGOTIATION_TRANSITIONS: dict[NegotiationStatus, set[NegotiationStatus]] = {
    NegotiationStatus.OPEN: {
        NegotiationStatus.AWAITING_RESPONSE,
        NegotiationStatus.RESPONDED,
        NegotiationStatus.CANCELLED,
    },
    NegotiationStatus.AWAITING_RESPONSE: {
        NegotiationStatus.RESPONDED,
        NegotiationStatus.CANCELLED,
    },
    NegotiationStatus.RESPONDED: {
        NegotiationStatus.RESOLVED,
        NegotiationStatus.CANCELLED,
    },
    NegotiationStatus.RESOLVED: set(),
    NegotiationStatus.CANCELLED: set(),
}

negotiation_state_machine: StateMachine[NegotiationStatus] = StateMachine(NEGOTIATION_TRANSITIONS)
