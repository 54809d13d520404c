"""Authentication session lifecycle as an explicit state machine.

    ANONYMOUS --credentials_accepted--> AUTHENTICATED
    ANONYMOUS --second_factor_required--> AWAITING_SECOND_FACTOR
    AWAITING_SECOND_FACTOR --second_factor_accepted--> AUTHENTICATED
    AUTHENTICATED --refreshed--> AUTHENTICATED
    AUTHENTICATED --logged_out--> REVOKED
    AUTHENTICATED --refresh_expired--> EXPIRED

EXPIRED and REVOKED are terminal: the client starts over from ANONYMOUS.
"""

import enum


class SessionState(str, enum.Enum):
    ANONYMOUS = "ANONYMOUS"
    AWAITING_SECOND_FACTOR = "AWAITING_SECOND_FACTOR"
    AUTHENTICATED = "AUTHENTICATED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class SessionEvent(str, enum.Enum):
    CREDENTIALS_ACCEPTED = "CREDENTIALS_ACCEPTED"
    SECOND_FACTOR_REQUIRED = "SECOND_FACTOR_REQUIRED"
    SECOND_FACTOR_ACCEPTED = "SECOND_FACTOR_ACCEPTED"
    REFRESHED = "REFRESHED"
    LOGGED_OUT = "LOGGED_OUT"
    REFRESH_EXPIRED = "REFRESH_EXPIRED"


TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.ANONYMOUS, SessionEvent.CREDENTIALS_ACCEPTED): SessionState.AUTHENTICATED,
    (SessionState.ANONYMOUS, SessionEvent.SECOND_FACTOR_REQUIRED): SessionState.AWAITING_SECOND_FACTOR,
    (SessionState.AWAITING_SECOND_FACTOR, SessionEvent.SECOND_FACTOR_ACCEPTED): SessionState.AUTHENTICATED,
    (SessionState.AUTHENTICATED, SessionEvent.REFRESHED): SessionState.AUTHENTICATED,
    (SessionState.AUTHENTICATED, SessionEvent.LOGGED_OUT): SessionState.REVOKED,
    (SessionState.AUTHENTICATED, SessionEvent.REFRESH_EXPIRED): SessionState.EXPIRED,
}


class InvalidTransitionError(Exception):
    """Raised when an event is not allowed from the current state."""

    def __init__(self, state: SessionState, event: SessionEvent):
        self.state = state
        self.event = event
        super().__init__(f"Cannot apply {event.value} in state {state.value}")


def advance(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state reached by applying `event` to `state`."""
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state, event)
