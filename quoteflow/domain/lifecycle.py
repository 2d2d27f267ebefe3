from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from quoteflow.domain.errors import IllegalTransitionError
from quoteflow.domain.models import DisplayState, LocationStatus


DISPLAY_TRANSITIONS: dict[DisplayState, set[DisplayState]] = {
    DisplayState.EDITING: {DisplayState.SUBMITTING, DisplayState.ERROR},
    DisplayState.SUBMITTING: {DisplayState.SUCCESS, DisplayState.ERROR},
    DisplayState.SUCCESS: {DisplayState.EDITING},
    DisplayState.ERROR: {DisplayState.EDITING},
}


# City selection is not a status of its own: it is allowed while the tracker
# sits in DENIED or ERROR.
LOCATION_TRANSITIONS: dict[LocationStatus, set[LocationStatus]] = {
    LocationStatus.IDLE: {LocationStatus.REQUESTING, LocationStatus.DENIED},
    LocationStatus.REQUESTING: {LocationStatus.GRANTED, LocationStatus.ERROR},
    LocationStatus.GRANTED: {LocationStatus.IDLE},
    LocationStatus.DENIED: {LocationStatus.IDLE},
    LocationStatus.ERROR: {LocationStatus.IDLE},
}

CITY_SELECTION_STATES: frozenset[LocationStatus] = frozenset({LocationStatus.DENIED, LocationStatus.ERROR})


def ensure_transition(table: Mapping[Any, set[Any]], *, from_state: str, to_state: str) -> None:
    if to_state not in table.get(from_state, set()):
        raise IllegalTransitionError(f"transition {from_state} -> {to_state} is not allowed")
