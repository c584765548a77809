"""The candle: a two-state, debounced controller of lit/unlit transitions."""

import logging
from enum import Enum
from typing import Callable, List, Optional

from candlelight.geometry import Rect, is_in_ignition_zone
from candlelight.scheduler import FrameScheduler

logger = logging.getLogger(__name__)

DFLT_COOLDOWN_MS = 2000


class CandleState(str, Enum):
    LIT = 'lit'
    UNLIT = 'unlit'


def hits_ignition_zone(
    display_rect: Optional[Rect], match_position, candle_state: CandleState
) -> bool:
    """
    Whether the match is touching the ignition zone of an unlit candle.

    Only an unlit candle with a visible match is worth testing; anything else is
    "no hit" without computing the zone.
    """
    if candle_state is not CandleState.UNLIT or not match_position.is_visible:
        return False
    if display_rect is None or not display_rect.is_valid:
        return False
    return is_in_ignition_zone(display_rect, (match_position.x, match_position.y))


class CandleStateMachine:
    """
    Decides when the candle goes out and when it is relit.

    * LIT --blow--> UNLIT, unconditionally. Blowing on an unlit candle does nothing.
    * UNLIT --relight--> LIT, unless a cooldown is active. Relighting starts a
      cooldown of ``cooldown_ms`` during which further relights are ignored.

    Both triggers are idempotent in the state they don't apply to, so blow events
    and relight gestures can arrive in any order.

    Args:
        scheduler: Used to time the cooldown.
        cooldown_ms: Length of the cooldown window after a relight.
        initial_state: State the candle starts in.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        *,
        cooldown_ms: float = DFLT_COOLDOWN_MS,
        initial_state: CandleState = CandleState.LIT,
    ):
        self.scheduler = scheduler
        self.cooldown_ms = cooldown_ms
        self._state = CandleState(initial_state)
        self._cooldown_handle: Optional[int] = None
        self._listeners: List[Callable[[CandleState], None]] = []

    @property
    def state(self) -> CandleState:
        return self._state

    @property
    def is_cooling_down(self) -> bool:
        return self._cooldown_handle is not None

    def subscribe(self, listener: Callable[[CandleState], None]):
        """Call ``listener(new_state)`` after every transition."""
        self._listeners.append(listener)

    def blow(self) -> bool:
        """Handle a blow event. Returns True if the candle went out."""
        if self._state is not CandleState.LIT:
            return False
        self._set_state(CandleState.UNLIT)
        return True

    def relight(self) -> bool:
        """Handle a relight gesture. Returns True if the candle was relit."""
        if self._state is not CandleState.UNLIT or self.is_cooling_down:
            return False
        self._set_state(CandleState.LIT)
        self._cooldown_handle = self.scheduler.call_later(
            self.cooldown_ms, self._end_cooldown
        )
        return True

    def handle_match_position(self, display_rect: Optional[Rect], match_position):
        """Relight if the match position touches the ignition zone."""
        if hits_ignition_zone(display_rect, match_position, self._state):
            return self.relight()
        return False

    def dispose(self):
        self.scheduler.cancel(self._cooldown_handle)
        self._cooldown_handle = None
        self._listeners.clear()

    def _end_cooldown(self):
        self._cooldown_handle = None

    def _set_state(self, state: CandleState):
        logger.info(f"Candle: {self._state.value} -> {state.value}")
        self._state = state
        for listener in list(self._listeners):
            listener(state)
