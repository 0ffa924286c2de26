"""
View State Store
Single serialized update path for the follower DisplayState
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from .models import DisplayState, FieldGroup


StateObserver = Callable[[DisplayState], None]
StateUpdate = Callable[[DisplayState], Optional[DisplayState]]


class ViewStateStore:
    """
    Holds the current DisplayState and applies updates atomically

    Writers (fetch completions on worker threads and the countdown ticker on
    timer threads) never touch fields directly: they hand an update function
    to `apply()`, which runs it under one lock against the current snapshot
    and swaps in the returned value. Observers are called under the same
    lock, so they see states in the order they were produced.

    Every write is fenced by a session id. Once `end_session()` has run, or a
    newer session has begun, late completions from the old session are
    dropped.

    Attributes:
        logger (logging.Logger): Logger instance
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._state = DisplayState()
        self._session_id = 0
        self._active = False
        self._applied_cycles: Dict[FieldGroup, int] = {}
        self._observers: List[StateObserver] = []

    # ==================== SESSION FENCING ====================

    def begin_session(self, use_mmol: bool) -> int:
        """
        Reset to an empty state and open a new session

        Args:
            use_mmol: Unit preference of the new session

        Returns:
            Session id to pass to `apply()`
        """
        with self._lock:
            self._session_id += 1
            self._active = True
            self._applied_cycles = {}
            self._state = DisplayState(use_mmol=use_mmol)
            self._notify(self._state)
            self.logger.debug(f"View state session {self._session_id} started")
            return self._session_id

    def end_session(self):
        """Stop accepting writes; the last snapshot stays readable"""
        with self._lock:
            if self._active:
                self.logger.debug(f"View state session {self._session_id} ended")
            self._active = False

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    # ==================== READ & OBSERVE ====================

    def snapshot(self) -> DisplayState:
        with self._lock:
            return self._state

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """
        Register an observer called with every new DisplayState

        Args:
            observer: Callable taking the new snapshot

        Returns:
            Callable that removes the observer again
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    # ==================== WRITE ====================

    def apply(self, session_id: int, update: StateUpdate,
              group: Optional[FieldGroup] = None, cycle: Optional[int] = None) -> bool:
        """
        Apply one batch of changes atomically

        Args:
            session_id: Session the write belongs to
            update: Function mapping the current state to the new state,
                or returning None to leave it unchanged
            group: Field group written by a fetch completion
            cycle: Fetch cycle the completion belongs to; a completion from
                an older cycle than the last one applied to `group` is dropped

        Returns:
            bool: True if the update was applied
        """
        with self._lock:
            if not self._active or session_id != self._session_id:
                self.logger.debug(f"Dropping write from inactive session {session_id}")
                return False

            tracked = group is not None and cycle is not None
            if tracked:
                last_cycle = self._applied_cycles.get(group)
                if last_cycle is not None and cycle < last_cycle:
                    self.logger.debug(
                        f"Dropping stale {group.value} update from cycle {cycle} "
                        f"(cycle {last_cycle} already applied)"
                    )
                    return False

            new_state = update(self._state)
            if new_state is None:
                return False

            if tracked:
                self._applied_cycles[group] = cycle

            if new_state != self._state:
                self._state = new_state
                self._notify(new_state)
            return True

    def _notify(self, state: DisplayState):
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception as e:
                self.logger.error(f"State observer failed: {e}", exc_info=True)
