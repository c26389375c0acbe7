"""Advisory anti-cheat logging for a running quiz."""

from __future__ import annotations

import logging

from debug_arena.constants.quiz_constants import COPY_PASTE_DETAILS, TAB_SWITCH_DETAILS
from debug_arena.core.errors import StorageError
from debug_arena.core.models import CheatEvent, CheatEventType, SessionContext
from debug_arena.core.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)


class CheatMonitor:
    """Counts and records suspicious learner behaviour.

    Nothing here blocks the session or affects scoring; failed writes are
    only logged.
    """

    def __init__(self, store: QuizStore, context: SessionContext, assignment_id: str | None = None) -> None:
        self._store = store
        self._context = context
        self._assignment_id = assignment_id
        self._tab_switch_count = 0

    @property
    def tab_switch_count(self) -> int:
        return self._tab_switch_count

    def record_tab_switch(self) -> int:
        self._tab_switch_count += 1
        self._record(CheatEventType.TAB_SWITCH, TAB_SWITCH_DETAILS)
        return self._tab_switch_count

    def record_copy_paste_attempt(self, action: str | None = None) -> None:
        details = f"{COPY_PASTE_DETAILS} ({action})" if action else COPY_PASTE_DETAILS
        self._record(CheatEventType.COPY_PASTE_ATTEMPT, details)

    def record_back_navigation(self) -> None:
        logger.info("Back navigation suppressed for user %s on %s", self._context.user_id, self._assignment_id)

    def _record(self, event_type: CheatEventType, details: str) -> None:
        logger.info("Cheat event %s for user %s on %s", event_type.value, self._context.user_id, self._assignment_id)
        event = CheatEvent(
            user_id=self._context.user_id,
            assignment_id=self._assignment_id,
            event_type=event_type,
            details=details,
        )
        try:
            self._store.insert_cheat_event(event)
        except StorageError as exc:
            logger.warning("Could not store cheat event %s: %s", event_type.value, exc)
