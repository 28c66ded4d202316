"""Presentation gate for the public quiz-taking page.

`resolve_presentation_state` is pure and total: every combination of
inputs maps to exactly one state. Only liveness opens the quiz; the
persisted status merely picks which offline message is shown.
"""

from __future__ import annotations

from datetime import datetime

from .timer import ensure_utc

TAKING = "taking"
OFFLINE = "offline"
OFFLINE_DRAFT = "offline-draft"
OFFLINE_SCHEDULED = "offline-scheduled"
OFFLINE_PAUSED = "offline-paused"
OFFLINE_ENDED = "offline-ended"

_OFFLINE_BY_STATUS = {
    "draft": OFFLINE_DRAFT,
    "scheduled": OFFLINE_SCHEDULED,
    "paused": OFFLINE_PAUSED,
    "ended": OFFLINE_ENDED,
}

_MESSAGES = {
    TAKING: "This quiz is live.",
    OFFLINE: "This quiz is currently offline and not accepting responses.",
    OFFLINE_DRAFT: "This quiz is still being prepared and is not open yet.",
    OFFLINE_SCHEDULED: "This quiz is scheduled and has not started yet.",
    OFFLINE_PAUSED: "This quiz has been paused. Please check back later.",
    OFFLINE_ENDED: "This quiz has ended and is no longer accepting responses.",
}


def resolve_presentation_state(status: str | None, is_live: bool) -> str:
    """Map persisted status and liveness to the state the public page shows.

    A schedule never opens the quiz by itself: a scheduled quiz whose start
    time has passed stays `offline-scheduled` until it is taken live. The
    start time only changes the wording, see `presentation_message`.
    """
    if is_live:
        return TAKING
    return _OFFLINE_BY_STATUS.get((status or "").lower(), OFFLINE)


def presentation_message(state: str, scheduled_at: datetime | None = None, now: datetime | None = None) -> str:
    """Human readable message for a presentation state."""
    if state == OFFLINE_SCHEDULED and scheduled_at is not None:
        start = ensure_utc(scheduled_at)
        if now is not None and start <= ensure_utc(now):
            return "This quiz is scheduled to start shortly."
        return f"This quiz is scheduled to start at {start.strftime('%Y-%m-%d %H:%M UTC')}."
    return _MESSAGES.get(state, _MESSAGES[OFFLINE])
