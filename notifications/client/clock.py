"""
One shared clock for every countdown on screen, and the time gate on action links.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from notifications.payloads import scheduled_event_at

logger = logging.getLogger('notifications.client')

DEFAULT_LEAD = timedelta(minutes=30)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_internal_link(url: Optional[str]) -> bool:
    """``/path`` is an in-app route; anything else opens as an external link"""
    return bool(url) and url.startswith('/')


def format_countdown(remaining: timedelta) -> str:
    total = max(int(remaining.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {seconds:02d}s"


class SharedClock:
    """
    A single time source. ``tick`` is called by the owner (the sync poll loop)
    and fans the current time out to every subscriber; subscribers never start
    timers of their own.
    """

    def __init__(self, now: Callable[[], datetime] = utcnow):
        self._now = now
        self._subscribers: Dict[int, Callable[[datetime], None]] = {}
        self._next_token = 0

    def now(self) -> datetime:
        return self._now()

    def subscribe(self, callback: Callable[[datetime], None]) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback

        def unsubscribe():
            self._subscribers.pop(token, None)
        return unsubscribe

    def tick(self) -> datetime:
        now = self.now()
        for callback in list(self._subscribers.values()):
            callback(now)
        return now

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


@dataclass(frozen=True)
class ActionLinkState:
    url: str
    text: str
    internal: bool
    enabled: bool
    opens_at: Optional[datetime] = None
    remaining: timedelta = timedelta(0)

    @property
    def countdown(self) -> str:
        return '' if self.enabled else format_countdown(self.remaining)


def action_link_state(entry, now: datetime, lead: timedelta = DEFAULT_LEAD) -> Optional[ActionLinkState]:
    """
    Link state for ``entry`` at ``now``. A link to the meeting of a scheduled
    event opens at exactly ``event time - lead``; every other link, a booking
    details page included, is always enabled.
    """
    if not entry.action_url:
        return None

    payload = entry.typed_payload
    joins_meeting = payload is not None and getattr(payload, 'meeting_url', None) == entry.action_url
    event_at = scheduled_event_at(payload) if joins_meeting else None
    common = {
        'url': entry.action_url,
        'text': entry.action_text or 'Open',
        'internal': is_internal_link(entry.action_url),
    }
    if event_at is None:
        return ActionLinkState(enabled=True, **common)

    opens_at = event_at - lead
    enabled = now >= opens_at
    return ActionLinkState(
        enabled=enabled,
        opens_at=opens_at,
        remaining=timedelta(0) if enabled else opens_at - now,
        **common
    )


class ActionLinkGate:
    """Countdown states for tracked entries, recomputed on every clock tick"""

    def __init__(self, clock: SharedClock, lead: timedelta = DEFAULT_LEAD):
        self.clock = clock
        self.lead = lead
        self._entries = {}
        self._states: Dict[str, ActionLinkState] = {}
        self._unsubscribe = clock.subscribe(self._on_tick)

    def track(self, entry) -> Optional[ActionLinkState]:
        if entry.deleted or not entry.action_url:
            self.untrack(entry.id)
            return None
        self._entries[entry.id] = entry
        state = action_link_state(entry, self.clock.now(), self.lead)
        self._states[entry.id] = state
        return state

    def untrack(self, notification_id: str) -> None:
        self._entries.pop(notification_id, None)
        self._states.pop(notification_id, None)

    def state(self, notification_id: str) -> Optional[ActionLinkState]:
        return self._states.get(notification_id)

    def _on_tick(self, now: datetime) -> None:
        for notification_id, entry in self._entries.items():
            previous = self._states.get(notification_id)
            state = action_link_state(entry, now, self.lead)
            self._states[notification_id] = state
            if previous is not None and not previous.enabled and state.enabled:
                logger.info(f"Action link for {notification_id} is now open")

    def close(self) -> None:
        self._unsubscribe()
        self._entries.clear()
        self._states.clear()
