"""
The long-lived sync component behind a recipient's notification dropdown.

Polling is the source of truth and push only shortcuts it. One timer drives both
the poll and every countdown, at most one poll is in flight, and ``stop`` tears
everything down in one synchronous step.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterable, List, Optional

from notifications.client.clock import ActionLinkGate, SharedClock
from notifications.client.session import SyncSession
from notifications.client.store import FeedEntry, NotificationStore
from notifications.payloads import NotificationKind
from notifications.utils.exceptions import ClientSyncNetworkError

logger = logging.getLogger('notifications.client')


@dataclass(frozen=True)
class Toast:
    notification_id: Optional[str]
    title: str
    message: str
    level: str = 'info'


class NotificationSync:

    def __init__(self, api, session: SyncSession, push=None, clock: Optional[SharedClock] = None,
                 poll_interval: float = 30, timeout: float = 10, lead: timedelta = timedelta(minutes=30),
                 on_toast: Optional[Callable[[Toast], None]] = None,
                 on_change: Optional[Callable[['NotificationSync'], None]] = None):
        self.api = api
        self.session = session
        self.push = push
        self.clock = clock or SharedClock()
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.store = NotificationStore()
        self.gate = ActionLinkGate(self.clock, lead)
        self.on_toast = on_toast
        self.on_change = on_change

        self.cursor = None
        self.running = False
        self._timer: Optional[asyncio.Task] = None
        self._poll_in_flight = False

    @classmethod
    def from_settings(cls, api, push=None, **kwargs) -> 'NotificationSync':
        from django.conf import settings
        kwargs.setdefault('poll_interval', settings.NOTIFICATION_POLL_INTERVAL)
        kwargs.setdefault('timeout', settings.NOTIFICATION_CLIENT_TIMEOUT)
        kwargs.setdefault('lead', timedelta(minutes=settings.NOTIFICATION_ACTION_LINK_LEAD_MINUTES))
        session = SyncSession(stale_after=settings.NOTIFICATION_STALE_AFTER_FAILURES)
        return cls(api, session, push=push, **kwargs)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def entries(self) -> List[FeedEntry]:
        return self.store.entries()

    @property
    def unread_count(self) -> int:
        return self.store.unread_count

    @property
    def is_stale(self) -> bool:
        return self.session.is_stale

    def link_state(self, notification_id: str):
        return self.gate.state(notification_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        if self.push is not None:
            await self.push.attach(self._on_push)
        self._timer = asyncio.create_task(self._run())
        logger.info("Notification sync started")

    async def _run(self) -> None:
        while self.running:
            try:
                await self.tick()
            except Exception as e:
                self.session.record_failure(str(e) or e.__class__.__name__)
                logger.exception(f"Notification poll tick failed, retrying in {self.poll_interval}s")
            await asyncio.sleep(self.poll_interval)

    async def tick(self) -> bool:
        """One beat of the shared clock: refresh countdowns, then poll"""
        self.clock.tick()
        return await self.poll()

    def stop(self) -> None:
        """Cancel the timer, detach push and close the session, all before returning"""
        self.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.push is not None:
            self.push.detach()
        self.gate.close()
        self.session.close()
        logger.info("Notification sync stopped")

    async def aclose(self) -> None:
        self.stop()
        if self.push is not None:
            await self.push.aclose()
        await self.api.close()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    async def poll(self) -> bool:
        """
        Fetch changes since the cursor, or everything when a failed optimistic
        change needs reconciling. A poll already in flight makes this a no-op;
        a timeout counts as a failure and waits for the next tick.
        """
        if self._poll_in_flight:
            logger.debug("Poll skipped, previous poll still in flight")
            return False

        full_fetch = self.cursor is None or self.store.needs_reconcile
        reconciling = self.store.pending_reconcile()
        self._poll_in_flight = True
        try:
            page = await asyncio.wait_for(self.api.fetch(None if full_fetch else self.cursor), self.timeout)
        except (ClientSyncNetworkError, asyncio.TimeoutError) as e:
            self.session.record_failure(str(e) or 'timed out')
            logger.info(f"Notification poll failed ({self.session.consecutive_failures} in a row): {e!r}")
            return False
        finally:
            self._poll_in_flight = False

        self.session.record_success()
        changed = self.store.merge_many(page.entries)
        if full_fetch:
            self.store.clear_reconcile(reconciling)
        if page.cursor is not None:
            self.cursor = page.cursor
        self._after_merge(changed, pushed=False)
        return True

    def _on_push(self, entry: FeedEntry) -> None:
        if not self.running:
            return
        self._after_merge(self.store.merge_many([entry]), pushed=True)

    def _after_merge(self, changed: Iterable[FeedEntry], pushed: bool) -> None:
        changed = list(changed)
        for entry in changed:
            self.gate.track(entry)
            if entry.deleted or not entry.is_unread:
                continue
            # Pushed entries always toast; polled ones only when they are verification calls.
            if pushed or entry.kind == NotificationKind.VERIFICATION_CALL.value:
                self._toast_once(entry)
        if changed:
            self._notify_change()

    def _toast_once(self, entry: FeedEntry) -> None:
        if self.on_toast is not None and self.session.should_toast(entry.id):
            self.on_toast(Toast(entry.id, entry.title, entry.message, entry.level))

    def _notify_change(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    # ------------------------------------------------------------------
    # Optimistic actions
    # ------------------------------------------------------------------

    async def mark_as_read(self, notification_id: str) -> bool:
        """A second call on an already-read entry is a no-op and makes no request"""
        if not self.store.apply_read(notification_id, self.clock.now()):
            return False
        self._notify_change()
        try:
            entry = await asyncio.wait_for(self.api.mark_read(notification_id), self.timeout)
        except (ClientSyncNetworkError, asyncio.TimeoutError) as e:
            self._action_failed([notification_id], 'mark as read', e)
            return False
        if self.store.merge(entry):
            self._notify_change()
        return True

    async def delete(self, notification_id: str) -> bool:
        if not self.store.apply_delete(notification_id):
            return False
        self.gate.untrack(notification_id)
        self._notify_change()
        try:
            await asyncio.wait_for(self.api.delete(notification_id), self.timeout)
        except (ClientSyncNetworkError, asyncio.TimeoutError) as e:
            self._action_failed([notification_id], 'delete', e)
            return False
        return True

    async def mark_all_read(self) -> int:
        ids = self.store.apply_read_all(self.clock.now())
        if not ids:
            return 0
        self._notify_change()
        try:
            await asyncio.wait_for(self.api.mark_all_read(), self.timeout)
        except (ClientSyncNetworkError, asyncio.TimeoutError) as e:
            self._action_failed(ids, 'mark all as read', e)
            return 0
        return len(ids)

    def _action_failed(self, ids: List[str], action: str, error) -> None:
        """The local change stays; the next poll is a full fetch that restores server state"""
        for notification_id in ids:
            self.store.flag_reconcile(notification_id)
        logger.warning(f"Could not {action} {len(ids)} notification(s): {error!r}")
        if self.on_toast is not None:
            self.on_toast(Toast(None, 'Notification update failed', f"Could not {action}. Refreshing shortly.", 'error'))
