"""
Version-keyed arena of feed entries.

Entries are keyed by notification id and replaced only by a strictly higher
server version, so merging the same server state in any order (poll first or push
first) ends in the same list. Deleted entries stay as tombstones so a late,
older copy cannot bring them back.
"""
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from django.utils.dateparse import parse_datetime

from notifications.payloads import PayloadError, parse_payload

logger = logging.getLogger('notifications.client')

READ = 'read'


def _parse_dt(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return parse_datetime(value)


@dataclass(frozen=True)
class FeedEntry:
    id: str
    kind: str
    level: str
    title: str
    message: str
    created_at: datetime
    status: str
    version: int
    action_url: str = ''
    action_text: str = ''
    image_url: str = ''
    read_at: Optional[datetime] = None
    deleted: bool = False
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FeedEntry':
        return cls(
            id=str(data['id']),
            kind=data.get('kind') or data.get('type') or 'general',
            level=data.get('level', 'info'),
            title=data.get('title', ''),
            message=data.get('message', ''),
            created_at=_parse_dt(data['created_at']),
            status=data.get('status', 'pending'),
            version=int(data.get('version', 0)),
            action_url=data.get('action_url') or '',
            action_text=data.get('action_text') or '',
            image_url=data.get('image_url') or '',
            read_at=_parse_dt(data.get('read_at')),
            deleted=bool(data.get('deleted', False)),
            payload=data.get('payload') or {},
        )

    @property
    def is_unread(self) -> bool:
        return self.status != READ

    @property
    def typed_payload(self):
        """The kind's payload dataclass, or None when the server sent a malformed one"""
        try:
            return parse_payload(self.kind, self.payload)
        except (PayloadError, ValueError) as e:
            logger.warning(f"Entry {self.id} carries an unusable {self.kind} payload: {str(e)}")
            return None


class NotificationStore:

    def __init__(self):
        self._entries: Dict[str, FeedEntry] = {}
        self._reconcile: Set[str] = set()

    def merge(self, entry: FeedEntry) -> bool:
        """
        Take ``entry`` if it is newer than what we hold. Entries flagged for
        reconcile also accept an equal version, which restores server truth after
        a failed optimistic change. Returns whether the store changed.
        """
        current = self._entries.get(entry.id)
        if current is not None:
            newer = entry.version > current.version
            restoring = entry.id in self._reconcile and entry.version >= current.version
            if not (newer or restoring):
                return False
        self._entries[entry.id] = entry
        self._reconcile.discard(entry.id)
        return current != entry

    def merge_many(self, entries: Iterable[FeedEntry]) -> List[FeedEntry]:
        return [entry for entry in entries if self.merge(entry)]

    def get(self, notification_id: str) -> Optional[FeedEntry]:
        entry = self._entries.get(str(notification_id))
        return None if entry is None or entry.deleted else entry

    def entries(self) -> List[FeedEntry]:
        """Visible entries, newest first"""
        visible = [entry for entry in self._entries.values() if not entry.deleted]
        return sorted(visible, key=lambda entry: (entry.created_at, entry.id), reverse=True)

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self._entries.values() if not entry.deleted and entry.is_unread)

    # Optimistic local changes keep the server version, so only a newer server
    # copy (or a reconcile) replaces them.

    def apply_read(self, notification_id: str, now: Optional[datetime] = None) -> bool:
        entry = self.get(notification_id)
        if entry is None or not entry.is_unread:
            return False
        self._entries[entry.id] = dataclasses.replace(
            entry, status=READ, read_at=now or datetime.now(timezone.utc)
        )
        return True

    def apply_delete(self, notification_id: str) -> bool:
        entry = self.get(notification_id)
        if entry is None:
            return False
        self._entries[entry.id] = dataclasses.replace(entry, deleted=True)
        return True

    def apply_read_all(self, now: Optional[datetime] = None) -> List[str]:
        return [entry.id for entry in self.entries() if self.apply_read(entry.id, now)]

    def flag_reconcile(self, notification_id: str) -> None:
        self._reconcile.add(str(notification_id))

    @property
    def needs_reconcile(self) -> bool:
        return bool(self._reconcile)

    def pending_reconcile(self) -> Set[str]:
        return set(self._reconcile)

    def clear_reconcile(self, ids: Optional[Iterable[str]] = None) -> None:
        if ids is None:
            self._reconcile.clear()
        else:
            self._reconcile.difference_update(ids)

    def clear(self) -> None:
        self._entries.clear()
        self._reconcile.clear()

    def __len__(self):
        return len(self.entries())
