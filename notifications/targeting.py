"""
Recipient resolution.

A TargetingSpec names who a notification is addressed to; ``resolve`` turns it
into concrete recipient ids by reading the directory at call time.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable
import logging
import warnings

from notifications.utils.exceptions import UnknownRecipientWarning

logger = logging.getLogger('notifications.targeting')


class TargetingError(ValueError):
    """Raised for a targeting definition that cannot be parsed"""


@dataclass(frozen=True)
class AllRecipients:
    mode = 'all'

    def to_dict(self) -> Dict[str, Any]:
        return {'mode': self.mode}


@dataclass(frozen=True)
class ByRoles:
    roles: FrozenSet[str] = field(default_factory=frozenset)
    mode = 'roles'

    def to_dict(self) -> Dict[str, Any]:
        return {'mode': self.mode, 'roles': sorted(self.roles)}


@dataclass(frozen=True)
class ByUserIds:
    user_ids: FrozenSet[str] = field(default_factory=frozenset)
    mode = 'users'

    def to_dict(self) -> Dict[str, Any]:
        return {'mode': self.mode, 'user_ids': sorted(self.user_ids)}


class TargetingSpec:
    """Constructors and parsing for the three targeting variants"""

    @staticmethod
    def all() -> AllRecipients:
        return AllRecipients()

    @staticmethod
    def by_roles(roles: Iterable[str]) -> ByRoles:
        return ByRoles(frozenset(roles))

    @staticmethod
    def by_user_ids(user_ids: Iterable[Any]) -> ByUserIds:
        return ByUserIds(frozenset(str(user_id) for user_id in user_ids))

    @staticmethod
    def from_dict(data: Dict[str, Any]):
        """
        Parse a serialized spec. Only the keys of the active mode are read, so a
        payload that still carries a stale selection for another mode is ignored.
        """
        mode = (data or {}).get('mode')
        if mode == 'all':
            return TargetingSpec.all()
        if mode == 'roles':
            return TargetingSpec.by_roles(data.get('roles') or [])
        if mode == 'users':
            return TargetingSpec.by_user_ids(data.get('user_ids') or [])
        raise TargetingError(f"Unknown targeting mode: {mode!r}")


@dataclass(frozen=True)
class Resolution:
    recipient_ids: FrozenSet[str]
    unknown_count: int = 0


def resolve(spec, directory) -> Resolution:
    """
    Expand a targeting spec into a deduplicated set of active recipient ids.

    Unknown or inactive ids in an explicit list are dropped and counted, never fatal.
    DirectoryUnavailableError from the directory propagates unchanged.
    """
    if isinstance(spec, AllRecipients):
        ids = {identity.id for identity in directory.list_active()}
        logger.info(f"Resolved 'all' to {len(ids)} recipients")
        return Resolution(frozenset(ids))

    if isinstance(spec, ByRoles):
        ids = set()
        for role in spec.roles:
            ids.update(directory.list_by_role(role))
        logger.info(f"Resolved roles {sorted(spec.roles)} to {len(ids)} recipients")
        return Resolution(frozenset(ids))

    if isinstance(spec, ByUserIds):
        if not spec.user_ids:
            return Resolution(frozenset())
        known = {identity.id for identity in directory.lookup(spec.user_ids) if identity.active}
        unknown = len(spec.user_ids - known)
        if unknown:
            message = f"Dropped {unknown} unknown or inactive recipient ids"
            logger.warning(message)
            warnings.warn(message, UnknownRecipientWarning, stacklevel=2)
        return Resolution(frozenset(known), unknown_count=unknown)

    raise TargetingError(f"Unsupported targeting spec: {spec!r}")
