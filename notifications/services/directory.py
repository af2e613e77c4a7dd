import requests
import logging
from dataclasses import dataclass
from django.conf import settings
from django.db import DatabaseError
from django.utils.module_loading import import_string
from typing import Iterable, Optional, Set
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from notifications.utils.exceptions import DirectoryUnavailableError

logger = logging.getLogger('notifications.directory')


@dataclass(frozen=True)
class RecipientIdentity:
    id: str
    name: str
    role: str
    active: bool = True
    email: str = ''
    phone: str = ''


class RecipientDirectory:
    """
    Read-only view of who exists, their role and whether they are active.

    ``list_by_role`` and ``list_active`` only return active recipients.
    Implementations raise DirectoryUnavailableError when the backing store cannot be read.
    """

    def lookup(self, ids: Iterable[str]) -> Set[RecipientIdentity]:
        raise NotImplementedError

    def list_by_role(self, role: str) -> Set[str]:
        raise NotImplementedError

    def list_active(self) -> Set[RecipientIdentity]:
        raise NotImplementedError

    def get(self, recipient_id: str) -> Optional[RecipientIdentity]:
        found = self.lookup([recipient_id])
        return next(iter(found), None)


class ModelRecipientDirectory(RecipientDirectory):
    """Directory backed by the local Recipient table"""

    @staticmethod
    def _identity(row) -> RecipientIdentity:
        return RecipientIdentity(
            id=row.user_id,
            name=row.name,
            role=row.role,
            active=row.is_active,
            email=row.email,
            phone=row.phone,
        )

    def lookup(self, ids):
        from notifications.models import Recipient
        try:
            rows = Recipient.objects.filter(user_id__in=[str(i) for i in ids])
            return {self._identity(row) for row in rows}
        except DatabaseError as e:
            raise DirectoryUnavailableError(f"Recipient table unreadable: {str(e)}") from e

    def list_by_role(self, role):
        from notifications.models import Recipient
        try:
            return set(
                Recipient.objects.filter(role=role, is_active=True).values_list('user_id', flat=True)
            )
        except DatabaseError as e:
            raise DirectoryUnavailableError(f"Recipient table unreadable: {str(e)}") from e

    def list_active(self):
        from notifications.models import Recipient
        try:
            return {self._identity(row) for row in Recipient.objects.filter(is_active=True)}
        except DatabaseError as e:
            raise DirectoryUnavailableError(f"Recipient table unreadable: {str(e)}") from e


class AuthServiceDirectory(RecipientDirectory):
    """Directory served by the platform's auth service over HTTP"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        self.base_url = (base_url or settings.AUTH_SERVICE_URL).rstrip('/')
        self.timeout = timeout or getattr(settings, 'AUTH_SERVICE_TIMEOUT', 10)

        # Setup retry strategy
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            status_forcelist=[429, 500, 502, 503, 504],
            backoff_factor=1
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _get(self, path: str, params: dict):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(
                url,
                params=params,
                headers={'Content-Type': 'application/json', 'User-Agent': 'TutoringNotifications/1.0'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Directory request {path} failed: {str(e)}")
            raise DirectoryUnavailableError(f"Auth service directory unavailable: {str(e)}") from e

    @staticmethod
    def _identity(data: dict) -> RecipientIdentity:
        return RecipientIdentity(
            id=str(data['id']),
            name=data.get('name', ''),
            role=data.get('role', ''),
            active=data.get('is_active', True),
            email=data.get('email') or '',
            phone=data.get('phone') or '',
        )

    def lookup(self, ids):
        ids = [str(i) for i in ids]
        if not ids:
            return set()
        data = self._get('/api/users/lookup/', {'ids': ','.join(ids)})
        return {self._identity(item) for item in data.get('results', [])}

    def list_by_role(self, role):
        data = self._get('/api/users/', {'role': role, 'is_active': 'true'})
        return {str(item['id']) for item in data.get('results', []) if item.get('is_active', True)}

    def list_active(self):
        data = self._get('/api/users/', {'is_active': 'true'})
        return {self._identity(item) for item in data.get('results', []) if item.get('is_active', True)}


def get_directory() -> RecipientDirectory:
    backend = getattr(settings, 'RECIPIENT_DIRECTORY_BACKEND',
                      'notifications.services.directory.ModelRecipientDirectory')
    return import_string(backend)()
