"""
Client-side notification sync: keeps a recipient's notification list current from
the feed API and the push channel.
"""
from .api import FeedPage, NotificationApiClient
from .clock import ActionLinkGate, ActionLinkState, SharedClock, action_link_state, is_internal_link
from .push import ChannelLayerPushListener
from .session import SyncSession
from .store import FeedEntry, NotificationStore
from .sync import NotificationSync, Toast

__all__ = [
    'ActionLinkGate',
    'ActionLinkState',
    'ChannelLayerPushListener',
    'FeedEntry',
    'FeedPage',
    'NotificationApiClient',
    'NotificationStore',
    'NotificationSync',
    'SharedClock',
    'SyncSession',
    'Toast',
    'action_link_state',
    'is_internal_link',
]
