import asyncio
import inspect
import logging
from typing import Callable, Optional

from notifications.channels.inapp_handler import PUSH_EVENT_TYPE, recipient_group
from notifications.client.store import FeedEntry

logger = logging.getLogger('notifications.client')


class ChannelLayerPushListener:
    """
    Receives ``notification.push`` events for one recipient straight from the
    Channels layer group the server publishes to.

    ``detach`` is synchronous and stops delivery immediately; ``aclose`` also
    removes the channel from the group.
    """

    def __init__(self, channel_layer, recipient_id: str):
        self.channel_layer = channel_layer
        self.group_name = recipient_group(recipient_id)
        self.channel_name: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._on_entry: Optional[Callable] = None

    @property
    def attached(self) -> bool:
        return self._task is not None and not self._task.done()

    async def attach(self, on_entry: Callable[[FeedEntry], None]) -> None:
        if self.attached:
            return
        self._on_entry = on_entry
        self.channel_name = await self.channel_layer.new_channel()
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        self._task = asyncio.create_task(self._receive_loop())
        logger.info(f"Push listener attached to {self.group_name}")

    async def _receive_loop(self) -> None:
        while True:
            message = await self.channel_layer.receive(self.channel_name)
            if message.get('type') != PUSH_EVENT_TYPE:
                continue
            try:
                entry = FeedEntry.from_dict(message['entry'])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropped malformed push message: {str(e)}")
                continue
            result = self._on_entry(entry)
            if inspect.isawaitable(result):
                await result

    def detach(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._on_entry = None

    async def aclose(self) -> None:
        self.detach()
        if self.channel_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            self.channel_name = None
