from django.utils import timezone
from notifications.models import Channel
from notifications.utils.exceptions import ScheduleInPastError
import logging

logger = logging.getLogger('notifications.orchestrator')

VALID_CHANNELS = {tag.value for tag in Channel}


def validate_schedule(scheduled_at, now=None):
    """A requested schedule time must lie strictly after ``now``"""
    if scheduled_at is None:
        return None
    now = now or timezone.now()
    if scheduled_at <= now:
        logger.warning(f"Rejected schedule at {scheduled_at.isoformat()}, now is {now.isoformat()}")
        raise ScheduleInPastError(scheduled_at, now)
    return scheduled_at


def validate_channels(channels):
    """Deduplicate while keeping order; unknown or empty channel lists are rejected"""
    if not channels:
        raise ValueError("At least one channel is required.")
    cleaned = []
    for channel in channels:
        channel = channel.value if isinstance(channel, Channel) else str(channel)
        if channel not in VALID_CHANNELS:
            raise ValueError(f"Unsupported channel: {channel}")
        if channel not in cleaned:
            cleaned.append(channel)
    return cleaned
