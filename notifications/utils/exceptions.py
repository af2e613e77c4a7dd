class NotificationError(Exception):
    """Base class for notification pipeline errors"""


class ScheduleInPastError(NotificationError):
    """A scheduled_at that is not strictly in the future. Correctable by the submitter."""

    def __init__(self, scheduled_at, now):
        self.scheduled_at = scheduled_at
        self.now = now
        super().__init__(f"scheduled_at {scheduled_at.isoformat()} is not after {now.isoformat()}")


class DirectoryUnavailableError(NotificationError):
    """The recipient directory could not be read; the whole dispatch is aborted."""


class NotificationAlreadySentError(NotificationError):
    """Dispatch requested for a notification that already left draft/scheduled without resend."""


class NotificationLockedError(NotificationError):
    """Content edit or deletion attempted on a notification that can no longer change."""


class ChannelAdapterFailure(NotificationError):
    """A single channel send failed. Recorded on the delivery record, never propagated to siblings."""

    def __init__(self, channel, recipient_id, reason):
        self.channel = channel
        self.recipient_id = recipient_id
        self.reason = reason
        super().__init__(f"{channel} delivery to {recipient_id} failed: {reason}")


class ClientSyncNetworkError(NotificationError):
    """The client could not reach the notification feed. Retried on the next poll tick."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class UnknownRecipientWarning(UserWarning):
    """Targeted user ids that are missing or inactive in the directory."""
