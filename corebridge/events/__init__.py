"""Engine event fan-out."""

from corebridge.events.broadcaster import EventBroadcaster

__all__ = ["EventBroadcaster"]
