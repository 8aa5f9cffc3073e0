"""Push events to connected desktop clients over the ``updates`` group."""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

GROUP = "updates"


def broadcast(event_type: str, **payload) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {"type": event_type, **payload}
    try:
        async_to_sync(channel_layer.group_send)(GROUP, event)
    except Exception as e:
        # Best effort
        logger.warning("Broadcast of %s failed: %s", event_type, e)
