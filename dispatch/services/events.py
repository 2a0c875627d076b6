"""
State-change events pushed to connected clients over the channel layer.

Events are sent after the surrounding transaction commits so clients
never observe a transition that was rolled back.  Delivery is best
effort: a missing or failing channel layer is logged, never raised.
"""
import logging
from typing import Any, Dict, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

EVENT_TYPE = 'dispatch.event'


def user_group(user_id) -> str:
    return f"user.{user_id}"


def hospital_group(hospital_id) -> str:
    return f"hospital.{hospital_id}"


def driver_group(driver_id) -> str:
    return f"driver.{driver_id}"


def publish(groups: Iterable[str], event: str, payload: Dict[str, Any]) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    message = {
        'type': EVENT_TYPE,
        'event': event,
        'ts': timezone.now().isoformat(),
        'payload': payload,
    }
    for group in groups:
        try:
            async_to_sync(channel_layer.group_send)(group, message)
        except Exception:
            logger.exception('failed to publish %s to %s', event, group)


def publish_on_commit(groups: Iterable[str], event: str, payload: Dict[str, Any]) -> None:
    groups = list(groups)
    transaction.on_commit(lambda: publish(groups, event, payload))
