import json

import pytest
from asgiref.sync import async_to_sync

from dispatch.realtime.consumers import DispatchConsumer, _groups_for
from dispatch.services import events

pytestmark = pytest.mark.django_db


def test_groups_follow_role(requester, hospital, driver, make_user):
    assert _groups_for(requester) == [events.user_group(requester.id)]
    assert _groups_for(hospital.user) == [events.hospital_group(hospital.id)]
    assert _groups_for(driver.user) == [events.driver_group(driver.id)]
    assert _groups_for(make_user('boss', role='admin')) == []


def test_hospital_account_without_profile_gets_no_groups(make_user):
    assert _groups_for(make_user('orphan', role='hospital')) == []


def test_event_forwarded_to_socket():
    sent = []

    class Capturing(DispatchConsumer):
        async def send(self, text_data=None, bytes_data=None, close=False):
            sent.append(json.loads(text_data))

    consumer = Capturing()
    async_to_sync(consumer.dispatch_event)({
        'type': events.EVENT_TYPE,
        'event': 'assignment.status',
        'ts': '2026-01-01T00:00:00+00:00',
        'payload': {'status': 'en_route'},
    })
    assert sent == [{'type': 'assignment.status', 'ts': '2026-01-01T00:00:00+00:00',
                     'payload': {'status': 'en_route'}}]
